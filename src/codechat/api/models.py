"""Pydantic bodies for the HTTP API."""

from pydantic import BaseModel, Field, model_validator

from codechat.core.conversation import Conversation

PROMPT_MAX_LENGTH = 200_000


class StartConversationBody(BaseModel):
    model: str | None = Field(default=None, description="Model code to use")
    client_code: str | None = Field(
        default=None, description="Backend the conversation targets"
    )


class UpdateConversationBody(BaseModel):
    discard_token_limit: bool = Field(
        description="Allow silent history trimming for this conversation"
    )


class UpdateStateBody(BaseModel):
    discard_all_token_limits: bool = Field(
        description="Allow silent history trimming for every conversation"
    )


class SaveTurnBody(BaseModel):
    id: str | None = Field(
        default=None, description="Existing turn ID; omit to create a new turn"
    )
    prompt: str = Field(max_length=PROMPT_MAX_LENGTH)
    response: str = ""


class BuildRequestBody(BaseModel):
    """A new user turn to assemble a completion request for."""

    prompt: str = Field(max_length=PROMPT_MAX_LENGTH)
    turn_id: str | None = Field(
        default=None, description="ID of the turn being retried"
    )
    is_retry: bool = False
    use_contextual_search: bool = False
    model: str | None = Field(
        default=None,
        description="Model code; defaults to the conversation's, then the configured",
    )
    overridden_path: str | None = None

    @model_validator(mode="after")
    def _retry_needs_turn_id(self) -> "BuildRequestBody":
        if self.is_retry and not self.turn_id:
            raise ValueError("turn_id is required when is_retry is set")
        return self


class IndexFilesBody(BaseModel):
    paths: list[str] = Field(min_length=1, description="Files to index")


class IndexFilesResponse(BaseModel):
    entries: int = Field(description="Chunks in the index after indexing")


class StartServerBody(BaseModel):
    model_path: str | None = Field(
        default=None, description="GGUF model; defaults to the configured path"
    )


class ConversationList(BaseModel):
    conversations: list[Conversation]
