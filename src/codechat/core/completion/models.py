"""Wire-level request values produced by the assembler.

The two backends take structurally different requests, so they are
modelled as separate variants tagged by ``backend`` rather than one
model with optional fields.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

Role = Literal["system", "user", "assistant"]

BACKEND_CHAT = "chat"
BACKEND_ALTERNATE = "alternate"


class ChatMessage(BaseModel):
    """A single role-tagged message."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class ChatRequest(BaseModel):
    """Request for providers sharing the OpenAI chat completion schema."""

    model_config = ConfigDict(frozen=True)

    backend: Literal["chat"] = BACKEND_CHAT
    model: str
    messages: list[ChatMessage]
    max_tokens: int = Field(description="Maximum output tokens")
    temperature: float = Field(ge=0.0, le=2.0)
    overridden_path: str | None = Field(
        default=None, description="Endpoint path replacing the provider default"
    )


class AlternateHistoryMessage(BaseModel):
    """One prior exchange in the flat history format."""

    model_config = ConfigDict(frozen=True)

    user_text: str
    assistant_text: str


class AlternateRequest(BaseModel):
    """Request for the You.com backend: prompt plus flat history."""

    model_config = ConfigDict(frozen=True)

    backend: Literal["alternate"] = BACKEND_ALTERNATE
    prompt: str
    history: list[AlternateHistoryMessage] = Field(default_factory=list)
    use_larger_model: bool = False


CompletionRequest = Annotated[
    ChatRequest | AlternateRequest, Field(discriminator="backend")
]
