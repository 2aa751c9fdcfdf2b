"""Conversation domain models.

A ``Turn`` is one user prompt plus (eventually) one assistant response.
A ``Conversation`` keeps its turns in insertion order, which is also the
history order presented to the model.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from codechat.infra.id_utils import new_conversation_id, new_turn_id


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Turn(BaseModel):
    """Immutable user/assistant exchange."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_turn_id, description="Stable turn ID")
    prompt: str = Field(description="User prompt")
    response: str = Field(
        default="", description="Assistant response; empty while in flight"
    )

    def with_response(self, response: str) -> "Turn":
        return self.model_copy(update={"response": response})


class Conversation(BaseModel):
    """Ordered chat history plus the per-conversation discard flag."""

    id: str = Field(default_factory=new_conversation_id)
    model: str | None = Field(default=None, description="Model code in use")
    client_code: str | None = Field(
        default=None, description="Backend the conversation was started with"
    )
    created_on: datetime = Field(default_factory=utcnow)
    updated_on: datetime = Field(default_factory=utcnow)
    turns: list[Turn] = Field(default_factory=list)
    discard_token_limit: bool = False

    def snapshot(self) -> tuple[Turn, ...]:
        """Turns as of now; later appends do not affect the returned tuple."""
        return tuple(self.turns)


class ConversationsState(BaseModel):
    """Process-wide conversation state."""

    discard_all_token_limits: bool = False
    current_conversation_id: str | None = None
