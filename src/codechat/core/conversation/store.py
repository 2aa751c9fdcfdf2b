"""In-memory conversation store shared by the API and the assembler."""

from __future__ import annotations

import logging
import threading

from codechat.infra.singleton import singleton

from .models import Conversation, ConversationsState, Turn, utcnow

logger = logging.getLogger(__name__)


class ConversationNotFound(LookupError):
    """Raised when a conversation ID is unknown to the store."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class ConversationStore:
    """Lock-protected registry of conversations and the global state.

    Returned ``Conversation`` objects are copies; all mutation goes
    through the store so readers always see a consistent snapshot.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._conversations: dict[str, Conversation] = {}
        self._state = ConversationsState()

    # ------------------------------------------------------------------
    # Global state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConversationsState:
        with self._lock:
            return self._state.model_copy()

    def set_discard_all_token_limits(self, value: bool) -> ConversationsState:
        with self._lock:
            self._state.discard_all_token_limits = value
            return self._state.model_copy()

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def start_conversation(
        self, model: str | None = None, client_code: str | None = None
    ) -> Conversation:
        conversation = Conversation(model=model, client_code=client_code)
        with self._lock:
            self._conversations[conversation.id] = conversation
            self._state.current_conversation_id = conversation.id
        logger.info("Started conversation %s (model=%s)", conversation.id, model)
        return conversation.model_copy(deep=True)

    def get(self, conversation_id: str) -> Conversation:
        with self._lock:
            return self._get(conversation_id).model_copy(deep=True)

    def list_conversations(self) -> list[Conversation]:
        """All conversations, most recently updated first."""
        with self._lock:
            ordered = sorted(
                self._conversations.values(),
                key=lambda c: c.updated_on,
                reverse=True,
            )
            return [c.model_copy(deep=True) for c in ordered]

    def save_turn(self, conversation_id: str, turn: Turn) -> Conversation:
        """Append *turn*, or replace the existing turn with the same ID."""
        with self._lock:
            conversation = self._get(conversation_id)
            for index, existing in enumerate(conversation.turns):
                if existing.id == turn.id:
                    conversation.turns[index] = turn
                    break
            else:
                conversation.turns.append(turn)
            conversation.updated_on = utcnow()
            return conversation.model_copy(deep=True)

    def set_discard_token_limit(
        self, conversation_id: str, value: bool
    ) -> Conversation:
        with self._lock:
            conversation = self._get(conversation_id)
            conversation.discard_token_limit = value
            return conversation.model_copy(deep=True)

    def delete(self, conversation_id: str) -> None:
        with self._lock:
            self._get(conversation_id)
            del self._conversations[conversation_id]
            if self._state.current_conversation_id == conversation_id:
                self._state.current_conversation_id = None

    def clear(self) -> None:
        with self._lock:
            self._conversations.clear()
            self._state.current_conversation_id = None

    def _get(self, conversation_id: str) -> Conversation:
        try:
            return self._conversations[conversation_id]
        except KeyError:
            raise ConversationNotFound(conversation_id) from None


@singleton
def get_conversation_store() -> ConversationStore:
    """Process-wide store (FastAPI dependency)."""
    return ConversationStore()
