"""Conversation history: turns, conversations and the shared store."""

from .models import Conversation, ConversationsState, Turn
from .store import ConversationNotFound, ConversationStore, get_conversation_store

__all__ = [
    "Conversation",
    "ConversationNotFound",
    "ConversationStore",
    "ConversationsState",
    "Turn",
    "get_conversation_store",
]
