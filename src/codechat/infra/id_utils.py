"""Prefixed ID generation.

Every ID uses a ``{prefix}_{random}`` format so its origin is visible:

- ``conv_a8Kx3nQ9mP2r`` : conversation
- ``turn_kJ3pW7mD4bNx`` : user turn inside a conversation
"""

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits
_DEFAULT_LENGTH = 12

CONVERSATION_ID_PREFIX = "conv"
TURN_ID_PREFIX = "turn"


def generate_id(prefix: str, length: int = _DEFAULT_LENGTH) -> str:
    """Return ``"{prefix}_{random}"`` with *length* alphanumeric characters."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(length))
    return f"{prefix}_{suffix}"


def new_conversation_id() -> str:
    return generate_id(CONVERSATION_ID_PREFIX)


def new_turn_id() -> str:
    return generate_id(TURN_ID_PREFIX)
