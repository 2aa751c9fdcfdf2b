"""Per-model-family token counting with ``tiktoken``.

Encoders are expensive to build (the BPE ranks are loaded from disk or
downloaded), so one encoder per family is created lazily and kept for
the lifetime of the process.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol

import tiktoken

if TYPE_CHECKING:
    from codechat.core.completion.models import ChatMessage

logger = logging.getLogger(__name__)

ENCODING_CL100K = "cl100k_base"
ENCODING_O200K = "o200k_base"

# Model-code prefixes whose family uses the newer o200k encoding.
_O200K_PREFIXES = ("gpt-4o", "o1", "o3", "o4")


class TokenCounter(Protocol):
    """Anything that can count the tokens of a single message."""

    def count_message_tokens(self, message: "ChatMessage") -> int: ...


class TokenEncoder:
    """Thread-safe token counter for one encoding family."""

    def __init__(self, encoding_name: str) -> None:
        self.encoding_name = encoding_name
        self._encoding: tiktoken.Encoding | None = None
        self._lock = threading.Lock()

    @property
    def encoding(self) -> tiktoken.Encoding:
        if self._encoding is None:
            with self._lock:
                if self._encoding is None:
                    logger.info("Loading %s token encoding", self.encoding_name)
                    self._encoding = tiktoken.get_encoding(self.encoding_name)
        return self._encoding

    def count_text_tokens(self, text: str) -> int:
        if not text:
            return 0
        # Special-token markers in user text are counted as ordinary text.
        return len(self.encoding.encode(text, disallowed_special=()))

    def count_message_tokens(self, message: "ChatMessage") -> int:
        return self.count_text_tokens(message.role + message.content)


def encoding_name_for_model(model: str) -> str:
    """Resolve the encoding family of a model code."""
    if model.lower().startswith(_O200K_PREFIXES):
        return ENCODING_O200K
    return ENCODING_CL100K


_encoders: dict[str, TokenEncoder] = {}
_encoders_lock = threading.Lock()


def get_token_encoder(encoding_name: str = ENCODING_CL100K) -> TokenEncoder:
    """Return the process-wide encoder for *encoding_name*."""
    with _encoders_lock:
        encoder = _encoders.get(encoding_name)
        if encoder is None:
            encoder = _encoders[encoding_name] = TokenEncoder(encoding_name)
        return encoder


def encoder_for_model(model: str) -> TokenEncoder:
    return get_token_encoder(encoding_name_for_model(model))
