"""Completion request pipeline: request values, assembly and dispatch gate."""

from .assembler import RequestAssembler, TrimPolicy
from .dispatch import ensure_backend_ready
from .exceptions import BackendNotReady, TotalUsageExceeded
from .models import (
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_USER,
    AlternateHistoryMessage,
    AlternateRequest,
    ChatMessage,
    ChatRequest,
    CompletionRequest,
)
from .prompt import DEFAULT_SYSTEM_PROMPT

__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "ROLE_ASSISTANT",
    "ROLE_SYSTEM",
    "ROLE_USER",
    "AlternateHistoryMessage",
    "AlternateRequest",
    "BackendNotReady",
    "ChatMessage",
    "ChatRequest",
    "CompletionRequest",
    "RequestAssembler",
    "TotalUsageExceeded",
    "TrimPolicy",
    "ensure_backend_ready",
]
