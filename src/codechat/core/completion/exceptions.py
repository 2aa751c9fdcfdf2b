"""Errors raised while assembling or dispatching a completion request."""

from __future__ import annotations


class TotalUsageExceeded(Exception):
    """Raised when a request would exceed the model's context window and
    neither discard flag allows trimming the history."""

    def __init__(self, total_usage: int, max_tokens: int, model: str) -> None:
        super().__init__(
            f"Total usage of {total_usage} tokens exceeds the "
            f"{max_tokens}-token context of model '{model}'"
        )
        self.total_usage = total_usage
        self.max_tokens = max_tokens
        self.model = model


class BackendNotReady(Exception):
    """Raised when the active backend cannot accept requests yet."""

    def __init__(self, backend: str, state: str) -> None:
        super().__init__(f"Backend '{backend}' is not ready (state={state})")
        self.backend = backend
        self.state = state
