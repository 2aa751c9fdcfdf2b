"""Completion request assembly.

Given a new turn and the running conversation, builds the request for
the active backend:

- ``build_alternate_request``: flat prompt + history for the You.com
  backend, which manages its own context budget.
- ``build_chat_request``: role-tagged messages for chat-schema backends,
  fitted to the model's context window:

      system prompt → prior turns (cut at a retried turn) → new prompt
          → budget check → trim (discard flag set) or TotalUsageExceeded

  With contextual search the sole message is the retrieval-augmented
  prompt; no system prompt and no history.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from codechat.configs.config import SettingsView
from codechat.core.conversation import Conversation, ConversationsState, Turn
from codechat.core.embedding import ContextBuilder
from codechat.core.metrics import (
    MESSAGES_TRIMMED_TOTAL,
    REQUESTS_BUILT_TOTAL,
    TOTAL_USAGE_EXCEEDED_TOTAL,
    UNKNOWN_MODEL_TOTAL,
)
from codechat.core.models import ModelNotFound, ModelRegistry
from codechat.core.tokens import TokenCounter, encoder_for_model
from codechat.infra.telemetry import (
    ATTR_REQUEST_BACKEND,
    ATTR_REQUEST_IS_RETRY,
    ATTR_REQUEST_MAX_TOKENS,
    ATTR_REQUEST_MESSAGE_COUNT,
    ATTR_REQUEST_MODEL,
    ATTR_REQUEST_TOTAL_USAGE,
    ATTR_REQUEST_TRIMMED,
    SPAN_REQUEST_ASSEMBLE,
    SPAN_REQUEST_TRIM,
    tracer,
)

from .exceptions import TotalUsageExceeded
from .models import (
    BACKEND_ALTERNATE,
    BACKEND_CHAT,
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_USER,
    AlternateHistoryMessage,
    AlternateRequest,
    ChatMessage,
    ChatRequest,
)
from .prompt import DEFAULT_SYSTEM_PROMPT

logger = logging.getLogger(__name__)


class TrimPolicy(str, Enum):
    """How history is dropped when a discard flag permits trimming."""

    MESSAGE = "message"
    """Drop messages one at a time, oldest first."""

    PAIR = "pair"
    """Drop a user message together with the assistant reply after it."""


class RequestAssembler:
    """Builds backend-specific requests for one conversation.

    All collaborators are injected; conversation, state and settings are
    snapshots, so later mutations never affect a request being built.
    """

    def __init__(
        self,
        conversation: Conversation,
        conversations_state: ConversationsState,
        settings: SettingsView,
        model_registry: ModelRegistry,
        encoder_factory: Callable[[str], TokenCounter] = encoder_for_model,
        context_builder: ContextBuilder | None = None,
        trim_policy: TrimPolicy = TrimPolicy.MESSAGE,
    ) -> None:
        self._conversation = conversation
        self._state = conversations_state
        self._settings = settings
        self._model_registry = model_registry
        self._encoder_factory = encoder_factory
        self._context_builder = context_builder
        self._trim_policy = trim_policy

    # ------------------------------------------------------------------
    # Alternate (flat history) backend
    # ------------------------------------------------------------------

    def build_alternate_request(self, new_turn: Turn) -> AlternateRequest:
        history = [
            AlternateHistoryMessage(user_text=turn.prompt, assistant_text=turn.response)
            for turn in self._conversation.snapshot()
        ]
        REQUESTS_BUILT_TOTAL.labels(backend=BACKEND_ALTERNATE).inc()
        return AlternateRequest(
            prompt=new_turn.prompt,
            history=history,
            use_larger_model=self._settings.use_larger_model,
        )

    # ------------------------------------------------------------------
    # Chat-schema backends
    # ------------------------------------------------------------------

    async def build_chat_request(
        self,
        model: str,
        new_turn: Turn,
        is_retry: bool = False,
        use_contextual_search: bool = False,
        overridden_path: str | None = None,
    ) -> ChatRequest:
        """Assemble a ``ChatRequest`` that fits *model*'s context window.

        Raises:
            TotalUsageExceeded: the messages do not fit and neither the
                conversation's nor the global discard flag is set.
        """
        with tracer.start_as_current_span(SPAN_REQUEST_ASSEMBLE) as span:
            span.set_attribute(ATTR_REQUEST_BACKEND, BACKEND_CHAT)
            span.set_attribute(ATTR_REQUEST_MODEL, model)
            span.set_attribute(ATTR_REQUEST_IS_RETRY, is_retry)

            messages = await self._build_messages(
                new_turn, is_retry, use_contextual_search
            )
            if not self._settings.use_alternate_backend:
                messages = self._fit_to_budget(model, messages)

            span.set_attribute(ATTR_REQUEST_MESSAGE_COUNT, len(messages))
            REQUESTS_BUILT_TOTAL.labels(backend=BACKEND_CHAT).inc()
            return ChatRequest(
                model=model,
                messages=messages,
                max_tokens=self._settings.max_output_tokens,
                temperature=self._settings.temperature,
                overridden_path=overridden_path,
            )

    async def build_request(
        self,
        model: str,
        new_turn: Turn,
        is_retry: bool = False,
        use_contextual_search: bool = False,
        overridden_path: str | None = None,
    ) -> ChatRequest | AlternateRequest:
        """Build whichever variant the active backend expects."""
        if self._settings.use_alternate_backend:
            return self.build_alternate_request(new_turn)
        return await self.build_chat_request(
            model,
            new_turn,
            is_retry=is_retry,
            use_contextual_search=use_contextual_search,
            overridden_path=overridden_path,
        )

    async def _build_messages(
        self, new_turn: Turn, is_retry: bool, use_contextual_search: bool
    ) -> list[ChatMessage]:
        if use_contextual_search:
            prompt = new_turn.prompt
            if self._context_builder is not None:
                prompt = await self._context_builder.build_prompt_with_context(prompt)
                logger.info("Retrieved context:\n%s", prompt)
            else:
                logger.warning("Contextual search requested without a context builder")
            return [ChatMessage(role=ROLE_USER, content=prompt)]

        system_prompt = self._settings.system_prompt or DEFAULT_SYSTEM_PROMPT
        messages = [ChatMessage(role=ROLE_SYSTEM, content=system_prompt)]
        for turn in self._conversation.snapshot():
            if is_retry and turn.id == new_turn.id:
                break
            messages.append(ChatMessage(role=ROLE_USER, content=turn.prompt))
            messages.append(ChatMessage(role=ROLE_ASSISTANT, content=turn.response))
        messages.append(ChatMessage(role=ROLE_USER, content=new_turn.prompt))
        return messages

    # ------------------------------------------------------------------
    # Budget
    # ------------------------------------------------------------------

    def _fit_to_budget(
        self, model: str, messages: list[ChatMessage]
    ) -> list[ChatMessage]:
        encoder = self._encoder_factory(model)
        token_counts = [encoder.count_message_tokens(m) for m in messages]
        total_usage = sum(token_counts) + self._settings.max_output_tokens

        try:
            max_tokens = self._model_registry.find_by_code(model).max_context_tokens
        except ModelNotFound:
            UNKNOWN_MODEL_TOTAL.inc()
            logger.debug("Model %r not in registry; skipping budget check", model)
            return messages

        if total_usage <= max_tokens:
            return messages
        return self._trim_or_raise(model, messages, token_counts, total_usage, max_tokens)

    def _trim_or_raise(
        self,
        model: str,
        messages: list[ChatMessage],
        token_counts: list[int],
        total_usage: int,
        max_tokens: int,
    ) -> list[ChatMessage]:
        if not (
            self._state.discard_all_token_limits
            or self._conversation.discard_token_limit
        ):
            TOTAL_USAGE_EXCEEDED_TOTAL.inc()
            raise TotalUsageExceeded(total_usage, max_tokens, model)

        with tracer.start_as_current_span(SPAN_REQUEST_TRIM) as span:
            span.set_attribute(ATTR_REQUEST_TOTAL_USAGE, total_usage)
            span.set_attribute(ATTR_REQUEST_MAX_TOKENS, max_tokens)

            removed: set[int] = set()
            # Index 0 (the system prompt) is never dropped.
            index = 1
            while index < len(messages) and total_usage > max_tokens:
                group = [index]
                if (
                    self._trim_policy is TrimPolicy.PAIR
                    and messages[index].role == ROLE_USER
                    and index + 1 < len(messages)
                    and messages[index + 1].role == ROLE_ASSISTANT
                ):
                    group.append(index + 1)
                for dropped in group:
                    removed.add(dropped)
                    total_usage -= token_counts[dropped]
                index += len(group)

            if len(messages) - 1 in removed:
                logger.warning(
                    "Trimming removed the new prompt; request for %s is degenerate",
                    model,
                )
            if total_usage > max_tokens:
                logger.warning(
                    "History trimmed but usage %d still exceeds %d for %s",
                    total_usage,
                    max_tokens,
                    model,
                )

            span.set_attribute(ATTR_REQUEST_TRIMMED, len(removed))
            MESSAGES_TRIMMED_TOTAL.inc(len(removed))
            logger.info(
                "Trimmed %d of %d messages to fit %s (%d tokens)",
                len(removed),
                len(messages),
                model,
                max_tokens,
            )
            return [m for i, m in enumerate(messages) if i not in removed]
