"""Prometheus metrics for the codechat application.

Custom business metrics that complement the auto-instrumented HTTP
metrics provided by ``prometheus-fastapi-instrumentator``.

All metrics use the ``codechat_`` prefix.
"""

import logging

from fastapi import FastAPI
from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator

from codechat.configs.system import TracingConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Request assembly
# ---------------------------------------------------------------------------

REQUESTS_BUILT_TOTAL = Counter(
    "codechat_requests_built_total",
    "Completion requests assembled, by request variant",
    ["backend"],  # chat | alternate
)

MESSAGES_TRIMMED_TOTAL = Counter(
    "codechat_messages_trimmed_total",
    "History messages dropped to fit a model's context window",
)

TOTAL_USAGE_EXCEEDED_TOTAL = Counter(
    "codechat_total_usage_exceeded_total",
    "Requests rejected because they exceed the context window",
)

UNKNOWN_MODEL_TOTAL = Counter(
    "codechat_unknown_model_total",
    "Requests whose model code is not in the registry (budget check skipped)",
)

# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------

EMBEDDING_CONTEXT_TOTAL = Counter(
    "codechat_embedding_context_total",
    "Contextual prompts built, by outcome",
    ["result"],  # hit | empty_index | error
)

# ---------------------------------------------------------------------------
# Local server
# ---------------------------------------------------------------------------

LLAMA_SERVER_STATE = Gauge(
    "codechat_llama_server_state",
    "1 for the local server's current state, 0 for the others",
    ["state"],
)

LLAMA_SERVER_STARTS_TOTAL = Counter(
    "codechat_llama_server_starts_total",
    "Local server start cycles, by outcome",
    ["result"],  # ready | build_failed | spawn_failed | exited
)


def build_metrics(app: FastAPI, tracing: TracingConfig) -> None:
    """Attach HTTP instrumentation and the ``/metrics`` endpoint."""
    Instrumentator(
        should_instrument_requests_inprogress=True,
        excluded_handlers=tracing.excluded_urls,
    ).instrument(app).expose(app, endpoint="/metrics")
    logger.info("Prometheus metrics initialised")
