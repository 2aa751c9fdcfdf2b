"""OpenTelemetry bootstrap: tracing initialisation and helpers.

Configures a ``TracerProvider`` with an OTLP HTTP exporter when tracing is
enabled via ``TracingConfig``.  When disabled the module is a graceful no-op
and ``tracer`` hands out non-recording spans.

Auto-instrumentations wired here:

- **FastAPI** (inbound HTTP spans)
- **httpx** (outbound HTTP spans: covers ``openai`` embedding calls)

Usage::

    from codechat.infra.telemetry import SPAN_REQUEST_ASSEMBLE, tracer

    with tracer.start_as_current_span(SPAN_REQUEST_ASSEMBLE) as span:
        ...
"""

from __future__ import annotations

import logging

from opentelemetry import trace
from opentelemetry.trace import format_trace_id

from codechat.configs.system import TracingConfig

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("codechat")

# ---------------------------------------------------------------------------
# Span names
# ---------------------------------------------------------------------------

SPAN_REQUEST_ASSEMBLE = "request.assemble"
SPAN_REQUEST_TRIM = "request.trim"
SPAN_EMBEDDING_CONTEXT = "embedding.context"
SPAN_EMBEDDING_INDEX = "embedding.index"
SPAN_LLAMA_BUILD = "llama.build"
SPAN_LLAMA_LAUNCH = "llama.launch"

# ---------------------------------------------------------------------------
# Span attribute keys
# ---------------------------------------------------------------------------

ATTR_REQUEST_MODEL = "request.model"
ATTR_REQUEST_BACKEND = "request.backend"
ATTR_REQUEST_MESSAGE_COUNT = "request.message_count"
ATTR_REQUEST_TOTAL_USAGE = "request.total_usage"
ATTR_REQUEST_MAX_TOKENS = "request.max_tokens"
ATTR_REQUEST_TRIMMED = "request.trimmed"
ATTR_REQUEST_IS_RETRY = "request.is_retry"

ATTR_EMBEDDING_TOP_K = "embedding.top_k"
ATTR_EMBEDDING_RESULT_COUNT = "embedding.result_count"
ATTR_EMBEDDING_FALLBACK = "embedding.fallback"

ATTR_LLAMA_RETURNCODE = "llama.returncode"


def init_telemetry(
    app: object | None = None,
    settings: TracingConfig | None = None,
) -> bool:
    """Initialise the OTEL ``TracerProvider`` and auto-instrumentations.

    Returns ``True`` when tracing was switched on.
    """
    if settings is None or not settings.enabled:
        logger.info("OpenTelemetry tracing disabled.")
        return False

    if not settings.endpoint:
        logger.warning(
            "Tracing enabled but no endpoint configured: "
            "skipping OpenTelemetry setup."
        )
        return False

    from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
        OTLPSpanExporter,
    )
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

    resource = Resource.create({"service.name": settings.service_name})
    sampler = ParentBased(root=TraceIdRatioBased(settings.sample_rate))
    provider = TracerProvider(resource=resource, sampler=sampler)
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.endpoint))
    )
    trace.set_tracer_provider(provider)

    if app is not None:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        FastAPIInstrumentor.instrument_app(
            app, excluded_urls=",".join(settings.excluded_urls)
        )

    from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

    HTTPXClientInstrumentor().instrument()

    logger.info(
        "OpenTelemetry tracing initialised (service=%s).", settings.service_name
    )
    return True


def get_current_trace_id() -> str | None:
    """Return the active OTEL trace ID as a 32-char hex string, or ``None``."""
    ctx = trace.get_current_span().get_span_context()
    if ctx is None or not ctx.is_valid:
        return None
    return format_trace_id(ctx.trace_id)
