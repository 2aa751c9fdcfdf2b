"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from codechat.api.completions import router as completions_router
from codechat.api.conversations import router as conversations_router
from codechat.api.exceptions import register_exception_handlers
from codechat.api.llama import router as llama_router
from codechat.configs.config import get_app_config
from codechat.core.llama import ServerState, get_llama_supervisor
from codechat.core.metrics import build_metrics
from codechat.infra.logging import setup_logging
from codechat.infra.telemetry import init_telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: the local server never outlives the app."""
    logger.info("Starting codechat")
    yield

    supervisor = get_llama_supervisor()
    if supervisor.state is not ServerState.IDLE:
        await supervisor.stop()
    logger.info("codechat stopped")


def get_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    config = get_app_config()
    setup_logging(config.logging)

    app = FastAPI(
        title="codechat",
        description="Completion request pipeline for an IDE chat assistant",
        version="0.1.0",
        lifespan=lifespan,
    )
    init_telemetry(app, config.tracing)
    build_metrics(app, config.tracing)
    register_exception_handlers(app)

    app.include_router(conversations_router)
    app.include_router(completions_router)
    app.include_router(llama_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def main() -> None:
    """Run the API with uvicorn using the configured host and port."""
    import uvicorn

    config = get_app_config()
    uvicorn.run(get_app(), host=config.api.host, port=config.api.port)


if __name__ == "__main__":
    main()
