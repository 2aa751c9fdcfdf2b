"""Global exception handlers."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from codechat.core.completion import BackendNotReady, TotalUsageExceeded
from codechat.core.conversation import ConversationNotFound
from codechat.core.llama import LlamaServerError, SupervisorBusy


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers on ``app``."""

    @app.exception_handler(TotalUsageExceeded)
    async def handle_total_usage_exceeded(
        request: Request, exc: TotalUsageExceeded
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "detail": str(exc),
                "code": "TOTAL_USAGE_EXCEEDED",
                "total_usage": exc.total_usage,
                "max_tokens": exc.max_tokens,
                "model": exc.model,
            },
        )

    @app.exception_handler(BackendNotReady)
    async def handle_backend_not_ready(
        request: Request, exc: BackendNotReady
    ) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"detail": str(exc), "code": "BACKEND_NOT_READY"},
            headers={"Retry-After": "5"},
        )

    @app.exception_handler(ConversationNotFound)
    async def handle_conversation_not_found(
        request: Request, exc: ConversationNotFound
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": str(exc), "code": "CONVERSATION_NOT_FOUND"},
        )

    @app.exception_handler(SupervisorBusy)
    async def handle_supervisor_busy(
        request: Request, exc: SupervisorBusy
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "code": "LLAMA_SERVER_BUSY"},
        )

    @app.exception_handler(LlamaServerError)
    async def handle_llama_server_error(
        request: Request, exc: LlamaServerError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "code": f"LLAMA_{exc.result.upper()}",
            },
        )
