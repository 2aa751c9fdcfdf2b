"""Local server control endpoints."""

import logging

from fastapi import APIRouter, HTTPException, status

from codechat.core.llama import LlamaServerStatus

from .deps import LlamaSupervisorDep
from .models import StartServerBody

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/llama", tags=["llama"])


@router.post("/start", status_code=status.HTTP_202_ACCEPTED)
async def start_server(
    body: StartServerBody, supervisor: LlamaSupervisorDep
) -> LlamaServerStatus:
    """Kick off build + launch; poll ``/status`` for readiness."""
    try:
        await supervisor.start(model_path=body.model_path)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return supervisor.status()


@router.post("/stop")
async def stop_server(supervisor: LlamaSupervisorDep) -> LlamaServerStatus:
    await supervisor.stop()
    return supervisor.status()


@router.get("/status")
async def server_status(supervisor: LlamaSupervisorDep) -> LlamaServerStatus:
    return supervisor.status()
