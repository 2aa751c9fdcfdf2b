"""Request assembly endpoints."""

import logging
from pathlib import Path

from fastapi import APIRouter, Response

from codechat.core.completion import (
    CompletionRequest,
    RequestAssembler,
    ensure_backend_ready,
)
from codechat.core.conversation import Turn
from codechat.core.models import ModelDescriptor
from codechat.infra.telemetry import get_current_trace_id

from .deps import (
    AppConfigDep,
    ContextBuilderDep,
    ConversationStoreDep,
    EmbeddingIndexerDep,
    EncoderFactoryDep,
    LlamaSupervisorDep,
    ModelRegistryDep,
    SettingsViewDep,
)
from .models import BuildRequestBody, IndexFilesBody, IndexFilesResponse

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Codechat-Trace"

router = APIRouter(prefix="/api/v1", tags=["completions"])


@router.get("/models")
async def list_models(registry: ModelRegistryDep) -> list[ModelDescriptor]:
    return registry.list_models()


@router.post(
    "/conversations/{conversation_id}/requests", response_model=CompletionRequest
)
async def build_request(
    conversation_id: str,
    body: BuildRequestBody,
    response: Response,
    config: AppConfigDep,
    settings: SettingsViewDep,
    store: ConversationStoreDep,
    registry: ModelRegistryDep,
    encoder_factory: EncoderFactoryDep,
    context_builder: ContextBuilderDep,
    supervisor: LlamaSupervisorDep,
):
    """Assemble the completion request for a new turn.

    The request variant follows the active backend: ``chat`` for
    OpenAI-schema providers, ``alternate`` for You.com.
    """
    ensure_backend_ready(config.service.active, supervisor)

    conversation = store.get(conversation_id)
    new_turn = (
        Turn(id=body.turn_id, prompt=body.prompt)
        if body.turn_id
        else Turn(prompt=body.prompt)
    )
    assembler = RequestAssembler(
        conversation,
        store.state,
        settings,
        registry,
        encoder_factory=encoder_factory,
        context_builder=context_builder,
    )
    request = await assembler.build_request(
        body.model or conversation.model or config.service.model,
        new_turn,
        is_retry=body.is_retry,
        use_contextual_search=body.use_contextual_search,
        overridden_path=body.overridden_path,
    )

    trace_id = get_current_trace_id()
    if trace_id:
        response.headers[TRACE_HEADER] = trace_id
    return request


@router.post("/embeddings/index")
async def index_files(
    body: IndexFilesBody, indexer: EmbeddingIndexerDep
) -> IndexFilesResponse:
    """Embed files into the local index used by contextual search."""
    index = await indexer.index_files(Path(p) for p in body.paths)
    logger.info("Embeddings index now holds %d chunks", len(index))
    return IndexFilesResponse(entries=len(index))
