"""Conversation endpoints used by the dispatch layer."""

from fastapi import APIRouter, Response, status

from codechat.core.conversation import Conversation, ConversationsState, Turn

from .deps import ConversationStoreDep
from .models import (
    ConversationList,
    SaveTurnBody,
    StartConversationBody,
    UpdateConversationBody,
    UpdateStateBody,
)

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def start_conversation(
    body: StartConversationBody, store: ConversationStoreDep
) -> Conversation:
    return store.start_conversation(model=body.model, client_code=body.client_code)


@router.get("")
async def list_conversations(store: ConversationStoreDep) -> ConversationList:
    return ConversationList(conversations=store.list_conversations())


@router.get("/state")
async def get_state(store: ConversationStoreDep) -> ConversationsState:
    return store.state


@router.put("/state")
async def update_state(
    body: UpdateStateBody, store: ConversationStoreDep
) -> ConversationsState:
    return store.set_discard_all_token_limits(body.discard_all_token_limits)


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str, store: ConversationStoreDep
) -> Conversation:
    return store.get(conversation_id)


@router.patch("/{conversation_id}")
async def update_conversation(
    conversation_id: str, body: UpdateConversationBody, store: ConversationStoreDep
) -> Conversation:
    return store.set_discard_token_limit(conversation_id, body.discard_token_limit)


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str, store: ConversationStoreDep
) -> Response:
    store.delete(conversation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{conversation_id}/turns")
async def save_turn(
    conversation_id: str, body: SaveTurnBody, store: ConversationStoreDep
) -> Conversation:
    """Record a turn once its completion finished (or replace a retried one)."""
    fields = body.model_dump(exclude_none=True)
    return store.save_turn(conversation_id, Turn(**fields))
