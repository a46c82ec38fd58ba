import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from multichat.api.deps import get_current_user, get_db, get_registry
from multichat.api.envelope import ok
from multichat.providers.registry import ProviderRegistry
from multichat.schemas.chat import (
    GenerateTitleRequest,
    SendMessageRequest,
    UpdateChatModelRequest,
    User,
)
from multichat.services.chat_service import ChatService

router = APIRouter(prefix="/api/chats", tags=["chats"])
logger = logging.getLogger(__name__)


def _sse_frame(payload: dict) -> bytes:
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


@router.get("")
def list_chats(
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    user: User = Depends(get_current_user),
):
    chats = ChatService(db, registry).list_chats(user)
    return ok({"chats": [chat.model_dump() for chat in chats]})


@router.get("/{chat_id}")
def get_chat(
    chat_id: str,
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    user: User = Depends(get_current_user),
):
    chat = ChatService(db, registry).get_chat(chat_id, user)
    return ok({"chat": chat.to_document()})


@router.post("/object-id")
def create_object_id(
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
):
    return ok({"id": ChatService(db, registry).new_object_id()})


@router.post("/title")
async def generate_title(
    request: GenerateTitleRequest,
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
):
    title = await ChatService(db, registry).generate_title(request.model, request.content)
    return ok({"title": title})


@router.put("/{chat_id}/model")
def update_chat_model(
    chat_id: str,
    request: UpdateChatModelRequest,
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    user: User = Depends(get_current_user),
):
    chat = ChatService(db, registry).update_chat_model(chat_id, request.model, user)
    return ok({"chat": chat.to_document()})


@router.post("/messages")
async def send_message(
    request: SendMessageRequest,
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    user: User = Depends(get_current_user),
):
    service = ChatService(db, registry)
    pending = await service.start_send(request, user)

    async def generator() -> AsyncGenerator[bytes, None]:
        async for event in service.stream_reply(pending):
            yield _sse_frame(event)

    return StreamingResponse(
        generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
