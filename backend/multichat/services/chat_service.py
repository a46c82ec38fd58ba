"""Send-and-respond cycle for one chat turn.

``start_send`` validates the request and loads or creates the chat; it raises
``ServiceError`` so the route can answer with a plain 400 envelope.
``stream_reply`` then runs the turn and yields events for the SSE stream:

- ``chat``: the chat with the user message and the streaming placeholder
- ``content_delta``: one text chunk as produced upstream
- ``image``: one generated image (base64 PNG)
- ``error``: provider or persistence failure, the turn still completes
- ``done``: the finalized chat after it was saved
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from multichat.config.settings import get_settings
from multichat.db.repositories.chat_repo import ChatRepository, record_to_chat
from multichat.db.session import get_sessionmaker
from multichat.middleware.error_handler import ServiceError
from multichat.providers.registry import ProviderRegistry
from multichat.schemas.chat import (
    AttachmentIn,
    Chat,
    ChatSummaryOut,
    Message,
    SendMessageRequest,
    User,
)
from multichat.services.media import add_generated_image_to_chat, add_media_to_chat
from multichat.utils.ids import new_message_id, new_object_id
from multichat.utils.time import utc_now_iso

logger = logging.getLogger(__name__)

# Chats with a reply being produced in this process.
_in_flight: set[str] = set()


def chat_in_flight(chat_id: str) -> bool:
    return chat_id in _in_flight


@dataclass
class PendingSend:
    chat: Chat
    model: str
    content: str
    user: User
    attachments: list[AttachmentIn] = field(default_factory=list)


def _event(event_type: str, chat_id: str, payload: dict) -> dict:
    return {
        "type": event_type,
        "chatId": chat_id,
        "timestamp": utc_now_iso(),
        "payload": payload,
    }


def _require_email(user: User) -> str:
    if not user.email:
        raise ServiceError("A signed-in user is required")
    return user.email


class ChatService:
    def __init__(self, db: Session, registry: ProviderRegistry) -> None:
        self.db = db
        self.repo = ChatRepository(db)
        self.registry = registry
        self.settings = get_settings()

    def new_object_id(self) -> str:
        return new_object_id()

    async def generate_title(self, model: str, content: str) -> str:
        """Title for a new chat; never fails, falls back to the default title."""
        message = Message(id=new_message_id(), content=content, role="user")
        try:
            title = await self.registry.generate_title_for_model(model, message)
        except Exception:
            logger.warning("Title generation failed for model %s", model, exc_info=True)
            return self.settings.default_chat_title
        title = title.strip().strip('"').strip()
        return title or self.settings.default_chat_title

    def list_chats(self, user: User) -> list[ChatSummaryOut]:
        email = _require_email(user)
        summaries: list[ChatSummaryOut] = []
        for record in self.repo.list_records(email):
            chat = record_to_chat(record)
            if chat is None:
                continue
            summaries.append(
                ChatSummaryOut(
                    id=chat.id,
                    title=chat.title,
                    model=chat.model,
                    messageCount=len(chat.chatHistory),
                    updatedAt=record.updated_at,
                )
            )
        return summaries

    def get_chat(self, chat_id: str, user: User) -> Chat:
        chat = self.repo.get_chat(chat_id, _require_email(user))
        if chat is None:
            raise ServiceError(f"Chat not found: {chat_id}")
        return chat

    def update_chat_model(self, chat_id: str, model: str, user: User) -> Chat:
        chat = self.repo.update_chat_model(chat_id, model, _require_email(user))
        if chat is None:
            raise ServiceError(f"Chat not found: {chat_id}")
        self.repo.commit()
        return chat

    async def start_send(self, request: SendMessageRequest, user: User) -> PendingSend:
        email = _require_email(user)
        if not request.content.strip() and not request.attachments:
            raise ServiceError("Message is empty")
        model = request.model or self.settings.default_model

        if request.chatId:
            chat = self.repo.get_chat(request.chatId, email)
            if chat is None:
                raise ServiceError(f"Chat not found: {request.chatId}")
            if chat_in_flight(chat.id):
                raise ServiceError("A reply is already being generated for this chat")
        else:
            title = await self.generate_title(model, request.content)
            chat = Chat(id=new_object_id(), title=title, model=model)

        return PendingSend(
            chat=chat,
            model=model,
            content=request.content,
            user=user,
            attachments=list(request.attachments),
        )

    async def stream_reply(self, pending: PendingSend) -> AsyncIterator[dict]:
        chat_id = pending.chat.id
        if chat_in_flight(chat_id):
            yield _event(
                "error",
                chat_id,
                {"message": "A reply is already being generated for this chat"},
            )
            return

        _in_flight.add(chat_id)
        try:
            async for event in self._run_turn(pending):
                yield event
        finally:
            _in_flight.discard(chat_id)

    async def _run_turn(self, pending: PendingSend) -> AsyncIterator[dict]:
        # The placeholder takes the id right after the user message.
        user_message_id = new_message_id(span=2)
        chat, uploaded = add_media_to_chat(pending.chat, user_message_id, pending.attachments)
        user_message = Message(
            id=user_message_id,
            content=pending.content,
            role="user",
            mediaIds=[media.id for media in uploaded] or None,
        )
        placeholder = Message(id=user_message_id + 1, role="model", isStreaming=True)
        chat = chat.model_copy(
            update={
                "model": pending.model,
                "chatHistory": [*chat.chatHistory, user_message, placeholder],
            }
        )
        chat.assert_streaming_invariant()
        yield _event("chat", chat.id, {"chat": chat.to_document()})

        reply_text = ""
        images: list[str] = []
        try:
            result = await self.registry.send_for_model(pending.model, chat, pending.user)
        except Exception as exc:
            logger.warning("Provider call failed for model %s", pending.model, exc_info=True)
            reply_text = f"Error: {exc}"
            yield _event("error", chat.id, {"message": str(exc)})
        else:
            chunks: list[str] = []
            text_failed = False
            try:
                async for chunk in result.stream:
                    chunks.append(chunk)
                    yield _event("content_delta", chat.id, {"delta": chunk})
                reply_text = "".join(chunks)
            except Exception as exc:
                text_failed = True
                logger.warning("Reply stream failed for chat %s: %s", chat.id, exc)
                reply_text = f"Error: {exc}"
                yield _event("error", chat.id, {"message": str(exc)})

            if result.img is not None:
                try:
                    async for data in result.img:
                        images.append(data)
                        yield _event("image", chat.id, {"index": len(images) - 1, "data": data})
                except Exception as exc:
                    logger.warning("Image stream failed for chat %s: %s", chat.id, exc)
                    if not text_failed:
                        yield _event("error", chat.id, {"message": str(exc)})

        chat = self._finalize(chat, placeholder.id, reply_text, images)

        try:
            self._persist(chat, pending.user)
        except Exception as exc:
            logger.exception("Failed to save chat %s", chat.id)
            yield _event("error", chat.id, {"message": f"Failed to save chat: {exc}"})

        yield _event("done", chat.id, {"chat": chat.to_document()})

    def _finalize(
        self, chat: Chat, placeholder_id: int, reply_text: str, images: list[str]
    ) -> Chat:
        history = [
            msg.model_copy(update={"content": reply_text, "isStreaming": False})
            if msg.id == placeholder_id
            else msg
            for msg in chat.chatHistory
        ]
        chat = chat.model_copy(update={"chatHistory": history})

        if images:
            image_message_id = new_message_id()
            media_ids: list[float] = []
            for data in images:
                chat, media = add_generated_image_to_chat(chat, image_message_id, data)
                media_ids.append(media.id)
            image_message = Message(
                id=image_message_id, role="model", content="", mediaIds=media_ids
            )
            chat = chat.model_copy(update={"chatHistory": [*chat.chatHistory, image_message]})

        chat.assert_streaming_invariant()
        return chat

    def _persist(self, chat: Chat, user: User) -> None:
        # The request session is closed once the streaming response starts.
        with get_sessionmaker()() as session:
            repo = ChatRepository(session)
            try:
                repo.save_chat(chat, user)
                repo.commit()
            except Exception:
                repo.rollback()
                raise
