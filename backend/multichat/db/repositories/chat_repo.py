from __future__ import annotations

import logging

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from multichat.db.models.chat import ChatRecord
from multichat.schemas.chat import Chat, User
from multichat.utils.time import utc_now_iso

logger = logging.getLogger(__name__)


def record_to_chat(record: ChatRecord) -> Chat | None:
    try:
        chat = Chat.model_validate_json(record.document)
    except ValidationError:
        logger.warning("Skipping unreadable chat document %s", record.id, exc_info=True)
        return None
    # Columns win over the document for fields updated in place.
    return chat.model_copy(update={"id": record.id, "title": record.title, "model": record.model})


class ChatRepository:
    """Chat documents keyed by id and scoped to the owner's email."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def _get_record(self, chat_id: str, email: str) -> ChatRecord | None:
        record = self.db.get(ChatRecord, chat_id)
        if record is None or record.user_email != email:
            return None
        return record

    def list_records(self, email: str) -> list[ChatRecord]:
        stmt = (
            select(ChatRecord)
            .where(ChatRecord.user_email == email)
            .order_by(ChatRecord.updated_at.desc())
        )
        return list(self.db.scalars(stmt).all())

    def fetch_chats_by_user(self, email: str) -> list[Chat]:
        chats = (record_to_chat(record) for record in self.list_records(email))
        return [chat for chat in chats if chat is not None]

    def get_chat(self, chat_id: str, email: str) -> Chat | None:
        record = self._get_record(chat_id, email)
        return record_to_chat(record) if record is not None else None

    def save_chat(self, chat: Chat, user: User) -> ChatRecord:
        """Insert or replace the chat document for ``user``."""
        if not user.email:
            raise ValueError("Cannot save a chat without a user email")
        now = utc_now_iso()
        record = self.db.get(ChatRecord, chat.id)
        if record is not None and record.user_email != user.email:
            raise ValueError(f"Chat {chat.id} belongs to another user")
        document = chat.model_dump_json(by_alias=True)
        if record is None:
            record = ChatRecord(
                id=chat.id,
                user_email=user.email,
                title=chat.title,
                model=chat.model,
                document=document,
                created_at=now,
                updated_at=now,
            )
            self.db.add(record)
        else:
            record.title = chat.title
            record.model = chat.model
            record.document = document
            record.updated_at = now
        self.db.flush()
        return record

    def update_chat_model(self, chat_id: str, model: str, email: str) -> Chat | None:
        record = self._get_record(chat_id, email)
        if record is None:
            return None
        chat = record_to_chat(record)
        if chat is None:
            return None
        chat = chat.model_copy(update={"model": model})
        record.model = model
        record.document = chat.model_dump_json(by_alias=True)
        record.updated_at = utc_now_iso()
        self.db.flush()
        return chat
