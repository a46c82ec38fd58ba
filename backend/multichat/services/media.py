"""Media attachment helpers.

Providers need to tell apart media attached to the turn being answered from
media attached earlier in the chat. Nothing is persisted for that; the split
is always computed against the id of the message being answered.
"""

from __future__ import annotations

from collections.abc import Iterable

from multichat.schemas.chat import AttachmentIn, Chat, MediaItem, Message
from multichat.utils.ids import new_media_id
from multichat.utils.time import now_ms


def current_media(chat: Chat, message_id: int) -> list[MediaItem]:
    """Media attached to ``message_id``."""
    return [media for media in chat.mediaItems if media.messageId == message_id]


def context_media(chat: Chat, message_id: int) -> list[MediaItem]:
    """Media attached to any other message of the chat."""
    return [media for media in chat.mediaItems if media.messageId != message_id]


def partition_media(chat: Chat, message_id: int) -> tuple[list[MediaItem], list[MediaItem]]:
    return current_media(chat, message_id), context_media(chat, message_id)


def answering_message(chat: Chat) -> Message | None:
    """The user turn a reply is being produced for.

    The streaming placeholder is skipped so media lookups key off the user's
    message rather than the empty model message appended after it.
    """
    for msg in reversed(chat.chatHistory):
        if msg.role == "user":
            return msg
    return chat.last_message()


def media_for_message(chat: Chat, message: Message) -> list[MediaItem]:
    if message.mediaIds:
        wanted = set(message.mediaIds)
        return [media for media in chat.mediaItems if media.id in wanted]
    return current_media(chat, message.id)


def _media_type_for(mime_type: str) -> str:
    return "image" if mime_type.startswith("image/") else "file"


def add_media_to_chat(
    chat: Chat, message_id: int, files: Iterable[AttachmentIn]
) -> tuple[Chat, list[MediaItem]]:
    """Return a copy of ``chat`` with one media item per uploaded file."""
    timestamp = now_ms()
    new_items = [
        MediaItem(
            id=new_media_id(),
            messageId=message_id,
            fileName=file.fileName,
            fileData=file.fileData,
            fileType=file.fileType,
            mediaType=_media_type_for(file.fileType),
            timestamp=timestamp,
        )
        for file in files
    ]
    updated = chat.model_copy(update={"mediaItems": [*chat.mediaItems, *new_items]})
    return updated, new_items


def add_generated_image_to_chat(
    chat: Chat, message_id: int, image_data: str
) -> tuple[Chat, MediaItem]:
    media_item = MediaItem(
        id=new_media_id(),
        messageId=message_id,
        fileName=f"generated-image-{message_id}.png",
        fileData=image_data,
        fileType="image/png",
        mediaType="image",
        timestamp=now_ms(),
    )
    updated = chat.model_copy(update={"mediaItems": [*chat.mediaItems, media_item]})
    return updated, media_item


def message_display_content(message: Message, media_items: Iterable[MediaItem]) -> str:
    """Message text, or a ``[2 images and 1 file]`` summary for media-only messages."""
    message_media = [m for m in media_items if m.messageId == message.id]
    if not message_media or message.content.strip():
        return message.content

    image_count = sum(1 for m in message_media if m.mediaType == "image")
    file_count = sum(1 for m in message_media if m.mediaType == "file")
    parts = []
    if image_count:
        parts.append(f"{image_count} image{'s' if image_count > 1 else ''}")
    if file_count:
        parts.append(f"{file_count} file{'s' if file_count > 1 else ''}")
    return f"[{' and '.join(parts)}]" if parts else "[Media]"


def format_chat_history(chat: Chat, include_media: bool = True) -> list[dict]:
    """Transcript in provider-neutral chat-completion shape.

    Messages still streaming are left out; they hold no upstream content yet.
    """
    formatted: list[dict] = []
    for msg in chat.chatHistory:
        if msg.isStreaming:
            continue
        entry: dict = {
            "role": "assistant" if msg.role == "model" else msg.role,
            "content": msg.content,
        }
        if include_media and msg.mediaIds:
            entry["attachments"] = media_for_message(chat, msg)
        formatted.append(entry)
    return formatted
