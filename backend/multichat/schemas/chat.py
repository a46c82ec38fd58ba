from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MessageRole = Literal["user", "model"]
MediaType = Literal["image", "file"]


class Message(BaseModel):
    id: int
    content: str = ""
    role: MessageRole
    isStreaming: bool = False
    mediaIds: list[float] | None = None


class MediaItem(BaseModel):
    id: float
    messageId: int
    fileName: str
    fileData: str
    fileType: str
    mediaType: MediaType
    timestamp: int


class User(BaseModel):
    name: str | None = None
    email: str | None = None


class Chat(BaseModel):
    """A chat document: transcript plus every attachment seen in it."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    title: str
    model: str
    chatHistory: list[Message] = Field(default_factory=list)
    mediaItems: list[MediaItem] = Field(default_factory=list)

    def last_message(self) -> Message | None:
        return self.chatHistory[-1] if self.chatHistory else None

    def streaming_message(self) -> Message | None:
        return next((m for m in self.chatHistory if m.isStreaming), None)

    def assert_streaming_invariant(self) -> None:
        """At most one message streams, and only the last one."""
        streaming = [i for i, m in enumerate(self.chatHistory) if m.isStreaming]
        if len(streaming) > 1:
            raise ValueError(
                f"Chat {self.id} has {len(streaming)} streaming messages"
            )
        if streaming and streaming[0] != len(self.chatHistory) - 1:
            raise ValueError(
                f"Streaming message in chat {self.id} is not the last message"
            )

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class AttachmentIn(BaseModel):
    fileName: str = Field(min_length=1)
    fileData: str = Field(min_length=1)
    fileType: str = Field(min_length=1)


class SendMessageRequest(BaseModel):
    model: str | None = None
    content: str = ""
    chatId: str | None = None
    attachments: list[AttachmentIn] = Field(default_factory=list)


class GenerateTitleRequest(BaseModel):
    model: str = Field(min_length=1)
    content: str = Field(min_length=1)


class UpdateChatModelRequest(BaseModel):
    model: str = Field(min_length=1)


class ChatSummaryOut(BaseModel):
    id: str
    title: str
    model: str
    messageCount: int
    updatedAt: str


class ModelOut(BaseModel):
    id: str
    name: str
    provider: str
    category: str
    contextLength: int
    description: str
    features: dict
    supportsStreaming: bool
    supportsImageGeneration: bool
    supportsVision: bool
