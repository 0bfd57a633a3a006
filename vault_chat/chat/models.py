from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageAuthor(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class HistoryTurn(BaseModel):
    """One stored message. Immutable once appended; ordered by creation."""
    model_config = ConfigDict(frozen=True)

    author: MessageAuthor
    text: str
    created_at: datetime = Field(default_factory=utcnow)


class Conversation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    vault_id: str
    title: str
    created_at: datetime
    updated_at: datetime


class ChatReply(BaseModel):
    conversation_id: str
    assistant_message: str
    agent: Optional[str] = None


TITLE_MAX_LENGTH = 50


def title_from_message(message: str) -> str:
    """Conversation title from the first user message, at most 50 characters."""
    trimmed = message.strip()
    if not trimmed:
        return "New Conversation"
    if len(trimmed) <= TITLE_MAX_LENGTH:
        return trimmed
    return trimmed[: TITLE_MAX_LENGTH - 3] + "..."
