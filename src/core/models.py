"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

GROUP_SUFFIX = "@g.us"


class ContentKind(str, Enum):
    TEXT = "text"
    EXTENDED_TEXT = "extendedText"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    STICKER = "sticker"
    OTHER = "other"


TEXT_KINDS = frozenset({ContentKind.TEXT, ContentKind.EXTENDED_TEXT})


@dataclass(frozen=True)
class MessageContent:
    """Classified message payload.

    Only the fields relevant to ``kind`` are set: ``text`` for text kinds,
    ``caption`` for image/video and ``file_name`` for documents.
    """

    kind: ContentKind
    text: Optional[str] = None
    caption: Optional[str] = None
    file_name: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.kind in TEXT_KINDS


def describe_content(content: Optional[MessageContent]) -> str:
    """Return the single display string logged for a message payload."""

    if content is None:
        return "Unknown message type"

    kind = content.kind
    if kind in TEXT_KINDS:
        return content.text or ""
    if kind is ContentKind.IMAGE:
        return "[Image]" + (f": {content.caption}" if content.caption else "")
    if kind is ContentKind.VIDEO:
        return "[Video]" + (f": {content.caption}" if content.caption else "")
    if kind is ContentKind.AUDIO:
        return "[Audio Message]"
    if kind is ContentKind.DOCUMENT:
        return f"[Document: {content.file_name or 'Unknown'}]"
    if kind is ContentKind.STICKER:
        return "[Sticker]"
    return "[Other message type]"


def is_group_chat(chat_id: Optional[str]) -> bool:
    return bool(chat_id) and chat_id.endswith(GROUP_SUFFIX)


def local_part(contact_id: str) -> str:
    return contact_id.split("@", 1)[0]


def format_timestamp(value: Optional[datetime] = None) -> str:
    """Format a timestamp as UTC ``YYYY-MM-DD HH:MM:SS.mmm`` (no trailing Z)."""

    if value is None:
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S.") + f"{value.microsecond // 1000:03d}"


@dataclass(frozen=True)
class InboundMessage:
    """Minimal message context used by the core processing pipeline."""

    chat_id: str
    sender_id: Optional[str]
    message_id: str
    timestamp: datetime
    from_me: bool
    content: Optional[MessageContent]


@dataclass(frozen=True)
class MessageLogEntry:
    """Persisted representation of a single logged group message."""

    timestamp: str
    group_id: str
    group_name: str
    sender_id: Optional[str]
    sender_name: str
    message_id: str
    content: str

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "groupId": self.group_id,
            "groupName": self.group_name,
            "senderId": self.sender_id,
            "senderName": self.sender_name,
            "messageId": self.message_id,
            "content": self.content,
        }


@dataclass(frozen=True)
class DistributionRequest:
    email: str
    platform: str


@dataclass(frozen=True)
class DistributionResult:
    """Outcome of a tester invitation, phrased for the group reply."""

    success: bool
    message: str

    def reply_text(self) -> str:
        return f"{'✅' if self.success else '❌'} {self.message}"


@dataclass(frozen=True)
class Release:
    """A release as returned by the distribution API."""

    name: str
    display_version: Optional[str] = None

    @property
    def release_id(self) -> str:
        return self.name.rsplit("/", 1)[-1]
