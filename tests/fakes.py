from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from core.models import ContentKind, InboundMessage, MessageContent, MessageLogEntry, Release
from core.ports import ReleaseApiError


class FakeConnection:
    def __init__(self, group_names: Optional[dict[str, str]] = None) -> None:
        self.group_names = group_names or {}
        self.contacts: dict[str, str] = {}
        self.sent: list[tuple[str, str]] = []
        self.group_lookups = 0
        self.fail_send = False

    async def group_name(self, group_id: str) -> str:
        self.group_lookups += 1
        if group_id not in self.group_names:
            raise LookupError(f"no metadata for {group_id}")
        return self.group_names[group_id]

    async def contact_name(self, contact_id: str) -> Optional[str]:
        return self.contacts.get(contact_id)

    async def send_text(self, chat_id: str, text: str) -> None:
        if self.fail_send:
            raise ConnectionError("socket closed")
        self.sent.append((chat_id, text))


class FakeMessageLog:
    def __init__(self) -> None:
        self.entries: list[MessageLogEntry] = []

    def append(self, entry: MessageLogEntry) -> None:
        self.entries.append(entry)


class FakeReleaseApi:
    def __init__(self, releases: Optional[list[Release]] = None) -> None:
        self.releases = releases if releases is not None else []
        self.listed: list[str] = []
        self.distributed: list[tuple[str, str, list[str]]] = []
        self.list_error: Optional[str] = None
        self.distribute_error: Optional[str] = None
        self.list_crash: Optional[Exception] = None

    async def list_releases(self, app_id: str) -> list[Release]:
        self.listed.append(app_id)
        if self.list_crash is not None:
            raise self.list_crash
        if self.list_error:
            raise ReleaseApiError(self.list_error)
        return list(self.releases)

    async def distribute(self, app_id: str, release_id: str, emails: list[str]) -> None:
        if self.distribute_error:
            raise ReleaseApiError(self.distribute_error)
        self.distributed.append((app_id, release_id, list(emails)))


def make_message(
    *,
    chat_id: str = "abc@g.us",
    sender_id: Optional[str] = "15550001111@s.whatsapp.net",
    message_id: str = "MSG1",
    from_me: bool = False,
    content: Optional[MessageContent] = None,
    text: Optional[str] = None,
) -> InboundMessage:
    if content is None and text is not None:
        content = MessageContent(ContentKind.TEXT, text=text)
    return InboundMessage(
        chat_id=chat_id,
        sender_id=sender_id,
        message_id=message_id,
        timestamp=datetime(2024, 1, 1, 12, 30, 45, 123000, tzinfo=timezone.utc),
        from_me=from_me,
        content=content,
    )
