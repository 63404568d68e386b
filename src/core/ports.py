"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the WhatsApp connection, message log
and release API adapters so that the core can be reused with different
backends.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from core.models import MessageLogEntry, Release


class ReleaseApiError(RuntimeError):
    """Raised by release API adapters; the message is the upstream error text."""


class ConnectionPort(Protocol):
    """Query and send operations the pipeline needs from a live connection."""

    async def group_name(self, group_id: str) -> str:
        ...

    async def contact_name(self, contact_id: str) -> Optional[str]:
        ...

    async def send_text(self, chat_id: str, text: str) -> None:
        ...


class MessageLogPort(Protocol):
    """Append-only storage for logged group messages."""

    def append(self, entry: MessageLogEntry) -> None:
        ...


class ReleaseApiPort(Protocol):
    """Release-management operations required by the dispatcher.

    ``list_releases`` returns releases newest first; callers rely on that
    order and never sort.
    """

    async def list_releases(self, app_id: str) -> List[Release]:
        ...

    async def distribute(self, app_id: str, release_id: str, emails: List[str]) -> None:
        ...
