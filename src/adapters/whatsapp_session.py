"""WhatsApp multi-device session adapter built on neonize.

neonize pushes events through callbacks; this adapter turns them into the
async event stream the core supervisor consumes, and implements the query
and send operations of the core ConnectionPort. Session keys are kept by
neonize in its own SQLite store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional

from neonize.aioze.client import NewAClient
from neonize.events import ConnectedEv, DisconnectedEv, LoggedOutEv, MessageEv
from neonize.utils.jid import build_jid

from adapters.whatsapp_mapper import build_inbound_message, push_name
from core.supervisor import (
    ConnectionClosed,
    ConnectionEvent,
    ConnectionOpened,
    MessagesReceived,
    QrCodeReceived,
)

LOGGER = logging.getLogger(__name__)


class WhatsAppSession:
    """One neonize client connection exposed as an event stream."""

    def __init__(self, client: NewAClient) -> None:
        self._client = client
        self._queue: asyncio.Queue[ConnectionEvent] = asyncio.Queue()
        self._jids: dict[str, Any] = {}
        self._push_names: dict[str, str] = {}
        self._task: Optional[asyncio.Task] = None
        self._closed = False

        client.event(ConnectedEv)(self._on_connected)
        client.event(MessageEv)(self._on_message)
        client.event(DisconnectedEv)(self._on_disconnected)
        client.event(LoggedOutEv)(self._on_logged_out)
        client.qr(self._on_qr)

    async def start(self) -> "WhatsAppSession":
        # connect() returns the task doing the actual handshake; its failure
        # must end the event stream.
        task = await self._client.connect()
        if isinstance(task, asyncio.Future):
            self._task = task
            task.add_done_callback(self._on_connect_done)
        return self

    def _on_connect_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or self._closed:
            return
        exc = task.exception()
        if exc is not None:
            self._queue.put_nowait(ConnectionClosed(logged_out=False, reason=str(exc)))

    async def _on_qr(self, _client: NewAClient, data: bytes) -> None:
        code = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else str(data)
        self._queue.put_nowait(QrCodeReceived(code))

    async def _on_connected(self, _client: NewAClient, _event: ConnectedEv) -> None:
        self._queue.put_nowait(ConnectionOpened())

    async def _on_disconnected(self, _client: NewAClient, _event: DisconnectedEv) -> None:
        self._queue.put_nowait(ConnectionClosed(logged_out=False, reason="disconnected"))

    async def _on_logged_out(self, _client: NewAClient, event: LoggedOutEv) -> None:
        reason = str(getattr(event, "Reason", "") or "logged out")
        self._queue.put_nowait(ConnectionClosed(logged_out=True, reason=reason))

    async def _on_message(self, _client: NewAClient, event: MessageEv) -> None:
        message = build_inbound_message(event)
        source = getattr(getattr(event, "Info", None), "MessageSource", None)
        # Keep the original JID objects so replies do not depend on re-parsing.
        if message.chat_id:
            self._jids[message.chat_id] = getattr(source, "Chat", None)
        if message.sender_id:
            self._jids[message.sender_id] = getattr(source, "Sender", None)
            name = push_name(event)
            if name:
                self._push_names[message.sender_id] = name
        self._queue.put_nowait(MessagesReceived([message]))

    async def events(self) -> AsyncIterator[ConnectionEvent]:
        while True:
            event = await self._queue.get()
            yield event
            if isinstance(event, ConnectionClosed):
                return

    def _jid(self, value: str) -> Any:
        jid = self._jids.get(value)
        if jid is not None:
            return jid
        user, _, server = value.partition("@")
        return build_jid(user, server or "s.whatsapp.net")

    async def group_name(self, group_id: str) -> str:
        info = await self._client.get_group_info(self._jid(group_id))
        return info.GroupName.Name

    async def contact_name(self, contact_id: str) -> Optional[str]:
        return self._push_names.get(contact_id)

    async def send_text(self, chat_id: str, text: str) -> None:
        await self._client.send_message(self._jid(chat_id), text)

    async def close(self) -> None:
        self._closed = True
        try:
            await self._client.disconnect()
        finally:
            if self._task is not None and not self._task.done():
                self._task.cancel()


async def open_session(session_db: str) -> WhatsAppSession:
    """Create a neonize client for ``session_db`` and start connecting."""

    logging.getLogger("whatsmeow").setLevel(logging.WARNING)
    logging.getLogger("neonize").setLevel(logging.WARNING)
    LOGGER.info("Initializing WhatsApp client (session %s)", session_db)
    session = WhatsAppSession(NewAClient(session_db))
    return await session.start()
