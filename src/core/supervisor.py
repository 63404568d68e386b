"""Connection lifecycle supervision (core domain).

The supervisor reads connection events from a session as an async stream
and hands message batches to the pipeline one message at a time. Sessions
are replaced on every reconnect; the pipeline is rebuilt for each new
session so it always talks to the live connection.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Protocol, Union

from core.config import MonitoredGroup
from core.models import InboundMessage
from core.ports import ConnectionPort
from core.processor import MessageProcessor

LOGGER = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 3.0


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTH_PENDING = "auth_pending"
    OPEN = "open"


@dataclass(frozen=True)
class QrCodeReceived:
    code: str


@dataclass(frozen=True)
class ConnectionOpened:
    pass


@dataclass(frozen=True)
class ConnectionClosed:
    logged_out: bool
    reason: str = ""


@dataclass(frozen=True)
class CredentialsUpdated:
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MessagesReceived:
    messages: List[InboundMessage]


ConnectionEvent = Union[QrCodeReceived, ConnectionOpened, ConnectionClosed, CredentialsUpdated, MessagesReceived]


class SessionPort(ConnectionPort, Protocol):
    """A single live connection and its event stream."""

    def events(self) -> AsyncIterator[ConnectionEvent]:
        ...

    async def close(self) -> None:
        ...


class ConnectionSupervisor:
    """Owns connect/reconnect and routes events to the pipeline."""

    def __init__(
        self,
        connect: Callable[[], Awaitable[SessionPort]],
        build_processor: Callable[[ConnectionPort], MessageProcessor],
        target_groups: Callable[[], List[MonitoredGroup]],
        show_qr: Callable[[str], None],
        save_credentials: Optional[Callable[[dict[str, Any]], None]] = None,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._connect = connect
        self._build_processor = build_processor
        self._target_groups = target_groups
        self._show_qr = show_qr
        self._save_credentials = save_credentials
        self._reconnect_delay = reconnect_delay
        self._sleep = sleep
        self.state = ConnectionState.DISCONNECTED
        self.connect_attempts = 0

    async def run(self) -> None:
        """Keep a session alive until the account logs out."""

        while True:
            self.state = ConnectionState.CONNECTING
            self.connect_attempts += 1
            try:
                session = await self._connect()
            except Exception:
                # The first connect failing is a startup failure for the caller.
                if self.connect_attempts == 1:
                    self.state = ConnectionState.DISCONNECTED
                    raise
                LOGGER.exception("Reconnect attempt failed")
                self.state = ConnectionState.DISCONNECTED
                await self._sleep(self._reconnect_delay)
                continue

            processor = self._build_processor(session)
            try:
                closed = await self._pump(session, processor)
            finally:
                self.state = ConnectionState.DISCONNECTED
                try:
                    await session.close()
                except Exception:
                    LOGGER.debug("Error while closing session", exc_info=True)

            should_reconnect = not closed.logged_out
            LOGGER.info("Connection closed. Reconnecting: %s", str(should_reconnect).lower())
            if not should_reconnect:
                LOGGER.warning("Logged out from WhatsApp; remove the session and restart to pair again")
                return
            await self._sleep(self._reconnect_delay)

    async def _pump(self, session: SessionPort, processor: MessageProcessor) -> ConnectionClosed:
        async for event in session.events():
            if isinstance(event, QrCodeReceived):
                self.state = ConnectionState.AUTH_PENDING
                LOGGER.info("Please scan the QR code with your WhatsApp app:")
                self._show_qr(event.code)
            elif isinstance(event, ConnectionOpened):
                self.state = ConnectionState.OPEN
                LOGGER.info("WhatsApp connection established successfully!")
                self._announce_groups()
            elif isinstance(event, CredentialsUpdated):
                if self._save_credentials is not None:
                    self._save_credentials(event.payload)
            elif isinstance(event, MessagesReceived):
                await self._dispatch_batch(processor, event.messages)
            elif isinstance(event, ConnectionClosed):
                if event.reason:
                    LOGGER.info("Connection closed by transport: %s", event.reason)
                return event
        return ConnectionClosed(logged_out=False, reason="event stream ended")

    async def _dispatch_batch(self, processor: MessageProcessor, messages: List[InboundMessage]) -> None:
        for message in messages:
            try:
                await processor.handle(message)
            except Exception:
                LOGGER.exception("Failed to log group message %s", message.message_id)

    def _announce_groups(self) -> None:
        enabled = [group for group in self._target_groups() if group.enabled]
        if not enabled:
            LOGGER.info("Bot is now listening for messages from all groups (no specific groups configured)")
            return
        LOGGER.info("Bot is now listening for messages from %s configured group(s):", len(enabled))
        for group in enabled:
            suffix = f"({group.id})" if group.id else "(ID will be auto-detected)"
            LOGGER.info("  - %s %s", group.name, suffix)
