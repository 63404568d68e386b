"""Core message processing pipeline.

This module is integration-agnostic. It only relies on ports for the
connection, the message log and the release API, enabling other transports
or storage backends without changes here.

The pipeline enforces a strict order for each message:
1) Drop our own messages and anything outside a group chat
2) Classify the payload and resolve the group name
3) Discovery announcement (optional) and the group filter decision
4) Resolve the sender name, log to console and append to the day's file
5) Text messages only: parse and dispatch a distribution request, then reply
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from core.config import FilterSettings
from core.distribution import DistributionDispatcher, parse_distribution_request
from core.group_filter import GroupFilter
from core.levels import DISCOVERY, MESSAGE
from core.models import (
    DistributionRequest,
    InboundMessage,
    MessageLogEntry,
    describe_content,
    format_timestamp,
    is_group_chat,
    local_part,
)
from core.ports import ConnectionPort, MessageLogPort

LOGGER = logging.getLogger(__name__)

DIVIDER = "=" * 80


@dataclass
class SeenGroups:
    """Group ids already reported, so repeated console output stays quiet.

    Lives for the whole process and is shared across reconnects.
    """

    discovered: set[str] = field(default_factory=set)
    filtered: set[str] = field(default_factory=set)
    unresolved: set[str] = field(default_factory=set)


def format_message_block(entry: MessageLogEntry) -> str:
    return "\n".join(
        [
            DIVIDER,
            "New group message received:",
            f"  Group: {entry.group_name} ({entry.group_id})",
            f"  Sender: {entry.sender_name} ({entry.sender_id})",
            f"  Time: {entry.timestamp}",
            f"  Content: {entry.content}",
            DIVIDER,
        ]
    )


def format_discovery_block(group_id: str, group_name: str) -> str:
    return "\n".join(
        [
            DIVIDER,
            "Found WhatsApp Group:",
            f"  Name: {group_name}",
            f"  ID: {group_id}",
            "  Add to config.json under targetGroups:",
            "  {",
            f'    "name": "{group_name}",',
            f'    "id": "{group_id}",',
            '    "enabled": true',
            "  }",
            DIVIDER,
        ]
    )


class MessageProcessor:
    """Orchestrates filtering, logging, persistence, and distribution replies."""

    def __init__(
        self,
        connection: ConnectionPort,
        group_filter: GroupFilter,
        message_log: MessageLogPort,
        dispatcher: DistributionDispatcher,
        settings: FilterSettings,
        seen: Optional[SeenGroups] = None,
    ) -> None:
        self._connection = connection
        self._filter = group_filter
        self._message_log = message_log
        self._dispatcher = dispatcher
        self._settings = settings
        self._seen = seen if seen is not None else SeenGroups()

    @property
    def seen(self) -> SeenGroups:
        return self._seen

    async def handle(self, message: InboundMessage) -> None:
        """Process one inbound message through the pipeline."""

        if message.from_me:
            return
        if not is_group_chat(message.chat_id):
            return

        group_id = message.chat_id
        content_text = describe_content(message.content)
        group_name = await self._resolve_group_name(group_id)

        if self._settings.discovery_mode:
            self._announce_discovery(group_id, group_name)

        if not self._filter.should_monitor(group_id, group_name):
            if group_id not in self._seen.filtered:
                LOGGER.debug(
                    "Filtering out message from group: %s (%s) - not in configured target groups",
                    group_name,
                    group_id,
                )
                self._seen.filtered.add(group_id)
            return

        sender_name = await self._resolve_sender_name(message.sender_id)
        entry = MessageLogEntry(
            timestamp=format_timestamp(message.timestamp),
            group_id=group_id,
            group_name=group_name,
            sender_id=message.sender_id,
            sender_name=sender_name,
            message_id=message.message_id,
            content=content_text,
        )
        LOGGER.log(MESSAGE, format_message_block(entry))
        self._message_log.append(entry)

        # Media captions never count as commands, only plain and extended text.
        if message.content is None or not message.content.is_text:
            return
        request = parse_distribution_request(content_text)
        if request is not None:
            await self._process_distribution(group_id, request)

    async def _resolve_group_name(self, group_id: str) -> str:
        try:
            name = await self._connection.group_name(group_id)
        except Exception as exc:
            if group_id not in self._seen.unresolved:
                LOGGER.warning("Could not fetch metadata for group %s: %s", group_id, exc)
                self._seen.unresolved.add(group_id)
            return group_id
        return name or group_id

    async def _resolve_sender_name(self, sender_id: Optional[str]) -> str:
        if not sender_id:
            return "Unknown Sender"
        try:
            name = await self._connection.contact_name(sender_id)
        except Exception:
            LOGGER.debug("Contact lookup failed for %s", sender_id, exc_info=True)
            name = None
        return name or local_part(sender_id)

    def _announce_discovery(self, group_id: str, group_name: str) -> None:
        if group_id in self._seen.discovered:
            return
        LOGGER.log(DISCOVERY, format_discovery_block(group_id, group_name))
        self._seen.discovered.add(group_id)

    async def _process_distribution(self, group_id: str, request: DistributionRequest) -> None:
        LOGGER.info("Processing distribution request: %s for %s", request.email, request.platform)
        try:
            result = await self._dispatcher.add_tester(request.email, request.platform)
        except Exception:
            LOGGER.exception("Distribution request for %s failed unexpectedly", request.email)
            return

        reply = result.reply_text()
        try:
            await self._connection.send_text(group_id, reply)
        except Exception:
            LOGGER.exception("Failed to send group reply to %s", group_id)
            return
        LOGGER.info("Sent reply to group %s: %s", group_id, reply)
