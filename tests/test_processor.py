from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.config import BotConfig, DistributionConfig, FilterSettings, MonitoredGroup
from core.distribution import DistributionDispatcher
from core.group_filter import GroupFilter
from core.levels import DISCOVERY, MESSAGE
from core.models import ContentKind, MessageContent, Release
from core.processor import DIVIDER, MessageProcessor, SeenGroups, format_discovery_block
from tests.fakes import FakeConnection, FakeMessageLog, FakeReleaseApi, make_message


class Harness:
    def __init__(
        self,
        groups: Optional[list[MonitoredGroup]] = None,
        releases: Optional[list[Release]] = None,
        settings: Optional[FilterSettings] = None,
        android_app_id: Optional[str] = "1:1:android:a",
    ) -> None:
        self.config = BotConfig(
            target_groups=groups or [],
            settings=settings or FilterSettings(),
            firebase=DistributionConfig(project_id="p", android_app_id=android_app_id),
        )
        self.learned: list[MonitoredGroup] = []
        self.connection = FakeConnection({"abc@g.us": "Test Group", "other@g.us": "Other Group"})
        self.connection.contacts["15550001111@s.whatsapp.net"] = "Alice"
        self.message_log = FakeMessageLog()
        self.api = FakeReleaseApi(releases)
        self.processor = MessageProcessor(
            connection=self.connection,
            group_filter=GroupFilter(self.config, on_group_learned=self.learned.append),
            message_log=self.message_log,
            dispatcher=DistributionDispatcher(self.api, self.config.firebase),
            settings=self.config.settings,
            seen=SeenGroups(),
        )

    def handle(self, message) -> None:
        asyncio.run(self.processor.handle(message))


def test_distribution_request_end_to_end() -> None:
    harness = Harness(
        groups=[MonitoredGroup(name="Test Group")],
        releases=[Release(name="projects/p/apps/a/releases/r1", display_version="1.0")],
    )

    harness.handle(make_message(text="a@b.com-android"))

    assert harness.api.distributed == [("1:1:android:a", "r1", ["a@b.com"])]
    assert len(harness.connection.sent) == 1
    chat_id, reply = harness.connection.sent[0]
    assert chat_id == "abc@g.us"
    assert reply.startswith("✅")
    assert len(harness.message_log.entries) == 1
    assert harness.learned[0].id == "abc@g.us"


def test_log_entry_fields() -> None:
    harness = Harness()
    harness.handle(make_message(text="hello team"))

    entry = harness.message_log.entries[0]
    assert entry.timestamp == "2024-01-01 12:30:45.123"
    assert entry.group_id == "abc@g.us"
    assert entry.group_name == "Test Group"
    assert entry.sender_id == "15550001111@s.whatsapp.net"
    assert entry.sender_name == "Alice"
    assert entry.message_id == "MSG1"
    assert entry.content == "hello team"
    assert harness.connection.sent == []


def test_sticker_is_logged_but_not_parsed() -> None:
    harness = Harness(releases=[Release(name="projects/p/apps/a/releases/r1")])
    harness.handle(make_message(content=MessageContent(ContentKind.STICKER)))

    assert harness.message_log.entries[0].content == "[Sticker]"
    assert harness.api.listed == []
    assert harness.connection.sent == []


def test_image_caption_is_not_a_command() -> None:
    harness = Harness(releases=[Release(name="projects/p/apps/a/releases/r1")])
    harness.handle(make_message(content=MessageContent(ContentKind.IMAGE, caption="a@b.com-android")))

    assert harness.message_log.entries[0].content == "[Image]: a@b.com-android"
    assert harness.api.listed == []


def test_extended_text_is_parsed() -> None:
    harness = Harness(releases=[Release(name="projects/p/apps/a/releases/r1")])
    harness.handle(make_message(content=MessageContent(ContentKind.EXTENDED_TEXT, text=" A@B.COM-ANDROID ")))
    assert harness.api.distributed == [("1:1:android:a", "r1", ["a@b.com"])]


def test_own_and_direct_messages_are_ignored() -> None:
    harness = Harness()
    harness.handle(make_message(text="hi", from_me=True))
    harness.handle(make_message(text="hi", chat_id="15550001111@s.whatsapp.net"))

    assert harness.message_log.entries == []
    assert harness.connection.group_lookups == 0


def test_filtered_group_stops_processing_and_notices_once(caplog) -> None:
    harness = Harness(groups=[MonitoredGroup(name="Test Group", id="abc@g.us")])
    with caplog.at_level(logging.DEBUG, logger="core.processor"):
        harness.handle(make_message(chat_id="other@g.us", text="a@b.com-android"))
        harness.handle(make_message(chat_id="other@g.us", text="again"))

    assert harness.message_log.entries == []
    assert harness.api.listed == []
    notices = [r for r in caplog.records if "Filtering out message" in r.getMessage()]
    assert len(notices) == 1
    assert harness.processor.seen.filtered == {"other@g.us"}


def test_discovery_announces_each_group_once(caplog) -> None:
    harness = Harness(
        groups=[MonitoredGroup(name="Test Group")],
        settings=FilterSettings(discovery_mode=True),
    )
    with caplog.at_level(logging.DEBUG, logger="core.processor"):
        harness.handle(make_message(chat_id="other@g.us", text="x"))
        harness.handle(make_message(chat_id="other@g.us", text="y"))
        harness.handle(make_message(chat_id="abc@g.us", text="z"))

    discoveries = [r for r in caplog.records if r.levelno == DISCOVERY]
    assert len(discoveries) == 2
    assert '"id": "other@g.us"' in discoveries[0].getMessage()
    assert harness.processor.seen.discovered == {"other@g.us", "abc@g.us"}
    messages = [r for r in caplog.records if r.levelno == MESSAGE]
    assert len(messages) == 1


def test_group_name_lookup_failure_uses_group_id() -> None:
    harness = Harness()
    harness.handle(make_message(chat_id="unknown@g.us", text="hi"))
    harness.handle(make_message(chat_id="unknown@g.us", text="hi again"))

    assert [e.group_name for e in harness.message_log.entries] == ["unknown@g.us", "unknown@g.us"]
    assert harness.processor.seen.unresolved == {"unknown@g.us"}


def test_sender_name_falls_back_to_local_part() -> None:
    harness = Harness()
    harness.handle(make_message(sender_id="4477700@s.whatsapp.net", text="hi"))
    harness.handle(make_message(sender_id=None, text="hi"))

    names = [e.sender_name for e in harness.message_log.entries]
    assert names == ["4477700", "Unknown Sender"]


def test_failed_dispatch_replies_with_cross() -> None:
    harness = Harness(android_app_id=None)
    harness.handle(make_message(text="a@b.com-android"))

    assert harness.connection.sent == [
        ("abc@g.us", "❌ No android app ID configured in config.json (androidAppId)")
    ]


def test_reply_failure_does_not_raise() -> None:
    harness = Harness(releases=[Release(name="projects/p/apps/a/releases/r1")])
    harness.connection.fail_send = True

    harness.handle(make_message(text="a@b.com-android"))

    assert harness.api.distributed
    assert len(harness.message_log.entries) == 1


def test_unexpected_dispatch_error_still_replies_with_cross() -> None:
    harness = Harness(releases=[Release(name="projects/p/apps/a/releases/r1")])
    harness.api.list_crash = TypeError("unexpected payload")

    harness.handle(make_message(text="a@b.com-android"))

    assert harness.connection.sent == [("abc@g.us", "❌ Failed to add tester: unexpected payload")]


def test_console_blocks_are_framed_by_dividers(caplog) -> None:
    harness = Harness()
    with caplog.at_level(logging.DEBUG, logger="core.processor"):
        harness.handle(make_message(text="hello"))

    (record,) = [r for r in caplog.records if r.levelno == MESSAGE]
    lines = record.getMessage().splitlines()
    assert lines[0] == DIVIDER
    assert lines[1] == "New group message received:"
    assert lines[-1] == DIVIDER

    block = format_discovery_block("abc@g.us", "Test Group").splitlines()
    assert block[0] == block[-1] == DIVIDER
    assert block[1] == "Found WhatsApp Group:"
