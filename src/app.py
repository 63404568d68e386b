"""Application entry point for the groupwatch listener."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import signal
from typing import Optional

from art import tprint

import settings
from adapters.firebase_distribution import build_release_api
from adapters.json_config_store import JsonConfigStore
from adapters.json_message_log import JsonMessageLog
from adapters.log_formatting import configure_logging
from client import build_session, print_qr
from core.config import BotConfig
from core.distribution import DistributionDispatcher
from core.group_filter import GroupFilter
from core.ports import ConnectionPort
from core.processor import MessageProcessor, SeenGroups
from core.supervisor import ConnectionSupervisor

NAME = "GROUPWATCH"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


def _install_signal_handlers() -> None:
    def _shutdown(signum, _frame) -> None:
        LOGGER.info("Received %s, shutting down gracefully...", signal.Signals(signum).name)
        raise SystemExit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)


def _load_config() -> tuple[JsonConfigStore, BotConfig]:
    store = JsonConfigStore(settings.CONFIG_PATH)
    config = store.load()
    configure_logging(config.logging, settings.PROJECT_ROOT)
    return store, config


async def _listen(store: JsonConfigStore, config: BotConfig, force_discovery: bool = False) -> None:
    filter_settings = config.settings
    if force_discovery:
        # Only for this run; the saved config keeps its own discoveryMode.
        filter_settings = dataclasses.replace(filter_settings, discovery_mode=True)
        LOGGER.info("Discovery mode is on: every group will be announced once")
    dispatcher = DistributionDispatcher(build_release_api(config.firebase), config.firebase)
    message_log = JsonMessageLog(settings.LOG_DIR)
    group_filter = GroupFilter(config, on_group_learned=lambda _group: store.schedule_save(config))
    # Seen-group caches outlive reconnects; only the connection changes.
    seen = SeenGroups()

    def build_processor(connection: ConnectionPort) -> MessageProcessor:
        return MessageProcessor(
            connection=connection,
            group_filter=group_filter,
            message_log=message_log,
            dispatcher=dispatcher,
            settings=filter_settings,
            seen=seen,
        )

    supervisor = ConnectionSupervisor(
        connect=build_session,
        build_processor=build_processor,
        target_groups=lambda: config.target_groups,
        show_qr=print_qr,
        reconnect_delay=settings.RECONNECT_DELAY_SECONDS,
    )
    await supervisor.run()


def _run(force_discovery: bool = False) -> None:
    _print_banner()
    # Defaults until the config file is read, so loading it is visible.
    configure_logging(project_root=settings.PROJECT_ROOT)
    _install_signal_handlers()
    LOGGER.info("Starting WhatsApp Group Listener Bot...")

    try:
        store, config = _load_config()
        asyncio.run(_listen(store, config, force_discovery))
    except SystemExit:
        raise
    except Exception as exc:
        LOGGER.exception("Failed to start bot: %s", exc)
        raise SystemExit(1) from exc


def _show_groups() -> None:
    configure_logging({"level": "WARNING"}, settings.PROJECT_ROOT)
    config = JsonConfigStore(settings.CONFIG_PATH).load()
    print(f"Config: {settings.CONFIG_PATH}")
    if not config.target_groups:
        state = "all groups" if config.settings.log_all_groups_if_empty else "no groups"
        print(f"No target groups configured; logging {state}.")
    for index, group in enumerate(config.target_groups, start=1):
        status = "enabled" if group.enabled else "disabled"
        print(f"{index}. {group.name} | {group.id or 'ID will be auto-detected'} | {status}")
    print(
        "Settings: "
        f"logAllGroupsIfEmpty={config.settings.log_all_groups_if_empty}, "
        f"caseSensitiveGroupNames={config.settings.case_sensitive_group_names}, "
        f"discoveryMode={config.settings.discovery_mode}"
    )


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="groupwatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the listener")
    subparsers.add_parser(
        "discover",
        help="Start the listener and announce every group id/name once.",
    )
    subparsers.add_parser("groups", help="Print configured target groups and exit")

    args = parser.parse_args(argv)
    if args.command == "groups":
        _show_groups()
        return
    if args.command == "discover":
        _run(force_discovery=True)
        return
    _run()


if __name__ == "__main__":
    main()
