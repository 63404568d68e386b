"""JSON config file adapter.

Reads and writes the single user-editable config file. Parsing lives here so
the core only ever sees dataclasses.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from typing import Any, Optional

from core.config import BotConfig, DistributionConfig, FilterSettings, MonitoredGroup

LOGGER = logging.getLogger(__name__)


def _section(raw: dict[str, Any], key: str, kind: type) -> Any:
    value = raw.get(key)
    if value is None:
        return kind()
    if not isinstance(value, kind):
        raise ValueError(f"\"{key}\" must be a JSON {'array' if kind is list else 'object'}")
    return value


def config_from_dict(raw: dict[str, Any]) -> BotConfig:
    """Build a BotConfig from the camelCase JSON layout.

    Raises ValueError when a section has the wrong JSON type.
    """

    groups = []
    for entry in _section(raw, "targetGroups", list):
        if not isinstance(entry, dict):
            continue
        groups.append(
            MonitoredGroup(
                name=str(entry.get("name") or ""),
                id=str(entry["id"]) if entry.get("id") else None,
                enabled=entry.get("enabled") is not False,
            )
        )

    defaults = FilterSettings()
    settings = _section(raw, "settings", dict)
    filter_settings = FilterSettings(
        log_all_groups_if_empty=settings.get("logAllGroupsIfEmpty", defaults.log_all_groups_if_empty) is not False,
        case_sensitive_group_names=bool(
            settings.get("caseSensitiveGroupNames", defaults.case_sensitive_group_names)
        ),
        discovery_mode=bool(settings.get("discoveryMode", defaults.discovery_mode)),
    )

    firebase = _section(raw, "firebase", dict)
    distribution = DistributionConfig(
        service_account_key_path=firebase.get("serviceAccountKeyPath") or "",
        project_id=firebase.get("projectId") or "",
        android_app_id=firebase.get("androidAppId") or None,
        ios_app_id=firebase.get("iosAppId") or None,
    )

    return BotConfig(
        target_groups=groups,
        settings=filter_settings,
        firebase=distribution,
        logging=dict(_section(raw, "logging", dict)),
    )


def config_to_dict(config: BotConfig) -> dict[str, Any]:
    data: dict[str, Any] = {
        "targetGroups": [
            {"name": group.name, "id": group.id, "enabled": group.enabled}
            for group in config.target_groups
        ],
        "settings": {
            "logAllGroupsIfEmpty": config.settings.log_all_groups_if_empty,
            "caseSensitiveGroupNames": config.settings.case_sensitive_group_names,
            "discoveryMode": config.settings.discovery_mode,
        },
        "firebase": {
            "serviceAccountKeyPath": config.firebase.service_account_key_path,
            "projectId": config.firebase.project_id,
            "androidAppId": config.firebase.android_app_id,
            "iosAppId": config.firebase.ios_app_id,
        },
    }
    if config.logging:
        data["logging"] = config.logging
    return data


class JsonConfigStore:
    """Load/save the config file and schedule background saves."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._pending: set[asyncio.Task] = set()
        self._lock: Optional[asyncio.Lock] = None

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> BotConfig:
        """Load the config, writing defaults when the file does not exist.

        A malformed file never stops the bot: defaults are used for this run
        and the file is left untouched so the user can fix it.
        """

        if not os.path.exists(self._path):
            config = BotConfig()
            try:
                self.save(config)
            except OSError:
                LOGGER.exception("Failed to write default config to %s", self._path)
            else:
                LOGGER.info("Created default config.json - add target groups to filter messages")
            return config

        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                raw = json.load(handle)
            if not isinstance(raw, dict):
                raise ValueError("top-level JSON value must be an object")
            config = config_from_dict(raw)
        except (OSError, ValueError) as exc:
            LOGGER.error("Failed to load config: %s", exc)
            return BotConfig()

        LOGGER.info("Configuration loaded: %s target groups configured", len(config.target_groups))
        return config

    def save(self, config: BotConfig) -> None:
        self._write(config_to_dict(config))

    def _write(self, data: dict[str, Any]) -> None:
        # Write a sibling temp file and swap it in, so readers never see a
        # half-written config.
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            "w", dir=directory or ".", suffix=".tmp", delete=False, encoding="utf-8"
        )
        try:
            with handle:
                json.dump(data, handle, indent=2, ensure_ascii=False)
            os.replace(handle.name, self._path)
        except BaseException:
            if os.path.exists(handle.name):
                os.unlink(handle.name)
            raise

    def schedule_save(self, config: BotConfig) -> Optional[asyncio.Task]:
        """Persist ``config`` in the background without awaiting the result.

        The snapshot is taken now, so later in-memory edits are not mixed into
        this write. Saves run one at a time in scheduling order, so the file
        always ends up with the newest snapshot.
        """

        snapshot = config_to_dict(config)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._save_snapshot(snapshot)
            return None

        if self._lock is None:
            self._lock = asyncio.Lock()
        task = loop.create_task(self._save_in_order(snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _save_in_order(self, snapshot: dict[str, Any]) -> None:
        async with self._lock:
            await asyncio.to_thread(self._save_snapshot, snapshot)

    def _save_snapshot(self, snapshot: dict[str, Any]) -> None:
        try:
            self._write(snapshot)
        except OSError as exc:
            LOGGER.error("Failed to save config: %s", exc)
