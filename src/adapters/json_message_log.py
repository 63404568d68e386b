"""Per-day JSON message log adapter.

Implements the core MessageLogPort with one JSON array file per UTC date.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Callable, Optional

from core.models import MessageLogEntry

LOGGER = logging.getLogger(__name__)


class JsonMessageLog:
    """Append entries to ``<log_dir>/messages-<YYYY-MM-DD>.json``."""

    def __init__(self, log_dir: str, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._log_dir = log_dir
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def path_for_today(self) -> str:
        today = self._clock().astimezone(timezone.utc).strftime("%Y-%m-%d")
        return os.path.join(self._log_dir, f"messages-{today}.json")

    def _read_existing(self, path: str) -> list:
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as handle:
                existing = json.load(handle)
        except (OSError, ValueError):
            LOGGER.warning("Failed to parse existing log file, starting fresh")
            return []
        if not isinstance(existing, list):
            LOGGER.warning("Existing log file %s is not a JSON array, starting fresh", path)
            return []
        return existing

    def append(self, entry: MessageLogEntry) -> None:
        """Append one entry; write failures are logged, never raised."""

        try:
            os.makedirs(self._log_dir, exist_ok=True)
            path = self.path_for_today()
            entries = self._read_existing(path)
            entries.append(entry.to_dict())
            with open(path, "w", encoding="utf-8") as handle:
                json.dump(entries, handle, indent=2, ensure_ascii=False)
        except OSError as exc:
            LOGGER.error("Failed to save message to file: %s", exc)
