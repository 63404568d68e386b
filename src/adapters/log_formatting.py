"""Console/file logging setup.

Every line reads ``[YYYY-MM-DD HH:MM:SS.mmm] [LEVEL] text`` in UTC. Options
come from the ``logging`` section of the config file, merged over
``LOGGING_DEFAULTS``.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from core.levels import register_levels

LOGGING_DEFAULTS: dict[str, Any] = {
    "level": "DEBUG",
    "console": True,
    "file": {
        "enabled": False,
        "path": "logs/groupwatch.log",
        "max_bytes": 5 * 1024 * 1024,
        "backup_count": 5,
    },
}


class BracketFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(fmt="[%(asctime)s] [%(levelname)s] %(message)s")

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return f"{created.strftime('%Y-%m-%d %H:%M:%S')}.{int(record.msecs):03d}"


def merge_logging_options(section: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Overlay a config ``logging`` section on the defaults, one level deep."""

    section = section or {}
    options = {**LOGGING_DEFAULTS, **section}
    file_section = section.get("file")
    options["file"] = {**LOGGING_DEFAULTS["file"], **(file_section if isinstance(file_section, dict) else {})}
    return options


def configure_logging(section: Optional[dict[str, Any]] = None, project_root: str = ".") -> list[logging.Handler]:
    """Install the console and optional rotating-file handlers on the root logger.

    Relative log file paths resolve against ``project_root``. Returns the
    installed handlers; when both are disabled the current setup is kept.
    """

    register_levels()
    options = merge_logging_options(section)
    level_name = str(options["level"]).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.DEBUG
    formatter = BracketFormatter()

    handlers: list[logging.Handler] = []

    if options["console"]:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_options = options["file"]
    if file_options["enabled"]:
        path = str(file_options["path"])
        if not os.path.isabs(path):
            path = os.path.join(project_root, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_options["max_bytes"]),
            backupCount=int(file_options["backup_count"]),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if handlers:
        logging.basicConfig(level=level, handlers=handlers, force=True)
    return handlers
