"""Custom log levels used for message and discovery output."""

from __future__ import annotations

import logging

MESSAGE = 25
DISCOVERY = 26


def register_levels() -> None:
    """Register level names so formatters print MESSAGE/DISCOVERY/WARN."""

    logging.addLevelName(MESSAGE, "MESSAGE")
    logging.addLevelName(DISCOVERY, "DISCOVERY")
    logging.addLevelName(logging.WARNING, "WARN")
