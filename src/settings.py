"""Static settings for groupwatch.

User-editable behavior (target groups, filter switches, Firebase ids,
logging) lives in the JSON config file. This module only resolves where
things live on disk, with environment overrides read through python-dotenv.
"""

import os

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def _project_path(value: str) -> str:
    if os.path.isabs(value):
        return value
    return os.path.join(PROJECT_ROOT, value)


# Target groups, settings and Firebase ids are loaded from config.json.
CONFIG_PATH = _project_path(os.getenv("GROUPWATCH_CONFIG", "config.json"))

# neonize keeps the paired device keys in this SQLite file.
SESSION_DB = _project_path(os.getenv("GROUPWATCH_SESSION", "groupwatch.sqlite3"))

# Per-day message logs: <LOG_DIR>/messages-<YYYY-MM-DD>.json
LOG_DIR = _project_path(os.getenv("GROUPWATCH_LOG_DIR", "logs"))

# Delay before a full reconnect after a non-logout disconnect.
RECONNECT_DELAY_SECONDS = float(os.getenv("GROUPWATCH_RECONNECT_DELAY", "3"))
