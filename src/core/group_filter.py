"""Monitored-group matching (core domain)."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from core.config import BotConfig, MonitoredGroup

LOGGER = logging.getLogger(__name__)

GroupLearnedCallback = Callable[[MonitoredGroup], None]


class GroupFilter:
    """Decide whether a group is in scope for logging and distribution.

    Matching logic:
    - No enabled target groups: fall back to ``log_all_groups_if_empty``.
    - Otherwise the first enabled entry whose id equals the group id, or whose
      name equals the group name (case rule from settings), wins.
    - A name match on an entry without an id stores the id and calls
      ``on_group_learned`` so the config can be persisted.
    """

    def __init__(self, config: BotConfig, on_group_learned: Optional[GroupLearnedCallback] = None) -> None:
        self._config = config
        self._on_group_learned = on_group_learned

    def _normalize(self, name: str) -> str:
        if self._config.settings.case_sensitive_group_names:
            return name
        return name.lower()

    def should_monitor(self, group_id: str, group_name: str) -> bool:
        settings = self._config.settings
        enabled = self._config.enabled_groups()
        if not enabled:
            return settings.log_all_groups_if_empty

        current_name = self._normalize(group_name or "")
        for target in enabled:
            if target.id and target.id == group_id:
                return True
            if target.name and self._normalize(target.name) == current_name:
                if not target.id:
                    self._learn_id(target, group_id)
                return True
        return False

    def _learn_id(self, target: MonitoredGroup, group_id: str) -> None:
        target.id = group_id
        LOGGER.info("Learned id %s for group %s", group_id, target.name)
        if self._on_group_learned is None:
            return
        # The callback only schedules persistence; it must not block this decision.
        try:
            self._on_group_learned(target)
        except Exception:
            LOGGER.exception("Failed to schedule config save for group %s", target.name)
