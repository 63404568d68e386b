"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass
class MonitoredGroup:
    """A group the pipeline should process.

    ``id`` starts empty when the user only knows the group name and is filled
    in once by the group filter. It is never cleared afterwards.
    """

    name: str
    id: Optional[str] = None
    enabled: bool = True


@dataclass(frozen=True)
class FilterSettings:
    """Global filtering switches loaded at startup."""

    log_all_groups_if_empty: bool = True
    case_sensitive_group_names: bool = False
    discovery_mode: bool = False


@dataclass(frozen=True)
class DistributionConfig:
    """Firebase App Distribution settings consumed by the dispatcher."""

    service_account_key_path: str = "./firebase-service-account-key.json"
    project_id: str = "your-firebase-project-id"
    android_app_id: Optional[str] = "1:123456789:android:abcdef123456"
    ios_app_id: Optional[str] = "1:123456789:ios:abcdef123456"

    def app_id_key(self, platform: str) -> str:
        return "androidAppId" if platform == "android" else "iosAppId"

    def app_id_for(self, platform: str) -> Optional[str]:
        if platform == "android":
            return self.android_app_id
        return self.ios_app_id


@dataclass
class BotConfig:
    """Everything stored in the config file."""

    target_groups: List[MonitoredGroup] = field(default_factory=list)
    settings: FilterSettings = field(default_factory=FilterSettings)
    firebase: DistributionConfig = field(default_factory=DistributionConfig)
    logging: dict[str, Any] = field(default_factory=dict)

    def enabled_groups(self) -> List[MonitoredGroup]:
        return [group for group in self.target_groups if group.enabled]
