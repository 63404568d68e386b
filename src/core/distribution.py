"""Distribution request parsing and dispatch (core domain)."""

from __future__ import annotations

import logging
import re
from typing import Optional

from core.config import DistributionConfig
from core.models import DistributionRequest, DistributionResult
from core.ports import ReleaseApiError, ReleaseApiPort

LOGGER = logging.getLogger(__name__)

# <email>-<platform>, anchored at both ends after trimming. ASCII keeps
# IGNORECASE from folding characters like U+212A KELVIN SIGN into [a-zA-Z].
DISTRIBUTION_PATTERN = re.compile(
    r"^([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})-(android|ios)$",
    re.IGNORECASE | re.ASCII,
)


def parse_distribution_request(text: Optional[str]) -> Optional[DistributionRequest]:
    """Return the request encoded in ``text``, or None when it is not one."""

    if not text:
        return None
    match = DISTRIBUTION_PATTERN.match(text.strip())
    if not match:
        return None
    return DistributionRequest(email=match.group(1).lower(), platform=match.group(2).lower())


class DistributionDispatcher:
    """Add a tester to the newest release of the platform's app.

    Every failure is returned as a ``DistributionResult`` rather than raised,
    and nothing is retried: the user can resend the request.
    """

    def __init__(self, api: Optional[ReleaseApiPort], config: DistributionConfig) -> None:
        self._api = api
        self._config = config

    async def add_tester(self, email: str, platform: str) -> DistributionResult:
        if self._api is None:
            return DistributionResult(False, "Firebase App Distribution is not initialized")

        app_id_key = self._config.app_id_key(platform)
        app_id = self._config.app_id_for(platform)
        if not app_id:
            return DistributionResult(
                False,
                f"No {platform} app ID configured in config.json ({app_id_key})",
            )

        try:
            releases = await self._api.list_releases(app_id)
            if not releases:
                return DistributionResult(False, f"No releases found for {platform} app")

            # The API lists releases newest first.
            latest = releases[0]
            release_id = latest.release_id
            await self._api.distribute(app_id, release_id, [email])
        except ReleaseApiError as exc:
            LOGGER.error("Failed to add tester to distribution: %s", exc)
            return DistributionResult(False, f"Failed to add tester: {exc}")
        except Exception as exc:
            LOGGER.exception("Unexpected error while adding tester to distribution")
            return DistributionResult(False, f"Failed to add tester: {exc}")

        return DistributionResult(
            True,
            f"Successfully added {email} to {platform} app distribution "
            f"(Release: {latest.display_version or release_id})",
        )
