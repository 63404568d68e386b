"""Firebase App Distribution adapter.

Implements the core ReleaseApiPort against the App Distribution REST API.
The service-account credential comes from firebase-admin; HTTP calls use
httpx so they never block the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, List, Optional

import firebase_admin
import httpx
from firebase_admin import credentials

from core.config import DistributionConfig
from core.models import Release
from core.ports import ReleaseApiError

LOGGER = logging.getLogger(__name__)

API_BASE = "https://firebaseappdistribution.googleapis.com/v1"


def _error_text(response: httpx.Response) -> str:
    """Prefer the API's own ``error.message`` over the bare status line."""

    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return f"HTTP {response.status_code}: {response.reason_phrase}"


class FirebaseReleaseApi:
    """Release listing and tester distribution for one Firebase project."""

    def __init__(
        self,
        project_id: str,
        credential: Any,
        *,
        base_url: str = API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self._project_id = project_id
        self._credential = credential
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    def _app_url(self, app_id: str) -> str:
        return f"{self._base_url}/projects/{self._project_id}/apps/{app_id}"

    async def _access_token(self) -> str:
        # firebase-admin refreshes tokens synchronously.
        try:
            token = await asyncio.to_thread(self._credential.get_access_token)
        except Exception as exc:
            raise ReleaseApiError(f"Failed to obtain access token: {exc}") from exc
        return token.access_token

    async def _request(self, method: str, url: str, json_body: Optional[dict] = None) -> dict:
        token = await self._access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(method, url, headers=headers, json=json_body)
        except httpx.HTTPError as exc:
            raise ReleaseApiError(str(exc) or type(exc).__name__) from exc

        if resp.is_error:
            raise ReleaseApiError(_error_text(resp))
        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as exc:
            raise ReleaseApiError(f"Invalid JSON response from {url}") from exc
        if not isinstance(data, dict):
            raise ReleaseApiError(f"Unexpected response from {url}: expected a JSON object")
        return data

    async def list_releases(self, app_id: str) -> List[Release]:
        """Return the app's releases in API order (newest first)."""

        data = await self._request("GET", f"{self._app_url(app_id)}/releases")
        items = data.get("releases") or []
        if not isinstance(items, list):
            raise ReleaseApiError("Unexpected releases payload: \"releases\" is not a list")
        releases = []
        for item in items:
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            if not name:
                continue
            releases.append(Release(name=name, display_version=item.get("displayVersion")))
        return releases

    async def distribute(self, app_id: str, release_id: str, emails: List[str]) -> None:
        url = f"{self._app_url(app_id)}/releases/{release_id}:distribute"
        await self._request("POST", url, {"testerEmails": list(emails)})


def build_release_api(config: DistributionConfig) -> Optional[FirebaseReleaseApi]:
    """Initialize firebase-admin from the service-account key.

    Returns None when distribution cannot be enabled; the dispatcher then
    answers every request with a "not initialized" failure.
    """

    key_path = config.service_account_key_path
    if not key_path or not config.project_id:
        LOGGER.warning("Firebase configuration not found in config.json")
        return None
    if not os.path.exists(key_path):
        LOGGER.warning("Firebase service account key not found at: %s", key_path)
        return None

    try:
        credential = credentials.Certificate(key_path)
        firebase_admin.initialize_app(credential, {"projectId": config.project_id})
    except (ValueError, OSError) as exc:
        LOGGER.error("Failed to initialize Firebase: %s", exc)
        return None

    LOGGER.info("Firebase Admin SDK initialized successfully")
    return FirebaseReleaseApi(config.project_id, credential)
