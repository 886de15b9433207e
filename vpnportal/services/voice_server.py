"""Voice-server (TeamSpeak) admin API client.

The portal implements no voice protocol logic: it forwards authorized admin
requests and relays the upstream result or error.
"""
import logging
from typing import Any, Optional

import httpx

from vpnportal.config import get_settings, Settings
from vpnportal.services.errors import ServiceUnavailable, UpstreamError

logger = logging.getLogger(__name__)


class VoiceServerClient:
    """Thin async proxy to the voice-server admin API."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.base_url = settings.voice_admin_url.rstrip("/")
        self.api_key = settings.voice_admin_api_key
        self.timeout = 10.0

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        if not self.base_url:
            raise ServiceUnavailable("Voice server admin API is not configured")
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, json=json, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("Voice server %s %s -> %d", method, path, status)
            # Relay caller-side errors; anything else is a gateway failure.
            relayed = status if 400 <= status < 500 else None
            raise UpstreamError(f"Voice server error {status}: {e.response.text[:200]}", status_code=relayed) from e
        except httpx.RequestError as e:
            logger.error("Voice server unreachable: %s", e)
            raise UpstreamError("Voice server unreachable") from e

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError("Voice server returned invalid JSON") from e

    async def list_users(self) -> Any:
        return await self._request("GET", "/users")

    async def create_user(self, data: dict) -> Any:
        return await self._request("POST", "/users", json=data)

    async def update_user(self, user_id: str, data: dict) -> Any:
        return await self._request("PUT", f"/users/{user_id}", json=data)

    async def delete_user(self, user_id: str) -> Any:
        return await self._request("DELETE", f"/users/{user_id}")

    async def list_channels(self) -> Any:
        return await self._request("GET", "/channels")

    async def create_channel(self, data: dict) -> Any:
        return await self._request("POST", "/channels", json=data)
