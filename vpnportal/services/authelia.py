"""Forwarder for the Authelia restart hook."""
import logging
from typing import Optional

import httpx

from vpnportal.config import get_settings, Settings
from vpnportal.services.errors import ServiceUnavailable, UpstreamError

logger = logging.getLogger(__name__)


class AutheliaControl:
    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.restart_url = settings.authelia_restart_url

    async def restart(self) -> None:
        """Ask the ops hook to restart Authelia so it reloads its user database."""
        if not self.restart_url:
            raise ServiceUnavailable("Authelia restart hook is not configured")
        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(self.restart_url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(f"Authelia restart failed: HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("Authelia restart hook unreachable: %s", e)
            raise UpstreamError("Authelia restart hook unreachable") from e
        logger.info("Authelia restart requested")
