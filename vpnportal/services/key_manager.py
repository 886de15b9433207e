"""Client for the WireGuard key-management service (wg-provisioner)."""
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx

from vpnportal.config import get_settings, Settings

logger = logging.getLogger(__name__)


class KeyManagerError(Exception):
    """Raised when the key-management service cannot fulfil a request."""


@dataclass
class KeyPair:
    public_key: str
    private_key: str


class KeyManagerClient:
    """Generates keypairs and pushes peer state to the VPN gateway."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.BaseTransport] = None):
        settings = settings or get_settings()
        self.base_url = settings.key_manager_url.rstrip("/")
        self.api_key = settings.key_manager_api_key
        self.timeout = settings.key_manager_timeout
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.request(method, url, headers=self._headers(), **kwargs)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise KeyManagerError(f"API error {e.response.status_code}: {e.response.text[:200]}") from e
        except httpx.RequestError as e:
            raise KeyManagerError(f"Network error: {e}") from e
        return response

    def generate_keypair(self) -> KeyPair:
        """Ask the key manager for a fresh keypair.

        Returns:
            KeyPair with base64 public and private keys.

        Raises:
            KeyManagerError: On network errors, API errors, or malformed replies.
        """
        response = self._request("POST", "/keys")
        try:
            data = response.json()
            pair = KeyPair(public_key=data["public_key"], private_key=data["private_key"])
        except (ValueError, KeyError, TypeError) as e:
            raise KeyManagerError(f"Malformed keypair response: {e}") from e
        if not pair.public_key or not pair.private_key:
            raise KeyManagerError("Empty key material in response")
        logger.info("Generated keypair %s...", pair.public_key[:8])
        return pair

    def sync_peer(self, public_key: str, address: str, enabled: bool) -> None:
        """Create or update the gateway peer for ``public_key``."""
        self._request(
            "PUT",
            f"/peers/{quote(public_key, safe='')}",
            json={"address": address, "enabled": enabled},
        )
        logger.info("Peer %s... at %s enabled=%s", public_key[:8], address, enabled)
