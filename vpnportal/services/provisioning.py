"""VPN provisioning gate: per-user enable/disable, key material and address allocation."""
import ipaddress
import logging
import threading
from typing import Dict, Iterator, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vpnportal.config import get_settings, Settings
from vpnportal.db.models_auth import Registration, Resolution, User, UserStatus
from vpnportal.db.models_vpn import VPNConfig
from vpnportal.services.auth import require_self_or_admin
from vpnportal.services.errors import AccountNotActive, Conflict, NotFound, UpstreamError
from vpnportal.services.key_manager import KeyManagerClient, KeyManagerError

logger = logging.getLogger(__name__)

DEFAULT_WG_PORT = 51820
KEEPALIVE_SECONDS = 25

# Serializes "pick free address + insert" across request threads; the unique
# constraint on vpn_configs.address still guards against other processes.
_allocation_lock = threading.Lock()


class AddressPool:
    """Fixed pool of client addresses carved from a CIDR block."""

    def __init__(self, cidr: str, server_address: str = ""):
        self.network = ipaddress.ip_network(cidr, strict=False)
        if server_address:
            self.server_address = ipaddress.ip_address(server_address)
        else:
            self.server_address = next(self.network.hosts())

    @property
    def prefixlen(self) -> int:
        return self.network.prefixlen

    def hosts(self) -> Iterator[str]:
        for host in self.network.hosts():
            if host != self.server_address:
                yield str(host)

    @property
    def size(self) -> int:
        total = self.network.num_addresses
        if self.network.version == 4 and self.network.prefixlen < 31:
            total -= 2
        if self.server_address in self.network:
            total -= 1
        return max(total, 0)

    def first_free(self, taken: Set[str]) -> Optional[str]:
        for host in self.hosts():
            if host not in taken:
                return host
        return None


class ProvisioningGate:
    """Decides whether and how a user obtains network access."""

    def __init__(
        self,
        db: Session,
        key_manager: Optional[KeyManagerClient] = None,
        settings: Optional[Settings] = None,
        pool: Optional[AddressPool] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.key_manager = key_manager or KeyManagerClient(self.settings)
        self.pool = pool or AddressPool(self.settings.vpn_address_pool, self.settings.vpn_server_address)

    def _config_for(self, user_id: str) -> Optional[VPNConfig]:
        return self.db.execute(
            select(VPNConfig).where(VPNConfig.user_id == user_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _sync(self, config: VPNConfig, enabled: bool) -> None:
        try:
            self.key_manager.sync_peer(config.public_key, config.address, enabled)
        except KeyManagerError as e:
            self.db.rollback()
            logger.error("Key manager sync failed for user %s: %s", config.user_id, e)
            raise UpstreamError("VPN gateway unavailable") from e

    def enable(self, actor: User, user_id: str) -> VPNConfig:
        require_self_or_admin(actor, user_id)
        user = self.db.get(User, user_id, populate_existing=True)
        if user is None:
            raise NotFound(f"User '{user_id}' not found")
        if user.status != UserStatus.ACTIVE:
            raise AccountNotActive("VPN access requires an active account")

        config = self._config_for(user_id)
        if config is not None:
            if not config.enabled:
                self._sync(config, True)
                config.enabled = True
                self.db.commit()
                logger.info("VPN re-enabled for user %s by %s", user_id, actor.id)
            return config

        try:
            keypair = self.key_manager.generate_keypair()
        except KeyManagerError as e:
            logger.error("Keypair generation failed for user %s: %s", user_id, e)
            raise UpstreamError("VPN key service unavailable") from e

        with _allocation_lock:
            # Start a fresh transaction so the reads below see rows other
            # requests committed while we waited for the lock.
            self.db.commit()
            # Another request may have provisioned this user while we waited.
            config = self._config_for(user_id)
            if config is not None:
                if not config.enabled:
                    self._sync(config, True)
                    config.enabled = True
                    self.db.commit()
                return config

            taken = set(self.db.execute(select(VPNConfig.address)).scalars())
            address = self.pool.first_free(taken)
            if address is None:
                raise Conflict("VPN address pool exhausted")

            config = VPNConfig(
                user_id=user_id,
                public_key=keypair.public_key,
                private_key=keypair.private_key,
                address=address,
                enabled=True,
            )
            self.db.add(config)
            try:
                self.db.flush()
            except IntegrityError:
                self.db.rollback()
                raise Conflict("VPN address or config already allocated")
            self._sync(config, True)
            self.db.commit()

        self.db.refresh(config)
        logger.info("VPN provisioned for user %s at %s by %s", user_id, address, actor.id)
        return config

    def disable(self, actor: User, user_id: str) -> VPNConfig:
        require_self_or_admin(actor, user_id)
        config = self._config_for(user_id)
        if config is None:
            raise NotFound("No VPN config for this user")
        if config.enabled:
            self._sync(config, False)
            config.enabled = False
            self.db.commit()
            self.db.refresh(config)
            logger.info("VPN disabled for user %s by %s", user_id, actor.id)
        return config

    def revoke_access(self, user_id: str) -> Optional[VPNConfig]:
        """Disable the gateway peer of an account that is being suspended or deleted.

        Does not commit: the caller's status change or delete lands in the same
        transaction, and a failed sync rolls both back.
        """
        config = self._config_for(user_id)
        if config is not None and config.enabled:
            self._sync(config, False)
            config.enabled = False
            logger.info("VPN access revoked for user %s", user_id)
        return config

    def get_config(self, actor: User, user_id: str) -> VPNConfig:
        require_self_or_admin(actor, user_id)
        config = self._config_for(user_id)
        if config is None:
            raise NotFound("No VPN config for this user")
        return config

    def render_client_config(self, config: VPNConfig) -> str:
        """Render a wg-quick client file for ``config``."""
        endpoint = self.settings.vpn_endpoint
        if endpoint and ":" not in endpoint:
            endpoint = f"{endpoint}:{DEFAULT_WG_PORT}"

        lines = [
            "[Interface]",
            f"PrivateKey = {config.private_key}",
            f"Address = {config.address}/{self.pool.prefixlen}",
        ]
        if self.settings.vpn_dns:
            lines.append(f"DNS = {self.settings.vpn_dns}")
        lines += [
            "",
            "[Peer]",
            f"PublicKey = {self.settings.vpn_server_public_key}",
            f"AllowedIPs = {self.settings.vpn_allowed_ips}",
        ]
        if endpoint:
            lines.append(f"Endpoint = {endpoint}")
        lines.append(f"PersistentKeepalive = {KEEPALIVE_SECONDS}")
        return "\n".join(lines) + "\n"

    def status(self) -> Dict:
        """Aggregate counts for dashboards."""
        by_status = dict(
            self.db.execute(select(User.status, func.count(User.id)).group_by(User.status)).all()
        )
        pending = self.db.execute(
            select(func.count(Registration.id)).where(Registration.resolution == Resolution.PENDING)
        ).scalar_one()
        total = self.db.execute(select(func.count(VPNConfig.id))).scalar_one()
        enabled = self.db.execute(
            select(func.count(VPNConfig.id)).where(VPNConfig.enabled.is_(True))
        ).scalar_one()
        return {
            "users": {s.value: by_status.get(s, 0) for s in UserStatus},
            "pending_registrations": pending,
            "vpn": {
                "configs": total,
                "enabled": enabled,
                "pool_size": self.pool.size,
                "pool_free": max(self.pool.size - total, 0),
            },
        }
