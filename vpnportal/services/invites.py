"""Invite ledger: issue, redeem, revoke and list single-use invitation tokens."""
import logging
import secrets
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from vpnportal.config import get_settings, Settings
from vpnportal.db.models_auth import Invite, User
from vpnportal.services.auth import require_admin
from vpnportal.services.errors import (
    EmailMismatch, InviteAlreadyUsed, InviteExpired, NotFound, ValidationError,
)
from vpnportal.services.users import normalize_email
from vpnportal.timeutil import utcnow

logger = logging.getLogger(__name__)

# 24 random bytes -> 192 bits of entropy
TOKEN_BYTES = 24


class InviteFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    EXPIRED = "expired"
    USED = "used"


class InviteLedger:
    """Issues and consumes invitation tokens.

    ``redeem`` never commits: the caller owns the transaction so that marking
    the invite used and creating the account succeed or fail together.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock

    def issue(
        self,
        actor: User,
        email: Optional[str] = None,
        ttl_hours: Optional[int] = None,
        note: Optional[str] = None,
    ) -> Invite:
        require_admin(actor)
        # Zero or negative means "use the default", as an omitted value does.
        if ttl_hours is None or ttl_hours <= 0:
            ttl_hours = self.settings.invite_default_ttl_hours
        if ttl_hours > self.settings.invite_max_ttl_hours:
            raise ValidationError(
                f"Invite lifetime must be at most {self.settings.invite_max_ttl_hours} hours"
            )
        bound_email = normalize_email(email) if email else None

        now = self.clock()
        invite = Invite(
            token=secrets.token_urlsafe(TOKEN_BYTES),
            email=bound_email,
            note=note,
            created_by_user_id=actor.id,
            created_at=now,
            expires_at=now + timedelta(hours=ttl_hours),
        )
        self.db.add(invite)
        self.db.commit()
        self.db.refresh(invite)
        logger.info("Invite issued by %s, expires %s, email-bound=%s", actor.id, invite.expires_at, bool(bound_email))
        return invite

    def redeem(self, token: str, email: str) -> Invite:
        """Atomically mark ``token`` used for ``email``.

        Raises:
            NotFound, InviteExpired, InviteAlreadyUsed, EmailMismatch.
        """
        email = email.strip().lower()
        now = self.clock()
        result = self.db.execute(
            update(Invite)
            .where(
                Invite.token == token,
                Invite.used.is_(False),
                Invite.expires_at > now,
                or_(Invite.email.is_(None), Invite.email == email),
            )
            .values(used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )
        invite = self.db.get(Invite, token, populate_existing=True)
        if result.rowcount == 1:
            return invite

        if invite is None:
            raise NotFound("Invitation not found")
        if now >= invite.expires_at:
            raise InviteExpired()
        if invite.used:
            raise InviteAlreadyUsed()
        if invite.email and invite.email != email:
            raise EmailMismatch()
        raise InviteAlreadyUsed()

    def revoke(self, actor: User, token: str) -> None:
        require_admin(actor)
        invite = self.db.get(Invite, token)
        if invite is None:
            raise NotFound("Invitation not found")
        if invite.used:
            return
        self.db.delete(invite)
        self.db.commit()
        logger.info("Invite revoked by %s", actor.id)

    def list(self, actor: User, invite_filter: InviteFilter = InviteFilter.ALL) -> List[Invite]:
        require_admin(actor)
        now = self.clock()
        query = select(Invite).order_by(Invite.created_at.desc())
        if invite_filter == InviteFilter.ACTIVE:
            query = query.where(Invite.used.is_(False), Invite.expires_at > now)
        elif invite_filter == InviteFilter.EXPIRED:
            query = query.where(Invite.used.is_(False), Invite.expires_at <= now)
        elif invite_filter == InviteFilter.USED:
            query = query.where(Invite.used.is_(True))
        return list(self.db.execute(query).scalars())

    def purge_expired(self, older_than_days: Optional[int] = None) -> int:
        """Delete unused invites that expired more than ``older_than_days`` ago."""
        if older_than_days is None:
            older_than_days = self.settings.invite_purge_after_days
        cutoff = self.clock() - timedelta(days=older_than_days)
        result = self.db.execute(
            delete(Invite).where(Invite.used.is_(False), Invite.expires_at <= cutoff)
        )
        self.db.commit()
        return result.rowcount or 0
