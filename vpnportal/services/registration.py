"""Registration pipeline: invite-gated sign-up and admin resolution."""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vpnportal.config import get_settings, Settings
from vpnportal.db.models_auth import Invite, Registration, Resolution, User, UserStatus
from vpnportal.services.auth import hash_password, require_admin
from vpnportal.services.captcha import CaptchaStore, get_captcha_store
from vpnportal.services.errors import Conflict, InvalidState, NotFound, PortalError, ValidationError
from vpnportal.services.invites import InviteLedger
from vpnportal.services.users import normalize_email, validate_password, validate_username
from vpnportal.timeutil import utcnow

logger = logging.getLogger(__name__)

POLICY_RESERVE = "reserve"
POLICY_RELEASE = "release"


class RegistrationPipeline:
    """Turns an invite plus credentials into a pending account, and resolves it."""

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        ledger: Optional[InviteLedger] = None,
        captcha: Optional[CaptchaStore] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock
        self.ledger = ledger or InviteLedger(db, self.settings, clock=clock)
        self.captcha = captcha

    def _latest_resolution(self, user: User) -> Optional[Resolution]:
        latest = self.db.execute(
            select(Registration.resolution)
            .where(Registration.user_id == user.id)
            .order_by(Registration.submitted_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return latest

    def _releasable(self, user: User) -> bool:
        return (
            self.settings.rejected_identity_policy == POLICY_RELEASE
            and user.status == UserStatus.PENDING
            and self._latest_resolution(user) == Resolution.REJECTED
        )

    def submit(
        self,
        email: str,
        username: str,
        password: str,
        invite_token: str,
        captcha_id: Optional[str] = None,
        captcha_answer: Optional[int] = None,
    ) -> Registration:
        if self.settings.registration_captcha_required:
            if not captcha_id or captcha_answer is None:
                raise ValidationError("Captcha required")
            (self.captcha or get_captcha_store()).verify(captcha_id, captcha_answer)

        email = normalize_email(email)
        username = validate_username(username)
        validate_password(password)
        if not invite_token or not invite_token.strip():
            raise ValidationError("Invitation token required")
        invite_token = invite_token.strip()

        existing = list(self.db.execute(
            select(User).where(or_(User.email == email, func.lower(User.username) == username.lower()))
        ).scalars())
        for user in existing:
            if self._releasable(user):
                continue
            if user.email == email:
                raise Conflict("Email already registered")
            raise Conflict("Username already taken")

        password_hash = hash_password(password)
        now = self.clock()
        try:
            for stale in existing:
                logger.info("Releasing identity of rejected account %s", stale.id)
                self.db.execute(
                    update(Invite).where(Invite.used_by_user_id == stale.id).values(used_by_user_id=None)
                )
                self.db.delete(stale)
            self.db.flush()

            invite = self.ledger.redeem(invite_token, email)

            user = User(
                email=email,
                username=username,
                password_hash=password_hash,
                status=UserStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            self.db.add(user)
            self.db.flush()

            registration = Registration(
                user_id=user.id,
                email=email,
                username=username,
                invite_token=invite.token,
                submitted_at=now,
            )
            self.db.add(registration)
            invite.used_by_user_id = user.id
            self.db.commit()
        except PortalError:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise Conflict("Email or username already registered")

        self.db.refresh(registration)
        logger.info("Registration %s submitted for user %s", registration.id, user.id)
        return registration

    def _get(self, registration_id: str) -> Registration:
        registration = self.db.get(Registration, registration_id)
        if registration is None:
            raise NotFound(f"Registration '{registration_id}' not found")
        return registration

    def _resolve(
        self,
        actor: User,
        registration_id: str,
        resolution: Resolution,
        reason: Optional[str] = None,
    ) -> Registration:
        registration = self._get(registration_id)
        if registration.resolution != Resolution.PENDING:
            raise InvalidState(f"Registration already {registration.resolution.value}")
        if registration.user_id is None:
            raise InvalidState("Registration has no account attached")

        now = self.clock()
        result = self.db.execute(
            update(Registration)
            .where(Registration.id == registration_id, Registration.resolution == Resolution.PENDING)
            .values(
                resolution=resolution,
                resolved_at=now,
                resolved_by_user_id=actor.id,
                resolution_reason=reason,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise InvalidState("Registration already resolved")

        if resolution == Resolution.APPROVED:
            result = self.db.execute(
                update(User)
                .where(User.id == registration.user_id, User.status == UserStatus.PENDING)
                .values(status=UserStatus.ACTIVE, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise InvalidState("Account is not pending")

        self.db.commit()
        self.db.refresh(registration)
        logger.info(
            "Registration %s %s by %s", registration.id, resolution.value, actor.id
        )
        return registration

    def approve(self, actor: User, registration_id: str) -> User:
        require_admin(actor)
        registration = self._resolve(actor, registration_id, Resolution.APPROVED)
        return self.db.get(User, registration.user_id, populate_existing=True)

    def reject(self, actor: User, registration_id: str, reason: Optional[str] = None) -> Registration:
        require_admin(actor)
        return self._resolve(actor, registration_id, Resolution.REJECTED, reason=reason)

    def list_pending(self, actor: User) -> List[Registration]:
        return self.list_all(actor, Resolution.PENDING)

    def list_all(self, actor: User, resolution: Optional[Resolution] = None) -> List[Registration]:
        require_admin(actor)
        query = select(Registration).order_by(Registration.submitted_at.asc())
        if resolution:
            query = query.where(Registration.resolution == resolution)
        return list(self.db.execute(query).scalars())
