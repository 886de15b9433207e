"""User directory: lookups, profile updates, suspension and deletion."""
import logging
import re
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vpnportal.db.models_auth import Invite, User, UserRole, UserStatus
from vpnportal.services.auth import hash_password, require_admin, require_self_or_admin
from vpnportal.services.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from vpnportal.services.key_manager import KeyManagerClient
from vpnportal.services.provisioning import ProvisioningGate

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

USERNAME_MIN, USERNAME_MAX = 3, 50
PASSWORD_MIN, PASSWORD_MAX = 8, 128

# Admin-driven status changes; pending -> active only happens through approval.
ALLOWED_STATUS_CHANGES = {
    (UserStatus.ACTIVE, UserStatus.SUSPENDED),
    (UserStatus.SUSPENDED, UserStatus.ACTIVE),
}


def normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if len(email) > 255 or not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")
    return email


def validate_username(username: str) -> str:
    username = (username or "").strip()
    if not USERNAME_MIN <= len(username) <= USERNAME_MAX:
        raise ValidationError(f"Username must be {USERNAME_MIN}-{USERNAME_MAX} characters")
    if not USERNAME_RE.match(username):
        raise ValidationError("Username may only contain letters, digits, '_', '.' and '-'")
    return username


def validate_password(password: str) -> str:
    if not PASSWORD_MIN <= len(password or "") <= PASSWORD_MAX:
        raise ValidationError(f"Password must be {PASSWORD_MIN}-{PASSWORD_MAX} characters")
    return password


class UserDirectory:
    """Credential store operations on existing accounts."""

    def __init__(self, db: Session, key_manager: Optional[KeyManagerClient] = None):
        self.db = db
        self.key_manager = key_manager

    def _revoke_vpn_access(self, user_id: str) -> None:
        ProvisioningGate(self.db, key_manager=self.key_manager).revoke_access(user_id)

    def get_user(self, user_id: str) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound(f"User '{user_id}' not found")
        return user

    def get_visible_user(self, actor: User, user_id: str) -> User:
        require_self_or_admin(actor, user_id)
        return self.get_user(user_id)

    def list_users(self, actor: User, status: Optional[UserStatus] = None) -> List[User]:
        require_admin(actor)
        query = select(User).order_by(User.created_at.asc())
        if status:
            query = query.where(User.status == status)
        return list(self.db.execute(query).scalars())

    def username_taken(self, username: str, exclude_id: Optional[str] = None) -> bool:
        query = select(User.id).where(func.lower(User.username) == username.lower())
        if exclude_id:
            query = query.where(User.id != exclude_id)
        return self.db.execute(query).first() is not None

    def update_user(
        self,
        actor: User,
        user_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        role: Optional[UserRole] = None,
        status: Optional[UserStatus] = None,
    ) -> User:
        require_self_or_admin(actor, user_id)
        if (role is not None or status is not None) and not actor.is_admin:
            raise Forbidden("Only admins may change roles or status")

        user = self.get_user(user_id)

        # Validate everything before touching the row.
        if username is not None:
            username = validate_username(username)
            if self.username_taken(username, exclude_id=user.id):
                raise Conflict("Username already taken")
        if password is not None:
            validate_password(password)
        if (role is not None and role != user.role) or (status is not None and status != user.status):
            if actor.id == user.id:
                raise InvalidState("Admins cannot change their own role or status")
        if status is not None and status != user.status:
            if (user.status, status) not in ALLOWED_STATUS_CHANGES:
                raise InvalidState(
                    f"Cannot change status from {user.status.value} to {status.value}"
                )

        if username is not None:
            user.username = username
        if password is not None:
            user.password_hash = hash_password(password)
        if role is not None:
            user.role = role
        if status is not None and status != user.status:
            logger.info("User %s status %s -> %s by %s", user.id, user.status.value, status.value, actor.id)
            user.status = status
            if status == UserStatus.SUSPENDED:
                self._revoke_vpn_access(user.id)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("Username already taken")
        self.db.refresh(user)
        return user

    def suspend(self, actor: User, user_id: str) -> User:
        return self.update_user(actor, user_id, status=UserStatus.SUSPENDED)

    def reactivate(self, actor: User, user_id: str) -> User:
        return self.update_user(actor, user_id, status=UserStatus.ACTIVE)

    def delete_user(self, actor: User, user_id: str) -> None:
        """Delete an account; its VPN config goes with it, registrations stay for audit."""
        require_self_or_admin(actor, user_id)
        user = self.get_user(user_id)
        if user.role == UserRole.ADMIN and user.status == UserStatus.ACTIVE:
            active_admins = self.db.execute(
                select(func.count(User.id)).where(
                    User.role == UserRole.ADMIN, User.status == UserStatus.ACTIVE
                )
            ).scalar_one()
            if active_admins <= 1:
                raise InvalidState("Cannot delete the last active admin")

        self.db.execute(
            update(Invite).where(Invite.used_by_user_id == user.id).values(used_by_user_id=None)
        )
        self.db.execute(
            update(Invite).where(Invite.created_by_user_id == user.id).values(created_by_user_id=None)
        )
        self._revoke_vpn_access(user.id)
        self.db.delete(user)
        self.db.commit()
        logger.info("User %s deleted by %s", user_id, actor.id)
