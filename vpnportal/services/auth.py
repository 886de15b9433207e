"""Authentication service: JWT sessions, password hashing, role checks, admin init."""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Tuple

import jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from vpnportal.config import get_settings, Settings
from vpnportal.db.database import get_db
from vpnportal.db.models_auth import User, UserRole, UserStatus, RevokedToken
from vpnportal.services.errors import (
    AccountNotActive, Forbidden, InvalidCredentials, InvalidToken, Unauthorized,
)
from vpnportal.timeutil import utcnow

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@lru_cache
def get_pwd_context() -> CryptContext:
    settings = get_settings()
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)


def hash_password(password: str) -> str:
    return get_pwd_context().hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return get_pwd_context().verify(plain, hashed)


def create_access_token(user: User, settings: Optional[Settings] = None) -> Tuple[str, datetime]:
    """Issue a signed session token for ``user``.

    Returns:
        The encoded token and its naive-UTC expiry.
    """
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": user.id,
        "role": user.role.value,
        "iat": now,
        "exp": expire,
        "jti": uuid.uuid4().hex,
    }
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return token, expire.replace(tzinfo=None)


def decode_token(token: str, settings: Optional[Settings] = None) -> dict:
    settings = settings or get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["exp", "sub", "jti"]},
    )


def require_admin(user: User) -> User:
    """Raise Forbidden unless ``user`` holds the admin role."""
    if user.role != UserRole.ADMIN:
        raise Forbidden()
    return user


def require_self_or_admin(actor: User, user_id: str) -> User:
    if actor.id != user_id and actor.role != UserRole.ADMIN:
        raise Forbidden("Not allowed to access another user's resources")
    return actor


class SessionAuthenticator:
    """Verifies credentials and validates bearer tokens against current account state."""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def login(self, email: str, password: str) -> Tuple[str, datetime, User]:
        user = self.db.execute(
            select(User).where(User.email == email.strip().lower())
        ).scalar_one_or_none()
        if user is None:
            # Spend the same hashing time as a real check.
            get_pwd_context().dummy_verify()
            logger.warning("Failed login for unknown email")
            raise InvalidCredentials()
        if not verify_password(password, user.password_hash):
            logger.warning("Failed login for user %s", user.id)
            raise InvalidCredentials()
        if user.status != UserStatus.ACTIVE:
            logger.info("Login refused for %s account %s", user.status.value, user.id)
            raise AccountNotActive()

        token, expires_at = create_access_token(user, self.settings)
        logger.info("User %s logged in", user.id)
        return token, expires_at, user

    def authenticate(self, token: Optional[str]) -> User:
        if not token:
            raise Unauthorized()
        try:
            payload = decode_token(token, self.settings)
            user_id = str(payload["sub"])
            jti = str(payload["jti"])
        except (jwt.InvalidTokenError, KeyError, ValueError):
            raise InvalidToken()

        if self.db.get(RevokedToken, jti) is not None:
            raise InvalidToken()

        user = self.db.get(User, user_id, populate_existing=True)
        if user is None:
            raise InvalidToken()
        if user.status != UserStatus.ACTIVE:
            raise AccountNotActive()
        return user

    def logout(self, token: str) -> None:
        """Revoke ``token`` until its natural expiry. Idempotent."""
        try:
            payload = decode_token(token, self.settings)
        except jwt.InvalidTokenError:
            raise InvalidToken()
        jti = str(payload["jti"])
        if self.db.get(RevokedToken, jti) is not None:
            return
        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc).replace(tzinfo=None)
        self.db.add(RevokedToken(jti=jti, user_id=str(payload["sub"]), expires_at=expires_at))
        self.db.commit()
        logger.info("User %s logged out", payload["sub"])

    def purge_revoked(self) -> int:
        """Drop revocation entries whose tokens would have expired anyway."""
        result = self.db.execute(delete(RevokedToken).where(RevokedToken.expires_at <= utcnow()))
        self.db.commit()
        return result.rowcount or 0


def get_bearer_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    """FastAPI dependency: validate the bearer token, return the active User."""
    return SessionAuthenticator(db).authenticate(token)


def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """FastAPI dependency: require admin role."""
    return require_admin(current_user)


def ensure_admin_exists(db: Session, settings: Optional[Settings] = None) -> Optional[User]:
    """Create the bootstrap admin if no admin account exists. Idempotent."""
    settings = settings or get_settings()
    admin = db.execute(
        select(User).where(User.role == UserRole.ADMIN).limit(1)
    ).scalar_one_or_none()
    if admin:
        return admin
    if not settings.admin_password:
        logger.warning("No admin account exists and ADMIN_PASSWORD is not set")
        return None
    admin = User(
        email=settings.admin_email.strip().lower(),
        username=settings.admin_username,
        password_hash=hash_password(settings.admin_password),
        role=UserRole.ADMIN,
        status=UserStatus.ACTIVE,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info(f"Admin user '{settings.admin_username}' created")
    return admin
