"""SQLAlchemy models for accounts, invites and registrations."""
import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import String, Text, DateTime, Boolean, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vpnportal.db.database import Base
from vpnportal.timeutil import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class UserRole(PyEnum):
    """Account role."""
    ADMIN = "admin"
    USER = "user"


class UserStatus(PyEnum):
    """Account lifecycle status."""
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class Resolution(PyEnum):
    """Registration resolution."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class User(Base):
    """User account."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), default=UserRole.USER, nullable=False)
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus), default=UserStatus.PENDING, nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Defaults are applied at instantiation so callers can inspect them before flush.
    def __init__(self, **kwargs):
        kwargs.setdefault("id", _new_id())
        kwargs.setdefault("role", UserRole.USER)
        kwargs.setdefault("status", UserStatus.PENDING)
        super().__init__(**kwargs)

    vpn_config: Mapped[Optional["VPNConfig"]] = relationship(  # noqa: F821
        "VPNConfig", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    registrations: Mapped[List["Registration"]] = relationship(
        "Registration", back_populates="user", foreign_keys="Registration.user_id"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    __table_args__ = ({"mysql_charset": "utf8mb4"},)


class Invite(Base):
    """Single-use invitation token gating registration."""
    __tablename__ = "invites"

    token: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    note: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_by_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    used_by_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    def __init__(self, **kwargs):
        kwargs.setdefault("used", False)
        super().__init__(**kwargs)

    def is_redeemable(self, now: datetime) -> bool:
        return not self.used and now < self.expires_at

    __table_args__ = ({"mysql_charset": "utf8mb4"},)


class Registration(Base):
    """Registration request from submission to admin resolution."""
    __tablename__ = "registrations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    invite_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    resolution: Mapped[Resolution] = mapped_column(
        Enum(Resolution), default=Resolution.PENDING, nullable=False, index=True
    )
    resolution_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resolved_by_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def __init__(self, **kwargs):
        kwargs.setdefault("id", _new_id())
        kwargs.setdefault("resolution", Resolution.PENDING)
        super().__init__(**kwargs)

    user: Mapped[Optional[User]] = relationship(
        "User", back_populates="registrations", foreign_keys=[user_id]
    )

    __table_args__ = ({"mysql_charset": "utf8mb4"},)


class RevokedToken(Base):
    """Session token revoked by logout before its natural expiry."""
    __tablename__ = "revoked_tokens"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    revoked_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


# Registers VPNConfig for the User.vpn_config relationship.
import vpnportal.db.models_vpn  # noqa: E402,F401
