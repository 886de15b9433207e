"""Pydantic schemas for API request/response validation."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from vpnportal.db.models_auth import Invite, Registration, User
from vpnportal.db.models_vpn import VPNConfig


class RoleEnum(str, Enum):
    """Account role enum."""
    ADMIN = "admin"
    USER = "user"


class StatusEnum(str, Enum):
    """Account status enum."""
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class ResolutionEnum(str, Enum):
    """Registration resolution enum."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class InviteStateEnum(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    USED = "used"


class ErrorResponse(BaseModel):
    code: str
    detail: str


# ===== Users & sessions =====

class UserResponse(BaseModel):
    """Schema for user response."""
    id: str
    email: str
    username: str
    role: RoleEnum
    status: StatusEnum
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            role=RoleEnum(user.role.value),
            status=StatusEnum(user.status.value),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserUpdate(BaseModel):
    """Schema for updating a user. Role and status are admin-only."""
    username: Optional[str] = Field(None, max_length=50)
    password: Optional[str] = Field(None, max_length=128)
    role: Optional[RoleEnum] = None
    status: Optional[StatusEnum] = None


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=128)


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


# ===== Registration =====

class RegisterRequest(BaseModel):
    """Schema for invite-gated sign-up."""
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., max_length=255)
    username: str = Field(..., max_length=50)
    password: str = Field(..., max_length=128)
    invite_token: str = Field(..., alias="inviteToken", max_length=64)
    captcha_id: Optional[str] = Field(None, alias="captchaId")
    captcha_answer: Optional[int] = Field(None, alias="captchaAnswer")


class RegistrationResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    email: str
    username: str
    resolution: ResolutionEnum
    resolution_reason: Optional[str] = None
    submitted_at: datetime
    resolved_at: Optional[datetime] = None

    @classmethod
    def from_registration(cls, registration: Registration) -> "RegistrationResponse":
        return cls(
            id=registration.id,
            user_id=registration.user_id,
            email=registration.email,
            username=registration.username,
            resolution=ResolutionEnum(registration.resolution.value),
            resolution_reason=registration.resolution_reason,
            submitted_at=registration.submitted_at,
            resolved_at=registration.resolved_at,
        )


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# ===== Invites =====

class InviteCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = Field(None, max_length=255)
    expires_hours: Optional[int] = Field(None, alias="expiresHours")
    note: Optional[str] = Field(None, max_length=200)


class InviteResponse(BaseModel):
    token: str
    email: Optional[str] = None
    note: Optional[str] = None
    state: InviteStateEnum
    created_at: datetime
    expires_at: datetime
    used_at: Optional[datetime] = None
    used_by_user_id: Optional[str] = None

    @classmethod
    def from_invite(cls, invite: Invite, now: datetime) -> "InviteResponse":
        if invite.used:
            state = InviteStateEnum.USED
        elif now >= invite.expires_at:
            state = InviteStateEnum.EXPIRED
        else:
            state = InviteStateEnum.ACTIVE
        return cls(
            token=invite.token,
            email=invite.email,
            note=invite.note,
            state=state,
            created_at=invite.created_at,
            expires_at=invite.expires_at,
            used_at=invite.used_at,
            used_by_user_id=invite.used_by_user_id,
        )


# ===== VPN =====

class VPNConfigResponse(BaseModel):
    """Peer record without secret key material."""
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    public_key: str
    address: str
    enabled: bool
    created_at: datetime
    updated_at: datetime


class VPNClientConfigResponse(VPNConfigResponse):
    """Owner/admin view including the private key and a ready wg-quick file."""
    private_key: str
    client_config: str

    @classmethod
    def build(cls, config: VPNConfig, client_config: str) -> "VPNClientConfigResponse":
        return cls(
            user_id=config.user_id,
            public_key=config.public_key,
            private_key=config.private_key,
            address=config.address,
            enabled=config.enabled,
            created_at=config.created_at,
            updated_at=config.updated_at,
            client_config=client_config,
        )


class UserCounts(BaseModel):
    pending: int = 0
    active: int = 0
    suspended: int = 0


class VPNCounts(BaseModel):
    configs: int
    enabled: int
    pool_size: int
    pool_free: int


class VPNStatusResponse(BaseModel):
    users: UserCounts
    pending_registrations: int
    vpn: VPNCounts


# ===== Captcha =====

class CaptchaChallengeResponse(BaseModel):
    id: str
    question: str


class CaptchaVerifyRequest(BaseModel):
    id: str
    answer: int


# ===== Voice server =====

class VoiceUserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    nickname: Optional[str] = Field(None, max_length=50)
    group: Optional[str] = Field(None, max_length=50)


class VoiceUserUpdate(BaseModel):
    nickname: Optional[str] = Field(None, max_length=50)
    group: Optional[str] = Field(None, max_length=50)


class VoiceChannelCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    max_users: Optional[int] = Field(None, alias="maxUsers", ge=1)
