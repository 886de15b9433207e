"""User API endpoints: profile, admin management, VPN toggles."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from vpnportal.api.deps import get_key_manager, get_provisioning_gate
from vpnportal.api.schemas import StatusEnum, UserResponse, UserUpdate, VPNConfigResponse
from vpnportal.db.database import get_db
from vpnportal.db.models_auth import User, UserRole, UserStatus
from vpnportal.services.auth import get_current_user
from vpnportal.services.key_manager import KeyManagerClient
from vpnportal.services.provisioning import ProvisioningGate
from vpnportal.services.users import UserDirectory

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    return UserResponse.from_user(current_user)


@router.get("", response_model=List[UserResponse])
def list_users(
    status: Optional[StatusEnum] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List all accounts (admin only)."""
    users = UserDirectory(db).list_users(
        current_user, status=UserStatus(status.value) if status else None
    )
    return [UserResponse.from_user(u) for u in users]


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return UserResponse.from_user(UserDirectory(db).get_visible_user(current_user, user_id))


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    update: UserUpdate,
    db: Session = Depends(get_db),
    key_manager: KeyManagerClient = Depends(get_key_manager),
    current_user: User = Depends(get_current_user),
):
    user = UserDirectory(db, key_manager=key_manager).update_user(
        current_user,
        user_id,
        username=update.username,
        password=update.password,
        role=UserRole(update.role.value) if update.role else None,
        status=UserStatus(update.status.value) if update.status else None,
    )
    return UserResponse.from_user(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    key_manager: KeyManagerClient = Depends(get_key_manager),
    current_user: User = Depends(get_current_user),
):
    UserDirectory(db, key_manager=key_manager).delete_user(current_user, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{user_id}/vpn/enable", response_model=VPNConfigResponse)
def enable_vpn(
    user_id: str,
    gate: ProvisioningGate = Depends(get_provisioning_gate),
    current_user: User = Depends(get_current_user),
):
    return gate.enable(current_user, user_id)


@router.post("/{user_id}/vpn/disable", response_model=VPNConfigResponse)
def disable_vpn(
    user_id: str,
    gate: ProvisioningGate = Depends(get_provisioning_gate),
    current_user: User = Depends(get_current_user),
):
    return gate.disable(current_user, user_id)
