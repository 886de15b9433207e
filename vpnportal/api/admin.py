"""Admin API endpoints: registration review, invites, Authelia control."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from vpnportal.api.deps import get_authelia, get_invite_ledger, get_registration_pipeline
from vpnportal.api.schemas import (
    InviteCreate, InviteResponse, RegistrationResponse, RejectRequest,
    ResolutionEnum, UserResponse,
)
from vpnportal.db.models_auth import Resolution, User
from vpnportal.services.auth import get_admin_user, get_current_user
from vpnportal.services.authelia import AutheliaControl
from vpnportal.services.invites import InviteFilter, InviteLedger
from vpnportal.services.registration import RegistrationPipeline

router = APIRouter(prefix="/admin", tags=["admin"])


# ===== Registrations =====

@router.get("/registrations", response_model=List[RegistrationResponse])
def list_registrations(
    resolution: Optional[ResolutionEnum] = ResolutionEnum.PENDING,
    pipeline: RegistrationPipeline = Depends(get_registration_pipeline),
    current_user: User = Depends(get_current_user),
):
    """Registrations oldest first; pending only unless another resolution is asked for."""
    registrations = pipeline.list_all(
        current_user, Resolution(resolution.value) if resolution else None
    )
    return [RegistrationResponse.from_registration(r) for r in registrations]


@router.post("/registrations/{registration_id}/approve", response_model=UserResponse)
def approve_registration(
    registration_id: str,
    pipeline: RegistrationPipeline = Depends(get_registration_pipeline),
    current_user: User = Depends(get_current_user),
):
    user = pipeline.approve(current_user, registration_id)
    return UserResponse.from_user(user)


@router.post("/registrations/{registration_id}/reject", response_model=RegistrationResponse)
def reject_registration(
    registration_id: str,
    req: Optional[RejectRequest] = None,
    pipeline: RegistrationPipeline = Depends(get_registration_pipeline),
    current_user: User = Depends(get_current_user),
):
    registration = pipeline.reject(current_user, registration_id, reason=req.reason if req else None)
    return RegistrationResponse.from_registration(registration)


# ===== Invites =====

@router.post("/invites", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
def create_invite(
    req: InviteCreate,
    ledger: InviteLedger = Depends(get_invite_ledger),
    current_user: User = Depends(get_current_user),
):
    invite = ledger.issue(current_user, email=req.email, ttl_hours=req.expires_hours, note=req.note)
    return InviteResponse.from_invite(invite, ledger.clock())


@router.get("/invites", response_model=List[InviteResponse])
def list_invites(
    invite_filter: InviteFilter = Query(InviteFilter.ALL, alias="filter"),
    ledger: InviteLedger = Depends(get_invite_ledger),
    current_user: User = Depends(get_current_user),
):
    now = ledger.clock()
    return [InviteResponse.from_invite(i, now) for i in ledger.list(current_user, invite_filter)]


@router.delete("/invites/{token}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invite(
    token: str,
    ledger: InviteLedger = Depends(get_invite_ledger),
    current_user: User = Depends(get_current_user),
):
    ledger.revoke(current_user, token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ===== Authelia =====

@router.post("/authelia/restart")
async def restart_authelia(
    authelia: AutheliaControl = Depends(get_authelia),
    admin: User = Depends(get_admin_user),
):
    await authelia.restart()
    return {"status": "restarting"}
