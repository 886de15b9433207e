"""VPN API endpoints: client config download and dashboard status."""
from fastapi import APIRouter, Depends

from vpnportal.api.deps import get_provisioning_gate
from vpnportal.api.schemas import VPNClientConfigResponse, VPNStatusResponse
from vpnportal.db.models_auth import User
from vpnportal.services.auth import get_current_user
from vpnportal.services.provisioning import ProvisioningGate

router = APIRouter(prefix="/vpn", tags=["vpn"])


@router.get("/config/{user_id}", response_model=VPNClientConfigResponse)
def get_vpn_config(
    user_id: str,
    gate: ProvisioningGate = Depends(get_provisioning_gate),
    current_user: User = Depends(get_current_user),
):
    """Return the peer record and a wg-quick file (owner or admin)."""
    config = gate.get_config(current_user, user_id)
    return VPNClientConfigResponse.build(config, gate.render_client_config(config))


@router.get("/status", response_model=VPNStatusResponse)
def get_vpn_status(
    gate: ProvisioningGate = Depends(get_provisioning_gate),
    current_user: User = Depends(get_current_user),
):
    """Aggregate operational status for dashboards."""
    return gate.status()
