"""FastAPI dependency providers for services and external collaborators."""
from fastapi import Depends
from sqlalchemy.orm import Session

from vpnportal.db.database import get_db
from vpnportal.services.authelia import AutheliaControl
from vpnportal.services.captcha import CaptchaStore, get_captcha_store
from vpnportal.services.invites import InviteLedger
from vpnportal.services.key_manager import KeyManagerClient
from vpnportal.services.provisioning import ProvisioningGate
from vpnportal.services.registration import RegistrationPipeline
from vpnportal.services.voice_server import VoiceServerClient


def get_captcha() -> CaptchaStore:
    return get_captcha_store()


def get_key_manager() -> KeyManagerClient:
    return KeyManagerClient()


def get_voice_client() -> VoiceServerClient:
    return VoiceServerClient()


def get_authelia() -> AutheliaControl:
    return AutheliaControl()


def get_invite_ledger(db: Session = Depends(get_db)) -> InviteLedger:
    return InviteLedger(db)


def get_registration_pipeline(
    db: Session = Depends(get_db),
    captcha: CaptchaStore = Depends(get_captcha),
) -> RegistrationPipeline:
    return RegistrationPipeline(db, captcha=captcha)


def get_provisioning_gate(
    db: Session = Depends(get_db),
    key_manager: KeyManagerClient = Depends(get_key_manager),
) -> ProvisioningGate:
    return ProvisioningGate(db, key_manager=key_manager)
