"""Fixtures for API tests: an app without the lifespan hooks, backed by the test engine."""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from vpnportal.api.admin import router as admin_router
from vpnportal.api.auth import router as auth_router
from vpnportal.api.deps import get_authelia, get_captcha, get_key_manager, get_voice_client
from vpnportal.api.errors import register_error_handlers
from vpnportal.api.teamspeak import router as teamspeak_router
from vpnportal.api.users import router as users_router
from vpnportal.api.vpn import router as vpn_router
from vpnportal.config import Settings
from vpnportal.db.database import get_db
from vpnportal.scheduler.scheduler import router as scheduler_router
from vpnportal.services.auth import create_access_token
from vpnportal.services.authelia import AutheliaControl
from vpnportal.services.captcha import CaptchaStore
from vpnportal.services.voice_server import VoiceServerClient

VOICE_URL = "http://voice.test/api"
AUTHELIA_URL = "http://ops.test/restart-authelia"


def create_test_app(session_factory, key_manager, captcha):
    """Create a test FastAPI app without the startup event."""
    test_app = FastAPI()
    register_error_handlers(test_app)
    for router in (auth_router, users_router, vpn_router, admin_router, teamspeak_router, scheduler_router):
        test_app.include_router(router, prefix="/api")

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_key_manager] = lambda: key_manager
    test_app.dependency_overrides[get_captcha] = lambda: captcha
    test_app.dependency_overrides[get_voice_client] = lambda: VoiceServerClient(Settings(voice_admin_url=VOICE_URL))
    test_app.dependency_overrides[get_authelia] = lambda: AutheliaControl(Settings(authelia_restart_url=AUTHELIA_URL))
    return test_app


@pytest.fixture
def captcha():
    return CaptchaStore()


@pytest.fixture
def client(session_factory, key_manager, captcha):
    with TestClient(create_test_app(session_factory, key_manager, captcha)) as test_client:
        yield test_client


def auth_headers(user) -> dict:
    token, _ = create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def member_headers(member):
    return auth_headers(member)


@pytest.fixture
def headers_for():
    return auth_headers
