"""Shared fixtures. Environment is set before any vpnportal module reads get_settings()."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ADMIN_PASSWORD", "")
os.environ.setdefault("KEY_MANAGER_URL", "http://keys.test")
os.environ.setdefault("VPN_ENDPOINT", "vpn.example.org")
os.environ.setdefault("VPN_SERVER_PUBLIC_KEY", "c2VydmVyLXB1YmxpYy1rZXktYmFzZTY0LXBhZGRpbmc9")

import itertools  # noqa: E402
import threading  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from vpnportal.db.database import Base, init_db  # noqa: E402
from vpnportal.db.models_auth import User, UserRole, UserStatus  # noqa: E402
from vpnportal.services.auth import hash_password  # noqa: E402
from vpnportal.services.key_manager import KeyManagerError, KeyPair  # noqa: E402

DEFAULT_PASSWORD = "correct-horse-battery"


class FakeKeyManager:
    """In-process stand-in for the key-management service."""

    def __init__(self):
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self.generated = []
        self.synced = []
        self.fail_generate = False
        self.fail_sync = False

    def generate_keypair(self) -> KeyPair:
        if self.fail_generate:
            raise KeyManagerError("Network error: connection refused")
        with self._lock:
            n = next(self._counter)
            pair = KeyPair(public_key=f"pub-{n:04d}", private_key=f"priv-{n:04d}")
            self.generated.append(pair)
        return pair

    def sync_peer(self, public_key: str, address: str, enabled: bool) -> None:
        if self.fail_sync:
            raise KeyManagerError("API error 503: unavailable")
        with self._lock:
            self.synced.append((public_key, address, enabled))


@pytest.fixture
def engine():
    """In-memory SQLite engine with a fresh schema."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed SQLite so that concurrent threads get real, separate connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'portal.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def key_manager():
    return FakeKeyManager()


def create_user(
    db,
    email: str = "user@example.com",
    username: str = "user",
    role: UserRole = UserRole.USER,
    status: UserStatus = UserStatus.ACTIVE,
    password: str = DEFAULT_PASSWORD,
) -> User:
    user = User(
        email=email,
        username=username,
        password_hash=hash_password(password),
        role=role,
        status=status,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return create_user(db, email="admin@example.com", username="admin", role=UserRole.ADMIN)


@pytest.fixture
def member(db):
    return create_user(db, email="member@example.com", username="member")


@pytest.fixture
def make_user():
    """Factory fixture: make_user(db, email=..., username=..., role=..., status=...)."""
    return create_user
