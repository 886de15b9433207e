"""Tests for account, invite and VPN models."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from vpnportal.db.models_auth import Invite, Registration, Resolution, User, UserRole, UserStatus
from vpnportal.db.models_vpn import VPNConfig


class TestUserModel:
    """Tests for the User model."""

    def test_defaults_before_flush(self):
        user = User(email="a@example.com", username="alpha", password_hash="x")
        assert user.id
        assert user.role == UserRole.USER
        assert user.status == UserStatus.PENDING
        assert user.is_admin is False
        assert user.is_active is False

    def test_unique_email(self, db):
        db.add(User(email="a@example.com", username="alpha", password_hash="x"))
        db.commit()
        db.add(User(email="a@example.com", username="beta", password_hash="x"))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_unique_username(self, db):
        db.add(User(email="a@example.com", username="alpha", password_hash="x"))
        db.commit()
        db.add(User(email="b@example.com", username="alpha", password_hash="x"))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_vpn_config_relationship(self, db, member):
        db.add(VPNConfig(user_id=member.id, public_key="pub", private_key="priv", address="10.66.0.2"))
        db.commit()
        db.refresh(member)
        assert member.vpn_config.address == "10.66.0.2"
        assert member.vpn_config.enabled is False
        assert member.vpn_config.user.id == member.id


class TestInviteModel:
    """Tests for the Invite model."""

    def test_is_redeemable(self):
        t = datetime(2026, 5, 1)
        invite = Invite(token="t", expires_at=t)
        assert invite.used is False
        assert invite.is_redeemable(t - timedelta(seconds=1))
        assert not invite.is_redeemable(t)
        invite.used = True
        assert not invite.is_redeemable(t - timedelta(days=1))


class TestRegistrationModel:
    """Tests for the Registration model."""

    def test_defaults(self, db, member):
        registration = Registration(user_id=member.id, email=member.email, username=member.username)
        assert registration.resolution == Resolution.PENDING
        db.add(registration)
        db.commit()
        db.refresh(member)
        assert [r.id for r in member.registrations] == [registration.id]


class TestVPNConfigModel:
    """Tests for VPNConfig uniqueness."""

    def test_address_unique(self, db, admin, member):
        db.add(VPNConfig(user_id=admin.id, public_key="p1", private_key="k1", address="10.66.0.2"))
        db.commit()
        db.add(VPNConfig(user_id=member.id, public_key="p2", private_key="k2", address="10.66.0.2"))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_one_config_per_user(self, db, member):
        db.add(VPNConfig(user_id=member.id, public_key="p1", private_key="k1", address="10.66.0.2"))
        db.commit()
        db.add(VPNConfig(user_id=member.id, public_key="p2", private_key="k2", address="10.66.0.3"))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()
