"""Tests for the users API."""
from vpnportal.db.models_auth import UserStatus


class TestUsersAPI:
    """Tests for /api/users."""

    def test_me(self, client, member, member_headers):
        response = client.get("/api/users/me", headers=member_headers)
        assert response.status_code == 200
        assert response.json()["id"] == member.id

    def test_me_without_token(self, client):
        response = client.get("/api/users/me")
        assert response.status_code == 401
        assert response.json() == {"code": "unauthorized", "detail": "Not authenticated"}

    def test_me_with_garbage_token(self, client):
        response = client.get("/api/users/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json()["code"] == "invalid_token"

    def test_admin_lists_users(self, client, admin, member, make_user, db, admin_headers):
        make_user(db, email="wait@example.com", username="waiting", status=UserStatus.PENDING)

        everyone = client.get("/api/users", headers=admin_headers).json()
        assert {u["username"] for u in everyone} == {"admin", "member", "waiting"}

        pending = client.get("/api/users?status=pending", headers=admin_headers).json()
        assert [u["username"] for u in pending] == ["waiting"]

    def test_member_cannot_list(self, client, member_headers):
        assert client.get("/api/users", headers=member_headers).status_code == 403

    def test_member_reads_only_self(self, client, admin, member, member_headers):
        assert client.get(f"/api/users/{member.id}", headers=member_headers).status_code == 200
        assert client.get(f"/api/users/{admin.id}", headers=member_headers).status_code == 403

    def test_unknown_user(self, client, admin_headers):
        assert client.get("/api/users/missing", headers=admin_headers).status_code == 404

    def test_update_self(self, client, member, member_headers):
        response = client.put(f"/api/users/{member.id}", json={"username": "renamed"}, headers=member_headers)
        assert response.status_code == 200
        assert response.json()["username"] == "renamed"

    def test_member_cannot_promote_self(self, client, member, member_headers):
        response = client.put(f"/api/users/{member.id}", json={"role": "admin"}, headers=member_headers)
        assert response.status_code == 403

    def test_bad_status_value(self, client, member, admin_headers):
        response = client.put(f"/api/users/{member.id}", json={"status": "banned"}, headers=admin_headers)
        assert response.status_code == 400

    def test_suspension_locks_out_live_session(self, client, member, admin_headers, member_headers):
        assert client.get("/api/users/me", headers=member_headers).status_code == 200

        response = client.put(f"/api/users/{member.id}", json={"status": "suspended"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "suspended"

        locked = client.get("/api/users/me", headers=member_headers)
        assert locked.status_code == 401
        assert locked.json()["code"] == "account_not_active"

    def test_admin_cannot_suspend_self(self, client, admin, admin_headers):
        response = client.put(f"/api/users/{admin.id}", json={"status": "suspended"}, headers=admin_headers)
        assert response.status_code == 409

    def test_delete(self, client, member, admin_headers):
        assert client.delete(f"/api/users/{member.id}", headers=admin_headers).status_code == 204
        assert client.get(f"/api/users/{member.id}", headers=admin_headers).status_code == 404

    def test_delete_last_admin(self, client, admin, admin_headers):
        response = client.delete(f"/api/users/{admin.id}", headers=admin_headers)
        assert response.status_code == 409


class TestVPNToggleAPI:
    """Tests for /api/users/{id}/vpn/*."""

    def test_enable_and_disable(self, client, member, member_headers, key_manager):
        response = client.post(f"/api/users/{member.id}/vpn/enable", headers=member_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["enabled"] is True
        assert data["address"] == "10.66.0.2"
        assert "private_key" not in data

        response = client.post(f"/api/users/{member.id}/vpn/disable", headers=member_headers)
        assert response.status_code == 200
        assert response.json()["enabled"] is False
        assert [s[2] for s in key_manager.synced] == [True, False]

    def test_enable_for_other_forbidden(self, client, admin, member_headers):
        assert client.post(f"/api/users/{admin.id}/vpn/enable", headers=member_headers).status_code == 403

    def test_key_service_down(self, client, member, member_headers, key_manager):
        key_manager.fail_generate = True
        response = client.post(f"/api/users/{member.id}/vpn/enable", headers=member_headers)
        assert response.status_code == 502
        assert response.json() == {"code": "upstream_error", "detail": "VPN key service unavailable"}

    def test_disable_without_config(self, client, member, member_headers):
        assert client.post(f"/api/users/{member.id}/vpn/disable", headers=member_headers).status_code == 404

    def test_suspend_takes_peer_offline(self, client, member, member_headers, admin_headers, key_manager):
        client.post(f"/api/users/{member.id}/vpn/enable", headers=member_headers)

        response = client.put(f"/api/users/{member.id}", json={"status": "suspended"}, headers=admin_headers)
        assert response.status_code == 200
        assert [s[2] for s in key_manager.synced] == [True, False]

        config = client.get(f"/api/vpn/config/{member.id}", headers=admin_headers).json()
        assert config["enabled"] is False

    def test_delete_takes_peer_offline(self, client, member, member_headers, admin_headers, key_manager):
        client.post(f"/api/users/{member.id}/vpn/enable", headers=member_headers)

        assert client.delete(f"/api/users/{member.id}", headers=admin_headers).status_code == 204
        assert key_manager.synced[-1] == ("pub-0001", "10.66.0.2", False)

    def test_delete_refused_while_gateway_down(self, client, member, member_headers, admin_headers, key_manager):
        client.post(f"/api/users/{member.id}/vpn/enable", headers=member_headers)
        key_manager.fail_sync = True

        response = client.delete(f"/api/users/{member.id}", headers=admin_headers)
        assert response.status_code == 502
        assert client.get(f"/api/users/{member.id}", headers=admin_headers).status_code == 200
