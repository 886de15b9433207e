"""Tests for the VPN API."""


class TestVPNConfigAPI:
    """Tests for GET /api/vpn/config/{user_id}."""

    def test_owner_downloads_config(self, client, member, member_headers):
        client.post(f"/api/users/{member.id}/vpn/enable", headers=member_headers)

        response = client.get(f"/api/vpn/config/{member.id}", headers=member_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["private_key"] == "priv-0001"
        assert data["address"] == "10.66.0.2"
        assert "PrivateKey = priv-0001" in data["client_config"]
        assert "Address = 10.66.0.2/24" in data["client_config"]
        assert "Endpoint = vpn.example.org:51820" in data["client_config"]

    def test_admin_downloads_member_config(self, client, member, member_headers, admin_headers):
        client.post(f"/api/users/{member.id}/vpn/enable", headers=member_headers)
        assert client.get(f"/api/vpn/config/{member.id}", headers=admin_headers).status_code == 200

    def test_other_member_forbidden(self, client, db, admin, member, member_headers, make_user, headers_for):
        client.post(f"/api/users/{member.id}/vpn/enable", headers=member_headers)
        other = make_user(db, email="other@example.com", username="other")

        response = client.get(f"/api/vpn/config/{member.id}", headers=headers_for(other))
        assert response.status_code == 403

    def test_not_provisioned(self, client, member, member_headers):
        assert client.get(f"/api/vpn/config/{member.id}", headers=member_headers).status_code == 404


class TestVPNStatusAPI:
    """Tests for GET /api/vpn/status."""

    def test_status(self, client, admin, member, member_headers):
        client.post(f"/api/users/{member.id}/vpn/enable", headers=member_headers)

        response = client.get("/api/vpn/status", headers=member_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["users"] == {"pending": 0, "active": 2, "suspended": 0}
        assert data["pending_registrations"] == 0
        assert data["vpn"] == {"configs": 1, "enabled": 1, "pool_size": 253, "pool_free": 252}

    def test_status_requires_login(self, client):
        assert client.get("/api/vpn/status").status_code == 401
