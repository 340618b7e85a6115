"""
Admin user management tests.

Verifies:
- Admins list users with role and active filters, never seeing password hashes
- Admin updates are limited to an allowlist of fields
- A deactivated user can no longer log in
"""

from conftest import PASSWORD


class TestListUsers:
    """GET /api/admin/users"""

    def test_lists_all_users(self, client, farmer, buyer, admin, admin_headers):
        resp = client.get("/api/admin/users", headers=admin_headers)

        assert resp.status_code == 200
        body = resp.get_json()
        assert {u["id"] for u in body} == {farmer.id, buyer.id, admin.id}
        assert all("password_hash" not in u for u in body)

    def test_filter_by_role(self, client, farmer, other_farmer, buyer, admin_headers):
        resp = client.get("/api/admin/users?role=farmer", headers=admin_headers)

        assert {u["id"] for u in resp.get_json()} == {farmer.id, other_farmer.id}

    def test_exclude_inactive(self, client, db_session, buyer, admin, admin_headers):
        buyer.is_active = False
        db_session.commit()

        resp = client.get("/api/admin/users?include_inactive=false", headers=admin_headers)

        assert {u["id"] for u in resp.get_json()} == {admin.id}


class TestUpdateUser:
    """PUT /api/admin/users/<id>"""

    def test_deactivate_user_blocks_login(self, client, buyer, admin_headers):
        resp = client.put(f"/api/admin/users/{buyer.id}", json={"is_active": False}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.get_json()["is_active"] is False
        login = client.post("/api/login", json={"email": "buyer@agri.cd", "password": PASSWORD})
        assert login.status_code == 401

    def test_change_role(self, client, buyer, admin_headers):
        resp = client.put(f"/api/admin/users/{buyer.id}", json={"role": "farmer"}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.get_json()["role"] == "farmer"

    def test_invalid_role(self, client, buyer, admin_headers):
        resp = client.put(f"/api/admin/users/{buyer.id}", json={"role": "owner"}, headers=admin_headers)

        assert resp.status_code == 400

    def test_password_hash_not_writable(self, client, buyer, admin_headers):
        resp = client.put(f"/api/admin/users/{buyer.id}", json={"password_hash": "x"}, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.get_json()["issues"][0] == {"field": "password_hash", "message": "Field not allowed"}

    def test_email_taken_by_other_user(self, client, buyer, farmer, admin_headers):
        resp = client.put(f"/api/admin/users/{buyer.id}", json={"email": "farmer@agri.cd"}, headers=admin_headers)

        assert resp.status_code == 409

    def test_unknown_user(self, client, admin_headers):
        resp = client.put("/api/admin/users/99999", json={"first_name": "X"}, headers=admin_headers)

        assert resp.status_code == 404
