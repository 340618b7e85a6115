"""
Authorization tests for Agri-Connect.

Verifies:
- Unauthenticated requests return 401
- Buyer role denied farmer and admin operations (403)
- Farmers cannot act on other farmers' resources
- Actor fields come from the token, never from the payload
"""

import pytest


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/products"),
            ("POST", "/api/products/sync"),
            ("PATCH", "/api/products/1"),
            ("DELETE", "/api/products/1"),
            ("GET", "/api/farmer/1/products"),
            ("POST", "/api/orders"),
            ("GET", "/api/orders/1"),
            ("PATCH", "/api/orders/1"),
            ("GET", "/api/buyer/1/orders"),
            ("GET", "/api/farmer/1/orders"),
            ("POST", "/api/reviews"),
            ("POST", "/api/contacts"),
            ("PATCH", "/api/contacts/1"),
            ("GET", "/api/farmer/1/contacts"),
            ("GET", "/api/admin/users"),
            ("PUT", "/api/admin/users/1"),
            ("GET", "/api/admin/products/pending"),
            ("PATCH", "/api/admin/products/1/approve"),
            ("PATCH", "/api/admin/products/1/reject"),
            ("POST", "/api/uploads"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    @pytest.mark.parametrize(
        "path",
        [
            "/api/products",
            "/api/stats",
            "/api/communes",
            "/api/categories",
            "/api/health",
        ],
    )
    def test_public_reads_need_no_token(self, client, db_session, path):
        resp = client.get(path)
        assert resp.status_code == 200, f"GET {path} returned {resp.status_code}"


# =============================================================================
# BUYER DENIED FARMER/ADMIN OPERATIONS (403)
# =============================================================================


class TestBuyerDeniedPrivileged:
    """A buyer token is Forbidden on farmer-only and admin-only endpoints."""

    def test_cannot_create_product(self, client, buyer_headers):
        resp = client.post(
            "/api/products",
            json={"name": "Maïs", "category": "Céréales", "price": "800.00", "unit": "kg",
                  "quantity": 5, "commune": "Katuba", "harvest_date": "2024-02-01"},
            headers=buyer_headers,
        )
        assert resp.status_code == 403

    def test_cannot_sync_products(self, client, buyer_headers):
        resp = client.post("/api/products/sync", json=[], headers=buyer_headers)
        assert resp.status_code == 403

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/users"),
            ("PUT", "/api/admin/users/1"),
            ("GET", "/api/admin/products/pending"),
            ("PATCH", "/api/admin/products/1/approve"),
            ("PATCH", "/api/admin/products/1/reject"),
        ],
    )
    def test_cannot_use_admin_endpoints(self, client, buyer_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=buyer_headers)
        assert resp.status_code == 403

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/users"),
            ("GET", "/api/admin/products/pending"),
            ("PATCH", "/api/admin/products/1/approve"),
        ],
    )
    def test_farmer_cannot_use_admin_endpoints(self, client, farmer_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=farmer_headers)
        assert resp.status_code == 403

    def test_cannot_list_unapproved_products(self, client, buyer_headers):
        resp = client.get("/api/products?approved=false", headers=buyer_headers)
        assert resp.status_code == 403


# =============================================================================
# OWNERSHIP
# =============================================================================


class TestOwnership:
    """Owner-or-admin rules on products, orders and contacts."""

    def test_other_farmer_cannot_edit_product(self, client, product, other_farmer_headers):
        resp = client.patch(f"/api/products/{product.id}", json={"price": "1.00"}, headers=other_farmer_headers)
        assert resp.status_code == 403

    def test_other_farmer_cannot_delete_product(self, client, product, other_farmer_headers):
        resp = client.delete(f"/api/products/{product.id}", headers=other_farmer_headers)
        assert resp.status_code == 403

    def test_admin_can_edit_any_product(self, client, product, admin_headers):
        resp = client.patch(f"/api/products/{product.id}", json={"price": "1750.50"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["price"] == "1750.50"

    def test_cannot_read_other_buyer_orders(self, client, buyer, other_buyer_headers):
        resp = client.get(f"/api/buyer/{buyer.id}/orders", headers=other_buyer_headers)
        assert resp.status_code == 403

    def test_cannot_read_other_farmer_orders(self, client, farmer, other_farmer_headers):
        resp = client.get(f"/api/farmer/{farmer.id}/orders", headers=other_farmer_headers)
        assert resp.status_code == 403

    def test_cannot_read_other_farmer_contacts(self, client, farmer, buyer_headers):
        resp = client.get(f"/api/farmer/{farmer.id}/contacts", headers=buyer_headers)
        assert resp.status_code == 403

    def test_product_owner_comes_from_token(self, client, farmer, other_farmer, farmer_headers):
        resp = client.post(
            "/api/products",
            json={"name": "Haricots", "category": "Légumineuses", "price": "2000", "unit": "kg",
                  "quantity": 4, "commune": "Ruashi", "harvest_date": "2024-03-10",
                  "farmer_id": other_farmer.id},
            headers=farmer_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["farmer_id"] == farmer.id

    def test_order_buyer_comes_from_token(self, client, buyer, other_buyer, product, buyer_headers):
        resp = client.post(
            "/api/orders",
            json={"product_id": product.id, "quantity": 1, "buyer_id": other_buyer.id, "farmer_id": other_buyer.id},
            headers=buyer_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["buyer_id"] == buyer.id
        assert body["farmer_id"] == product.farmer_id
