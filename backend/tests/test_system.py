"""
System endpoint tests: health, stats, reference data, CORS and JSON errors.
"""

from agriconnect.models import Order


class TestHealth:
    def test_health_reports_database(self, client, db_session):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["timestamp"].endswith("Z")


class TestStats:
    def test_stats_counts(self, client, db_session, farmer, other_farmer, buyer, make_product):
        approved = make_product(commune="Kenya")
        make_product(commune="Ruashi")
        make_product(commune="Katuba", approved=False)
        db_session.add(Order(
            buyer_id=buyer.id, product_id=approved.id, farmer_id=farmer.id,
            quantity=1, total_price=approved.price, status="pending",
        ))
        db_session.commit()

        resp = client.get("/api/stats")

        assert resp.status_code == 200
        assert resp.get_json() == {
            "total_farmers": 2,
            "total_products": 2,
            "total_orders": 1,
            "total_communes": 3,
        }

    def test_empty_marketplace(self, client, db_session):
        assert client.get("/api/stats").get_json() == {
            "total_farmers": 0,
            "total_products": 0,
            "total_orders": 0,
            "total_communes": 0,
        }


class TestReferenceData:
    def test_communes(self, client):
        communes = client.get("/api/communes").get_json()

        assert "Kenya" in communes
        assert "Lubumbashi" in communes
        assert len(communes) == 7

    def test_categories(self, client):
        categories = client.get("/api/categories").get_json()

        assert categories[0] == "Maraîchage"
        assert "Élevage" in categories


class TestHttpBehaviour:
    def test_cors_for_allowed_origin(self, client, app):
        origin = app.config["CORS_ALLOWED_ORIGINS"][0]

        resp = client.get("/api/communes", headers={"Origin": origin})

        assert resp.headers["Access-Control-Allow-Origin"] == origin

    def test_no_cors_for_unknown_origin(self, client):
        resp = client.get("/api/communes", headers={"Origin": "https://evil.example"})

        assert "Access-Control-Allow-Origin" not in resp.headers

    def test_unknown_route_is_json_404(self, client):
        resp = client.get("/api/nothing-here")

        assert resp.status_code == 404
        assert "error" in resp.get_json()

    def test_wrong_method_is_json_405(self, client):
        resp = client.delete("/api/communes")

        assert resp.status_code == 405
        assert "error" in resp.get_json()
