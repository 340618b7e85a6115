# Overview: Pytest coverage for concurrent order placement against the last unit of stock.

"""
Concurrency Tests

Racing order placements run on real threads against a file-backed SQLite
database (an in-memory database is a single shared connection and cannot
show the race). Exactly one request may win the last unit, and a quantity
edit never undoes an order committed while it is in flight.
"""

import threading
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from agriconnect import create_app
from agriconnect.extensions import db
from agriconnect.models import Order, Product, User
from agriconnect.services.auth_service import hash_password
from agriconnect.services import catalog_service
from agriconnect.services.concurrency import run_with_retry
from conftest import TEST_JWT_SECRET, auth_headers, token_for

RACERS = 6


@pytest.fixture
def race_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
        'BCRYPT_ROUNDS': 4,
        'JWT_SECRET': TEST_JWT_SECRET,
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


def seed_last_unit(app):
    """Farmer with one approved product holding a single unit; returns (product_id, buyer tokens)."""
    with app.app_context():
        farmer = User(
            username="farmer", email="farmer@race.cd", password_hash=hash_password("Password123"),
            first_name="Amani", last_name="Kabila", role="farmer",
        )
        db.session.add(farmer)
        db.session.flush()

        product = Product(
            farmer_id=farmer.id, name="Dernier sac de maïs", category="Céréales",
            price=Decimal("25000.00"), unit="sac", quantity=5, available_quantity=1,
            harvest_date=datetime(2024, 2, 1), commune="Katuba", province="Haut-Katanga",
            images=[], is_active=True, is_approved=True, moderation_status="approved",
        )
        db.session.add(product)

        buyers = []
        for i in range(RACERS):
            buyer = User(
                username=f"buyer{i}", email=f"buyer{i}@race.cd", password_hash=hash_password("Password123"),
                first_name="Buyer", last_name=str(i), role="buyer",
            )
            db.session.add(buyer)
            buyers.append(buyer)
        db.session.commit()

        tokens = [token_for(b) for b in buyers]
        return product.id, tokens


class TestOversell:
    """Concurrent placements on the last unit of stock."""

    def test_only_one_order_wins_the_last_unit(self, race_app):
        product_id, tokens = seed_last_unit(race_app)
        barrier = threading.Barrier(len(tokens))
        statuses = []
        lock = threading.Lock()

        def attempt(token):
            client = race_app.test_client()
            barrier.wait()
            resp = client.post(
                "/api/orders",
                json={"product_id": product_id, "quantity": 1},
                headers=auth_headers(token),
            )
            with lock:
                statuses.append(resp.status_code)

        threads = [threading.Thread(target=attempt, args=(t,)) for t in tokens]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert sorted(statuses) == [201] + [409] * (len(tokens) - 1)

        with race_app.app_context():
            product = db.session.get(Product, product_id)
            assert product.available_quantity == 0
            assert db.session.query(Order).filter_by(product_id=product_id).count() == 1


def seed_stocked_product(app):
    """Approved product with 10 of 10 units; returns (product_id, farmer token, buyer token)."""
    with app.app_context():
        farmer = User(
            username="farmer", email="farmer@race.cd", password_hash=hash_password("Password123"),
            first_name="Amani", last_name="Kabila", role="farmer",
        )
        buyer = User(
            username="buyer", email="buyer@race.cd", password_hash=hash_password("Password123"),
            first_name="Chantal", last_name="Mukendi", role="buyer",
        )
        db.session.add_all([farmer, buyer])
        db.session.flush()

        product = Product(
            farmer_id=farmer.id, name="Tomates fraîches", category="Maraîchage",
            price=Decimal("1500.00"), unit="kg", quantity=10, available_quantity=10,
            harvest_date=datetime(2024, 1, 15), commune="Kenya", province="Haut-Katanga",
            images=[], is_active=True, is_approved=True, moderation_status="approved",
        )
        db.session.add(product)
        db.session.commit()
        return product.id, token_for(farmer), token_for(buyer)


class TestQuantityEditDuringOrder:
    """An order committed while a quantity edit is in flight keeps its decrement."""

    def test_order_between_read_and_write_is_not_lost(self, race_app, monkeypatch):
        product_id, farmer_token, buyer_token = seed_stocked_product(race_app)
        order_statuses = []
        original_apply = catalog_service.apply_product_patch

        def place_order_in_other_thread():
            resp = race_app.test_client().post(
                "/api/orders",
                json={"product_id": product_id, "quantity": 4},
                headers=auth_headers(buyer_token),
            )
            order_statuses.append(resp.status_code)

        def apply_after_order(p, patch):
            t = threading.Thread(target=place_order_in_other_thread)
            t.start()
            t.join(timeout=60)
            original_apply(p, patch)

        monkeypatch.setattr(catalog_service, "apply_product_patch", apply_after_order)

        resp = race_app.test_client().patch(
            f"/api/products/{product_id}",
            json={"quantity": 12},
            headers=auth_headers(farmer_token),
        )

        assert order_statuses == [201]
        assert resp.status_code == 200
        assert resp.get_json()["quantity"] == 12
        assert resp.get_json()["available_quantity"] == 8

        with race_app.app_context():
            product = db.session.get(Product, product_id)
            assert (product.quantity, product.available_quantity) == (12, 8)


class TestRunWithRetry:
    """run_with_retry() retries lock contention and nothing else."""

    def test_retries_operational_error(self, app):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError("UPDATE products", {}, Exception("database is locked"))
            return "ok"

        with app.app_context():
            assert run_with_retry(flaky, backoff_base=0) == "ok"
        assert len(calls) == 3

    def test_gives_up_after_attempts(self, app):
        def always_locked():
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        with app.app_context():
            with pytest.raises(OperationalError):
                run_with_retry(always_locked, attempts=2, backoff_base=0)

    def test_domain_errors_are_not_retried(self, app):
        calls = []

        def refuse():
            calls.append(1)
            raise ValueError("not a lock problem")

        with app.app_context():
            with pytest.raises(ValueError):
                run_with_retry(refuse, backoff_base=0)
        assert calls == [1]
