"""
Pytest fixtures for Agri-Connect backend tests.

Provides an in-memory database, one user per role, product factories and
bearer-token helpers.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from agriconnect import create_app
from agriconnect.extensions import db
from agriconnect.models import Product, User
from agriconnect.models.catalog import MODERATION_APPROVED, MODERATION_PENDING
from agriconnect.services.auth_service import hash_password
from agriconnect.services.token_service import issue_token

PASSWORD = "Password123"
TEST_JWT_SECRET = "test-jwt-secret"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BCRYPT_ROUNDS': 4,
        'JWT_SECRET': TEST_JWT_SECRET,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp('uploads')),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def create_user(db_session, *, role: str, email: str, first_name: str = "Test", is_active: bool = True) -> User:
    user = User(
        username=email.split("@")[0],
        email=email,
        password_hash=hash_password(PASSWORD),
        first_name=first_name,
        last_name="Kabila" if role == "farmer" else "Mukendi",
        phone="+243970000000",
        role=role,
        location="Lubumbashi",
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def farmer(db_session):
    """Farmer who owns the listings created by make_product."""
    return create_user(db_session, role="farmer", email="farmer@agri.cd", first_name="Amani")


@pytest.fixture(scope='function')
def other_farmer(db_session):
    return create_user(db_session, role="farmer", email="other.farmer@agri.cd", first_name="Baraka")


@pytest.fixture(scope='function')
def buyer(db_session):
    return create_user(db_session, role="buyer", email="buyer@agri.cd", first_name="Chantal")


@pytest.fixture(scope='function')
def other_buyer(db_session):
    return create_user(db_session, role="buyer", email="other.buyer@agri.cd", first_name="Dieudonne")


@pytest.fixture(scope='function')
def admin(db_session):
    return create_user(db_session, role="admin", email="admin@agri.cd", first_name="Esther")


@pytest.fixture(scope='function')
def make_product(db_session, farmer):
    """Factory for products inserted directly, approved unless told otherwise."""
    def _make(
        *,
        owner=None,
        name="Tomates fraîches",
        category="Maraîchage",
        price="1500.00",
        quantity=10,
        available_quantity=None,
        commune="Kenya",
        approved=True,
        is_active=True,
    ) -> Product:
        product = Product(
            farmer_id=(owner or farmer).id,
            name=name,
            description="Récolte du matin",
            category=category,
            price=Decimal(price),
            unit="kg",
            quantity=quantity,
            available_quantity=quantity if available_quantity is None else available_quantity,
            harvest_date=datetime(2024, 1, 15),
            commune=commune,
            province="Haut-Katanga",
            images=[],
            is_active=is_active,
            is_approved=approved,
            moderation_status=MODERATION_APPROVED if approved else MODERATION_PENDING,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Approved product: 10 kg at 1500.00."""
    return make_product()


def token_for(user: User, ttl: timedelta = timedelta(days=1)) -> str:
    """Helper to mint a bearer token for a user."""
    return issue_token(user, ttl)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token through the login endpoint."""
    response = client.post('/api/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


@pytest.fixture(scope='function')
def farmer_headers(farmer):
    return auth_headers(token_for(farmer))


@pytest.fixture(scope='function')
def other_farmer_headers(other_farmer):
    return auth_headers(token_for(other_farmer))


@pytest.fixture(scope='function')
def buyer_headers(buyer):
    return auth_headers(token_for(buyer))


@pytest.fixture(scope='function')
def other_buyer_headers(other_buyer):
    return auth_headers(token_for(other_buyer))


@pytest.fixture(scope='function')
def admin_headers(admin):
    return auth_headers(token_for(admin))
