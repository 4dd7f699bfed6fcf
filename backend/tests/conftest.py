"""
Pytest fixtures for residences backend tests.

Provides test database setup, role/user/apartment factories, and test client.
"""

import itertools

import pytest
from residences import create_app
from residences.extensions import db
from residences.models import Apartment
from residences.permissions import ADMIN, OWNER, PRESIDENT, SECRETARY, TENANT, TREASURER
from residences.services.auth_service import create_user, create_default_roles, assign_role


PASSWORD = "Password123!"

_mobile_numbers = itertools.count(9800000000)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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


@pytest.fixture(scope='function')
def setup_roles(db_session):
    """Setup the fixed role set."""
    create_default_roles()
    db_session.commit()


@pytest.fixture(scope='function')
def make_user(db_session, setup_roles):
    """Factory: make_user("Name", "President", apartment_id=None)."""
    def _make(full_name, *role_names, apartment_id=None):
        user = create_user(
            full_name=full_name,
            mobile_number=str(next(_mobile_numbers)),
            password=PASSWORD,
            email=f"{full_name.lower().replace(' ', '.')}@residences.test",
        )
        for role_name in role_names:
            assign_role(user.id, role_name, apartment_id=apartment_id)
        return user
    return _make


@pytest.fixture(scope='function')
def make_apartment(db_session):
    def _make(floor_number=5, unit_type="A", unit_number=1):
        apartment = Apartment(floor_number=floor_number, unit_type=unit_type, unit_number=unit_number)
        db_session.add(apartment)
        db_session.commit()
        return apartment
    return _make


@pytest.fixture(scope='function')
def apartment(make_apartment):
    """Apartment 5A-1."""
    return make_apartment()


@pytest.fixture(scope='function')
def president(make_user):
    return make_user("Priya President", PRESIDENT)


@pytest.fixture(scope='function')
def secretary(make_user):
    return make_user("Sameer Secretary", SECRETARY)


@pytest.fixture(scope='function')
def treasurer(make_user):
    return make_user("Tara Treasurer", TREASURER)


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user("Anil Admin", ADMIN)


@pytest.fixture(scope='function')
def owner_u1(make_user):
    return make_user("Uma One", OWNER)


@pytest.fixture(scope='function')
def owner_u2(make_user):
    return make_user("Uday Two", OWNER)


@pytest.fixture(scope='function')
def tenant_user(make_user):
    return make_user("Tanvi Tenant", TENANT)


@pytest.fixture(scope='function')
def plain_user(make_user):
    """Active account with no roles."""
    return make_user("Nobody Special")


def get_auth_token(client, identifier: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'identifier': identifier,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def login(client):
    """login(user) -> Authorization headers for that user."""
    def _login(user):
        token = get_auth_token(client, user.mobile_number)
        assert token, f"login failed for {user.full_name}"
        return auth_headers(token)
    return _login
