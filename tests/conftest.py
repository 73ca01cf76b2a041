"""
Pytest configuration and shared fixtures for the Fieldbook tests.

Every test gets a fresh in-memory SQLite schema. Stripe and Resend are never
called; tests that need them patch the SDK with ``monkeypatch``.
"""

import os
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

test_env_path = Path(__file__).parent / ".env.test"
if test_env_path.exists():
    load_dotenv(test_env_path, override=True)
    print(f" Loaded test environment from: {test_env_path}")

# Must be set before the app modules are imported
os.environ["TESTING"] = "True"
os.environ["FLASK_ENV"] = "testing"
os.environ.pop("STRIPE_SECRET_KEY", None)
os.environ.pop("RESEND_API_KEY", None)

import pytest  # noqa: E402
from flask import Flask  # noqa: E402

from main import create_app  # noqa: E402
from app.extensions import db as database  # noqa: E402
from app.models import Base, Customer, Service, User  # noqa: E402
from app.services.tenant_cache import tenant_cache  # noqa: E402
from app.config import is_production_database  # noqa: E402

TEST_PASSWORD = "Password123"
WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture(scope="session")
def app():
    """Create and configure a test app instance."""
    test_db_url = os.environ.get("DATABASE_TEST_URL") or "sqlite://"

    if is_production_database(test_db_url):
        print(f" DANGER: Database URL appears to be production: {test_db_url}")
        print(" Tests aborted to prevent data loss!")
        sys.exit(1)

    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": test_db_url,
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "STRIPE_SECRET_KEY": None,
            "STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
            "PAYMENT_LINK_MOCK": True,
            "SCHEDULER_ENABLED": False,
            "APP_URL": "http://localhost:3000",
            "INVOICE_DUE_DAYS": 14,
        }
    )

    print(f"✅ Running tests against: {test_db_url}")
    yield app


@pytest.fixture
def db(app: Flask):
    """Fresh schema for each test, created from the Base metadata."""
    with app.app_context():
        Base.metadata.create_all(bind=database.engine)
        tenant_cache.clear()

        yield database

        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)
        tenant_cache.clear()


@pytest.fixture
def db_session(db):
    return db.session


@pytest.fixture
def client(app, db):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def test_user_data():
    """Signup payload for a new business owner."""
    return {
        "email": "owner@example.com",
        "password": TEST_PASSWORD,
        "business_name": "Green Thumb Lawn Care",
    }


@pytest.fixture
def auth_user(client, test_user_data):
    """Register an owner through the API and return the user dict."""
    response = client.post("/api/auth/signup", json=test_user_data)
    assert response.status_code == 201, response.data
    return response.get_json()["user"]


@pytest.fixture
def auth_headers(client, auth_user, test_user_data):
    """Bearer header for the registered owner."""
    response = client.post(
        "/api/auth/login",
        json={"email": test_user_data["email"], "password": TEST_PASSWORD},
    )
    assert response.status_code == 200, response.data
    token = response.get_json()["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_id(auth_user):
    return auth_user["id"]


@pytest.fixture
def other_headers(client):
    """A second, unrelated owner."""
    client.post(
        "/api/auth/signup",
        json={"email": "rival@example.com", "password": TEST_PASSWORD},
    )
    response = client.post(
        "/api/auth/login",
        json={"email": "rival@example.com", "password": TEST_PASSWORD},
    )
    return {"Authorization": f"Bearer {response.get_json()['token']}"}


@pytest.fixture
def sample_customer(db_session, user_id):
    customer = Customer(
        user_id=user_id,
        name="Jane Doe",
        email="jane@example.com",
        phone="555-123-4567",
        address="12 Elm Street",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture
def sample_service(db_session, user_id):
    service = Service(
        user_id=user_id,
        name="Lawn Mow",
        price=Decimal("45.00"),
        duration=60,
        category="Lawn",
    )
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture
def valid_until():
    return (date.today() + timedelta(days=30)).isoformat()


@pytest.fixture
def sent_quote(client, auth_headers, sample_customer, sample_service, valid_until):
    """A quote for one Lawn Mow and one Hedge Trim, already sent."""
    response = client.post(
        "/api/quotes",
        json={
            "customer_id": sample_customer.id,
            "valid_until": valid_until,
            "items": [
                {"service_id": sample_service.id, "quantity": 1},
                {"description": "Hedge Trim", "quantity": 2, "price": 20},
            ],
        },
        headers=auth_headers,
    )
    assert response.status_code == 201, response.data
    quote = response.get_json()["quote"]

    response = client.post(f"/api/quotes/{quote['id']}/send", headers=auth_headers)
    assert response.status_code == 200, response.data
    return response.get_json()["quote"]


@pytest.fixture
def completed_job(client, auth_headers, sent_quote):
    """Job converted from ``sent_quote``, scheduled and completed."""
    response = client.post(f"/api/quotes/{sent_quote['id']}/convert", headers=auth_headers)
    assert response.status_code == 201, response.data
    job = response.get_json()["job"]

    client.post(
        f"/api/jobs/{job['id']}/schedule",
        json={"date": "2024-06-01", "start_time": "09:00", "duration_hours": 2},
        headers=auth_headers,
    )
    client.post(f"/api/jobs/{job['id']}/start", headers=auth_headers)
    response = client.post(f"/api/jobs/{job['id']}/complete", headers=auth_headers)
    assert response.status_code == 200, response.data
    return response.get_json()["job"]


@pytest.fixture
def draft_invoice(client, auth_headers, completed_job):
    response = client.post(f"/api/jobs/{completed_job['id']}/invoice", headers=auth_headers)
    assert response.status_code == 201, response.data
    return response.get_json()["invoice"]


@pytest.fixture
def get_user(db_session):
    def _get(uid):
        db_session.expire_all()
        return db_session.get(User, uid)

    return _get
