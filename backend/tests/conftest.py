"""
Pytest fixtures for DealerHub backend tests.

Provides a fresh in-memory database per test, a recording notification
backend in place of real email/SMS, and factories for admins, dealers and
products.
"""

import itertools

import pytest

from dealerhub import create_app
from dealerhub.extensions import db
from dealerhub.models import Dealer, OtpCode, Product
from dealerhub.services import admin_service, dealer_service, notification_service, token_service

TEST_PASSWORD = "Secret1"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'BCRYPT_ROUNDS': 4,
    'JWT_SECRET_KEY': 'test-jwt-secret',
    'NOTIFICATION_BACKEND': 'log',
    'ENQUIRY_STATUS_POLICY': 'permissive',
}


class RecordingBackend(notification_service.NotificationBackend):
    """Captures outbound messages. Flip fail_email / fail_sms to simulate outages."""

    def __init__(self):
        self.emails = []
        self.sms = []
        self.fail_email = False
        self.fail_sms = False

    def send_email(self, to, subject, body):
        if self.fail_email:
            return False
        self.emails.append({"to": to, "subject": subject, "body": body})
        return True

    def send_sms(self, to, body):
        if self.fail_sms:
            return False
        self.sms.append({"to": to, "body": body})
        return True

    def emails_to(self, address):
        return [m for m in self.emails if m["to"] == address]


@pytest.fixture(scope='function')
def app():
    """Create application with an isolated in-memory database."""
    app = create_app(dict(TEST_CONFIG))
    app.extensions[notification_service.EXTENSION_KEY] = RecordingBackend()

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    return app.test_client()


@pytest.fixture(scope='function')
def outbox(app):
    return app.extensions[notification_service.EXTENSION_KEY]


@pytest.fixture(scope='function')
def super_admin(app):
    return admin_service.bootstrap_super_admin(
        username="root", email="root@example.com", password=TEST_PASSWORD
    )


@pytest.fixture(scope='function')
def admin(app, super_admin):
    return admin_service.create_admin(
        actor_id=super_admin.id,
        username="reviewer",
        email="reviewer@example.com",
        password=TEST_PASSWORD,
    )


@pytest.fixture(scope='function')
def product(app):
    p = Product(
        product_code="CH-101",
        product_name="Classic Armless Chair",
        category="Chair",
        price_cents=25000,
        colors=["Red", "Blue"],
        stock_quantity=100,
    )
    db.session.add(p)
    db.session.commit()
    return p


def registration_payload(**overrides) -> dict:
    payload = {
        "company_name": "Acme Furnishings",
        "contact_person_name": "Asha Rao",
        "mobile": "9876543210",
        "email": "asha@acme.example.com",
        "address": "12 MG Road, Pune",
        "pin_code": "411001",
        "gst": "27ABCDE1234F1Z5",
        "password": TEST_PASSWORD,
    }
    payload.update(overrides)
    return payload


def pending_code(dealer_id: int, purpose: str) -> str:
    return (
        db.session.query(OtpCode)
        .filter_by(owner_kind="dealer", owner_id=dealer_id, purpose=purpose)
        .one()
        .code
    )


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def make_dealer(app, admin):
    """
    Factory: register a dealer, then optionally verify and review it.

    make_dealer() -> approved, verified dealer
    make_dealer(verified=False, status="pending") -> fresh registration
    """
    counter = itertools.count(1)

    def _make(*, verified=True, status="approved", **overrides):
        n = next(counter)
        payload = registration_payload(
            mobile=f"98765432{n:02d}",
            email=f"dealer{n}@example.com",
            gst=f"27ABCDE{n:04d}F1Z5",
        )
        payload.update(overrides)
        dealer = dealer_service.register_dealer(payload)
        if verified:
            dealer_service.verify_registration(
                dealer.id,
                pending_code(dealer.id, "mobile_verify"),
                pending_code(dealer.id, "email_verify"),
            )
        if status == "approved":
            dealer_service.approve_dealer(dealer.id, admin.id)
        elif status == "rejected":
            dealer_service.reject_dealer(dealer.id, admin.id, "Incomplete documents")
        return db.session.get(Dealer, dealer.id)

    return _make


@pytest.fixture(scope='function')
def dealer(make_dealer):
    return make_dealer()


@pytest.fixture(scope='function')
def dealer_headers(dealer):
    token, _ = token_service.issue_session_token("dealer", dealer.id, "dealer")
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin):
    token, _ = token_service.issue_session_token("admin", admin.id, admin.role)
    return auth_headers(token)


@pytest.fixture(scope='function')
def super_admin_headers(super_admin):
    token, _ = token_service.issue_session_token("admin", super_admin.id, super_admin.role)
    return auth_headers(token)
