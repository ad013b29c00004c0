"""Pytest fixtures for the marketplace order and payment tests."""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
import requests
from flask_jwt_extended import create_access_token

from core.config import Config
from core.extensions import db
from main import create_app
from models.userModel import Admins, Buyers, Vendors, Address
from models.vendorModels import Products, Inventory
from models.voucherModels import Voucher


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-that-is-long-enough"
    MAIL_DEFAULT_SENDER = "orders@shop.test"
    MAIL_SUPPRESS_SEND = True
    BASE_URL = "https://shop.test"
    SCHEDULER_ENABLED = False
    LOG_LEVEL = "DEBUG"

    BANK_ACCOUNT_NO = "0123456789"
    BANK_ACCOUNT_NAME = "DEMO SHOP"
    BANK_ACQ_ID = "970436"
    VIETQR_CLIENT_ID = "qr-client"
    VIETQR_API_KEY = "qr-key"
    VIETQR_API_URL = "https://vietqr.test/v2/generate"
    VIETQR_STATUS_API_URL = "https://vietqr.test/v2/transactions"

    PAYOS_CLIENT_ID = "payos-client"
    PAYOS_API_KEY = "payos-key"
    PAYOS_CHECKSUM_KEY = "checksum-secret"
    PAYOS_API_URL = "https://payos.test/v2/payment-requests"

    GATEWAY_TIMEOUT = 5
    PAYMENT_VERIFY_WINDOW_HOURS = 24


@pytest.fixture
def app():
    """Application with a fresh in-memory database, inside an app context."""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seed(app):
    """Two buyers, two vendors, an admin and a small stocked catalog.

    Product ``laptop_bag`` costs 40 with 5 in stock, ``charger`` costs 20
    with 3 in stock, ``cable`` (other vendor) costs 10 with 10 in stock.
    """
    buyer = Buyers(name="Jane Buyer", email="jane@buyer.test")
    other_buyer = Buyers(name="Joe Buyer", email="joe@buyer.test")
    vendor = Vendors(business_name="Bag Shop", email="bags@vendor.test")
    other_vendor = Vendors(business_name="Cable Shop", email="cables@vendor.test")
    admin = Admins(name="Root", email="root@admin.test", role="admin")
    db.session.add_all([buyer, other_buyer, vendor, other_vendor, admin])
    db.session.flush()

    address = Address(
        buyer_id=buyer.id, full_name="Jane Buyer", street="1 Main St", city="Hanoi", country="Vietnam"
    )
    other_address = Address(
        buyer_id=other_buyer.id, full_name="Joe Buyer", street="2 Side St", city="Hue", country="Vietnam"
    )

    laptop_bag = Products(title="Laptop Bag", price=40, vendor_id=vendor.id)
    laptop_bag.inventory = Inventory(quantity=5)
    charger = Products(title="Charger", price=20, vendor_id=vendor.id)
    charger.inventory = Inventory(quantity=3)
    cable = Products(title="USB Cable", price=10, vendor_id=other_vendor.id)
    cable.inventory = Inventory(quantity=10)

    db.session.add_all([address, other_address, laptop_bag, charger, cable])
    db.session.commit()

    return SimpleNamespace(
        buyer=buyer,
        other_buyer=other_buyer,
        vendor=vendor,
        other_vendor=other_vendor,
        admin=admin,
        address=address,
        other_address=other_address,
        laptop_bag=laptop_bag,
        charger=charger,
        cable=cable,
    )


@pytest.fixture
def make_voucher(app):
    def make(code="SALE10", **overrides):
        fields = {
            "code": code,
            "discount": 10,
            "discount_type": "percentage",
            "max_discount": 5,
            "min_order_value": 0,
            "expiration_date": datetime.utcnow() + timedelta(days=7),
            "usage_limit": 10,
        }
        fields.update(overrides)
        voucher = Voucher(**fields)
        db.session.add(voucher)
        db.session.commit()
        return voucher

    return make


@pytest.fixture
def auth_headers(app):
    """Build Authorization headers the way the external auth service issues tokens."""
    def make(user_id, role):
        token = create_access_token(identity=str(user_id), additional_claims={"role": role})
        return {"Authorization": f"Bearer {token}"}

    return make


@pytest.fixture
def stock(app):
    def read(product):
        return db.session.query(Inventory.quantity).filter_by(product_id=product.id).scalar()

    return read


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class GatewayStub:
    """Stands in for ``requests.request`` and replays queued responses."""

    def __init__(self):
        self.calls = []
        self.responses = []

    def reply(self, payload, status_code=200):
        self.responses.append(FakeResponse(payload, status_code))

    def fail(self, exc):
        self.responses.append(exc)

    def __call__(self, method, url, **kwargs):
        self.calls.append(SimpleNamespace(method=method, url=url, **kwargs))
        if not self.responses:
            raise AssertionError(f"Unexpected gateway call: {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def gateway(monkeypatch):
    stub = GatewayStub()
    monkeypatch.setattr(requests, "request", stub)
    return stub
