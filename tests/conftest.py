"""Pytest fixtures: test client, in-memory DB, catalog seeding, fake Stripe client and image storage."""
import base64
import hashlib
import hmac
import json
import os
import time
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

# In-memory SQLite and deterministic secrets; must be set before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_SECRET", "test-admin-secret")
os.environ.setdefault("WALLET_TRANSFER_ENC", base64.urlsafe_b64encode(b"0" * 32).decode("ascii"))
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
# High enough that no test trips the limiter
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

from sqlmodel import Session, SQLModel

from storefront.api.deps import get_gateway, get_storage
from storefront.core.database import engine
from storefront.core.encryption import EncryptionService
from storefront.core.security import create_access_token
from storefront.main import app
from storefront.models import Coupon, Order, Package, Product, ProductType, User
from storefront.services.gateway import StripeGateway
from storefront.services.storage import UploadResult

WEBHOOK_SECRET = "whsec_test"
ADMIN_SECRET = "test-admin-secret"


@pytest.fixture(autouse=True)
def _fresh_schema():
    """Every test starts from empty tables."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client():
    """TestClient; the lifespan builds the encryption service, gateway and storage."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def encryption():
    return EncryptionService(os.environ["WALLET_TRANSFER_ENC"])


@pytest.fixture
def buyer(db):
    user = User(email="buyer@example.com", full_name="Test Buyer")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(buyer):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(buyer.id)})}"}


@pytest.fixture
def admin_headers():
    return {"X-Admin-Secret": ADMIN_SECRET}


def make_product(db, **overrides) -> Product:
    fields = {
        "name": "PUBG UC",
        "type": ProductType.PACKAGE.value,
        "account_info_fields": [
            {"field_name": "Player ID", "is_required": True},
            {"field_name": "Email", "is_required": False},
        ],
    }
    fields.update(overrides)
    product = Product(**fields)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def make_package(db, product: Product, **overrides) -> Package:
    fields = {"product_id": product.id, "title": "600 UC", "price": Decimal("9.99")}
    fields.update(overrides)
    package = Package(**fields)
    db.add(package)
    db.commit()
    db.refresh(package)
    return package


def make_coupon(db, **overrides) -> Coupon:
    fields = {"code": "SAVE20", "discount_type": "percentage", "discount_value": Decimal("20")}
    fields.update(overrides)
    coupon = Coupon(**fields)
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    return coupon


@pytest.fixture
def catalog(db):
    """Package-based product with one 9.99 package."""
    product = make_product(db)
    package = make_package(db, product)
    return SimpleNamespace(product=product, package=package)


def order_payload(catalog, payment_method="card", **overrides) -> dict:
    body = {
        "product_id": catalog.product.id,
        "package_id": catalog.package.id,
        "account_info": [{"field_name": "Player ID", "value": "5123456789"}],
        "payment_method": payment_method,
    }
    body.update(overrides)
    return body


def stripe_event(event_type: str, order_id: str | None = None, event_id: str = "evt_1", payment_status: str = "paid") -> str:
    metadata = {"orderId": order_id} if order_id else {}
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": "cs_test_1", "object": "checkout.session", "payment_status": payment_status, "metadata": metadata}},
    })


def stripe_signature(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Stripe-Signature header value: t=<ts>,v1=HMAC-SHA256(secret, "<ts>.<payload>")."""
    ts = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


class FakeCheckoutSessions:
    def __init__(self):
        self.calls: list[dict] = []
        self.error: Exception | None = None

    def create(self, params=None, options=None):
        self.calls.append({"params": params, "options": options})
        if self.error is not None:
            raise self.error
        n = len(self.calls)
        return SimpleNamespace(id=f"cs_test_{n}", url=f"https://checkout.stripe.test/pay/cs_test_{n}")


class FakeStripeClient:
    def __init__(self):
        self.checkout = SimpleNamespace(sessions=FakeCheckoutSessions())


@pytest.fixture
def stripe_client(client):
    """Real StripeGateway over a recording client; webhook verification stays real."""
    fake = FakeStripeClient()
    gateway = StripeGateway(
        api_key="sk_test_dummy",
        webhook_secret=WEBHOOK_SECRET,
        success_url="http://testserver/payment-success",
        cancel_url="http://testserver/payment-cancel",
        client=fake,
    )
    app.dependency_overrides[get_gateway] = lambda: gateway
    return fake


class FakeStorage:
    def __init__(self):
        self.uploads: list[dict] = []

    def upload(self, data: bytes, folder: str, filename: str | None = None) -> UploadResult:
        self.uploads.append({"data": data, "folder": folder, "filename": filename})
        public_id = f"{folder}/evidence_{len(self.uploads)}"
        return UploadResult(secure_url=f"https://res.cloudinary.test/{public_id}.png", public_id=public_id)


@pytest.fixture
def storage(client):
    fake = FakeStorage()
    app.dependency_overrides[get_storage] = lambda: fake
    return fake


def make_order(db, user: User, catalog, **overrides):
    """Order row written straight to the DB (bypasses validation) for state machine tests."""
    fields = {
        "user_id": user.id,
        "product_id": catalog.product.id,
        "package_id": catalog.package.id,
        "account_info": [{"field_name": "Player ID", "value": "5123456789"}],
        "base_amount": Decimal("25.00"),
        "total_amount": Decimal("25.00"),
        "payment_method": "card",
    }
    fields.update(overrides)
    order = Order(**fields)
    db.add(order)
    db.commit()
    db.refresh(order)
    return order
