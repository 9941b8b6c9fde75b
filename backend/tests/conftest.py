import importlib
import json
import os
from types import SimpleNamespace

# Settings are read at import time; point the app at SQLite before importing it.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ENV", "dev")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.base import Base
from app.core import config as app_config

# Import models so they register with SQLAlchemy metadata.
from app.models.checkout_event import CheckoutEvent  # noqa: F401
from app.models.payment_log import PaymentLog  # noqa: F401

from app.core.database import get_db
from app.services import stripe as stripe_module

ADMIN_TOKEN = "test_admin_token"


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def db_session(db_engine):
    # The in-memory DB persists across tests (StaticPool); reset schema per test.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def _reset_mutable_settings():
    """
    Tests tweak the process-global settings object; restore values after each test.
    """
    keys = [
        "ENV",
        "STRIPE_SECRET_KEY",
        "STRIPE_WEBHOOK_SECRET",
        "STRIPE_ONE_TIME_PRICE_ID",
        "STRIPE_INSTALLMENT_PRICE_ID",
        "INSTALLMENT_COUNT",
        "ADMIN_API_TOKEN",
        "ENABLE_RATE_LIMITING",
        "FRONTEND_BASE_URL",
    ]
    original = {k: getattr(app_config.settings, k) for k in keys}
    app_config.settings.STRIPE_SECRET_KEY = "sk_test"
    app_config.settings.STRIPE_WEBHOOK_SECRET = "whsec_test"
    app_config.settings.STRIPE_ONE_TIME_PRICE_ID = "price_one_time"
    app_config.settings.STRIPE_INSTALLMENT_PRICE_ID = "price_installment"
    app_config.settings.INSTALLMENT_COUNT = 3
    app_config.settings.ADMIN_API_TOKEN = ADMIN_TOKEN
    try:
        yield
    finally:
        for k, v in original.items():
            setattr(app_config.settings, k, v)
        app_config.settings.ENABLE_RATE_LIMITING = False


class FakeStripe:
    """In-memory stand-in for the `stripe` module surface used by StripeService."""

    class StripeError(Exception):
        pass

    class SignatureVerificationError(StripeError):
        pass

    def __init__(self):
        self.api_key = None
        self.checkout_sessions: list[dict] = []
        self.customers: list[dict] = []
        self.subscriptions: list[dict] = []
        self.invoices: dict[str, list[dict]] = {}
        self.modified: list[tuple[str, dict]] = []
        self.fail_checkout: str | None = None
        self.fail_invoices_for: set[str] = set()

        fake = self

        class _SessionAPI:
            def create(self, **kwargs):
                if fake.fail_checkout:
                    raise FakeStripe.StripeError(fake.fail_checkout)
                sid = f"cs_test_{len(fake.checkout_sessions) + 1}"
                session = {
                    "id": sid,
                    "url": f"https://checkout.stripe.test/{sid}",
                    "metadata": kwargs.get("metadata", {}),
                }
                fake.checkout_sessions.append(kwargs | {"id": sid})
                return session

        class _CustomerAPI:
            def list(self, email=None, limit=10):
                rows = [c for c in fake.customers if c.get("email") == email]
                return {"data": rows[:limit]}

        class _SubscriptionAPI:
            def list(self, customer=None, price=None, status=None, limit=10):
                rows = fake.subscriptions
                if customer is not None:
                    rows = [s for s in rows if s.get("customer") == customer]
                if price is not None:
                    rows = [s for s in rows if s.get("price") == price]
                if status is not None:
                    rows = [s for s in rows if s.get("status") == status]
                return {"data": rows[:limit]}

            def modify(self, subscription_id, **kwargs):
                fake.modified.append((subscription_id, kwargs))
                return {"id": subscription_id, **kwargs}

        class _InvoiceAPI:
            def list(self, subscription=None, status=None, limit=10):
                if subscription in fake.fail_invoices_for:
                    raise FakeStripe.StripeError(f"invoice lookup failed for {subscription}")
                rows = fake.invoices.get(subscription, [])
                if status is not None:
                    rows = [i for i in rows if i.get("status") == status]
                return {"data": rows[:limit]}

        def _construct_event(payload, sig_header, secret):
            if sig_header != "valid":
                raise FakeStripe.SignatureVerificationError("No signatures found matching the expected signature")
            return json.loads(payload)

        self.checkout = SimpleNamespace(Session=_SessionAPI())
        self.Customer = _CustomerAPI()
        self.Subscription = _SubscriptionAPI()
        self.Invoice = _InvoiceAPI()
        self.Webhook = SimpleNamespace(construct_event=_construct_event)

    def add_subscription(self, sub_id: str, *, paid: int, customer: str = "cus_1", **extra) -> dict:
        sub = {
            "id": sub_id,
            "customer": customer,
            "price": app_config.settings.STRIPE_INSTALLMENT_PRICE_ID,
            "status": "active",
            "cancel_at_period_end": False,
            "metadata": {"payment_mode": "installment"},
            **extra,
        }
        self.subscriptions.append(sub)
        self.invoices[sub_id] = [
            {"id": f"in_{sub_id}_{i}", "status": "paid", "amount_paid": 10_000} for i in range(paid)
        ]
        return sub


@pytest.fixture()
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr(stripe_module, "stripe", fake)
    return fake


@pytest.fixture()
def app(db_session):
    app_config.settings.ENABLE_RATE_LIMITING = False

    # Rate limit decorators bind at import time; reload so each test sees current settings.
    import app.routes.tracking as tracking_routes
    import app.main as main

    importlib.reload(tracking_routes)
    importlib.reload(main)
    fastapi_app = main.app

    def override_get_db():
        yield db_session
    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
