"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real database. Tables are created before each test and dropped
after it, so every test starts from an empty ledger.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tenant_ledger.api.deps import get_payment_gateway
from tenant_ledger.config import Settings, get_settings
from tenant_ledger.main import app
from tenant_ledger.models import Base
from tenant_ledger.models.base import get_db
from tenant_ledger.schemas.organization import LedgerCreate, OrganizationCreate
from tenant_ledger.services.organization_service import OrganizationService
from tenant_ledger.services.payment_gateway import ChargeResult, PaymentGateway


TEST_DATABASE_URL = "sqlite:///./test.db"

SERVICE_ROLE_KEY = "test-service-role-key"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class FakeGateway(PaymentGateway):
    """
    In-memory payment processor.

    Returns the queued outcomes in order, then succeeds. Every
    request is kept in `requests`.
    """

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.requests = []
        self.on_charge = None

    def charge(self, request):
        self.requests.append(request)
        if self.on_charge is not None:
            self.on_charge(request)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return ChargeResult(
            success=True,
            payment_id=f"pay_{len(self.requests)}",
            raw={"id": f"pay_{len(self.requests)}", "state": "SETTLED"},
        )


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def session_factory():
    """For tests that need a second, independent session."""
    return TestSessionLocal


@pytest.fixture
def billing_settings():
    """Settings with the platform billing destination configured."""
    settings = Settings()
    settings.BILLING_MERCHANT_ID = "merchant_platform"
    settings.BILLING_DESTINATION_ID = "dest_platform"
    settings.BILLING_CURRENCY = "usd"
    return settings


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def make_ledger(db_session):
    """
    Factory: create an organization with one live ledger.

    Returns (organization, ledger, api_key).
    """
    def _make(name="Acme", org=None, **plan):
        service = OrganizationService(db_session)
        if org is None:
            org = service.create_organization(OrganizationCreate(name=name, **plan))
        ledger, api_key = service.create_ledger(
            org.id, LedgerCreate(name=f"{name} Live")
        )
        db_session.commit()
        return org, ledger, api_key

    return _make


@pytest.fixture
def ledger(make_ledger):
    _, ledger, _ = make_ledger()
    return ledger


@pytest.fixture
def client(db_session, fake_gateway):
    """
    Provide a test client with the test database.

    get_db is overridden so the app uses the test session, and
    the payment gateway is replaced with the in-memory fake.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    def override_settings():
        settings = Settings()
        settings.SERVICE_ROLE_KEY = SERVICE_ROLE_KEY
        settings.BILLING_MERCHANT_ID = "merchant_platform"
        settings.BILLING_DESTINATION_ID = "dest_platform"
        return settings

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_settings] = override_settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def service_headers():
    return {"Authorization": f"Bearer {SERVICE_ROLE_KEY}"}


@pytest.fixture
def api_headers(make_ledger):
    """x-api-key headers for a fresh ledger, plus the ledger itself."""
    _, ledger, api_key = make_ledger(name="Api Co")
    return {"x-api-key": api_key}, ledger
