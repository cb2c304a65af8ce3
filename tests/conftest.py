from __future__ import annotations

import json
import os

os.environ.setdefault("ENV", "test")

from decimal import Decimal  # noqa: E402
from typing import Any, Callable  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.config import settings  # noqa: E402
from app.db import session as db_session_module  # noqa: E402
from app.db.base_class import Base  # noqa: E402
from app.db.session import SessionLocal  # noqa: E402
from app.models.gateway_models import GatewayConfiguration, GatewayEnvironment  # noqa: E402
from app.models.models import Company, Region, User, UserRole  # noqa: E402
from app.models.payment_models import PaymentMethod, Transaction, TransactionStatus  # noqa: E402
from app.services import config_cache  # noqa: E402
from app.services.cielo_client import CieloClient  # noqa: E402
from app.services.config_cache import ConfigCache, InMemoryStore  # noqa: E402
from app.services.gateway_config_service import GatewayCredentials  # noqa: E402
from app.services.gateway_logger import GatewayAuditLogger  # noqa: E402

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")

test_engine = create_engine(
    TEST_DATABASE_URL,
    future=True,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Ensure application code uses the test engine
db_session_module.engine = test_engine  # type: ignore[assignment]
SessionLocal.configure(bind=test_engine)

PAYMENT_ID = "8d1b6c3e-6f0a-4f2e-9a57-3c2b1d0e9f11"


@pytest.fixture(autouse=True)
def _reset_database_state():
    """Ensure each test sees a fresh database schema."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield


@pytest.fixture(autouse=True)
def _reset_shared_cache():
    """The shared in-memory config store must not leak between tests."""
    config_cache._SHARED_STORE = None
    yield
    config_cache._SHARED_STORE = None


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture
def cache() -> ConfigCache:
    return ConfigCache(InMemoryStore(), ttl_seconds=300)


@pytest.fixture
def company(db_session) -> Company:
    company = Company(id=settings.DEFAULT_COMPANY_ID, name="Igreja Vinha Central")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture
def contributor(db_session, company) -> User:
    user = User(company_id=company.id, email="maria@example.com", name="Maria Silva", role=UserRole.MEMBER)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def gateway_config_factory(db_session, company) -> Callable[..., GatewayConfiguration]:
    def _create(**overrides: Any) -> GatewayConfiguration:
        data = {
            "company_id": company.id,
            "gateway_name": "Cielo",
            "is_active": True,
            "environment": GatewayEnvironment.DEVELOPMENT,
            "prod_client_id": "prod-merchant-id",
            "prod_client_secret": "prod-merchant-key",
            "dev_client_id": "dev-merchant-id",
            "dev_client_secret": "dev-merchant-key",
        }
        data.update(overrides)
        config = GatewayConfiguration(**data)
        db_session.add(config)
        db_session.commit()
        return config

    return _create


@pytest.fixture
def gateway_config(gateway_config_factory) -> GatewayConfiguration:
    return gateway_config_factory()


@pytest.fixture
def transaction_factory(db_session, company, contributor) -> Callable[..., Transaction]:
    def _create(**overrides: Any) -> Transaction:
        data = {
            "company_id": company.id,
            "contributor_id": contributor.id,
            "amount": Decimal("100.00"),
            "payment_method": PaymentMethod.PIX,
            "status": TransactionStatus.PENDING,
            "gateway_transaction_id": PAYMENT_ID,
        }
        data.update(overrides)
        transaction = Transaction(**data)
        db_session.add(transaction)
        db_session.commit()
        return transaction

    return _create


@pytest.fixture
def region_tree(db_session, company) -> dict[str, Any]:
    """Two regions, one supervisor each, one pastor under each supervisor."""
    north = Region(company_id=company.id, name="Norte", color="#ff0000")
    south = Region(company_id=company.id, name="Sul", color="#0000ff")
    db_session.add_all([north, south])
    db_session.flush()
    sup_north = User(company_id=company.id, email="sn@example.com", name="Sup Norte", role=UserRole.SUPERVISOR, region_id=north.id)
    sup_south = User(company_id=company.id, email="ss@example.com", name="Sup Sul", role=UserRole.SUPERVISOR, region_id=south.id)
    db_session.add_all([sup_north, sup_south])
    db_session.flush()
    pastor_north = User(company_id=company.id, email="pn@example.com", name="Pr Norte", role=UserRole.PASTOR, supervisor_id=sup_north.id)
    pastor_south = User(company_id=company.id, email="ps@example.com", name="Pr Sul", role=UserRole.PASTOR, supervisor_id=sup_south.id)
    db_session.add_all([pastor_north, pastor_south])
    db_session.commit()
    return {
        "north": north,
        "south": south,
        "pastor_north": pastor_north,
        "pastor_south": pastor_south,
    }


class FakeCielo:
    """Scripted Cielo API behind ``httpx.MockTransport``.

    Queue responses with ``reply``/``fail``; every outgoing request is kept in
    ``requests`` for assertions. With nothing queued it answers 200 ``{}``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._queue: list[Any] = []

    def reply(self, status: int = 200, body: Any = None, *, text: str | None = None) -> FakeCielo:
        self._queue.append(("response", status, body, text))
        return self

    def fail(self, exc_type: type[Exception]) -> FakeCielo:
        self._queue.append(("error", exc_type))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self._queue.pop(0) if self._queue else ("response", 200, {}, None)
        if item[0] == "error":
            raise item[1]("simulated failure", request=request)
        _, status, body, text = item
        if text is not None:
            return httpx.Response(status, text=text)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def http_client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def client_factory(self, credentials: GatewayCredentials) -> CieloClient:
        return CieloClient(
            credentials,
            GatewayAuditLogger(company_id=credentials.company_id),
            http_client=self.http_client(),
        )

    def json(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture
def fake_cielo() -> FakeCielo:
    return FakeCielo()


@pytest.fixture
def dev_credentials(company) -> GatewayCredentials:
    return GatewayCredentials(
        company_id=company.id,
        gateway_name="Cielo",
        merchant_id="dev-merchant-id",
        merchant_key="dev-merchant-key",
        environment=GatewayEnvironment.DEVELOPMENT,
    )


# FastAPI TestClient fixtures
from fastapi.testclient import TestClient  # noqa: E402

from app.api.dependencies import get_client_factory  # noqa: E402
from app.api.main import app  # noqa: E402

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}


@pytest.fixture
def client(fake_cielo):
    """TestClient whose Cielo calls go to ``fake_cielo``."""
    app.dependency_overrides[get_client_factory] = lambda: fake_cielo.client_factory
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
