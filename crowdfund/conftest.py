# crowdfund/conftest.py
import os

# Settings are read at import time; keep tests independent from any local .env
os.environ.setdefault("SKIP_ENV_VALIDATION", "1")
os.environ.setdefault("ENV", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crowdfund.core.context import RequestContext
from crowdfund.core.database import get_db, metadata
from crowdfund.core.i18n import translator
from crowdfund.core.metrics import METRICS


class FakeSigner:
    """Records every order it signs and returns a fixed signature."""

    def __init__(self, signature: str = "SIGNED"):
        self.signature = signature
        self.orders = []

    def sign(self, order):
        self.orders.append(dict(order))
        return self.signature


@pytest.fixture(scope="function")
def engine():
    """In-memory sqlite shared across threads so TestClient sees the same data."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    yield engine
    metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def make_ctx(db_session):
    def _make(user=None, locale="en"):
        return RequestContext(
            session=db_session,
            user=user,
            t=translator(locale),
            request_id="test-request",
            locale=locale,
        )

    return _make


@pytest.fixture(scope="function")
def catalog(db_session):
    from crowdfund.tests.factories import seed_catalog

    return seed_catalog(db_session)


@pytest.fixture(scope="function")
def fake_signer():
    return FakeSigner()


@pytest.fixture(scope="function", autouse=True)
def reset_metrics():
    METRICS.reset()
    yield


@pytest.fixture(scope="function")
def client(db_session, fake_signer):
    """TestClient bound to the test session and a fake payment signer."""
    from crowdfund.api.pledges import get_payment_signer
    from crowdfund.main import app

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_signer] = lambda: fake_signer
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
