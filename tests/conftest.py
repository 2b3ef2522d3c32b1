"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["AI_PROVIDER"] = "stub"
os.environ["BILLING_PROVIDER"] = "stub"
os.environ["USAGE_TIMEZONE"] = "UTC"

from sqlalchemy import Engine  # noqa: E402

from animagenius.adapters.ai.stub import StubAIProvider  # noqa: E402
from animagenius.adapters.billing.stub import StubBillingProvider  # noqa: E402
from animagenius.db.models import Base, UserModel  # noqa: E402
from animagenius.db.session import build_engine, build_session_factory  # noqa: E402
from animagenius.domain.enums import SubscriptionTier  # noqa: E402
from animagenius.services.pipeline import PipelineService  # noqa: E402
from animagenius.services.store import PipelineStore  # noqa: E402


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine: Engine) -> PipelineStore:
    return PipelineStore(build_session_factory(engine))


@pytest.fixture
def make_user(store: PipelineStore) -> Callable[..., UserModel]:
    """Factory for users of a given tier."""
    counter = iter(range(1, 10_000))

    def _make(
        tier: SubscriptionTier = SubscriptionTier.FREE,
        is_admin: bool = False,
        is_super_admin: bool = False,
    ) -> UserModel:
        n = next(counter)
        return store.create_user(
            email=f"user{n}@example.com",
            name=f"User {n}",
            tier=tier,
            is_admin=is_admin,
            is_super_admin=is_super_admin,
        )

    return _make


@pytest.fixture
def ai_provider() -> StubAIProvider:
    """Get a stub AI provider."""
    return StubAIProvider()


@pytest.fixture
def billing_provider() -> StubBillingProvider:
    """Get a stub billing provider."""
    return StubBillingProvider()


@pytest.fixture
def pipeline(store: PipelineStore, ai_provider: StubAIProvider) -> PipelineService:
    return PipelineService(store=store, ai=ai_provider)


@pytest.fixture
def test_client(store: PipelineStore) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app backed by the test store."""
    from animagenius.api.deps import get_store
    from animagenius.main import app

    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


