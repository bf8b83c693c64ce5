"""Fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient

from marketcat.catalog.service import EngineRegistry, MarketplaceCategoryEngine
from marketcat.main import app


@pytest.fixture
def engine(fake_client, clock) -> MarketplaceCategoryEngine:
    """Create an engine over the fake marketplace."""
    return MarketplaceCategoryEngine(fake_client, clock=clock)


@pytest.fixture
def client(engine):
    """Create test client serving the fake marketplace."""
    app.state.engines = EngineRegistry({"fake": engine})
    yield TestClient(app)
    del app.state.engines
