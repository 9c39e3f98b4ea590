import fnmatch
import os
import tempfile
from unittest.mock import MagicMock

# Settings are read at import time, point them at throwaway resources first
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("STORAGE_DIR", tempfile.mkdtemp(prefix="catalog-storage-"))
os.environ.setdefault("APP_ENV", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from catalog.main import app
from catalog.api.deps import get_cache_service, get_currency_service, get_storage_service
from catalog.context import RequestContext
from catalog.database import Base, get_db
from catalog.services.asset_service import AssetService
from catalog.services.currency_service import CurrencyService
from catalog.services.product_service import ProductService
from catalog.utils.cache import CacheService
from catalog.utils.storage import StorageService


# Create test database (SQLite in-memory for testing)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Rate tables served by the mocked exchange rate provider
RATES = {
    "USD": {"USD": 1.0, "EUR": 0.9, "CZK": 23.0},
    "EUR": {"EUR": 1.0, "USD": 1.1, "CZK": 25.0},
}


class FakeRedis:
    """In-process stand-in for the redis client methods the cache uses."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex
        return True

    def exists(self, *keys):
        return sum(1 for key in keys if key in self.store)

    def delete(self, *keys):
        deleted = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    def scan_iter(self, match="*"):
        return [key for key in list(self.store) if fnmatch.fnmatchcase(key, match)]

    def ping(self):
        return True


def make_rate_response(currency):
    response = MagicMock()
    response.raise_for_status.return_value = None
    if currency in RATES:
        response.json.return_value = {"result": "success", "base_code": currency, "rates": RATES[currency]}
    else:
        response.json.return_value = {"result": "error", "error-type": "unsupported-code"}
    return response


@pytest.fixture(scope="function")
def fake_redis():
    return FakeRedis()


@pytest.fixture(scope="function")
def cache(fake_redis):
    """Cache service backed by the fake redis client."""
    return CacheService(client=fake_redis, ttl=60, cache_product_data=True)


@pytest.fixture(scope="function")
def rate_client():
    """Mocked httpx client answering '<endpoint>/<currency>' with RATES."""
    client = MagicMock()
    client.get.side_effect = lambda url, timeout=None: make_rate_response(url.rsplit("/", 1)[-1])
    return client


@pytest.fixture(scope="function")
def currency_service(cache, rate_client):
    return CurrencyService(cache=cache, client=rate_client)


@pytest.fixture(scope="function")
def storage(tmp_path):
    """Asset storage rooted in a per-test temporary directory."""
    storage = StorageService(base_dir=str(tmp_path), env="test")
    storage.prepare_directories()
    return storage


@pytest.fixture(scope="function")
def db_session():
    """Create database session for direct database access in tests."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def context():
    return RequestContext.for_cli("pytest")


@pytest.fixture(scope="function")
def product_service(db_session, context, cache, currency_service):
    return ProductService(db_session, context=context, cache=cache, currency_service=currency_service)


@pytest.fixture(scope="function")
def asset_service(db_session, context, storage, cache):
    return AssetService(db_session, context=context, storage=storage, cache=cache)


@pytest.fixture(scope="function")
def client(db_session, cache, currency_service, storage):
    """Create test client with fresh database for each test."""
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_service] = lambda: cache
    app.dependency_overrides[get_currency_service] = lambda: currency_service
    app.dependency_overrides[get_storage_service] = lambda: storage

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
