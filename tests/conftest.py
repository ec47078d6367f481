"""
Pytest configuration and shared fixtures for the search service tests.
"""
import os
import sys
import threading
from contextlib import contextmanager
from typing import Any, Callable, List, Optional

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))


# ============================================================================
# Fakes: Connection Pool
# ============================================================================

class FakeCursor:
    def __init__(self, rows: List[tuple]):
        self._rows = rows

    def fetchall(self) -> List[tuple]:
        return list(self._rows)


class FakeConnection:
    def __init__(self, pool: "FakePool"):
        self.pool = pool

    def execute(self, statement: Any, params: Any = None) -> FakeCursor:
        from searchbox.sql import render

        text = render(statement) if not isinstance(statement, str) else statement
        with self.pool.lock:
            self.pool.statements.append(text)
        return FakeCursor(self.pool.responder(text))


class FakePool:
    """
    Stands in for psycopg_pool.ConnectionPool.

    responder(sql_text) returns the rows for a statement or raises.
    """

    def __init__(self, responder: Optional[Callable[[str], List[tuple]]] = None):
        self.responder = responder or (lambda text: [({"totalHits": 0, "hits": None},)])
        self.statements: List[str] = []
        self.lock = threading.Lock()

    @contextmanager
    def connection(self):
        yield FakeConnection(self)


def search_document(hits: Optional[list] = None, total_hits: int = 0, **extra) -> List[tuple]:
    """Rows as returned by a compiled search statement."""
    document = {"totalHits": total_hits, "hits": hits}
    document.update(extra)
    return [(document,)]


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture
def make_pool():
    """FakePool constructor: make_pool(responder)."""
    return FakePool


@pytest.fixture
def document_rows():
    """search_document helper: document_rows(hits, total_hits, facets=...)."""
    return search_document


# ============================================================================
# Fixtures: Index Configuration
# ============================================================================

@pytest.fixture
def index_settings():
    """Settings for a products table with brand/color facets and price stats."""
    from config.indexes import IndexSettings
    return IndexSettings(
        attributes_for_faceting=["brand", "searchable(color)", "filterOnly(sku)"],
        numeric_attributes_for_filtering=["price"],
        attributes_to_highlight=["name"],
        searchable_attributes=["name", "description"],
    )


@pytest.fixture
def index_config(index_settings):
    from config.indexes import IndexConfig
    return IndexConfig(index_name="products", settings=index_settings)


@pytest.fixture
def registry(index_config):
    from config.indexes import IndexRegistry
    return IndexRegistry([index_config])


@pytest.fixture
def make_service(registry):
    """Build a SearchService around a FakePool."""
    from searchbox.handler import SearchExecutor, SearchService

    def _make(pool: FakePool, max_requests: int = 15, workers: int = 4):
        return SearchService(
            executor=SearchExecutor(pool),
            registry=registry,
            max_requests=max_requests,
            workers=workers,
        )

    return _make


@pytest.fixture
def make_request(index_config):
    """Validate {indexName, params} into a SearchRequest for the products index."""
    from searchbox.models import RequestEnvelope
    from searchbox.validation import build_request

    def _make(params: Optional[dict] = None, index_name: str = "products", config=None, **envelope):
        payload = {"indexName": index_name, "params": params or {}}
        payload.update(envelope)
        return build_request(RequestEnvelope.model_validate(payload), config or index_config)

    return _make


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "postgres: marks tests that require a Postgres database")


# ============================================================================
# Skip conditions
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Auto-skip Postgres tests if no test database is configured."""
    skip_postgres = pytest.mark.skip(reason="Postgres tests require SEARCHBOX_TEST_DATABASE_URL")

    database_url = os.getenv("SEARCHBOX_TEST_DATABASE_URL")

    for item in items:
        if "postgres" in item.keywords and not database_url:
            item.add_marker(skip_postgres)
