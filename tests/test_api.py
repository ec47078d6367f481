"""
Tests for the FastAPI surface.

The search service is replaced through dependency_overrides with one built
on a FakePool, so no database is needed.

Run with: PYTHONPATH=src python -m pytest tests/test_api.py -v
"""

import json

import psycopg
import pytest
from fastapi.testclient import TestClient

from searchbox.errors import GENERIC_DATABASE_MESSAGE, GENERIC_VALIDATION_MESSAGE
from searchbox.handler import get_search_service


@pytest.fixture
def make_client(make_service):
    from api.app import create_app

    def _make(pool):
        app = create_app(open_pool=False)
        service = make_service(pool)
        app.dependency_overrides[get_search_service] = lambda: service
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client, make_pool, document_rows):
    return make_client(make_pool(lambda text: document_rows([{"id": 1, "name": "Red shoes"}], total_hits=1)))


PAYLOAD = {"requests": [{"indexName": "products", "params": {"query": "red"}}]}


class TestSearchEndpoint:

    def test_search(self, client):
        """Test that a batch returns Algolia results with a request id."""
        response = client.post("/api/search", json=PAYLOAD)

        assert response.status_code == 200
        results = response.json()["results"]
        assert results[0]["nbHits"] == 1
        assert results[0]["hits"][0]["name"] == "Red shoes"
        assert "X-Request-ID" in response.headers

    def test_algolia_client_path(self, client):
        """Test that the algoliasearch client path is served."""
        response = client.post("/1/indexes/*/queries", json=PAYLOAD)
        assert response.status_code == 200
        assert len(response.json()["results"]) == 1

    def test_json_sent_as_form_content_type(self, client):
        """Test that a JSON body sent with a form content type is accepted."""
        response = client.post(
            "/1/indexes/*/queries",
            content=json.dumps(PAYLOAD),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert response.status_code == 200

    def test_params_as_url_encoded_string(self, client):
        """Test that params given as a URL-encoded string are decoded."""
        payload = {"requests": [{"indexName": "products", "params": "query=red&hitsPerPage=5"}]}
        response = client.post("/api/search", json=payload)
        assert response.status_code == 200
        assert response.json()["results"][0]["hitsPerPage"] == 5

    def test_invalid_json(self, client):
        """Test that a body that is not JSON is a generic 400."""
        response = client.post("/api/search", content=b"{not json")
        assert response.status_code == 400
        assert response.json() == {"error": GENERIC_VALIDATION_MESSAGE}

    def test_validation_error_lists_issues(self, client):
        """Test that a 400 lists every offending field."""
        payload = {"requests": [{"indexName": "products", "params": {"offset": 2950, "length": 100}}]}
        response = client.post("/api/search", json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == GENERIC_VALIDATION_MESSAGE
        assert [issue["field"] for issue in body["issues"]] == ["offset", "length"]

    def test_empty_batch(self, client):
        """Test that an empty batch is rejected."""
        response = client.post("/api/search", json={"requests": []})
        assert response.status_code == 400

    def test_database_error_is_generic(self, make_client, make_pool):
        """Test that database errors return a generic 500 without details."""
        def responder(text):
            raise psycopg.errors.UndefinedTable('relation "products" does not exist')

        response = make_client(make_pool(responder)).post("/api/search", json=PAYLOAD)

        assert response.status_code == 500
        assert response.json() == {"error": GENERIC_DATABASE_MESSAGE}


class TestHealthEndpoints:

    def test_health(self, client):
        """Test that /health reports the service as healthy."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "searchbox-api"}

    def test_live(self, client):
        """Test that /live answers without touching the database."""
        assert client.get("/live").json() == {"status": "alive"}

    def test_request_id_echoed(self, client):
        """Test that an incoming X-Request-ID is echoed back."""
        response = client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"


class TestLifespan:

    def test_shutdown_drops_cached_service(self, monkeypatch):
        """Test that shutdown drops the cached search service."""
        from api.app import create_app
        from searchbox import handler

        monkeypatch.setattr(handler, "_service", object())
        with TestClient(create_app(open_pool=False)) as client:
            assert client.get("/live").status_code == 200

        assert handler._service is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
