"""Tests for the search API endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from search_gateway.deps import get_search_services
from search_gateway.exceptions import dependency_error
from search_gateway.main import app
from search_gateway.schemas.search import QueryResponse
from search_gateway.services.auth_service import create_access_token
from search_gateway.services.index_manager import KnownIndexCache

from conftest import ORGANIZATION_ID, OWNER_ID, SOLUTION_ID, USER_ID


def _headers(user_id: str = USER_ID, **claims) -> dict:
    data = {
        "sub": user_id,
        "org": ORGANIZATION_ID,
        "sol": SOLUTION_ID,
        "sol_owner": OWNER_ID,
        "privileges": {"Event": ["read"]},
    }
    data.update(claims)
    return {"Authorization": f"Bearer {create_access_token(data)}"}


@pytest.fixture
def services():
    services = MagicMock()
    services.fusion.query = AsyncMock(return_value=QueryResponse(total=0, data=[]))
    services.reindex.reindex_stale_records = AsyncMock(return_value={"Event": 2})
    services.index_manager.ensure = AsyncMock(return_value=["event_concert"])
    services.engine.health = AsyncMock(return_value={"status": "healthy", "cluster": "green"})
    services.cache = KnownIndexCache()
    return services


@pytest.fixture
def client(services):
    """Test client with the service container overridden.

    Used without a context manager so the lifespan (Elasticsearch, Redis)
    does not run.
    """
    app.dependency_overrides[get_search_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuthentication:
    def test_missing_token_is_401(self, client: TestClient):
        response = client.post("/api/search/query", json={"query": {"entityName": "Event"}})
        assert response.status_code == 401

    def test_invalid_token_is_401(self, client: TestClient):
        response = client.post(
            "/api/search/query",
            json={"query": {"entityName": "Event"}},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401

    def test_token_without_solution_is_401(self, client: TestClient):
        response = client.post(
            "/api/search/query",
            json={"query": {"entityName": "Event"}},
            headers=_headers(sol=None),
        )
        assert response.status_code == 401


class TestQueryEndpoint:
    def test_query_passes_caller_and_request(self, client: TestClient, services):
        response = client.post(
            "/api/search/query",
            json={
                "query": {"entityName": "Event", "scope": "mine", "pageSize": 5},
                "attributes": "name, city",
            },
            headers=_headers(),
        )

        assert response.status_code == 200
        assert response.json() == {"total": 0, "data": []}

        context, request = services.fusion.query.await_args.args
        assert context.user_id == USER_ID
        assert context.organization_id == ORGANIZATION_ID
        assert request.entity_name == "Event"
        assert request.page_size == 5
        assert services.fusion.query.await_args.kwargs == {
            "include_raw_record": True,
            "attributes": ["name", "city"],
        }

    def test_missing_query_is_400(self, client: TestClient):
        response = client.post("/api/search/query", json={}, headers=_headers())
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION"

    def test_missing_entity_name_is_400(self, client: TestClient):
        response = client.post("/api/search/query", json={"query": {"pageSize": 5}}, headers=_headers())
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION"

    def test_forbidden_is_403(self, client: TestClient, services):
        """A real compile against an unreadable entity surfaces FORBIDDEN."""
        from search_gateway.services.permission_service import EntityPermissionService
        from search_gateway.services.query_compiler import QueryCompiler
        from search_gateway.services.search_policy import SearchPolicy

        compiler = QueryCompiler(SearchPolicy(EntityPermissionService()))

        async def query(context, request, **kwargs):
            compiler.compile(context, request)

        services.fusion.query = AsyncMock(side_effect=query)

        response = client.post(
            "/api/search/query", json={"query": {"entityName": "Invoice"}}, headers=_headers()
        )

        assert response.status_code == 403
        assert response.json() == {
            "code": "FORBIDDEN",
            "message": "The caller has no read privilege on the requested entity.",
            "details": {"entityName": "Invoice"},
        }

    def test_dependency_failure_is_503(self, client: TestClient, services):
        services.fusion.query = AsyncMock(
            side_effect=dependency_error("Search query failed.", index_name="event")
        )

        response = client.post(
            "/api/search/query", json={"query": {"entityName": "Event"}}, headers=_headers()
        )

        assert response.status_code == 503
        assert response.json()["details"] == {"indexName": "event"}


class TestAdminEndpoints:
    def test_reindex_requires_owner(self, client: TestClient, services):
        response = client.post("/api/search/reindex", json={}, headers=_headers())

        assert response.status_code == 403
        services.reindex.reindex_stale_records.assert_not_awaited()

    def test_reindex_by_owner(self, client: TestClient, services):
        response = client.post(
            "/api/search/reindex",
            json={"entityName": "Event", "pageSize": 50},
            headers=_headers(OWNER_ID),
        )

        assert response.status_code == 200
        assert response.json() == {"Event": 2}
        services.reindex.reindex_stale_records.assert_awaited_once_with(
            SOLUTION_ID, entity_name="Event", page_size=50
        )

    def test_ensure_index(self, client: TestClient, services):
        response = client.post(
            "/api/search/indices/ensure",
            json={"entityName": "Event", "entityType": "Concert", "forceCreate": True},
            headers=_headers(OWNER_ID),
        )

        assert response.status_code == 200
        assert response.json() == {"indices": ["event", "event_concert"], "created": ["event_concert"]}
        services.index_manager.ensure.assert_awaited_once_with(
            SOLUTION_ID, "Event", "Concert", force_create=True
        )

    def test_ensure_index_requires_owner(self, client: TestClient):
        response = client.post(
            "/api/search/indices/ensure", json={"entityName": "Event"}, headers=_headers()
        )
        assert response.status_code == 403


class TestHealth:
    def test_healthy(self, client: TestClient):
        with patch("search_gateway.routers.search.check_database", AsyncMock(return_value=True)):
            response = client.get("/api/search/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_degraded_engine_is_503(self, client: TestClient, services):
        services.engine.health = AsyncMock(return_value={"status": "degraded"})

        with patch("search_gateway.routers.search.check_database", AsyncMock(return_value=True)):
            response = client.get("/api/search/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"
