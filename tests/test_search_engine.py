"""Tests for the Elasticsearch client wrapper (client mocked)."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from elasticsearch import ConnectionError as ESConnectionError
from elasticsearch import NotFoundError

from search_gateway.exceptions import ErrorKind, SearchServiceError
from search_gateway.schemas.search import CompiledQuery
from search_gateway.services.index_manager import build_index_descriptor
from search_gateway.services.search_engine import SearchEngineClient


def _not_found() -> NotFoundError:
    return NotFoundError("index_not_found_exception", MagicMock(status=404), {})


@pytest.fixture
def es():
    client = MagicMock()
    client.search = AsyncMock()
    client.index = AsyncMock()
    client.delete = AsyncMock()
    client.close = AsyncMock()
    client.indices.exists = AsyncMock(return_value=True)
    client.indices.get_mapping = AsyncMock()
    client.indices.create = AsyncMock()
    client.indices.delete = AsyncMock()
    client.cluster.health = AsyncMock(return_value={"status": "green"})
    return client


@pytest.fixture
def engine(es) -> SearchEngineClient:
    return SearchEngineClient(es)


class TestExecute:
    @pytest.mark.asyncio
    async def test_body_mapped_to_client_kwargs(self, engine: SearchEngineClient, es):
        es.search.return_value = {
            "hits": {
                "total": {"value": 1},
                "hits": [{
                    "_id": "a",
                    "_score": 1.2,
                    "_source": {"id": "a", "name": "A"},
                    "highlight": {"searchDisplay": ["<em>A</em>"]},
                }],
            },
        }
        query = CompiledQuery(indices=["event"], size=5, source=["id", "name"])

        result = await engine.execute(query)

        kwargs = es.search.await_args.kwargs
        assert kwargs["index"] == ["event"]
        assert kwargs["from_"] == 0
        assert kwargs["size"] == 5
        assert kwargs["source"] == ["id", "name"]
        assert result.total == 1
        assert result.hits[0].id == "a"
        assert result.hits[0].score == 1.2
        assert result.hits[0].highlight == {"searchDisplay": ["<em>A</em>"]}

    @pytest.mark.asyncio
    async def test_aggregations_returned(self, engine: SearchEngineClient, es):
        es.search.return_value = {
            "hits": {"total": {"value": 3}, "hits": []},
            "aggregations": {"list": {"buckets": [{"key": "Oslo", "doc_count": 3}]}},
        }
        query = CompiledQuery(indices=["event"], size=0, aggregation={"list": {"terms": {"field": "city"}}})

        result = await engine.execute(query)

        assert "aggs" in es.search.await_args.kwargs
        assert result.aggregations["list"]["buckets"][0]["key"] == "Oslo"

    @pytest.mark.asyncio
    async def test_transport_error_is_dependency_failure(self, engine: SearchEngineClient, es):
        es.search.side_effect = ESConnectionError("connection refused")

        with pytest.raises(SearchServiceError) as exc_info:
            await engine.execute(CompiledQuery(indices=["event"], size=10))

        assert exc_info.value.kind == ErrorKind.DEPENDENCY_FAILURE
        assert exc_info.value.index_name == "event"


class TestIndexAdministration:
    @pytest.mark.asyncio
    async def test_get_schema(self, engine: SearchEngineClient, es):
        es.indices.get_mapping.return_value = {
            "event": {"mappings": {"properties": {"id": {"type": "keyword"}, "geo": {"properties": {}}}}}
        }

        assert await engine.get_schema("event") == {"id": "keyword", "geo": "object"}

    @pytest.mark.asyncio
    async def test_get_schema_missing_index(self, engine: SearchEngineClient, es):
        es.indices.get_mapping.side_effect = _not_found()

        assert await engine.get_schema("event") is None

    @pytest.mark.asyncio
    async def test_create_index(self, engine: SearchEngineClient, es):
        descriptor = build_index_descriptor("event")

        await engine.create_index(descriptor)

        kwargs = es.indices.create.await_args.kwargs
        assert kwargs["index"] == "event"
        assert kwargs["mappings"]["properties"]["id"] == {"type": "keyword"}
        assert "analysis" in kwargs["settings"]

    @pytest.mark.asyncio
    async def test_delete_missing_index_is_ignored(self, engine: SearchEngineClient, es):
        es.indices.delete.side_effect = _not_found()
        await engine.delete_index("event")

    @pytest.mark.asyncio
    async def test_delete_missing_document_is_ignored(self, engine: SearchEngineClient, es):
        es.delete.side_effect = _not_found()
        await engine.delete_document("event", "a")

    @pytest.mark.asyncio
    async def test_upsert_document(self, engine: SearchEngineClient, es):
        await engine.upsert_document("event", {"id": "a", "name": "A"})
        es.index.assert_awaited_once_with(index="event", id="a", document={"id": "a", "name": "A"})


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, engine: SearchEngineClient):
        assert await engine.health() == {"status": "healthy", "cluster": "green"}

    @pytest.mark.asyncio
    async def test_degraded_hides_details(self, engine: SearchEngineClient, es):
        es.cluster.health.side_effect = ESConnectionError("boom")
        assert await engine.health() == {"status": "degraded"}
