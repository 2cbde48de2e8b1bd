"""Elasticsearch client wrapper.

Provides:
- Client management (init, close)
- Query execution returning typed hits
- Index administration (exists, mapping, create, delete)
- Document upsert/delete
- Health check

Every Elasticsearch failure is re-raised as SearchServiceError with
DEPENDENCY_FAILURE and the index it concerned. Timeouts and retries are
configured on the underlying client, this layer never retries.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from elasticsearch import ApiError, AsyncElasticsearch, NotFoundError, TransportError

from ..config import settings
from ..exceptions import dependency_error
from ..schemas.index import IndexDescriptor
from ..schemas.search import CompiledQuery

logger = logging.getLogger(__name__)

# Request body keys that the client API spells differently
BODY_TO_KWARGS = {"from": "from_", "_source": "source"}


def _body(response: Any) -> dict[str, Any]:
    """Plain dict behind an ObjectApiResponse (or a dict passed through as-is)."""
    return getattr(response, "body", response)


@dataclass
class SearchHit:
    id: str
    score: Optional[float]
    highlight: Optional[dict[str, list[str]]]
    source: dict[str, Any]


@dataclass
class SearchResult:
    total: int
    hits: list[SearchHit] = field(default_factory=list)
    aggregations: dict[str, Any] = field(default_factory=dict)


class SearchEngineClient:
    """Thin async facade over AsyncElasticsearch used by the search core."""

    def __init__(self, client: AsyncElasticsearch):
        self.client = client

    async def execute(self, query: CompiledQuery) -> SearchResult:
        """Run a compiled query and reshape the raw response."""
        body = query.to_body()
        kwargs = {BODY_TO_KWARGS.get(k, k): v for k, v in body.items()}
        try:
            response = await self.client.search(index=query.indices, **kwargs)
        except (ApiError, TransportError) as exc:
            raise dependency_error(
                "Search query failed.",
                index_name=",".join(query.indices),
                cause=exc,
            ) from exc

        raw = _body(response)
        raw_hits = raw["hits"]
        total = raw_hits.get("total") or {}
        hits = [
            SearchHit(
                id=hit.get("_source", {}).get("id", hit.get("_id")),
                score=hit.get("_score"),
                highlight=hit.get("highlight"),
                source=hit.get("_source", {}),
            )
            for hit in raw_hits.get("hits", [])
        ]
        return SearchResult(
            total=total.get("value", 0) if isinstance(total, dict) else int(total),
            hits=hits,
            aggregations=raw.get("aggregations") or {},
        )

    async def index_exists(self, index_name: str) -> bool:
        try:
            return bool(await self.client.indices.exists(index=index_name))
        except (ApiError, TransportError) as exc:
            raise dependency_error(
                "Index existence check failed.", index_name=index_name, cause=exc
            ) from exc

    async def get_schema(self, index_name: str) -> Optional[dict[str, str]]:
        """Field name -> field type of a live index, or None when the index does not exist."""
        try:
            response = await self.client.indices.get_mapping(index=index_name)
        except NotFoundError:
            return None
        except (ApiError, TransportError) as exc:
            raise dependency_error(
                "Fetching index mapping failed.", index_name=index_name, cause=exc
            ) from exc

        properties = _body(response)[index_name]["mappings"].get("properties", {})
        return {name: spec.get("type", "object") for name, spec in properties.items()}

    async def create_index(self, descriptor: IndexDescriptor) -> None:
        try:
            await self.client.indices.create(
                index=descriptor.index_name,
                settings=descriptor.settings,
                mappings=descriptor.mappings,
            )
        except (ApiError, TransportError) as exc:
            raise dependency_error(
                "Index creation failed.", index_name=descriptor.index_name, cause=exc
            ) from exc

    async def delete_index(self, index_name: str) -> None:
        try:
            await self.client.indices.delete(index=index_name)
        except NotFoundError:
            logger.debug("Index %s already gone", index_name)
        except (ApiError, TransportError) as exc:
            raise dependency_error(
                "Index deletion failed.", index_name=index_name, cause=exc
            ) from exc

    async def upsert_document(self, index_name: str, document: dict[str, Any]) -> None:
        try:
            await self.client.index(index=index_name, id=document["id"], document=document)
        except (ApiError, TransportError) as exc:
            raise dependency_error(
                f"Indexing document {document['id']} failed.", index_name=index_name, cause=exc
            ) from exc

    async def delete_document(self, index_name: str, document_id: str) -> None:
        """Remove a document. A document or index that does not exist is not an error."""
        try:
            await self.client.delete(index=index_name, id=document_id)
        except NotFoundError:
            logger.debug("Document %s not present in index %s", document_id, index_name)
        except (ApiError, TransportError) as exc:
            raise dependency_error(
                f"Deleting document {document_id} failed.", index_name=index_name, cause=exc
            ) from exc

    async def health(self) -> dict[str, Any]:
        """Return only status and cluster health -- no error details exposed to clients."""
        try:
            response = await self.client.cluster.health()
            return {"status": "healthy", "cluster": _body(response).get("status")}
        except Exception as e:
            logger.warning("Elasticsearch health check failed: %s", e)
            return {"status": "degraded"}

    async def close(self) -> None:
        await self.client.close()


# ---- Client Management ----

_search_engine: Optional[SearchEngineClient] = None


def init_search_engine() -> SearchEngineClient:
    """Create the Elasticsearch client. Called during app/worker startup."""
    global _search_engine

    if not settings.elasticsearch_api_key:
        logger.warning(
            "elasticsearch_api_key is empty -- Elasticsearch is unauthenticated. "
            "Set ELASTICSEARCH_API_KEY in production."
        )

    client = AsyncElasticsearch(
        settings.elasticsearch_url,
        api_key=settings.elasticsearch_api_key or None,
        request_timeout=settings.elasticsearch_timeout,
    )
    _search_engine = SearchEngineClient(client)
    logger.info("Elasticsearch client initialized: %s", settings.elasticsearch_url)
    return _search_engine


async def close_search_engine() -> None:
    global _search_engine
    if _search_engine is not None:
        await _search_engine.close()
        _search_engine = None
