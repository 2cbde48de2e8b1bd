"""Service wiring shared by the API and the arq worker.

The services are built once per process (application lifespan or worker
startup) and live on ``app.state`` / the worker context; nothing here is a
module-level singleton.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import settings
from .models.record import utcnow
from .schemas.index import IndexTarget
from .services.index_manager import IndexSchemaManager, KnownIndexCache, RecreatedHook
from .services.metadata_registry import MetadataRegistry
from .services.permission_service import Authorizer, EntityPermissionService
from .services.query_compiler import QueryCompiler
from .services.record_store import RecordStore
from .services.reindex_service import ReindexService
from .services.result_fusion import ResultFusion
from .services.search_engine import SearchEngineClient
from .services.search_indexer import SearchIndexer
from .services.search_policy import SearchPolicy

logger = logging.getLogger(__name__)


@dataclass
class SearchServices:
    """Everything a request handler or job needs, wired together."""

    engine: SearchEngineClient
    cache: KnownIndexCache
    registry: MetadataRegistry
    index_manager: IndexSchemaManager
    indexer: SearchIndexer
    store: RecordStore
    compiler: QueryCompiler
    fusion: ResultFusion
    reindex: ReindexService


def build_search_services(
    engine: SearchEngineClient,
    session_maker: async_sessionmaker[AsyncSession],
    on_recreated: Optional[RecreatedHook] = None,
    authorizer: Optional[Authorizer] = None,
    cache: Optional[KnownIndexCache] = None,
) -> SearchServices:
    cache = cache if cache is not None else KnownIndexCache()
    registry = MetadataRegistry(session_maker)
    index_manager = IndexSchemaManager(engine, registry, cache, on_recreated=on_recreated)
    indexer = SearchIndexer(engine, index_manager, registry)
    store = RecordStore(session_maker, on_written=indexer.index_record_from_data)
    compiler = QueryCompiler(SearchPolicy(authorizer or EntityPermissionService()))

    return SearchServices(
        engine=engine,
        cache=cache,
        registry=registry,
        index_manager=index_manager,
        indexer=indexer,
        store=store,
        compiler=compiler,
        fusion=ResultFusion(compiler, engine, store),
        reindex=ReindexService(store, registry),
    )


def make_backfill_hook(arq_pool: Any) -> Optional[RecreatedHook]:
    """
    Hook that enqueues a reindex of the entity after its index was recreated.

    The cutoff is the recreation time, so every record of the entity counts
    as stale. Returns None when backfill is disabled or no queue is available.
    """
    if arq_pool is None or not settings.reindex_on_recreate:
        return None

    async def enqueue_backfill(solution_id: str, target: IndexTarget) -> None:
        cutoff = utcnow().isoformat()
        await arq_pool.enqueue_job(
            "reindex_entity", solution_id, target.entity_name, cutoff
        )
        logger.info(
            "Backfill enqueued after recreating index %s (solution=%s)",
            target.name, solution_id,
        )

    return enqueue_backfill


def get_search_services(request: Request) -> SearchServices:
    """FastAPI dependency returning the services built at startup."""
    return request.app.state.search_services
