"""Search gateway services."""

from .auth_service import (
    create_access_token,
    decode_access_token,
    get_caller_context,
)
from .index_manager import (
    IndexSchemaManager,
    IndexState,
    KnownIndexCache,
    build_index_descriptor,
)
from .metadata_registry import (
    EntitySchema,
    MetadataRegistry,
)
from .permission_service import (
    Authorizer,
    EntityPermissionService,
)
from .query_compiler import QueryCompiler
from .record_store import RecordStore
from .reindex_service import ReindexService
from .result_fusion import ResultFusion
from .search_engine import (
    SearchEngineClient,
    SearchHit,
    SearchResult,
    close_search_engine,
    init_search_engine,
)
from .search_indexer import SearchIndexer
from .search_policy import SearchPolicy

__all__ = [
    # Auth service
    "create_access_token",
    "decode_access_token",
    "get_caller_context",
    # Index lifecycle
    "IndexSchemaManager",
    "IndexState",
    "KnownIndexCache",
    "build_index_descriptor",
    # Metadata registry
    "EntitySchema",
    "MetadataRegistry",
    # Permission service
    "Authorizer",
    "EntityPermissionService",
    # Query path
    "QueryCompiler",
    "ResultFusion",
    "SearchPolicy",
    # Canonical store
    "RecordStore",
    "ReindexService",
    # Search engine
    "SearchEngineClient",
    "SearchHit",
    "SearchResult",
    "SearchIndexer",
    "close_search_engine",
    "init_search_engine",
]
