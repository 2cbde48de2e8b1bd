"""Search index lifecycle: ensure, validate and (re)create index schemas.

Each entity keeps up to two indices: the entity-level index and, for
subtyped records, the entity+subtype index. Before any write an index is
checked against the schema contract (the ``id`` field must be an exact-match
``keyword``); an index that is missing or incompatible is dropped and
recreated from the core field set plus the entity's extra fields.

Per index name the lifecycle is:
    UNKNOWN -> CHECKING -> GOOD
                        -> MISSING -> CREATING -> GOOD

Known-good indices are memoized in a KnownIndexCache for the lifetime of
the service. The check/delete/create sequence runs under a per-index-name
lock so concurrent callers cannot interleave two recreations.
"""

import asyncio
import logging
import threading
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from ..exceptions import validation_error
from ..schemas.index import IndexDescriptor, IndexTarget, write_targets
from .metadata_registry import MetadataRegistry
from .search_engine import SearchEngineClient

logger = logging.getLogger(__name__)

TEXT_ANALYZER = "platform_analyzer_text"

# Index settings (configure BEFORE adding documents)
INDEX_SETTINGS: dict[str, Any] = {
    "analysis": {
        "analyzer": {
            TEXT_ANALYZER: {
                "tokenizer": "standard",
                "filter": ["lowercase", "platform_snowball"],
            }
        },
        "filter": {
            "platform_snowball": {
                "type": "snowball",
                "language": "English",
            }
        },
    }
}

# Fields every index carries. Identifiers are keyword (not analyzed) so
# that filters are exact matches.
CORE_INDEX_FIELDS: dict[str, dict[str, Any]] = {
    "id": {"type": "keyword"},
    "entityName": {"type": "keyword"},
    "entityType": {"type": "keyword"},

    "solutionId": {"type": "keyword"},
    "organizationId": {"type": "keyword"},

    "ownerId": {"type": "keyword"},
    "ownerEntityName": {"type": "keyword"},
    "ownerEntityType": {"type": "keyword"},

    "createdBy": {"type": "keyword"},
    "modifiedBy": {"type": "keyword"},
    "ownedBy": {"type": "keyword"},
    "publishedBy": {"type": "keyword"},

    "domain": {"type": "keyword"},
    "currency": {"type": "keyword"},
    "country": {"type": "keyword"},
    "city": {"type": "keyword"},
    "language": {"type": "keyword"},
    "type": {"type": "keyword"},

    "createdOn": {"type": "date"},
    "modifiedOn": {"type": "date"},
    "ownedOn": {"type": "date"},
    "publishedOn": {"type": "date"},

    "tags": {"type": "text"},
    "tagsLowerCase": {"type": "text"},
    "categoryIds": {"type": "keyword"},

    "isGlobal": {"type": "boolean"},
    "isPublished": {"type": "boolean"},
    "isSubmitted": {"type": "boolean"},
    "isApproved": {"type": "boolean"},

    "stateCode": {"type": "keyword"},
    "statusCode": {"type": "keyword"},

    "geoLocation": {"type": "geo_point"},
    "geoShape": {"type": "geo_shape"},

    "prevPrice": {"type": "float"},
    "currentPrice": {"type": "float"},

    "ipAddress": {"type": "ip"},

    "searchDisplay": {"type": "text", "analyzer": TEXT_ANALYZER},
    "searchContent": {"type": "text", "analyzer": TEXT_ANALYZER},
}


def build_index_descriptor(
    index_name: str,
    extra_fields: Optional[dict[str, dict[str, Any]]] = None,
) -> IndexDescriptor:
    """Core fields plus entity-specific fields. Core fields cannot be overridden."""
    properties = dict(extra_fields or {})
    overridden = sorted(set(properties) & set(CORE_INDEX_FIELDS))
    if overridden:
        logger.warning(
            "Ignoring entity fields that redefine core fields on %s: %s",
            index_name, ", ".join(overridden),
        )
    properties.update(CORE_INDEX_FIELDS)
    return IndexDescriptor(index_name=index_name, settings=INDEX_SETTINGS, properties=properties)


class IndexState(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    GOOD = "good"
    MISSING = "missing"
    CREATING = "creating"


class KnownIndexCache:
    """Thread-safe set of index names confirmed to have a compatible schema.

    No TTL: an entry lives until the owning service stops. Drift is
    corrected with ``force_create``.
    """

    def __init__(self):
        self._names: set[str] = set()
        self._lock = threading.Lock()

    def __contains__(self, index_name: str) -> bool:
        with self._lock:
            return index_name in self._names

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def add(self, index_name: str) -> None:
        with self._lock:
            self._names.add(index_name)

    def discard(self, index_name: str) -> None:
        with self._lock:
            self._names.discard(index_name)

    def clear(self) -> None:
        with self._lock:
            self._names.clear()


# Called after an existing index was dropped and recreated (solution_id, target)
RecreatedHook = Callable[[str, IndexTarget], Awaitable[None]]


class IndexSchemaManager:
    """Guarantees correctly shaped indices exist before they are written to."""

    def __init__(
        self,
        engine: SearchEngineClient,
        registry: MetadataRegistry,
        cache: KnownIndexCache,
        on_recreated: Optional[RecreatedHook] = None,
    ):
        self.engine = engine
        self.registry = registry
        self.cache = cache
        self.on_recreated = on_recreated
        self._locks: dict[str, asyncio.Lock] = {}
        self._states: dict[str, IndexState] = {}

    def _lock_for(self, index_name: str) -> asyncio.Lock:
        return self._locks.setdefault(index_name, asyncio.Lock())

    def state_of(self, index_name: str) -> IndexState:
        if index_name in self.cache:
            return IndexState.GOOD
        return self._states.get(index_name, IndexState.UNKNOWN)

    async def ensure(
        self,
        solution_id: str,
        entity_name: str,
        entity_type: Optional[str] = None,
        force_create: bool = False,
    ) -> list[str]:
        """
        Make sure the entity index (and the subtype index, if any) is good.

        Args:
            solution_id: Tenant whose entity metadata shapes the index
            entity_name: Entity name
            entity_type: Optional subtype; adds the entity+subtype index
            force_create: Drop and recreate even if the index looks good

        Returns:
            Names of the indices that were (re)created.
        """
        if not entity_name or not entity_name.strip():
            raise validation_error("The entityName is not provided.")

        created = []
        for target in write_targets(entity_name, entity_type):
            async with self._lock_for(target.name):
                if force_create or not await self.is_good(target.name):
                    await self._create_locked(solution_id, target)
                    created.append(target.name)
        return created

    async def is_good(self, index_name: str) -> bool:
        """Whether the live index has a compatible schema. Any doubt means no."""
        if index_name in self.cache:
            return True

        self._states[index_name] = IndexState.CHECKING
        good = False
        try:
            schema = await self.engine.get_schema(index_name)
            good = schema is not None and schema.get("id") == "keyword"
            if schema is not None and not good:
                logger.warning(
                    "Index %s has an incompatible schema (id type=%s)",
                    index_name, schema.get("id"),
                )
        except Exception as exc:
            logger.warning("Checking index %s failed: %s", index_name, exc)

        if good:
            self.cache.add(index_name)
            self._states[index_name] = IndexState.GOOD
        else:
            self._states[index_name] = IndexState.MISSING
        return good

    async def create(
        self,
        solution_id: str,
        entity_name: str,
        entity_type: Optional[str] = None,
    ) -> IndexDescriptor:
        """Drop (if present) and create the index for one entity or entity+subtype."""
        target = IndexTarget(entity_name, entity_type)
        async with self._lock_for(target.name):
            return await self._create_locked(solution_id, target)

    async def _create_locked(self, solution_id: str, target: IndexTarget) -> IndexDescriptor:
        index_name = target.name
        self._states[index_name] = IndexState.CREATING
        # Not good until creation is confirmed; a failure below leaves it UNKNOWN
        self.cache.discard(index_name)

        try:
            schema = await self.registry.get_entity_schema(
                solution_id, target.entity_name, target.entity_type
            )
            descriptor = build_index_descriptor(index_name, schema.extra_index_fields)

            existed = await self.engine.index_exists(index_name)
            if existed:
                logger.warning("Deleting index %s before recreating it", index_name)
                await self.engine.delete_index(index_name)

            await self.engine.create_index(descriptor)
        except Exception:
            self._states[index_name] = IndexState.UNKNOWN
            raise

        self.cache.add(index_name)
        self._states[index_name] = IndexState.GOOD
        logger.info("Created index %s (%d fields)", index_name, len(descriptor.properties))

        if existed and self.on_recreated is not None:
            try:
                await self.on_recreated(solution_id, target)
            except Exception as exc:
                logger.error("Backfill after recreating index %s failed: %s", index_name, exc)

        return descriptor
