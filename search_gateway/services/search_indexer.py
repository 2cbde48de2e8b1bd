"""Write path: project canonical records into their search indices.

A record lands in its entity-level index and, when it carries a subtype,
in the entity+subtype index too. Indices are ensured before every write.
"""

import copy
import logging
from typing import Any

from ..exceptions import validation_error
from ..schemas.index import write_targets
from .index_manager import IndexSchemaManager
from .metadata_registry import MetadataRegistry
from .search_engine import SearchEngineClient
from .search_text import build_search_content, build_search_display

logger = logging.getLogger(__name__)

# Reserved entities that never reach the search engine
NON_SEARCHABLE_ENTITIES = frozenset({"Domain", "Secret"})

# Canonical store bookkeeping, meaningless to search
STORE_METADATA_FIELDS = ("_rid", "_attachments", "_self", "_etag", "_ts")

# Raw fields already folded into searchDisplay / searchContent
MERGED_TEXT_FIELDS = (
    "description",
    "note",
    "summary",
    "introduction",
    "title",
    "firstName",
    "lastName",
    "content",
    "name",
    "token",
    "url",
)


def _validate(data: dict[str, Any]) -> tuple[str, str]:
    entity_name = data.get("entityName")
    if not entity_name:
        raise validation_error("The entityName is not provided.")
    if not data.get("id"):
        raise validation_error("The id is not provided.", entity_name=entity_name)
    return entity_name, data["id"]


class SearchIndexer:
    """Upserts and deletes documents in the search indices."""

    def __init__(
        self,
        engine: SearchEngineClient,
        index_manager: IndexSchemaManager,
        registry: MetadataRegistry,
    ):
        self.engine = engine
        self.index_manager = index_manager
        self.registry = registry

    async def upsert_record(self, data: dict[str, Any]) -> list[str]:
        """
        Index one record. The input dict is never mutated.

        Returns:
            Names of the indices written; empty for reserved entities.
        """
        entity_name, record_id = _validate(data)
        if entity_name in NON_SEARCHABLE_ENTITIES:
            logger.debug("Skipping reserved entity %s record %s", entity_name, record_id)
            return []

        entity_type = data.get("entityType") or None
        solution_id = data.get("solutionId")
        document = copy.deepcopy(data)

        if "searchDisplay" not in document or "searchContent" not in document:
            schema = await self.registry.get_entity_schema(solution_id, entity_name, entity_type)
            document.setdefault("searchDisplay", build_search_display(schema, data))
            document.setdefault("searchContent", build_search_content(schema, data))

        for key in (*STORE_METADATA_FIELDS, *MERGED_TEXT_FIELDS):
            document.pop(key, None)

        await self.index_manager.ensure(solution_id, entity_name, entity_type)

        written = []
        for target in write_targets(entity_name, entity_type):
            await self.engine.upsert_document(target.name, document)
            written.append(target.name)
        return written

    async def delete_record(self, data: dict[str, Any]) -> list[str]:
        """Remove one record from every index it was written to."""
        entity_name, record_id = _validate(data)
        targets = write_targets(entity_name, data.get("entityType") or None)
        for target in targets:
            await self.engine.delete_document(target.name, record_id)
        return [t.name for t in targets]

    async def index_record_from_data(self, data: dict[str, Any]) -> None:
        """Fan-out hook for canonical store writes. Failures are logged, never raised."""
        try:
            await self.upsert_record(data)
        except Exception as exc:
            logger.error(
                "Indexing record %s (%s) failed: %s",
                data.get("id"), data.get("entityName"), exc,
            )
