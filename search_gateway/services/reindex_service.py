"""Reindex orchestration: push stale canonical records back into search.

A record is stale when it was never indexed or was last indexed before the
cutoff. Each stale record gets its merged search text regenerated and is
written back to the canonical store, whose write hook re-indexes it.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Optional

from ..config import settings
from ..models.record import utcnow
from .metadata_registry import MetadataRegistry
from .record_store import REINDEXED_ON_FIELD, RecordStore
from .search_indexer import NON_SEARCHABLE_ENTITIES
from .search_text import build_search_content, build_search_display

logger = logging.getLogger(__name__)


def bucket_key(document: dict[str, Any]) -> str:
    """``Entity_Type`` for subtyped records, ``Entity`` otherwise."""
    entity_name = document.get("entityName")
    entity_type = document.get("entityType")
    return f"{entity_name}_{entity_type}" if entity_type else str(entity_name)


def default_cutoff() -> datetime:
    return utcnow() - timedelta(minutes=settings.reindex_cutoff_minutes)


class ReindexService:
    """Batch repair of search index staleness."""

    def __init__(self, store: RecordStore, registry: MetadataRegistry):
        self.store = store
        self.registry = registry

    async def reindex_stale_records(
        self,
        solution_id: str,
        entity_name: Optional[str] = None,
        page_size: int = 100,
        cutoff: Optional[datetime] = None,
    ) -> dict[str, int]:
        """
        Reindex every stale record of a solution.

        A failing record is logged and skipped; it stays stale and is picked
        up again by the next run.

        Returns:
            Number of reindexed records per ``Entity_Type`` (or ``Entity``).
        """
        cutoff = cutoff or default_cutoff()
        counts: Counter[str] = Counter()
        failed = 0

        logger.info(
            "Reindexing stale records: solution=%s entity=%s cutoff=%s",
            solution_id, entity_name or "*", cutoff.isoformat(),
        )

        async for page in self.store.scan_stale(solution_id, cutoff, entity_name, page_size):
            for document in page:
                if document.get("entityName") in NON_SEARCHABLE_ENTITIES:
                    continue
                try:
                    await self.reindex_record(document)
                except Exception as exc:
                    failed += 1
                    logger.error(
                        "Reindexing record %s (%s) failed: %s",
                        document.get("id"), bucket_key(document), exc,
                        exc_info=True,
                    )
                    continue
                counts[bucket_key(document)] += 1

        logger.info(
            "Reindex finished: solution=%s reindexed=%d failed=%d",
            solution_id, sum(counts.values()), failed,
        )
        return dict(counts)

    async def reindex_record(self, document: dict[str, Any]) -> dict[str, Any]:
        schema = await self.registry.get_entity_schema(
            document["solutionId"], document["entityName"], document.get("entityType")
        )

        updated = dict(document)
        updated["searchDisplay"] = build_search_display(schema, document)
        updated["searchContent"] = build_search_content(schema, document)
        if not updated.get("modifiedBy"):
            updated["modifiedBy"] = updated.get("ownedBy")
        updated[REINDEXED_ON_FIELD] = utcnow().isoformat() + "Z"

        return await self.store.write_document(updated)
