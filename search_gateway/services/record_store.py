"""Canonical store client: point reads, stale scans and writes of Records.

Writes fan out to the search index through the ``on_written`` hook, the
same way every canonical-store mutation is expected to reach search.
"""

import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..exceptions import dependency_error, validation_error
from ..models.record import PROMOTED_FIELDS, Record

logger = logging.getLogger(__name__)

REINDEXED_ON_FIELD = "searchReindexedOn"

WrittenHook = Callable[[dict[str, Any]], Awaitable[None]]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 string or datetime -> naive UTC datetime (as stored)."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise validation_error(f"Invalid timestamp: {value!r}", cause=exc) from exc
    if not isinstance(value, datetime):
        raise validation_error(f"Invalid timestamp: {value!r}")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def project(document: dict[str, Any], attributes: Optional[list[str]]) -> dict[str, Any]:
    """Keep only the requested attributes; ``id`` is always kept."""
    if not attributes:
        return document
    keep = {"id", *attributes}
    return {k: v for k, v in document.items() if k in keep}


class RecordStore:
    """Reads and writes canonical records."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        on_written: Optional[WrittenHook] = None,
    ):
        self.session_maker = session_maker
        self.on_written = on_written

    async def fetch_by_ids(
        self,
        ids: list[str],
        attributes: Optional[list[str]] = None,
    ) -> list[dict[str, Any]]:
        """Batched point read. Order of the result is not guaranteed."""
        if not ids:
            return []
        try:
            async with self.session_maker() as db:
                result = await db.execute(select(Record).where(Record.id.in_(ids)))
                records = result.scalars().all()
        except SQLAlchemyError as exc:
            raise dependency_error("Reading canonical records failed.", cause=exc) from exc
        return [project(r.to_document(), attributes) for r in records]

    async def scan_stale(
        self,
        solution_id: str,
        cutoff: datetime,
        entity_name: Optional[str] = None,
        page_size: int = 100,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """
        Yield pages of records never indexed or last indexed before ``cutoff``.

        Keyset pagination on id bounds memory and tolerates records being
        rewritten (and so leaving the stale set) while the scan runs.
        """
        cutoff = parse_timestamp(cutoff)
        last_id = ""
        while True:
            stmt = (
                select(Record)
                .where(
                    Record.solution_id == solution_id,
                    or_(
                        Record.search_reindexed_on.is_(None),
                        Record.search_reindexed_on < cutoff,
                    ),
                    Record.id > last_id,
                )
                .order_by(Record.id)
                .limit(page_size)
            )
            if entity_name:
                stmt = stmt.where(Record.entity_name == entity_name)

            try:
                async with self.session_maker() as db:
                    result = await db.execute(stmt)
                    records = result.scalars().all()
            except SQLAlchemyError as exc:
                raise dependency_error(
                    "Scanning stale records failed.", entity_name=entity_name, cause=exc
                ) from exc

            if not records:
                return
            yield [r.to_document() for r in records]
            if len(records) < page_size:
                return
            last_id = records[-1].id

    async def list_stale_solution_ids(self, cutoff: datetime) -> list[str]:
        """Solutions that have at least one stale record."""
        cutoff = parse_timestamp(cutoff)
        try:
            async with self.session_maker() as db:
                result = await db.execute(
                    select(Record.solution_id)
                    .where(
                        or_(
                            Record.search_reindexed_on.is_(None),
                            Record.search_reindexed_on < cutoff,
                        )
                    )
                    .distinct()
                )
                return [row[0] for row in result.all()]
        except SQLAlchemyError as exc:
            raise dependency_error("Listing stale solutions failed.", cause=exc) from exc

    async def write_document(self, document: dict[str, Any]) -> dict[str, Any]:
        """
        Insert or replace a record from its document form, then fan out.

        Last writer wins; there is no version check.

        Returns:
            The stored document.
        """
        if not document.get("id"):
            raise validation_error("The id is not provided.")
        if not document.get("entityName"):
            raise validation_error("The entityName is not provided.")
        if not document.get("solutionId"):
            raise validation_error("The solutionId is not provided.", entity_name=document["entityName"])

        body = {
            k: v for k, v in document.items()
            if k not in PROMOTED_FIELDS and k != REINDEXED_ON_FIELD
        }
        reindexed_on = parse_timestamp(document.get(REINDEXED_ON_FIELD))

        try:
            async with self.session_maker() as db:
                record = await db.get(Record, document["id"])
                if record is None:
                    record = Record(id=document["id"])
                    db.add(record)
                for key, column in PROMOTED_FIELDS.items():
                    if key != "id":
                        setattr(record, column, document.get(key))
                record.data = body
                record.search_reindexed_on = reindexed_on
                saved = record.to_document()
                await db.commit()
        except SQLAlchemyError as exc:
            raise dependency_error(
                f"Writing record {document['id']} failed.",
                entity_name=document["entityName"],
                cause=exc,
            ) from exc

        if self.on_written is not None:
            await self.on_written(saved)
        return saved
