"""Record SQLAlchemy model for the canonical document store.

Every searchable entity instance is stored as a Record: a handful of
promoted columns used for tenancy and reindex scans, plus the full JSON
document body. The search index is a derived projection of these rows.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column, DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB

from ..database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
DocumentBody = JSON().with_variant(JSONB(), "postgresql")

# Document keys that are backed by dedicated columns
PROMOTED_FIELDS = {
    "id": "id",
    "entityName": "entity_name",
    "entityType": "entity_type",
    "solutionId": "solution_id",
    "organizationId": "organization_id",
    "ownedBy": "owned_by",
}


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Record(Base):
    """
    Canonical record of one entity instance.

    Attributes:
        id: Unique identifier (GUID string)
        entity_name: Entity kind, e.g. "Event"
        entity_type: Optional entity subtype
        solution_id: Tenant (solution) that owns the record
        organization_id: Organization within the tenant
        owned_by: User that owns the record
        data: Full document body (all remaining fields)
        search_reindexed_on: Last time the record was pushed to search (null = never)
        created_at: Timestamp when the record was created
        updated_at: Timestamp when the record was last updated
    """

    __tablename__ = "Records"

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        nullable=False,
    )

    entity_name = Column(
        String(100),
        nullable=False,
        index=True,
    )

    entity_type = Column(
        String(100),
        nullable=True,
    )

    solution_id = Column(
        String(36),
        nullable=False,
        index=True,
    )

    organization_id = Column(
        String(36),
        nullable=True,
        index=True,
    )

    owned_by = Column(
        String(36),
        nullable=True,
    )

    data = Column(
        DocumentBody,
        nullable=False,
        default=dict,
    )

    search_reindexed_on = Column(
        DateTime,
        nullable=True,
    )

    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
    )

    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        # Drives the stale-record scan
        Index("ix_records_solution_reindexed", "solution_id", "search_reindexed_on"),
    )

    def to_document(self) -> dict[str, Any]:
        """Flatten the row back into the document shape callers and the search index use."""
        doc = dict(self.data or {})
        doc["id"] = self.id
        doc["entityName"] = self.entity_name
        doc["entityType"] = self.entity_type
        doc["solutionId"] = self.solution_id
        doc["organizationId"] = self.organization_id
        doc["ownedBy"] = self.owned_by
        if self.search_reindexed_on is not None:
            doc["searchReindexedOn"] = self.search_reindexed_on.isoformat() + "Z"
        return doc

    def __repr__(self) -> str:
        return f"<Record(id={self.id}, entity={self.entity_name}_{self.entity_type})>"
