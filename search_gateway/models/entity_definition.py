"""EntityDefinition SQLAlchemy model: per-entity search metadata.

Supplies the extra index field mappings for an entity and the field lists
that are merged into the searchDisplay / searchContent text fields.
"""

import uuid

from sqlalchemy import JSON, Column, DateTime, String, UniqueConstraint

from ..database import Base
from .record import DocumentBody, utcnow


class EntityDefinition(Base):
    """
    Search metadata for one entity (or entity subtype) of a solution.

    A row with entity_type NULL applies to every subtype that has no
    definition of its own.
    """

    __tablename__ = "EntityDefinitions"

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        nullable=False,
    )

    solution_id = Column(String(36), nullable=False, index=True)
    entity_name = Column(String(100), nullable=False)
    entity_type = Column(String(100), nullable=True)

    # Extra Elasticsearch field mappings, e.g. {"rating": {"type": "float"}}
    index_fields = Column(DocumentBody, nullable=False, default=dict)

    # Document fields merged into searchDisplay / searchContent (null = defaults)
    display_fields = Column(JSON, nullable=True)
    content_fields = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "solution_id", "entity_name", "entity_type",
            name="uq_entity_definitions_solution_entity_type",
        ),
    )
