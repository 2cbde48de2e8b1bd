"""SQLAlchemy ORM models package."""

from .entity_definition import EntityDefinition
from .record import Record

__all__ = [
    "EntityDefinition",
    "Record",
]
