"""Schemas describing search index targets and index definitions."""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class IndexTarget:
    """An index derived from an entity name and optional subtype.

    The name is deterministic and lowercase: ``entityname`` for the entity
    level, ``entityname_entitytype`` when a subtype is given.
    """

    entity_name: str
    entity_type: Optional[str] = None

    @property
    def name(self) -> str:
        if self.entity_type:
            return f"{self.entity_name}_{self.entity_type}".lower()
        return self.entity_name.lower()

    @classmethod
    def parse(cls, index_name: str) -> "IndexTarget":
        """Split ``Entity_Type`` into its entity name and subtype."""
        entity_name, _, entity_type = index_name.partition("_")
        return cls(entity_name, entity_type or None)


def write_targets(entity_name: str, entity_type: Optional[str] = None) -> list[IndexTarget]:
    """Indices a record of this entity is written to: entity level, then subtype level."""
    targets = [IndexTarget(entity_name)]
    if entity_type:
        targets.append(IndexTarget(entity_name, entity_type))
    return targets


class IndexDescriptor(BaseModel):
    """Schema contract for one index: analysis settings plus typed field mappings."""

    model_config = ConfigDict(frozen=True)

    index_name: str
    settings: dict[str, Any] = Field(default_factory=dict)
    properties: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @property
    def mappings(self) -> dict[str, Any]:
        return {"properties": self.properties}

    def field_type(self, field_name: str) -> Optional[str]:
        spec = self.properties.get(field_name)
        return spec.get("type") if spec else None
