"""Entity metadata registry backed by the EntityDefinitions table."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..exceptions import dependency_error
from ..models.entity_definition import EntityDefinition

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_FIELDS = ("title", "name", "firstName", "lastName")
DEFAULT_CONTENT_FIELDS = (
    "summary",
    "introduction",
    "abstract",
    "description",
    "note",
    "content",
    "tags",
)


@dataclass(frozen=True)
class EntitySchema:
    """Search metadata of one entity: extra index fields and merged-text sources."""

    entity_name: str
    entity_type: Optional[str] = None
    extra_index_fields: dict[str, dict[str, Any]] = field(default_factory=dict)
    display_fields: tuple[str, ...] = DEFAULT_DISPLAY_FIELDS
    content_fields: tuple[str, ...] = DEFAULT_CONTENT_FIELDS


class MetadataRegistry:
    """Resolves EntitySchema for (solution, entity, subtype)."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get_entity_schema(
        self,
        solution_id: str,
        entity_name: str,
        entity_type: Optional[str] = None,
    ) -> EntitySchema:
        """
        Look up the schema for an entity.

        The subtype definition wins over the entity-level definition (entity_type
        NULL); with neither, the defaults apply.

        Raises:
            SearchServiceError(DEPENDENCY_FAILURE): the store could not be read.
        """
        type_clause = EntityDefinition.entity_type.is_(None)
        if entity_type:
            type_clause = or_(type_clause, EntityDefinition.entity_type == entity_type)

        try:
            async with self.session_maker() as db:
                result = await db.execute(
                    select(EntityDefinition).where(
                        EntityDefinition.solution_id == solution_id,
                        EntityDefinition.entity_name == entity_name,
                        type_clause,
                    )
                )
                definitions = result.scalars().all()
        except SQLAlchemyError as exc:
            raise dependency_error(
                "Reading entity metadata failed.", entity_name=entity_name, cause=exc
            ) from exc

        # Subtype-specific row first, entity-level row second
        definitions = sorted(definitions, key=lambda d: d.entity_type is None)
        if not definitions:
            logger.debug("No entity definition for %s_%s, using defaults", entity_name, entity_type)
            return EntitySchema(entity_name=entity_name, entity_type=entity_type)

        definition = definitions[0]
        return EntitySchema(
            entity_name=entity_name,
            entity_type=entity_type,
            extra_index_fields=dict(definition.index_fields or {}),
            display_fields=tuple(definition.display_fields or DEFAULT_DISPLAY_FIELDS),
            content_fields=tuple(definition.content_fields or DEFAULT_CONTENT_FIELDS),
        )
