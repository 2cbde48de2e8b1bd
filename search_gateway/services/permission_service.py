"""Permission service for entity-level read checks.

Implements the authorization collaborator consulted by the search policy:
a caller may read an entity (or entity subtype) when any of the following
holds.

Permission Model:
- Solution owner: can read every entity of the solution
- 'Entity_Type' privilege: grants the subtype only
- 'Entity' privilege: grants the entity and all of its subtypes
- '*' privilege: grants every entity

A privilege grants reading when its rights include 'read' or 'full'.
"""

from typing import Optional, Protocol

from ..schemas.context import CallerContext

READ_RIGHTS = frozenset({"read", "full"})
WILDCARD_PRIVILEGE = "*"


class Authorizer(Protocol):
    """Capability check supplied to the search policy."""

    def can_read(
        self,
        context: CallerContext,
        entity_name: str,
        entity_type: Optional[str] = None,
    ) -> bool:
        ...


class EntityPermissionService:
    """
    Privilege checks evaluated from the caller context alone.

    No I/O: the caller's privileges are resolved upstream and travel in the
    context, which keeps query compilation a pure function.
    """

    def has_privilege(
        self,
        context: CallerContext,
        entity_name: str,
        entity_type: Optional[str],
        rights: frozenset[str],
    ) -> bool:
        """
        Check whether the caller holds any of the given rights on the entity.

        Args:
            context: Caller context carrying the privilege map
            entity_name: Entity to check, e.g. "Event"
            entity_type: Optional subtype
            rights: Rights that satisfy the check (lowercase)

        Returns:
            True if the caller is the solution owner or a matching privilege grants a right.
        """
        if context.is_solution_owner:
            return True

        # Privilege keys are matched case-insensitively
        granted = {key.lower(): value for key, value in context.privileges.items()}

        keys = [entity_name.lower(), WILDCARD_PRIVILEGE]
        if entity_type:
            keys.insert(0, f"{entity_name}_{entity_type}".lower())

        for key in keys:
            held = {r.lower() for r in granted.get(key, [])}
            if held & rights:
                return True
        return False

    def can_read(
        self,
        context: CallerContext,
        entity_name: str,
        entity_type: Optional[str] = None,
    ) -> bool:
        return self.has_privilege(context, entity_name, entity_type, READ_RIGHTS)
