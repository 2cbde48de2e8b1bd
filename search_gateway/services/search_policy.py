"""Row-level security for search queries.

Decides which indices a caller may read and which filter clauses narrow a
query to what the caller may see. Every clause produced here is additive:
nothing a caller puts in a request can remove it.
"""

import logging
from typing import Any, Sequence

from ..exceptions import forbidden_error
from ..schemas.context import CallerContext
from ..schemas.index import IndexTarget
from ..schemas.search import QueryRequest, QueryScope
from .permission_service import Authorizer

logger = logging.getLogger(__name__)

# Reserved entity holding secrets: never forced into organization scope,
# its records are scoped by the solution instead.
SECRET_ENTITY = "Secret"

# Shared configuration entities: always restricted to the caller's solution
# so that one tenant never sees another tenant's configuration.
SOLUTION_OWNED_ENTITIES = frozenset({
    "SolutionDashboard",
    "Site",
    "Localization",
    "SolutionDefinition",
})

# Index names are case-insensitive, so targets are matched on lowercased names
SECRET_KEY = SECRET_ENTITY.lower()
SOLUTION_OWNED_KEYS = frozenset(name.lower() for name in SOLUTION_OWNED_ENTITIES)


def _entity_of(index_name: str) -> str:
    return IndexTarget.parse(index_name).entity_name.lower()


def _term(field: str, value: Any) -> dict[str, Any]:
    return {"term": {field: value}}


class SearchPolicy:
    """Security policy engine for the query compiler."""

    def __init__(self, authorizer: Authorizer):
        self.authorizer = authorizer

    def index_targets(self, request: QueryRequest) -> list[str]:
        """Candidate index names for a request, before security filtering.

        The subtype index when a subtype is given, the entity index
        otherwise, followed by any extra names the request lists.
        """
        names = list(request.index_names)
        if request.entity_type:
            names.append(f"{request.entity_name}_{request.entity_type}")
        else:
            names.append(request.entity_name)
        return names

    def readable_targets(self, context: CallerContext, index_names: list[str]) -> list[str]:
        """Drop every index the caller may not read.

        Raises:
            SearchServiceError(FORBIDDEN): if no index survives. A denied query
            is rejected, never turned into a query that silently matches nothing.
        """
        readable = []
        for name in index_names:
            target = IndexTarget.parse(name)
            if self.authorizer.can_read(context, target.entity_name, target.entity_type):
                readable.append(name)
            else:
                logger.info(
                    "Search target denied: index=%s user_id=%s", name, context.user_id
                )

        if not readable:
            entity_name = IndexTarget.parse(index_names[0]).entity_name if index_names else None
            raise forbidden_error(
                "The caller has no read privilege on the requested entity.",
                entity_name=entity_name,
            )
        return readable

    def solution_filters(
        self,
        context: CallerContext,
        index_names: Sequence[str],
    ) -> list[dict[str, Any]]:
        """Owner-equals-solution filter when any target is a shared configuration entity.

        Applies regardless of scope.
        """
        if any(_entity_of(name) in SOLUTION_OWNED_KEYS for name in index_names):
            return [_term("ownerId", context.solution_id)]
        return []

    def scope_filters(
        self,
        context: CallerContext,
        request: QueryRequest,
        index_names: Sequence[str],
        enforce: bool = True,
    ) -> list[dict[str, Any]]:
        """Filters for the requested scope.

        ``mine``, ``global`` and ``global-and-mine`` replace the organization
        filter. Without a scope the organization filter is forced when
        security is enforced, unless every target is the reserved secret entity.
        """
        scope = request.scope

        if scope == QueryScope.GLOBAL:
            return [_term("isGlobal", True)]

        if scope == QueryScope.MINE:
            return [_term("ownedBy", context.user_id)]

        if scope == QueryScope.GLOBAL_AND_MINE:
            return [{
                "bool": {
                    "should": [
                        _term("ownedBy", context.user_id),
                        _term("isGlobal", True),
                    ]
                }
            }]

        if scope == QueryScope.ORGANIZATION:
            return [_term("organizationId", context.organization_id)]

        only_secrets = all(_entity_of(name) == SECRET_KEY for name in index_names)
        if enforce and not (index_names and only_secrets):
            return [_term("organizationId", context.organization_id)]

        return []
