"""Search API endpoints.

Query, reindex and index administration over the search gateway services.
Failures surface as SearchServiceError and are rendered by the application's
exception handler.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..database import check_database
from ..deps import SearchServices, get_search_services
from ..exceptions import forbidden_error, validation_error
from ..schemas.context import CallerContext
from ..schemas.index import write_targets
from ..schemas.search import (
    EnsureIndexRequest,
    EnsureIndexResponse,
    QueryEnvelope,
    QueryRequest,
    QueryResponse,
    ReindexRequest,
)
from ..services.auth_service import get_caller_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/search", tags=["search"])


def _require_solution_owner(context: CallerContext, action: str) -> None:
    if not context.is_solution_owner:
        logger.warning(
            "Rejected %s by non-owner: user_id=%s solution_id=%s",
            action, context.user_id, context.solution_id,
        )
        raise forbidden_error(f"Only the solution owner can {action}.")


def _split_attributes(value: str | None) -> list[str] | None:
    if not value:
        return None
    names = [a.strip() for a in value.split(",") if a.strip()]
    if not names or names == ["*"]:
        return None
    return names


@router.post("/query", response_model=QueryResponse)
async def query_endpoint(
    envelope: QueryEnvelope,
    context: CallerContext = Depends(get_caller_context),
    services: SearchServices = Depends(get_search_services),
):
    """Run a generic query and fuse the hits with their canonical records."""
    if envelope.query is None:
        raise validation_error("The query is not provided.")

    try:
        request = QueryRequest.model_validate(envelope.query)
    except ValidationError as exc:
        first = exc.errors()[0]
        entity_name = envelope.query.get("entityName")
        raise validation_error(
            f"Invalid query: {first['msg']}",
            entity_name=entity_name if isinstance(entity_name, str) else None,
            cause=exc,
        ) from exc

    return await services.fusion.query(
        context,
        request,
        include_raw_record=envelope.include_raw_record,
        attributes=_split_attributes(envelope.attributes),
    )


@router.post("/reindex", response_model=dict[str, int])
async def reindex_endpoint(
    body: ReindexRequest,
    context: CallerContext = Depends(get_caller_context),
    services: SearchServices = Depends(get_search_services),
):
    """
    Reindex the caller's solution now (solution owner only).

    Returns the number of reindexed records per entity bucket.
    """
    _require_solution_owner(context, "reindex")
    return await services.reindex.reindex_stale_records(
        context.solution_id,
        entity_name=body.entity_name,
        page_size=body.page_size,
    )


@router.post("/indices/ensure", response_model=EnsureIndexResponse)
async def ensure_index_endpoint(
    body: EnsureIndexRequest,
    context: CallerContext = Depends(get_caller_context),
    services: SearchServices = Depends(get_search_services),
):
    """Ensure (or force-recreate) the indices of an entity (solution owner only)."""
    _require_solution_owner(context, "manage search indices")
    created = await services.index_manager.ensure(
        context.solution_id,
        body.entity_name,
        body.entity_type,
        force_create=body.force_create,
    )
    return EnsureIndexResponse(
        indices=[t.name for t in write_targets(body.entity_name, body.entity_type)],
        created=created,
    )


@router.get("/health")
async def search_health(services: SearchServices = Depends(get_search_services)):
    """Search engine and canonical store health. 503 when either is degraded."""
    engine_health = await services.engine.health()
    database_ok = await check_database()

    healthy = engine_health.get("status") == "healthy" and database_ok
    content = {
        "status": "healthy" if healthy else "degraded",
        "searchEngine": engine_health,
        "database": "healthy" if database_ok else "degraded",
        "knownIndices": len(services.cache),
    }
    return JSONResponse(status_code=200 if healthy else 503, content=content)
