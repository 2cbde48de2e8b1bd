"""
ARQ Worker Configuration

Background job processing with Redis-backed task queue.
Runs the reindex backfill enqueued after an index recreation and the
scheduled reindex of stale records.

Run with:
    arq search_gateway.worker.WorkerSettings
"""

import logging
from typing import Any
from urllib.parse import urlparse

from arq import cron
from arq.connections import RedisSettings

from .config import settings
from .database import async_session_maker
from .deps import build_search_services, make_backfill_hook
from .models.record import utcnow
from .services.record_store import parse_timestamp
from .services.reindex_service import default_cutoff
from .services.search_engine import close_search_engine, init_search_engine

logger = logging.getLogger(__name__)


# Parse Redis URL into components for ARQ
# Format: redis://host:port/db or redis://:password@host:port/db
def parse_redis_url(url: str) -> RedisSettings:
    """Parse Redis URL into ARQ RedisSettings."""
    parsed = urlparse(url)
    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        password=parsed.password,
        database=int(parsed.path.lstrip("/") or 0),
    )


# =============================================================================
# Reindex Jobs
# =============================================================================

async def reindex_entity(
    ctx: dict[str, Any],
    solution_id: str,
    entity_name: str,
    cutoff_iso: str,
) -> dict[str, Any]:
    """
    Reindex every record of one entity not indexed since ``cutoff_iso``.

    Enqueued right after the entity's index was dropped and recreated.

    Returns:
        dict with per-bucket counts
    """
    services = ctx["search_services"]
    counts = await services.reindex.reindex_stale_records(
        solution_id,
        entity_name=entity_name,
        page_size=settings.reindex_page_size,
        cutoff=parse_timestamp(cutoff_iso),
    )
    logger.info(
        "Backfill complete: solution=%s entity=%s reindexed=%d",
        solution_id, entity_name, sum(counts.values()),
    )
    return {"counts": counts, "run_at": utcnow().isoformat()}


async def run_scheduled_reindex(ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Reindex every solution that has stale records.

    A failing solution is logged and does not stop the others.

    Returns:
        dict with reindexed counts per solution
    """
    logger.info("Running scheduled reindex...")
    services = ctx["search_services"]
    cutoff = default_cutoff()

    results: dict[str, int] = {}
    try:
        solution_ids = await services.store.list_stale_solution_ids(cutoff)
    except Exception as e:
        logger.error(f"Error listing stale solutions: {e}", exc_info=True)
        solution_ids = []

    for solution_id in solution_ids:
        try:
            counts = await services.reindex.reindex_stale_records(
                solution_id,
                page_size=settings.reindex_page_size,
                cutoff=cutoff,
            )
            results[solution_id] = sum(counts.values())
        except Exception as e:
            logger.error(f"Error reindexing solution {solution_id}: {e}", exc_info=True)

    logger.info(f"Scheduled reindex complete: {len(results)} solutions processed")
    return {
        "solutions": results,
        "run_at": utcnow().isoformat(),
    }


# =============================================================================
# Startup/Shutdown Hooks
# =============================================================================

async def startup(ctx: dict[str, Any]) -> None:
    """Initialize resources when worker starts."""
    logger.info("ARQ worker starting up...")
    engine = init_search_engine()
    ctx["search_services"] = build_search_services(
        engine,
        async_session_maker,
        on_recreated=make_backfill_hook(ctx.get("redis")),
    )
    logger.info("Search services ready for ARQ worker")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Cleanup resources when worker stops."""
    logger.info("ARQ worker shutting down...")

    await close_search_engine()
    logger.info("Elasticsearch client closed")


# =============================================================================
# Schedule Parsing
# =============================================================================

def parse_schedule_set(value: str) -> set[int]:
    """
    Parse a comma-separated string of integers into a set.

    Examples:
        "0,30" -> {0, 30}
        "0,15,30,45" -> {0, 15, 30, 45}
    """
    return {int(x.strip()) for x in value.split(",") if x.strip()}


def build_cron_jobs() -> list:
    """Scheduled reindex at the configured minutes; none when the setting is empty."""
    minutes = parse_schedule_set(settings.arq_reindex_minutes)
    if not minutes:
        return []
    return [cron(run_scheduled_reindex, minute=minutes, second=0)]


# =============================================================================
# Worker Settings
# =============================================================================

class WorkerSettings:
    """ARQ worker configuration."""

    # Redis connection
    redis_settings = parse_redis_url(settings.redis_url)

    # Job functions that can be called via arq.enqueue_job()
    functions = [
        reindex_entity,
        run_scheduled_reindex,
    ]

    # Scheduled cron jobs (configured via .env)
    # ARQ_REINDEX_MINUTES: comma-separated minutes (default "0,30"), "" disables
    cron_jobs = build_cron_jobs()

    # Lifecycle hooks
    on_startup = startup
    on_shutdown = shutdown

    # Worker behavior
    max_jobs = 10  # Max concurrent jobs
    job_timeout = 1800  # 30 minutes max per job
    keep_result = 3600  # Keep results for 1 hour

    # Health check
    health_check_interval = 30
