"""Fuse search hits with canonical records and rank them."""

import logging
from typing import Any, Optional

from ..schemas.context import CallerContext
from ..schemas.search import QueryRequest, QueryResponse
from .query_compiler import AGGREGATION_NAME, QueryCompiler
from .record_store import RecordStore
from .search_engine import SearchEngineClient, SearchHit, SearchResult

logger = logging.getLogger(__name__)


def _score_key(document: dict[str, Any]) -> tuple[bool, float]:
    # Descending score; documents without a score go last
    score = document.get("score")
    return (score is None, -(score or 0.0))


def hit_document(hit: SearchHit) -> dict[str, Any]:
    return {**hit.source, "highlight": hit.highlight, "score": hit.score}


def aggregation_buckets(result: SearchResult) -> list[dict[str, Any]]:
    buckets = result.aggregations.get(AGGREGATION_NAME, {}).get("buckets", [])
    return [{"key": b.get("key"), "count": b.get("doc_count", 0)} for b in buckets]


class ResultFusion:
    """Runs a compiled query and merges relevance data onto canonical records."""

    def __init__(self, compiler: QueryCompiler, engine: SearchEngineClient, store: RecordStore):
        self.compiler = compiler
        self.engine = engine
        self.store = store

    async def query(
        self,
        context: CallerContext,
        request: QueryRequest,
        skip_security_check: bool = False,
        include_raw_record: bool = False,
        attributes: Optional[list[str]] = None,
    ) -> QueryResponse:
        """
        Search and, optionally, swap each hit for its canonical record.

        With ``include_raw_record`` the canonical records are fetched in one
        batch and re-sorted by score, since the store returns them in no
        particular order. Hits whose record is gone are dropped.
        """
        compiled = self.compiler.compile(context, request, skip_security_check)
        result = await self.engine.execute(compiled)

        if compiled.is_aggregation:
            buckets = aggregation_buckets(result)
            # total counts buckets, not matching documents
            return QueryResponse(total=len(buckets), data=buckets)

        documents = [hit_document(hit) for hit in result.hits]
        if not include_raw_record or not documents:
            return QueryResponse(total=result.total, data=documents)

        # The projected source may omit id; the hit id falls back to _id
        ids = [hit.id for hit in result.hits if hit.id]
        records = await self.store.fetch_by_ids(ids, attributes)
        hits_by_id = {hit.id: hit for hit in result.hits}

        fused = []
        for record in records:
            hit = hits_by_id.get(record.get("id"))
            if hit is None:
                continue
            fused.append({**record, "highlight": hit.highlight, "score": hit.score})

        if len(fused) < len(ids):
            logger.debug(
                "%d of %d hits have no canonical record", len(ids) - len(fused), len(ids)
            )

        fused.sort(key=_score_key)
        return QueryResponse(total=result.total, data=fused)
