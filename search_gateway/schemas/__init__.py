"""Pydantic schemas package for request/response validation."""

from .context import CallerContext
from .index import IndexDescriptor, IndexTarget, write_targets
from .search import (
    CompiledQuery,
    Condition,
    ConditionOperator,
    EnsureIndexRequest,
    EnsureIndexResponse,
    OrderBy,
    QueryEnvelope,
    QueryRequest,
    QueryResponse,
    QueryScope,
    ReindexRequest,
    SortDirection,
)

__all__ = [
    "CallerContext",
    "CompiledQuery",
    "Condition",
    "ConditionOperator",
    "EnsureIndexRequest",
    "EnsureIndexResponse",
    "IndexDescriptor",
    "IndexTarget",
    "OrderBy",
    "QueryEnvelope",
    "QueryRequest",
    "QueryResponse",
    "QueryScope",
    "ReindexRequest",
    "SortDirection",
    "write_targets",
]
