"""Compile generic query requests into Elasticsearch queries.

Compilation is a pure transform of (caller context, validated request):
no I/O and no randomness, so the same input always yields the same
CompiledQuery. Security decisions are delegated to SearchPolicy.
"""

import re
from typing import Any, Callable, Optional

from ..config import settings
from ..schemas.context import CallerContext
from ..schemas.search import (
    CompiledQuery,
    Condition,
    ConditionOperator,
    QueryRequest,
)
from .search_policy import SearchPolicy

# The two merged text fields every indexed document carries
SEARCH_TEXT_FIELDS = ("searchDisplay", "searchContent")

# Query-time boosts for keyword search; mappings carry no boost
KEYWORD_SEARCH_FIELDS = ("searchDisplay^2", "searchContent", "tags^3", "tagsLowerCase^3")

# Name of the terms aggregation in aggregation-only queries
AGGREGATION_NAME = "list"

WILDCARD_SPECIAL_RE = re.compile(r"([\\*?])")


def _term(field: str, value: Any) -> dict[str, Any]:
    return {"term": {field: value}}


def _equals(attribute: str, value: Any) -> dict[str, Any]:
    if value is None:
        return {"bool": {"must_not": [{"exists": {"field": attribute}}]}}
    return _term(attribute, value)


def _not_equals(attribute: str, value: Any) -> dict[str, Any]:
    if value is None:
        return {"exists": {"field": attribute}}
    return {"bool": {"must_not": [_term(attribute, value)]}}


def _range(bound: str) -> Callable[[str, Any], dict[str, Any]]:
    def build(attribute: str, value: Any) -> dict[str, Any]:
        return {"range": {attribute: {bound: value}}}
    return build


def _in(attribute: str, value: Any) -> dict[str, Any]:
    values = value if isinstance(value, list) else [value]
    return {"terms": {attribute: values}}


def _contains(attribute: str, value: Any) -> dict[str, Any]:
    text = WILDCARD_SPECIAL_RE.sub(r"\\\1", "" if value is None else str(value))
    return {"wildcard": {attribute: {"value": f"*{text}*", "case_insensitive": True}}}


def _search(attribute: Optional[str], value: Any) -> dict[str, Any]:
    # Both text fields are analyzed with a lowercasing analyzer
    text = "" if value is None else str(value)
    return {
        "bool": {
            "should": [{"match": {field: text}} for field in SEARCH_TEXT_FIELDS],
            "minimum_should_match": 1,
        }
    }


# Operator -> clause builder. Values are always passed as JSON values,
# never interpolated into a query string.
CONDITION_BUILDERS: dict[ConditionOperator, Callable[..., dict[str, Any]]] = {
    ConditionOperator.EQUALS: _equals,
    ConditionOperator.DOUBLE_EQUALS: _equals,
    ConditionOperator.NOT_EQUALS: _not_equals,
    ConditionOperator.NOT_EQUALS_SQL: _not_equals,
    ConditionOperator.LESS_THAN: _range("lt"),
    ConditionOperator.LESS_THAN_OR_EQUAL: _range("lte"),
    ConditionOperator.GREATER_THAN: _range("gt"),
    ConditionOperator.GREATER_THAN_OR_EQUAL: _range("gte"),
    ConditionOperator.IN: _in,
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.SEARCH: _search,
}


def condition_clause(condition: Condition) -> dict[str, Any]:
    """Translate one structured condition into an Elasticsearch filter clause."""
    attribute = condition.attribute.strip() if condition.attribute else None
    return CONDITION_BUILDERS[condition.op](attribute, condition.value)


def identifier_filters(request: QueryRequest) -> list[dict[str, Any]]:
    filters = []
    if request.id is not None:
        filters.append(_term("id", request.id))
    if request.ids is not None:
        filters.append({"terms": {"id": list(request.ids)}})
    return filters


def category_filters(request: QueryRequest) -> list[dict[str, Any]]:
    """Match documents in any of the requested categories."""
    if not request.category_ids:
        return []
    return [{
        "bool": {
            "should": [_term("categoryIds", category_id) for category_id in request.category_ids]
        }
    }]


def highlight_spec(request: QueryRequest) -> dict[str, Any]:
    tags = {
        "pre_tags": [request.highlight_pre_tag],
        "post_tags": [request.highlight_post_tag],
    }
    return {
        "require_field_match": True,
        "fields": [{field: dict(tags)} for field in SEARCH_TEXT_FIELDS],
    }


def sort_spec(request: QueryRequest) -> list[dict[str, Any]]:
    """Relevance first when keywords are present, then the caller's order."""
    sort: list[dict[str, Any]] = []
    if request.keywords:
        sort.append({"_score": {"order": "desc"}})
    for order in request.order_by:
        sort.append({order.attribute: {"order": order.direction.value}})
    return sort


class QueryCompiler:
    """Turns a QueryRequest into a security-scoped CompiledQuery."""

    def __init__(self, policy: SearchPolicy):
        self.policy = policy

    def compile(
        self,
        context: CallerContext,
        request: QueryRequest,
        skip_security_check: bool = False,
    ) -> CompiledQuery:
        """
        Build the engine-native query for a request.

        Args:
            context: Caller context the query is evaluated under
            request: Validated query request
            skip_security_check: Trusted internal callers only; skips the
                read-privilege check and the forced organization filter

        Returns:
            CompiledQuery: an aggregation-only query when ``aggregate`` is set,
            a document listing otherwise.

        Raises:
            SearchServiceError(FORBIDDEN): the caller may read none of the targets.
        """
        index_names = self.policy.index_targets(request)
        if not skip_security_check:
            index_names = self.policy.readable_targets(context, index_names)
        indices = list(dict.fromkeys(name.lower() for name in index_names))

        filters: list[dict[str, Any]] = [_term("stateCode", request.state_code)]
        filters.extend(identifier_filters(request))
        filters.extend(self.policy.solution_filters(context, index_names))
        filters.extend(category_filters(request))
        filters.extend(
            self.policy.scope_filters(
                context, request, index_names, enforce=not skip_security_check
            )
        )
        filters.extend(condition_clause(c) for c in request.conditions)

        if request.aggregate:
            return CompiledQuery(
                indices=indices,
                size=0,
                filters=filters,
                aggregation={
                    AGGREGATION_NAME: {
                        "terms": {
                            "field": request.aggregate,
                            "size": settings.search_aggregate_size,
                        }
                    }
                },
            )

        must: list[dict[str, Any]] = []
        if request.keywords:
            must.append({
                "multi_match": {
                    "query": request.keywords,
                    "fields": list(KEYWORD_SEARCH_FIELDS),
                }
            })

        return CompiledQuery(
            indices=indices,
            size=request.page_size,
            must=must,
            filters=filters,
            highlight=highlight_spec(request),
            sort=sort_spec(request),
            source=request.attributes,
        )
