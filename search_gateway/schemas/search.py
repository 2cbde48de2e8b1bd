"""Pydantic schemas for search queries, compiled engine queries and responses."""

from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..config import settings


class QueryScope(str, Enum):
    """Caller-selected visibility filter, applied on top of tenant security."""

    GLOBAL = "global"
    MINE = "mine"
    GLOBAL_AND_MINE = "global-and-mine"
    ORGANIZATION = "organization"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ConditionOperator(str, Enum):
    """Operators accepted in structured query conditions."""

    EQUALS = "="
    DOUBLE_EQUALS = "=="
    NOT_EQUALS = "!="
    NOT_EQUALS_SQL = "<>"
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="
    IN = "IN"
    CONTAINS = "CONTAINS"
    SEARCH = "SEARCH"


def parse_order_by(value: str) -> list[dict[str, str]]:
    """Parse the ``"attribute direction"`` shorthand.

    Commas count as whitespace; only the first attribute/direction pair is used.

    Examples:
        "modifiedOn desc" -> [{"attribute": "modifiedOn", "direction": "desc"}]
        "name" -> [{"attribute": "name", "direction": "asc"}]
    """
    tokens = value.replace(",", " ").split()
    if not tokens:
        return []
    direction = tokens[1] if len(tokens) > 1 else SortDirection.ASC.value
    return [{"attribute": tokens[0], "direction": direction}]


class Condition(BaseModel):
    """A structured predicate: ``attribute OP value``."""

    model_config = ConfigDict(frozen=True)

    attribute: Optional[str] = None
    op: ConditionOperator = ConditionOperator.EQUALS
    value: Any = None

    @field_validator("op", mode="before")
    @classmethod
    def normalize_op(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @model_validator(mode="after")
    def validate_attribute(self) -> "Condition":
        """Every operator except SEARCH needs an attribute."""
        if self.op != ConditionOperator.SEARCH and not (self.attribute and self.attribute.strip()):
            raise ValueError(f"Condition with operator {self.op.value} requires an attribute")
        return self


class OrderBy(BaseModel):
    """One sort key. Unrecognized direction tokens sort ascending."""

    model_config = ConfigDict(frozen=True)

    attribute: str = Field(..., min_length=1)
    direction: SortDirection = Field(
        SortDirection.ASC,
        validation_alias=AliasChoices("direction", "type"),
    )

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, v: Any) -> SortDirection:
        if isinstance(v, str) and v.strip().lower() == SortDirection.DESC.value:
            return SortDirection.DESC
        return SortDirection.ASC


class QueryRequest(BaseModel):
    """Generic, declarative description of a search.

    Validation normalizes the request once so that compiling it is a pure
    function: paging is clamped, shorthand ordering is parsed and an empty
    ``id`` / ``ids`` filter becomes an unmatchable random identifier.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    entity_name: str = Field(..., min_length=1, description="Entity to search, e.g. 'Event'")
    entity_type: Optional[str] = Field(None, description="Optional entity subtype")
    index_names: list[str] = Field(
        default_factory=list,
        description="Additional 'Entity' or 'Entity_Type' targets",
    )
    id: Optional[str] = None
    ids: Optional[list[str]] = None
    attributes: Optional[list[str]] = Field(
        None,
        description="Projection list; None means all fields ('*')",
    )
    keywords: Optional[str] = None
    conditions: list[Condition] = Field(default_factory=list)
    category_ids: list[str] = Field(default_factory=list)
    scope: Optional[QueryScope] = None
    state_code: int = 0
    page_size: int = Field(default=settings.search_default_page_size)
    order_by: list[OrderBy] = Field(default_factory=list)
    aggregate: Optional[str] = None
    highlight_pre_tag: str = settings.search_highlight_pre_tag
    highlight_post_tag: str = settings.search_highlight_post_tag

    @field_validator("entity_name")
    @classmethod
    def validate_entity_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("The entityName is not provided.")
        return v

    @field_validator("entity_type", "keywords", "aggregate", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("id", mode="before")
    @classmethod
    def empty_id_matches_nothing(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return str(uuid4())
        return v

    @field_validator("ids", mode="before")
    @classmethod
    def empty_ids_match_nothing(cls, v: Any) -> Any:
        if isinstance(v, list) and len(v) == 0:
            return [str(uuid4())]
        return v

    @field_validator("index_names", "category_ids", "conditions", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("attributes", mode="before")
    @classmethod
    def parse_attributes(cls, v: Any) -> Optional[list[str]]:
        """Accept a list, a comma-delimited string, or '*' for all fields."""
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, list):
            return None
        names = [a.strip() for a in v if isinstance(a, str) and a.strip()]
        if not names or names == ["*"]:
            return None
        return names

    @field_validator("scope", mode="before")
    @classmethod
    def parse_scope(cls, v: Any) -> Optional[QueryScope]:
        """Case-insensitive; unknown values behave as if no scope was given."""
        if not isinstance(v, str):
            return v if isinstance(v, QueryScope) else None
        try:
            return QueryScope(v.strip().lower())
        except ValueError:
            return None

    @field_validator("page_size", mode="before")
    @classmethod
    def clamp_page_size(cls, v: Any) -> int:
        """Default 10, clamped to [1, 100]."""
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return settings.search_default_page_size
        return max(1, min(int(v), settings.search_max_page_size))

    @field_validator("order_by", mode="before")
    @classmethod
    def parse_order_by_field(cls, v: Any) -> list[Any]:
        if v is None:
            return []
        if isinstance(v, str):
            return parse_order_by(v)
        if isinstance(v, dict):
            return [v]
        result: list[Any] = []
        for item in v:
            result.extend(parse_order_by(item) if isinstance(item, str) else [item])
        return result

    @field_validator("highlight_pre_tag", mode="before")
    @classmethod
    def default_pre_tag(cls, v: Any) -> str:
        return v if isinstance(v, str) and v else settings.search_highlight_pre_tag

    @field_validator("highlight_post_tag", mode="before")
    @classmethod
    def default_post_tag(cls, v: Any) -> str:
        return v if isinstance(v, str) and v else settings.search_highlight_post_tag


class CompiledQuery(BaseModel):
    """Engine-native (Elasticsearch) query built from a QueryRequest.

    Either a document listing (``aggregation`` is None) or an aggregation-only
    query (``size`` 0). ``filters`` always carries the security clauses.
    """

    model_config = ConfigDict(frozen=True)

    indices: list[str]
    size: int
    from_: int = 0
    must: list[dict[str, Any]] = Field(default_factory=list)
    filters: list[dict[str, Any]] = Field(default_factory=list)
    highlight: Optional[dict[str, Any]] = None
    sort: list[dict[str, Any]] = Field(default_factory=list)
    source: Optional[list[str]] = None
    aggregation: Optional[dict[str, Any]] = None

    @property
    def is_aggregation(self) -> bool:
        return self.aggregation is not None

    def to_body(self) -> dict[str, Any]:
        """Render the Elasticsearch request body."""
        if self.is_aggregation:
            return {
                "size": 0,
                "query": {"bool": {"filter": list(self.filters)}},
                "aggs": self.aggregation,
            }

        body: dict[str, Any] = {
            "from": self.from_,
            "size": self.size,
            "query": {"bool": {"must": list(self.must), "filter": list(self.filters)}},
        }
        if self.highlight:
            body["highlight"] = self.highlight
        if self.sort:
            body["sort"] = list(self.sort)
        if self.source is not None:
            body["_source"] = list(self.source)
        return body


class QueryEnvelope(BaseModel):
    """Body of the query endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: Optional[dict[str, Any]] = None
    include_raw_record: bool = True
    attributes: Optional[str] = Field(
        None,
        description="Comma-delimited projection applied to canonical records",
    )


class QueryResponse(BaseModel):
    """Search result: total hit count and the (fused) documents.

    For aggregation queries ``data`` holds the term buckets and ``total`` is
    the number of buckets, not the number of matching documents.
    """

    total: int = 0
    data: list[dict[str, Any]] = Field(default_factory=list)


class ReindexRequest(BaseModel):
    """Body of the reindex endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    entity_name: Optional[str] = None
    page_size: int = Field(default=settings.reindex_page_size, ge=1, le=1000)


class EnsureIndexRequest(BaseModel):
    """Body of the ensure-index endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    entity_name: str = Field(..., min_length=1)
    entity_type: Optional[str] = None
    force_create: bool = False


class EnsureIndexResponse(BaseModel):
    indices: list[str]
    created: list[str]
