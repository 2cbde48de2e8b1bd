"""Shared pytest fixtures for search gateway tests."""

import asyncio
import os
import sys
from typing import Any, Optional
from uuid import uuid4

# Required settings must exist BEFORE importing the application
os.environ.setdefault("DB_SERVER", "localhost")
os.environ.setdefault("DB_NAME", "search_gateway_test")
os.environ.setdefault("DB_USER", "test")
os.environ.setdefault("DB_PASSWORD", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-search-gateway")

# Add the project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from search_gateway.database import Base
from search_gateway.exceptions import dependency_error
from search_gateway.schemas.context import CallerContext
from search_gateway.schemas.index import IndexDescriptor
from search_gateway.schemas.search import CompiledQuery
from search_gateway.services.index_manager import IndexSchemaManager, KnownIndexCache
from search_gateway.services.metadata_registry import EntitySchema
from search_gateway.services.permission_service import EntityPermissionService
from search_gateway.services.query_compiler import QueryCompiler
from search_gateway.services.search_engine import SearchResult
from search_gateway.services.search_policy import SearchPolicy


# =============================================================================
# Fakes
# =============================================================================


class FakeSearchEngine:
    """In-memory stand-in for SearchEngineClient.

    Every admin call yields to the event loop once, so that concurrent
    callers interleave the way they would against a real cluster.
    """

    def __init__(self):
        self.schemas: dict[str, dict[str, str]] = {}
        self.documents: dict[str, dict[str, dict[str, Any]]] = {}
        self.calls: list[tuple[str, str]] = []
        self.executed: list[CompiledQuery] = []
        self.result = SearchResult(total=0)
        self.fail_create = False
        self.healthy = True

    async def execute(self, query: CompiledQuery) -> SearchResult:
        self.executed.append(query)
        return self.result

    async def index_exists(self, index_name: str) -> bool:
        await asyncio.sleep(0)
        self.calls.append(("exists", index_name))
        return index_name in self.schemas

    async def get_schema(self, index_name: str) -> Optional[dict[str, str]]:
        await asyncio.sleep(0)
        self.calls.append(("get_schema", index_name))
        return self.schemas.get(index_name)

    async def create_index(self, descriptor: IndexDescriptor) -> None:
        await asyncio.sleep(0)
        self.calls.append(("create", descriptor.index_name))
        if self.fail_create:
            raise dependency_error("Index creation failed.", index_name=descriptor.index_name)
        self.schemas[descriptor.index_name] = {
            name: spec.get("type", "object") for name, spec in descriptor.properties.items()
        }

    async def delete_index(self, index_name: str) -> None:
        await asyncio.sleep(0)
        self.calls.append(("delete", index_name))
        self.schemas.pop(index_name, None)
        self.documents.pop(index_name, None)

    async def upsert_document(self, index_name: str, document: dict[str, Any]) -> None:
        self.documents.setdefault(index_name, {})[document["id"]] = document

    async def delete_document(self, index_name: str, document_id: str) -> None:
        self.documents.get(index_name, {}).pop(document_id, None)

    async def health(self) -> dict[str, Any]:
        if self.healthy:
            return {"status": "healthy", "cluster": "green"}
        return {"status": "degraded"}

    def count(self, action: str, index_name: str) -> int:
        return self.calls.count((action, index_name))


class FakeRegistry:
    """MetadataRegistry stand-in: fixed schemas, optional failing entities."""

    def __init__(
        self,
        schemas: Optional[dict[tuple[str, Optional[str]], EntitySchema]] = None,
        failing: tuple[str, ...] = (),
    ):
        self.schemas = schemas or {}
        self.failing = failing

    async def get_entity_schema(
        self,
        solution_id: str,
        entity_name: str,
        entity_type: Optional[str] = None,
    ) -> EntitySchema:
        if entity_name in self.failing:
            raise dependency_error("Reading entity metadata failed.", entity_name=entity_name)
        return self.schemas.get(
            (entity_name, entity_type),
            EntitySchema(entity_name=entity_name, entity_type=entity_type),
        )


# =============================================================================
# Caller contexts
# =============================================================================


SOLUTION_ID = "11111111-1111-1111-1111-111111111111"
ORGANIZATION_ID = "22222222-2222-2222-2222-222222222222"
USER_ID = "33333333-3333-3333-3333-333333333333"
OWNER_ID = "44444444-4444-4444-4444-444444444444"


@pytest.fixture
def caller() -> CallerContext:
    """A regular member of the solution who may read Events."""
    return CallerContext(
        solution_id=SOLUTION_ID,
        solution_owner_id=OWNER_ID,
        organization_id=ORGANIZATION_ID,
        user_id=USER_ID,
        privileges={"Event": ["read"]},
    )


@pytest.fixture
def reader() -> CallerContext:
    """A regular member holding read on every entity, but not the owner."""
    return CallerContext(
        solution_id=SOLUTION_ID,
        solution_owner_id=OWNER_ID,
        organization_id=ORGANIZATION_ID,
        user_id=USER_ID,
        privileges={"*": ["read"]},
    )


@pytest.fixture
def owner() -> CallerContext:
    """The solution owner: reads everything."""
    return CallerContext(
        solution_id=SOLUTION_ID,
        solution_owner_id=OWNER_ID,
        organization_id=ORGANIZATION_ID,
        user_id=OWNER_ID,
    )


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def policy() -> SearchPolicy:
    return SearchPolicy(EntityPermissionService())


@pytest.fixture
def compiler(policy: SearchPolicy) -> QueryCompiler:
    return QueryCompiler(policy)


@pytest.fixture
def fake_engine() -> FakeSearchEngine:
    return FakeSearchEngine()


@pytest.fixture
def fake_registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def index_cache() -> KnownIndexCache:
    return KnownIndexCache()


@pytest.fixture
def index_manager(
    fake_engine: FakeSearchEngine,
    fake_registry: FakeRegistry,
    index_cache: KnownIndexCache,
) -> IndexSchemaManager:
    return IndexSchemaManager(fake_engine, fake_registry, index_cache)


# =============================================================================
# Database (in-memory SQLite via aiosqlite)
# =============================================================================


@pytest_asyncio.fixture
async def session_maker():
    """Create a fresh in-memory canonical store per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


def make_document(entity_name: str = "Event", entity_type: Optional[str] = None, **fields) -> dict:
    """A canonical document of the test solution."""
    document = {
        "id": str(uuid4()),
        "entityName": entity_name,
        "entityType": entity_type,
        "solutionId": SOLUTION_ID,
        "organizationId": ORGANIZATION_ID,
        "ownedBy": USER_ID,
    }
    document.update(fields)
    return document
