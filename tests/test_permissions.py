"""Unit tests for the permission service and search policy.

Tests cover read checks for:
1. Solution owner - reads every entity
2. Entity privilege - reads the entity and its subtypes
3. Entity_Type privilege - reads the subtype only
4. Wildcard privilege - reads every entity
"""

import pytest

from search_gateway.exceptions import ErrorKind, SearchServiceError
from search_gateway.schemas.context import CallerContext
from search_gateway.schemas.search import QueryRequest
from search_gateway.services.permission_service import EntityPermissionService
from search_gateway.services.search_policy import SearchPolicy

from conftest import OWNER_ID, SOLUTION_ID, USER_ID


def _context(privileges=None, user_id=USER_ID) -> CallerContext:
    return CallerContext(
        solution_id=SOLUTION_ID,
        solution_owner_id=OWNER_ID,
        user_id=user_id,
        privileges=privileges or {},
    )


class TestEntityPermissionService:
    """Tests for can_read."""

    def setup_method(self):
        self.service = EntityPermissionService()

    def test_owner_reads_everything(self):
        """The solution owner needs no privileges."""
        assert self.service.can_read(_context(user_id=OWNER_ID), "Invoice")

    def test_owner_match_is_case_insensitive(self):
        assert self.service.can_read(_context(user_id=OWNER_ID.upper()), "Invoice")

    def test_no_privileges_no_read(self):
        assert not self.service.can_read(_context(), "Event")

    def test_entity_privilege_covers_subtypes(self):
        context = _context({"Event": ["read"]})
        assert self.service.can_read(context, "Event")
        assert self.service.can_read(context, "Event", "Concert")

    def test_subtype_privilege_covers_subtype_only(self):
        context = _context({"Event_Concert": ["full"]})
        assert self.service.can_read(context, "Event", "Concert")
        assert not self.service.can_read(context, "Event")
        assert not self.service.can_read(context, "Event", "Lecture")

    def test_wildcard_privilege(self):
        assert self.service.can_read(_context({"*": ["Read"]}), "Anything")

    def test_write_right_does_not_grant_read(self):
        assert not self.service.can_read(_context({"Event": ["write"]}), "Event")

    def test_privilege_keys_case_insensitive(self):
        assert self.service.can_read(_context({"event": ["read"]}), "Event")


class TestSearchPolicy:
    """Tests for target selection."""

    def test_index_targets_entity(self, policy: SearchPolicy):
        request = QueryRequest(entity_name="Event")
        assert policy.index_targets(request) == ["Event"]

    def test_index_targets_subtype_and_extras(self, policy: SearchPolicy):
        request = QueryRequest(entity_name="Event", entity_type="Concert", index_names=["Venue"])
        assert policy.index_targets(request) == ["Venue", "Event_Concert"]

    def test_readable_targets_forbidden_when_empty(self, policy: SearchPolicy):
        with pytest.raises(SearchServiceError) as exc_info:
            policy.readable_targets(_context(), ["Event"])
        assert exc_info.value.kind == ErrorKind.FORBIDDEN
        assert exc_info.value.status_code == 403

    def test_readable_targets_filters(self, policy: SearchPolicy):
        context = _context({"Venue": ["read"]})
        assert policy.readable_targets(context, ["Event", "Venue"]) == ["Venue"]
