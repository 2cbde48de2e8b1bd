"""Tests for the reindex orchestrator."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from search_gateway.services.metadata_registry import EntitySchema
from search_gateway.services.reindex_service import ReindexService, bucket_key

from conftest import FakeRegistry, make_document


def _store(pages):
    """A store whose scan yields the given pages and echoes writes."""
    store = MagicMock()

    async def scan_stale(solution_id, cutoff, entity_name=None, page_size=100):
        for page in pages:
            yield page

    store.scan_stale = MagicMock(side_effect=scan_stale)
    store.write_document = AsyncMock(side_effect=lambda document: document)
    return store


class TestBucketKey:
    def test_entity_and_subtype(self):
        assert bucket_key({"entityName": "Event", "entityType": "Concert"}) == "Event_Concert"
        assert bucket_key({"entityName": "Event", "entityType": None}) == "Event"


class TestReindexStaleRecords:
    """Tests for ReindexService.reindex_stale_records."""

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort(self):
        """Three stale records, one failing schema lookup: two buckets of one."""
        documents = [
            make_document("Event", "Concert", title="Jazz night"),
            make_document("Broken"),
            make_document("Venue", title="Opera house"),
        ]
        store = _store([documents])
        service = ReindexService(store, FakeRegistry(failing=("Broken",)))

        counts = await service.reindex_stale_records("solution-1")

        assert counts == {"Event_Concert": 1, "Venue": 1}
        assert store.write_document.await_count == 2

    @pytest.mark.asyncio
    async def test_reserved_entities_skipped(self):
        store = _store([[make_document("Domain"), make_document("Secret"), make_document("Event")]])
        service = ReindexService(store, FakeRegistry())

        counts = await service.reindex_stale_records("solution-1")

        assert counts == {"Event": 1}

    @pytest.mark.asyncio
    async def test_counts_across_pages(self):
        store = _store([
            [make_document("Event"), make_document("Event")],
            [make_document("Event")],
        ])
        service = ReindexService(store, FakeRegistry())

        counts = await service.reindex_stale_records("solution-1", page_size=2)

        assert counts == {"Event": 3}

    @pytest.mark.asyncio
    async def test_record_is_rebuilt_and_stamped(self):
        """Merged text regenerated, modifiedBy defaulted, searchReindexedOn stamped."""
        document = make_document(
            "Event", title="Jazz <b>night</b>", description="<p>Live &amp; loud</p>"
        )
        store = _store([[document]])
        registry = FakeRegistry({
            ("Event", None): EntitySchema("Event", display_fields=("title",), content_fields=("description",)),
        })
        service = ReindexService(store, registry)

        await service.reindex_stale_records("solution-1")

        written = store.write_document.await_args.args[0]
        assert written["searchDisplay"] == "Jazz night"
        assert written["searchContent"] == "Live & loud"
        assert written["modifiedBy"] == document["ownedBy"]
        assert written["searchReindexedOn"].endswith("Z")
        assert "searchReindexedOn" not in document

    @pytest.mark.asyncio
    async def test_existing_modified_by_kept(self):
        store = _store([[make_document("Event", modifiedBy="someone-else")]])
        service = ReindexService(store, FakeRegistry())

        await service.reindex_stale_records("solution-1")

        assert store.write_document.await_args.args[0]["modifiedBy"] == "someone-else"

    @pytest.mark.asyncio
    async def test_scan_arguments(self):
        store = _store([])
        service = ReindexService(store, FakeRegistry())
        cutoff = datetime(2026, 1, 1, 12, 0)

        counts = await service.reindex_stale_records(
            "solution-1", entity_name="Event", page_size=25, cutoff=cutoff
        )

        assert counts == {}
        store.scan_stale.assert_called_once_with("solution-1", cutoff, "Event", 25)
