"""Tests for share creation and removal.

**Feature: checkmate-sync, Property 9: A record has at most one share**
"""

import pytest

from checkmate_sync.engine import CloudSyncEngine
from checkmate_sync.exceptions import RemoteOperationError
from checkmate_sync.models.record import RecordLocation, RecordType, Reference
from checkmate_sync.remote.errors import ErrorCode, RemoteStoreError
from checkmate_sync.sync.error_classifier import StrategyKind

PRIVATE = RecordLocation.PRIVATE


class TestShareFor:
    """Property 9: A record has at most one share.

    **Feature: checkmate-sync, Property 9: A record has at most one share**
    """

    @pytest.mark.asyncio
    async def test_new_share_is_saved_atomically_with_its_root(self, store, engine):
        await engine.start()
        groceries = await engine.create_list("Groceries")
        received = []
        engine.subscribe(received.append)

        share = await engine.share_for(groceries)

        assert share.record_type is RecordType.SHARE
        assert share.change_tag is not None
        assert share.get("title") == "Groceries"
        assert share.get("rootRecord") == Reference.to(groceries)
        assert engine.shares_view() == [share]

        root = engine.cache.get(groceries.record_id)
        assert root.share == Reference(record_id=share.record_id)
        assert store.server_record(PRIVATE, groceries.record_id).share == root.share
        assert len(received) == 1
        assert set(received[0].upserted) == {share.record_id, groceries.record_id}

    @pytest.mark.asyncio
    async def test_existing_share_is_returned_without_remote_call(self, store, engine):
        await engine.start()
        groceries = await engine.create_list("Groceries")
        share = await engine.share_for(groceries)
        writes = store.calls["modify_records"]

        again = await engine.share_for(engine.cache.get(groceries.record_id))

        assert again == share
        assert store.calls["create_share"] == 1
        assert store.calls["modify_records"] == writes

    @pytest.mark.asyncio
    async def test_share_carries_thumbnail(self, store):
        engine = CloudSyncEngine(store, share_thumbnail=b"\x89PNG")
        await engine.start()
        groceries = await engine.create_list("Groceries")

        share = await engine.share_for(groceries)

        assert share.get("thumbnailImageData") == b"\x89PNG"

    @pytest.mark.asyncio
    async def test_failed_share_write_leaves_cache_untouched(self, store, engine):
        await engine.start()
        groceries = await engine.create_list("Groceries")
        before = engine.cache.records()
        store.fail_next("modify_records", RemoteStoreError(ErrorCode.NETWORK_FAILURE))

        with pytest.raises(RemoteOperationError) as exc_info:
            await engine.share_for(groceries)

        assert exc_info.value.strategy.kind is StrategyKind.RETRY_IMMEDIATELY
        assert engine.cache.records() == before
        assert engine.shares_view() == []

    @pytest.mark.asyncio
    async def test_failed_share_creation_is_classified(self, store, engine):
        await engine.start()
        groceries = await engine.create_list("Groceries")
        store.fail_next("create_share", RemoteStoreError(ErrorCode.SERVICE_UNAVAILABLE))

        with pytest.raises(RemoteOperationError) as exc_info:
            await engine.share_for(groceries)

        assert exc_info.value.operation == "create_share"
        assert exc_info.value.strategy.kind is StrategyKind.RETRY_AFTER
        assert store.calls["modify_records"] == 1


class TestStopSharing:
    """Stopping a share deletes the share object."""

    @pytest.mark.asyncio
    async def test_stop_sharing_removes_share(self, store, engine):
        await engine.start()
        groceries = await engine.create_list("Groceries")
        share = await engine.share_for(groceries)

        deleted = await engine.stop_sharing(share)

        assert deleted == [share.record_id]
        assert engine.shares_view() == []
        assert store.server_record(PRIVATE, share.record_id) is None
        assert store.server_record(PRIVATE, groceries.record_id).share is None

        await engine.fetch_updates(PRIVATE)
        assert engine.cache.get(groceries.record_id).share is None
