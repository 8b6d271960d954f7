"""Tests for engine start-up, share acceptance and change notifications."""

import pytest

from checkmate_sync.engine import CloudSyncEngine
from checkmate_sync.exceptions import RemoteOperationError
from checkmate_sync.models.config import SyncConfig
from checkmate_sync.models.record import Record, RecordID, RecordLocation, RecordType, ZoneID
from checkmate_sync.remote.client import ShareMetadata
from checkmate_sync.remote.errors import ErrorCode, RemoteStoreError
from checkmate_sync.sync.error_classifier import StrategyKind
from checkmate_sync.sync.notifications import ChangeKind, ChangeNotifier, RecordsChanged

PRIVATE = RecordLocation.PRIVATE
SHARED = RecordLocation.SHARED


class TestStart:
    @pytest.mark.asyncio
    async def test_start_subscribes_and_creates_well_known_zone(self, store, engine, todos_zone):
        await engine.start()

        assert store.subscriptions == {PRIVATE, SHARED}
        assert engine.cursors.is_zone_known(todos_zone)
        assert store.calls["save_zones"] == 1

    @pytest.mark.asyncio
    async def test_start_failures_are_logged_not_raised(self, store, engine, todos_zone):
        store.fail_next("subscribe_to_database", RemoteStoreError(ErrorCode.NOT_AUTHENTICATED))
        store.fail_next("save_zones", RemoteStoreError(ErrorCode.NETWORK_UNAVAILABLE))

        await engine.start()

        assert not engine.cursors.is_zone_known(todos_zone)
        assert len(store.subscriptions) == 1

    @pytest.mark.asyncio
    async def test_start_respects_configuration(self, store):
        engine = CloudSyncEngine(
            store, SyncConfig(subscribe_on_start=False, create_zone_on_start=False)
        )

        await engine.start()

        assert store.calls["subscribe_to_database"] == 0
        assert store.calls["save_zones"] == 0


class TestAcceptShare:
    @pytest.mark.asyncio
    async def test_accepting_a_share_fetches_its_records(self, store, engine):
        alice_zone = ZoneID(zone_name="todos", owner_name="alice")
        (shared_list,) = store.seed(
            SHARED,
            [
                Record(
                    record_id=RecordID(record_name="alice-list", zone_id=alice_zone),
                    record_type=RecordType.LIST,
                    fields={"title": "Shared groceries"},
                )
            ],
        )
        metadata = ShareMetadata(
            share_record_id=RecordID(record_name="share-1", zone_id=alice_zone),
            root_record_id=shared_list.record_id,
            owner_name="alice",
        )

        reports = await engine.accept_share(metadata)

        assert store.accepted_shares == [metadata]
        assert all(report.success for report in reports)
        assert engine.lists_view() == [shared_list]

    @pytest.mark.asyncio
    async def test_failed_acceptance_is_classified(self, store, engine):
        zone = ZoneID(zone_name="todos", owner_name="alice")
        metadata = ShareMetadata(
            share_record_id=RecordID(record_name="share-1", zone_id=zone),
            root_record_id=RecordID(record_name="root", zone_id=zone),
            owner_name="alice",
        )
        store.fail_next(
            "accept_shares", RemoteStoreError(ErrorCode.PARTICIPANT_MAY_NEED_VERIFICATION)
        )

        with pytest.raises(RemoteOperationError) as exc_info:
            await engine.accept_share(metadata)

        assert exc_info.value.strategy.kind is StrategyKind.REDIRECT_TO_VERIFICATION
        assert store.calls["fetch_database_changes"] == 0


class TestChangeNotifier:
    def test_unsubscribe_stops_delivery(self, todos_zone):
        notifier = ChangeNotifier()
        received = []
        unsubscribe = notifier.subscribe(received.append)
        event = RecordsChanged(location=PRIVATE, purged_zones=[todos_zone])

        notifier.publish(event)
        unsubscribe()
        unsubscribe()
        notifier.publish(event)

        assert received == [event]

    def test_failing_listener_does_not_block_others(self):
        notifier = ChangeNotifier()
        received = []

        def broken(event):
            raise ValueError("boom")

        notifier.subscribe(broken)
        notifier.subscribe(received.append)
        notifier.publish(RecordsChanged(location=SHARED))

        assert len(received) == 1

    def test_event_kinds(self, todos_zone):
        record_id = RecordID(record_name="L1", zone_id=todos_zone)

        assert RecordsChanged(location=PRIVATE).kinds == set()
        assert RecordsChanged(
            location=PRIVATE, upserted=[record_id], deleted=[record_id], purged_zones=[todos_zone]
        ).kinds == {
            ChangeKind.RECORDS_UPSERTED,
            ChangeKind.RECORDS_DELETED,
            ChangeKind.ZONES_PURGED,
        }
