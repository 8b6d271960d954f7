"""Delta synchronization between the remote record store and the local cache."""

import asyncio
from datetime import datetime
from typing import Iterable

import structlog

from checkmate_sync.models.config import ErrorPolicy
from checkmate_sync.models.record import RecordID, RecordLocation, ZoneID
from checkmate_sync.remote.client import (
    RecordChanged,
    RecordDeleted,
    RemoteStoreClient,
    ZoneChangeKind,
    ZoneFetchCompleted,
    ZoneFetchRequest,
)
from checkmate_sync.remote.errors import ErrorCode, RemoteStoreError
from checkmate_sync.storage.record_cache import RecordCache
from checkmate_sync.sync.cursor_store import CursorStore
from checkmate_sync.sync.error_classifier import RetryStrategy, StrategyKind, classify
from checkmate_sync.sync.models import SyncReport, ZoneDelta
from checkmate_sync.sync.notifications import ChangeNotifier, RecordsChanged

log = structlog.stdlib.get_logger()


class _SyncProgress:
    """Mutable tally of what one database sync applied to the cache."""

    def __init__(self, location: RecordLocation):
        self.location = location
        self.changed_zones: list[ZoneID] = []
        self.purged_zones: list[ZoneID] = []
        self.upserted: list[RecordID] = []
        self.deleted: list[RecordID] = []
        self.zone_fetch_performed = False
        self.zone_fetch_completed = False

    @property
    def must_notify(self) -> bool:
        return (
            self.zone_fetch_completed
            or bool(self.purged_zones)
            or bool(self.upserted)
            or bool(self.deleted)
        )

    def to_event(self) -> RecordsChanged:
        return RecordsChanged(
            location=self.location,
            upserted=self.upserted,
            deleted=self.deleted,
            purged_zones=self.purged_zones,
        )


class DeltaSyncOrchestrator:
    """Runs the two-phase delta fetch for each database.

    Phase 1 (zone discovery) pages through database-level changes from the
    stored database cursor, remembering changed zones and purging the records
    of purged or deleted zones. Phase 2 (zone deltas) fetches record changes for
    every pending zone in one combined request, applying each zone's changes
    and cursor together once that zone completes. One RecordsChanged event is
    published per database when anything was applied.
    """

    def __init__(
        self,
        client: RemoteStoreClient,
        cache: RecordCache,
        cursors: CursorStore,
        notifier: ChangeNotifier,
        well_known_zone: ZoneID,
        error_policy: ErrorPolicy = ErrorPolicy.RESILIENT,
        page_size: int | None = None,
        results_limit: int | None = None,
    ):
        """
        Initialize delta sync orchestrator.

        Args:
            client: Remote record store client
            cache: Record cache to apply changes to
            cursors: Cursor store driving incremental fetches
            notifier: Broadcaster for change events
            well_known_zone: Zone whose purge or deletion clears the whole cache
            error_policy: Policy used when classifying remote errors
            page_size: Zone changes per database-change page
            results_limit: Record changes per zone per fetch round
        """
        self._client = client
        self._cache = cache
        self._cursors = cursors
        self._notifier = notifier
        self._well_known_zone = well_known_zone
        self._error_policy = error_policy
        self._page_size = page_size
        self._results_limit = results_limit

    async def fetch_all_updates(self, locations: Iterable[RecordLocation]) -> list[SyncReport]:
        """Sync several databases concurrently and wait for all of them."""
        return list(await asyncio.gather(*(self.fetch_updates(loc) for loc in locations)))

    async def fetch_updates(self, location: RecordLocation) -> SyncReport:
        """
        Perform an incremental sync of one database.

        Remote failures are classified and returned in the report, never
        raised or retried here. Cancellation propagates; zone deltas that had
        not completed are discarded with their cursors untouched.

        Args:
            location: Database to synchronize

        Returns:
            SyncReport with synchronization results
        """
        start_time = datetime.now()
        progress = _SyncProgress(location)
        strategy: RetryStrategy | None = None
        errors: list[str] = []

        with structlog.contextvars.bound_contextvars(location=location.value):
            log.info("sync_started", database_cursor=self._cursors.get_database_cursor(location))

            try:
                await self._discover_zones(location, progress)

                pending = self._cursors.pending_zones(location)
                if pending:
                    await self._fetch_zone_deltas(location, pending, progress)
                else:
                    log.info("no_zones_to_fetch")

            except RemoteStoreError as e:
                strategy = self._handle_failure(e)
                errors.append(f"Sync failed: {e.message}")
            except asyncio.CancelledError:
                log.warning("sync_cancelled")
                self._notify(progress)
                raise

            notified = self._notify(progress)

            end_time = datetime.now()
            report = SyncReport(
                location=location,
                zones_changed=progress.changed_zones,
                zones_purged=progress.purged_zones,
                records_upserted=len(progress.upserted),
                records_deleted=len(progress.deleted),
                zone_fetch_performed=progress.zone_fetch_performed,
                notified=notified,
                duration_seconds=(end_time - start_time).total_seconds(),
                start_time=start_time,
                end_time=end_time,
                strategy=strategy,
                errors=errors,
            )

            log.info(
                "sync_completed",
                zones_changed=len(report.zones_changed),
                zones_purged=len(report.zones_purged),
                records_upserted=report.records_upserted,
                records_deleted=report.records_deleted,
                duration_seconds=report.duration_seconds,
                success=report.success,
            )
            return report

    async def _discover_zones(self, location: RecordLocation, progress: _SyncProgress) -> None:
        cursor = self._cursors.get_database_cursor(location)

        while True:
            page = await self._client.fetch_database_changes(location, cursor, self._page_size)

            for change in page.changes:
                if change.kind is ZoneChangeKind.CHANGED:
                    self._cursors.add_pending_zone(location, change.zone_id)
                    progress.changed_zones.append(change.zone_id)
                else:
                    self._purge_zone(change.zone_id, change.kind, progress)

            # persist only once the page has been applied
            self._cursors.set_database_cursor(location, page.cursor)
            cursor = page.cursor

            if not page.more_coming:
                break

        log.info(
            "zones_discovered",
            changed=len(progress.changed_zones),
            purged=len(progress.purged_zones),
        )

    def _purge_zone(self, zone_id: ZoneID, kind: ZoneChangeKind, progress: _SyncProgress) -> None:
        log.info("zone_purged", zone_id=str(zone_id), kind=kind.value)
        self._cursors.invalidate_zone(zone_id)
        if zone_id == self._well_known_zone:
            self._cache.clear()
        progress.purged_zones.append(zone_id)

    async def _fetch_zone_deltas(
        self, location: RecordLocation, zones: list[ZoneID], progress: _SyncProgress
    ) -> None:
        zone_errors: dict[ZoneID, RemoteStoreError] = {}
        remaining = list(zones)
        progress.zone_fetch_performed = True

        while remaining:
            requests = [
                ZoneFetchRequest(
                    zone_id=zone_id,
                    cursor=self._cursors.get_zone_cursor(zone_id),
                    results_limit=self._results_limit,
                )
                for zone_id in remaining
            ]
            log.info("fetching_zone_changes", zones=[str(z) for z in remaining])

            deltas = {zone_id: ZoneDelta(zone_id=zone_id) for zone_id in remaining}
            next_round: list[ZoneID] = []

            async for event in self._client.fetch_zone_changes(location, requests):
                if isinstance(event, RecordChanged):
                    zone_id = event.record.zone_id
                    delta = deltas.setdefault(zone_id, ZoneDelta(zone_id=zone_id))
                    delta.record_changed(event.record.with_location(location))
                elif isinstance(event, RecordDeleted):
                    zone_id = event.record_id.zone_id
                    delta = deltas.setdefault(zone_id, ZoneDelta(zone_id=zone_id))
                    delta.record_deleted(event.record_id)
                elif isinstance(event, ZoneFetchCompleted):
                    delta = deltas.pop(event.zone_id, ZoneDelta(zone_id=event.zone_id))
                    if event.error is not None:
                        log.warning(
                            "zone_fetch_failed", zone_id=str(event.zone_id), **event.error.log_context()
                        )
                        zone_errors[event.zone_id] = event.error
                        continue

                    self._apply_zone_delta(delta, progress)
                    if event.cursor is not None:
                        self._cursors.set_zone_cursor(event.zone_id, event.cursor)
                    if event.more_coming:
                        next_round.append(event.zone_id)
                    else:
                        self._cursors.discard_pending_zone(location, event.zone_id)

            remaining = next_round

        if not zone_errors:
            progress.zone_fetch_completed = True
            return

        if len(zone_errors) == 1 and len(zones) == 1:
            raise next(iter(zone_errors.values()))
        raise RemoteStoreError(
            ErrorCode.PARTIAL_FAILURE,
            f"{len(zone_errors)} of {len(zones)} zones failed",
            partial_errors=dict(zone_errors),
        )

    def _apply_zone_delta(self, delta: ZoneDelta, progress: _SyncProgress) -> None:
        for record in delta.changed.values():
            self._cache.upsert(record)
            progress.upserted.append(record.record_id)
        for record_id in delta.deleted:
            if self._cache.remove(record_id):
                progress.deleted.append(record_id)

        log.info(
            "zone_changes_applied",
            zone_id=str(delta.zone_id),
            upserted=len(delta.changed),
            deleted=len(delta.deleted),
        )

    def _handle_failure(self, error: RemoteStoreError) -> RetryStrategy:
        strategy = classify(error, self._error_policy)
        log.warning("sync_failed", strategy=strategy.kind.value, **error.log_context())

        expired = strategy.kind is StrategyKind.INVALIDATE_CURSORS_AND_REFETCH_ALL or any(
            item.kind is StrategyKind.INVALIDATE_CURSORS_AND_REFETCH_ALL
            for item in strategy.classify_items(self._error_policy).values()
        )
        if expired:
            self._cursors.invalidate_all()
        return strategy

    def _notify(self, progress: _SyncProgress) -> bool:
        if not progress.must_notify:
            return False
        self._notifier.publish(progress.to_event())
        return True
