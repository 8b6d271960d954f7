"""CloudSyncEngine: the interface the presentation layer talks to."""

import asyncio
from datetime import datetime
from typing import Any, Callable, Mapping

import structlog

from checkmate_sync.exceptions import RemoteOperationError
from checkmate_sync.models.config import SyncConfig
from checkmate_sync.models.record import (
    ListFields,
    Record,
    RecordFields,
    RecordID,
    RecordLocation,
    RecordType,
    Reference,
    TodoFields,
    ZoneID,
)
from checkmate_sync.remote.client import RemoteStoreClient, ShareMetadata
from checkmate_sync.remote.errors import RemoteStoreError
from checkmate_sync.storage.record_cache import RecordCache
from checkmate_sync.sync.cursor_store import CursorStore
from checkmate_sync.sync.error_classifier import classify
from checkmate_sync.sync.models import SyncReport
from checkmate_sync.sync.mutation_gateway import MutationGateway
from checkmate_sync.sync.notifications import ChangeNotifier, RecordsChanged
from checkmate_sync.sync.orchestrator import DeltaSyncOrchestrator
from checkmate_sync.sync.sharing import SharingCoordinator

log = structlog.stdlib.get_logger()


class CloudSyncEngine:
    """Keeps a local cache of lists, todos and shares consistent with the remote store.

    Construct one per process and call :meth:`start` once. The engine owns the
    record cache and cursor store; readers use the ``*_view`` accessors and
    subscribe to RecordsChanged events to learn when to re-read.
    """

    def __init__(
        self,
        client: RemoteStoreClient,
        config: SyncConfig | None = None,
        page_size: int | None = None,
        results_limit: int | None = None,
        share_thumbnail: bytes | None = None,
    ):
        """
        Initialize the sync engine.

        Args:
            client: Remote record store client
            config: Sync configuration (defaults apply if None)
            page_size: Zone changes per database-change page
            results_limit: Record changes per zone per fetch round
            share_thumbnail: Image attached to newly created shares
        """
        self.config = config or SyncConfig()
        self.client = client
        self.well_known_zone = ZoneID(zone_name=self.config.well_known_zone)

        self.cache = RecordCache()
        self.cursors = CursorStore(on_zone_invalidated=self.cache.remove_zone)
        self.notifier = ChangeNotifier()

        self._orchestrator = DeltaSyncOrchestrator(
            client,
            self.cache,
            self.cursors,
            self.notifier,
            self.well_known_zone,
            error_policy=self.config.error_policy,
            page_size=page_size,
            results_limit=results_limit,
        )
        self._gateway = MutationGateway(
            client,
            self.cache,
            self.cursors,
            self.notifier,
            self.well_known_zone,
            error_policy=self.config.error_policy,
        )
        self._sharing = SharingCoordinator(
            client,
            self.cache,
            self._gateway,
            error_policy=self.config.error_policy,
            thumbnail=share_thumbnail,
        )

        log.info(
            "sync_engine_initialized",
            well_known_zone=self.config.well_known_zone,
            databases=[location.value for location in self.config.databases],
            error_policy=self.config.error_policy.value,
        )

    async def start(self) -> None:
        """
        Subscribe to change pushes and make sure the well-known zone exists.

        Failures are logged with their classified strategy and never raised;
        the engine works without subscriptions, and record creation becomes
        possible once a later sync discovers the zone.
        """
        started_at = datetime.now()
        tasks = []
        if self.config.subscribe_on_start:
            tasks.extend(self.client.subscribe_to_database(loc) for loc in self.config.databases)
        if self.config.create_zone_on_start:
            tasks.append(self._ensure_well_known_zone())

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, RemoteStoreError):
                strategy = classify(result, self.config.error_policy)
                log.warning("engine_start_step_failed", strategy=strategy.kind.value, **result.log_context())
            elif isinstance(result, BaseException):
                raise result

        log.info(
            "sync_engine_started",
            duration_seconds=(datetime.now() - started_at).total_seconds(),
            zone_known=self.cursors.is_zone_known(self.well_known_zone),
        )

    async def _ensure_well_known_zone(self) -> None:
        saved = await self.client.save_zones(RecordLocation.PRIVATE, [self.well_known_zone])
        if self.well_known_zone in saved:
            self.cursors.mark_zone_known(self.well_known_zone)

    # Sync

    async def fetch_all_updates(self) -> list[SyncReport]:
        """Sync every configured database concurrently and wait for all of them."""
        return await self._orchestrator.fetch_all_updates(self.config.databases)

    async def fetch_updates(self, location: RecordLocation) -> SyncReport:
        return await self._orchestrator.fetch_updates(location)

    async def accept_share(self, metadata: ShareMetadata) -> list[SyncReport]:
        """Accept a share invitation, then fetch so its records appear."""
        log.info("accepting_share", share_id=str(metadata.share_record_id), owner=metadata.owner_name)
        try:
            await self.client.accept_shares([metadata])
        except RemoteStoreError as e:
            strategy = classify(e, self.config.error_policy)
            log.warning("accept_share_failed", strategy=strategy.kind.value, **e.log_context())
            raise RemoteOperationError("accept_share", strategy, e.message) from e
        return await self.fetch_all_updates()

    # Writes

    async def save(self, record: Record) -> Record:
        return await self._gateway.save(record)

    async def delete(self, record_id: RecordID, location: RecordLocation) -> list[RecordID]:
        return await self._gateway.delete(record_id, location)

    async def delete_record(self, record: Record) -> list[RecordID]:
        return await self._gateway.delete(record.record_id, record.location)

    async def create_record(
        self,
        record_type: RecordType,
        fields: RecordFields | Mapping[str, Any],
        location: RecordLocation = RecordLocation.PRIVATE,
        parent: Reference | None = None,
    ) -> Record:
        return await self._gateway.create(record_type, fields, location, parent)

    async def create_list(self, title: str) -> Record:
        return await self._gateway.create(RecordType.LIST, ListFields(title=title))

    async def create_todo(
        self,
        title: str,
        in_list: Record,
        note: str = "",
        date_completed: datetime | None = None,
    ) -> Record:
        """Create a todo in ``in_list``'s zone and database."""
        fields = TodoFields(
            title=title,
            note=note,
            date_completed=date_completed,
            list_ref=Reference.to(in_list),
        )
        return await self._gateway.create(
            RecordType.TODO, fields, in_list.location, Reference.to(in_list)
        )

    # Sharing

    async def share_for(self, record: Record) -> Record:
        return await self._sharing.share_for(record)

    async def stop_sharing(self, share: Record) -> list[RecordID]:
        return await self._sharing.stop_sharing(share)

    # Reads

    def lists_view(self) -> list[Record]:
        return self.cache.lists()

    def todos_view(self) -> list[Record]:
        return self.cache.todos()

    def shares_view(self) -> list[Record]:
        return self.cache.shares()

    def todos_in_list(self, list_record: Record) -> list[Record]:
        return self.cache.todos_in_list(list_record.record_id)

    def subscribe(self, listener: Callable[[RecordsChanged], object]) -> Callable[[], None]:
        """Register a RecordsChanged listener. Returns the unsubscribe callable."""
        return self.notifier.subscribe(listener)
