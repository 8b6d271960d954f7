"""Share objects for records."""

import structlog

from checkmate_sync.exceptions import RemoteOperationError
from checkmate_sync.models.config import ErrorPolicy
from checkmate_sync.models.record import Record, RecordID, RecordType, Reference, ShareFields
from checkmate_sync.remote.client import RemoteStoreClient
from checkmate_sync.remote.errors import RemoteStoreError
from checkmate_sync.storage.record_cache import RecordCache
from checkmate_sync.sync.error_classifier import classify
from checkmate_sync.sync.mutation_gateway import MutationGateway

log = structlog.stdlib.get_logger()


class SharingCoordinator:
    """Creates or locates the share object of a record."""

    def __init__(
        self,
        client: RemoteStoreClient,
        cache: RecordCache,
        gateway: MutationGateway,
        error_policy: ErrorPolicy = ErrorPolicy.RESILIENT,
        thumbnail: bytes | None = None,
    ):
        self._client = client
        self._cache = cache
        self._gateway = gateway
        self._error_policy = error_policy
        self._thumbnail = thumbnail

    def existing_share(self, record: Record) -> Record | None:
        """The cached share referenced by ``record``, if any."""
        if record.share is None:
            return None
        share = self._cache.get(record.share.record_id)
        if share is not None and share.record_type is RecordType.SHARE:
            return share
        return None

    async def share_for(self, record: Record) -> Record:
        """
        Return the share of ``record``, creating it when none is cached.

        A new share is saved together with its root record as one atomic write;
        both are cached from the server's response.

        Raises:
            RemoteOperationError: If the share could not be created or saved
        """
        existing = self.existing_share(record)
        if existing is not None:
            log.debug("existing_share_found", record_id=str(record.record_id))
            return existing

        log.info("creating_share", record_id=str(record.record_id))

        try:
            share = await self._client.create_share(record)
        except RemoteStoreError as e:
            strategy = classify(e, self._error_policy)
            log.warning(
                "remote_operation_failed",
                operation="create_share",
                strategy=strategy.kind.value,
                **e.log_context(),
            )
            raise RemoteOperationError("create_share", strategy, e.message) from e

        presentation = ShareFields(title=record.get("title"), thumbnail_image_data=self._thumbnail)
        share = share.model_copy(update={"fields": {**share.fields, **presentation.to_fields()}})
        root = record.model_copy(update={"share": Reference(record_id=share.record_id)})

        saved = await self._gateway.save_records([share, root], record.location, atomic=True)
        for saved_record in saved:
            if saved_record.record_type is RecordType.SHARE:
                log.info("share_created", record_id=str(record.record_id), share_id=str(saved_record.record_id))
                return saved_record
        return share

    async def stop_sharing(self, share: Record) -> list[RecordID]:
        """Delete a share object through the gateway's delete path."""
        log.info("stopping_share", share_id=str(share.record_id))
        return await self._gateway.delete(share.record_id, share.location)
