"""Local storage for records confirmed by the remote store."""

from checkmate_sync.storage.record_cache import RecordCache

__all__ = ["RecordCache"]
