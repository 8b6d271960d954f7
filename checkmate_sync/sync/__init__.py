"""Synchronization components: cursors, error classification, delta sync and writes."""

from checkmate_sync.sync.cursor_store import CursorSnapshot, CursorStore
from checkmate_sync.sync.error_classifier import RetryStrategy, StrategyKind, classify
from checkmate_sync.sync.models import SyncReport, ZoneDelta
from checkmate_sync.sync.mutation_gateway import MutationGateway
from checkmate_sync.sync.notifications import ChangeKind, ChangeNotifier, RecordsChanged
from checkmate_sync.sync.orchestrator import DeltaSyncOrchestrator
from checkmate_sync.sync.sharing import SharingCoordinator

__all__ = [
    "ChangeKind",
    "ChangeNotifier",
    "CursorSnapshot",
    "CursorStore",
    "DeltaSyncOrchestrator",
    "MutationGateway",
    "RecordsChanged",
    "RetryStrategy",
    "SharingCoordinator",
    "StrategyKind",
    "SyncReport",
    "ZoneDelta",
    "classify",
]
