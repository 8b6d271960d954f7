"""Centralized provider module for the remote client and the sync engine.

This module provides factory functions for creating RemoteStoreClient and
CloudSyncEngine instances. Developers can modify these functions to swap the
remote backend without changing other code.

Default implementation:
- RemoteStoreClient: InMemoryRemoteStore (local, no network or account required)
"""

import structlog

from checkmate_sync.engine import CloudSyncEngine
from checkmate_sync.models.config import AppConfig, RemoteStoreConfig
from checkmate_sync.remote.client import RemoteStoreClient
from checkmate_sync.remote.memory import InMemoryRemoteStore

log = structlog.stdlib.get_logger()


def get_remote_client(config: RemoteStoreConfig) -> RemoteStoreClient:
    """Get the configured remote store client.

    Developers: Add a branch here to plug in a client for a hosted record store.
    The client only has to implement the RemoteStoreClient interface.

    Args:
        config: Remote store configuration

    Returns:
        RemoteStoreClient instance

    Raises:
        ValueError: If the configured backend is not supported
    """
    backend = config.backend.strip().lower()

    if backend == "memory":
        log.info(
            "initializing_remote_client",
            backend=backend,
            container_id=config.container_id,
            page_size=config.page_size,
        )
        return InMemoryRemoteStore(default_page_size=config.page_size)

    error_msg = f"Unsupported remote backend '{config.backend}'"
    log.error("get_remote_client_failed", error=error_msg, backend=config.backend)
    raise ValueError(error_msg)


def build_engine(config: AppConfig, client: RemoteStoreClient | None = None) -> CloudSyncEngine:
    """Build a sync engine from application configuration.

    Args:
        config: Application configuration
        client: Remote client to use instead of the configured backend

    Returns:
        CloudSyncEngine wired to the client
    """
    if client is None:
        client = get_remote_client(config.remote)

    return CloudSyncEngine(
        client,
        config.sync,
        page_size=config.remote.page_size,
        results_limit=config.remote.results_limit,
    )
