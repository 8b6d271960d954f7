#!/usr/bin/env python3
"""
Scheduled synchronization script for the CheckMate sync engine.

This script performs one delta synchronization of every configured database:
- Subscribes to change pushes and ensures the well-known zone exists
- Fetches database and zone changes since the stored cursors
- Retries failures whose classified strategy allows it
- Logs synchronization statistics

Designed to be run on a schedule (e.g., via cron) or as a smoke test of a
backend configuration.

Usage:
    python scripts/scheduled_sync.py [--config CONFIG_PATH] [--no-retry]
"""

import argparse
import asyncio
import sys
from datetime import datetime

import structlog

from checkmate_sync.exceptions import RemoteOperationError
from checkmate_sync.models.config import AppConfig
from checkmate_sync.providers import build_engine
from checkmate_sync.sync.models import SyncReport
from checkmate_sync.utils.config_loader import ConfigLoader, ConfigurationError
from checkmate_sync.utils.logging_config import configure_logging_from_config
from checkmate_sync.utils.retry import strategy_retry

log = structlog.stdlib.get_logger()


async def run_sync(config: AppConfig, retry: bool = True) -> list[SyncReport]:
    """
    Start an engine and sync every configured database.

    Args:
        config: Application configuration
        retry: If True, retry failures whose strategy is automatically retryable

    Returns:
        One SyncReport per database from the last attempt

    Raises:
        RemoteOperationError: If a database still fails after retries
    """
    engine = build_engine(config)
    await engine.start()

    async def sync_once() -> list[SyncReport]:
        reports = await engine.fetch_all_updates()
        for report in reports:
            report.raise_for_strategy()
        return reports

    if retry:
        sync_once = strategy_retry(
            max_retries=config.retry.max_retries,
            base_delay=config.retry.base_delay,
            max_delay=config.retry.max_delay,
        )(sync_once)

    return await sync_once()


def perform_sync(config_path: str | None = None, retry: bool = True) -> dict:
    """
    Perform synchronization with the remote store.

    Args:
        config_path: Optional path to configuration file
        retry: If True, retry retryable failures

    Returns:
        Dictionary with sync statistics
    """
    start_time = datetime.now()

    try:
        config_loader = ConfigLoader()
        config = config_loader.load_config(config_path)
        config_loader.validate_config(config)
        configure_logging_from_config(config.logging)

        log.info("scheduled_sync_started", timestamp=start_time.isoformat())

        reports = asyncio.run(run_sync(config, retry=retry))

        end_time = datetime.now()
        stats = {
            "success": True,
            "databases": [report.location.value for report in reports],
            "zones_changed": sum(len(report.zones_changed) for report in reports),
            "zones_purged": sum(len(report.zones_purged) for report in reports),
            "records_upserted": sum(report.records_upserted for report in reports),
            "records_deleted": sum(report.records_deleted for report in reports),
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "duration_seconds": (end_time - start_time).total_seconds(),
        }

        log.info("scheduled_sync_completed", **stats)
        return stats

    except (ConfigurationError, RemoteOperationError) as e:
        end_time = datetime.now()
        duration = (end_time - start_time).total_seconds()

        log.error("scheduled_sync_failed", error=str(e), duration_seconds=duration)

        stats = {
            "success": False,
            "error": str(e),
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "duration_seconds": duration,
        }
        if isinstance(e, RemoteOperationError):
            stats["strategy"] = e.strategy.kind.value
        return stats


def main():
    """Main entry point for scheduled sync script."""
    parser = argparse.ArgumentParser(description="Scheduled synchronization for CheckMate")
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration file",
        default=None,
    )
    parser.add_argument(
        "--no-retry",
        action="store_true",
        help="Report the first failure instead of retrying",
    )

    args = parser.parse_args()

    stats = perform_sync(config_path=args.config, retry=not args.no_retry)

    print("\n" + "=" * 60)
    print("SYNCHRONIZATION SUMMARY")
    print("=" * 60)

    if stats.get("success"):
        print("Status: ✓ SUCCESS")
        print(f"Databases: {', '.join(stats.get('databases', []))}")
        print(f"Zones Changed: {stats.get('zones_changed', 0)}")
        print(f"Zones Purged: {stats.get('zones_purged', 0)}")
        print(f"Records Upserted: {stats.get('records_upserted', 0)}")
        print(f"Records Deleted: {stats.get('records_deleted', 0)}")
        print(f"Duration: {stats.get('duration_seconds', 0):.2f} seconds")
    else:
        print("Status: ✗ FAILED")
        print(f"Error: {stats.get('error', 'Unknown error')}")
        if "strategy" in stats:
            print(f"Strategy: {stats['strategy']}")
        print(f"Duration: {stats.get('duration_seconds', 0):.2f} seconds")

    print("=" * 60)

    sys.exit(0 if stats.get("success") else 1)


if __name__ == "__main__":
    main()
