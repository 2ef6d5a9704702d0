"""CLI tool for admin operations.

Usage:
    python -m tradejournal.cli init-db
    python -m tradejournal.cli run-cycle [alerts|report]
    python -m tradejournal.cli refresh-assets
"""

import asyncio
import sys

import httpx
from sqlmodel import Session

from tradejournal.config import settings
from tradejournal.database import engine, create_db_and_tables
from tradejournal.utils.constants import CYCLE_KINDS, CYCLE_REPORT
from tradejournal.utils.logging import setup_logging


def init_db():
    create_db_and_tables()
    print("Database ready.")


def run_cycle(kind: str):
    """Run one monitor cycle in the foreground, for cron or debugging."""
    from tradejournal.engine.monitor_job import run_monitor_cycle

    create_db_and_tables()
    result = asyncio.run(run_monitor_cycle(kind))
    print(f"[{result.status_code}] {result.message}")
    if result.status_code >= 500:
        sys.exit(1)


def refresh_assets():
    """Force a refresh of the cached CoinGecko asset list."""
    from tradejournal.services.asset_list import load_asset_list

    create_db_and_tables()

    async def _refresh():
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            with Session(engine) as session:
                # ttl 0 makes any cache stale
                entries = await load_asset_list(session, client, ttl_hours=0)
                return len(entries)

    count = asyncio.run(_refresh())
    print(f"Asset list holds {count} entries.")


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m tradejournal.cli <command>")
        print("Commands: init-db, run-cycle [alerts|report], refresh-assets")
        sys.exit(1)

    setup_logging()
    command = sys.argv[1]
    if command == "init-db":
        init_db()
    elif command == "run-cycle":
        kind = sys.argv[2] if len(sys.argv) > 2 else CYCLE_REPORT
        if kind not in CYCLE_KINDS:
            print(f"Unknown cycle kind: {kind}")
            sys.exit(1)
        run_cycle(kind)
    elif command == "refresh-assets":
        refresh_assets()
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
