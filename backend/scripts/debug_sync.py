#!/usr/bin/env python
"""Manual sync script for troubleshooting provider data.

Runs the import for a single connection with debug output.
Dry-run by default (fetch + display only); pass --write to run a full sync
and persist it.

Usage:
    python -m scripts.debug_sync --connection <id>
    python -m scripts.debug_sync --connection <id> --verbose
    python -m scripts.debug_sync --connection <id> --write
"""

import argparse
import json
import sys
import time
from collections import Counter

from database import get_session_local, init_db
from logging_config import setup_logging
from integrations.provider_profiles import ProviderProfile
from integrations.provider_protocol import ProviderClient
from integrations.provider_registry import get_provider_registry
from integrations.raw_payload import RawPayload
from models import Connection
from services.pagination import PaginationWalker
from services.sync_service import SyncService

# Verbosity levels
SUMMARY = 0
VERBOSE = 1
DEBUG = 2


def print_section(title: str) -> None:
    print()
    print(f"=== {title} ===")


def print_accounts(accounts: list[dict], profile: ProviderProfile, verbosity: int) -> None:
    print_section(f"Accounts ({len(accounts)})")
    for data in accounts:
        payload = RawPayload(data, profile)
        print(
            f"  {payload.external_id}: {payload.text('name')} "
            f"balance={payload.decimal('current_balance')} cash={payload.decimal('cash_balance')} "
            f"{payload.currency or ''}"
        )
        if verbosity >= DEBUG:
            print(json.dumps(data, indent=2, default=str))


def print_activities(activities: list[dict], profile: ProviderProfile, verbosity: int) -> None:
    """Print activity type counts, flagging types the profile cannot map."""
    types = Counter(RawPayload(a, profile).activity_type or "<blank>" for a in activities)
    print(f"    {len(activities)} activities")
    for activity_type, count in types.most_common():
        mapped = profile.label_for(activity_type)
        marker = mapped.value if mapped else "UNMAPPED"
        print(f"      {activity_type}: {count} ({marker})")
    if verbosity >= DEBUG:
        for activity in activities:
            print(json.dumps(activity, indent=2, default=str))


def fetch_preview(
    client: ProviderClient, profile: ProviderProfile, verbosity: int
) -> dict[str, int]:
    """Fetch accounts and each account's first pages without touching the DB."""
    accounts = client.list_accounts()
    print_accounts(accounts, profile, verbosity)
    walker = PaginationWalker()
    totals = {"accounts": len(accounts), "activities": 0, "holdings": 0}

    for data in accounts:
        ref = RawPayload(data, profile).external_id
        if not ref:
            continue
        print_section(f"Account {ref}")
        walk = walker.walk(
            lambda cursor: client.get_transactions(ref, since=None, cursor=cursor),
            label=ref,
        )
        print(f"    pages={walk.pages} stop={walk.stop_reason.value}")
        if verbosity >= VERBOSE:
            print_activities(walk.items, profile, verbosity)
        totals["activities"] += len(walk.items)
        if profile.supports_holdings:
            holdings = client.get_holdings(ref)
            print(f"    {len(holdings)} holdings")
            totals["holdings"] += len(holdings)
    return totals


def run_db_sync(connection_id: str) -> None:
    """Run a real sync for the connection and print its stats."""
    init_db()
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        connection = db.query(Connection).filter(Connection.id == connection_id).first()
        if connection is None:
            print(f"Error: connection '{connection_id}' not found")
            sys.exit(1)
        sync_run = SyncService().trigger_sync(db, connection)
        print_section("Sync run")
        print(f"  id={sync_run.id} status={sync_run.status} phase={sync_run.phase}")
        print(json.dumps(sync_run.sync_stats or {}, indent=2, default=str))
    except Exception as e:
        print(f"  Error running sync: {e}")
        raise
    finally:
        db.close()


def main(argv: list[str] | None = None) -> None:
    """Entry point: parse args and orchestrate the sync."""
    parser = argparse.ArgumentParser(
        description="Debug sync script: fetch and inspect provider data.",
    )
    parser.add_argument("--connection", required=True, help="Connection ID")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show activity type counts")
    parser.add_argument("--debug", "-d", action="store_true", help="Dump raw JSON for every item")
    parser.add_argument(
        "--write",
        action="store_true",
        help="Run a full sync and write to the database",
    )
    args = parser.parse_args(argv)

    if args.debug:
        verbosity = DEBUG
    elif args.verbose:
        verbosity = VERBOSE
    else:
        verbosity = SUMMARY
    setup_logging("DEBUG" if verbosity == DEBUG else "WARNING")

    if args.write:
        run_db_sync(args.connection)
        return

    init_db()
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        connection = db.query(Connection).filter(Connection.id == args.connection).first()
        if connection is None:
            print(f"Error: connection '{args.connection}' not found")
            sys.exit(1)
        registry = get_provider_registry()
        profile = registry.get_profile(connection.provider_name)
        client = registry.build_client(connection)
    finally:
        db.close()

    print(f"Provider: {connection.provider_name}")
    print("-" * 60)
    start = time.time()
    try:
        totals = fetch_preview(client, profile, verbosity)
    except Exception as e:
        print(f"\nError fetching data: {e}")
        sys.exit(1)
    elapsed = time.time() - start

    print_section("Summary")
    for key, value in totals.items():
        print(f"  {key.capitalize()}: {value}")
    print(f"  Fetch time: {elapsed:.2f}s")
    print("  (Dry-run: no database changes. Use --write to persist.)")


if __name__ == "__main__":
    main()
