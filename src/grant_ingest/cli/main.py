"""Main CLI entry point."""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from grant_ingest.config import Settings


def main(argv: Optional[list[str]] = None) -> None:
    """Parse args and dispatch to subcommands."""
    parser = argparse.ArgumentParser(prog="grant-ingest", description="Grants.gov extract ingestion pipeline")
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="YAML settings file (environment variables apply underneath)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to SQLite database (default: GRANT_INGEST_DB or grant_ingest.db)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: GRANT_INGEST_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # run
    run_parser = subparsers.add_parser("run", help="Download, transform and store the latest extract")
    run_parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip the network and use the offline fallback extract",
    )
    run_parser.add_argument(
        "--cleaner",
        default=None,
        choices=["passthrough", "gemini", "openrouter"],
        help="Text cleaning strategy (default: GRANT_INGEST_CLEANER or passthrough)",
    )
    run_parser.add_argument(
        "--source",
        default="grants.gov",
        help="Source label stamped on stored grants",
    )

    # runs
    runs_parser = subparsers.add_parser("runs", help="Show recorded pipeline runs")
    runs_parser.add_argument("action", choices=["latest"], help="Show the most recent run")

    # cleanup-expired
    cleanup_parser = subparsers.add_parser("cleanup-expired", help="Delete grants past their close date")
    cleanup_parser.add_argument(
        "--today",
        type=str,
        default=None,
        help="Cutoff date (YYYY-MM-DD, default: today)",
    )

    # store
    store_parser = subparsers.add_parser("store", help="Query the grant store")
    store_parser.add_argument(
        "action",
        choices=["list", "count"],
        help="List grants or show count",
    )

    args = parser.parse_args(argv)
    settings = _load_settings(args)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "run":
        _run_ingest(args, settings)
    elif args.command == "runs":
        _run_runs(args, settings)
    elif args.command == "cleanup-expired":
        _run_cleanup(args, settings)
    elif args.command == "store":
        _run_store(args, settings)
    else:
        parser.print_help()


def _load_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_yaml(args.settings) if args.settings else Settings.from_env()
    updates = {}
    if args.db is not None:
        updates["db_path"] = args.db
    if args.log_level:
        updates["log_level"] = args.log_level
    return settings.model_copy(update=updates) if updates else settings


def _open_store(settings: Settings):
    from grant_ingest.store import GrantStore

    return GrantStore(
        settings.db_path,
        batch_size=settings.batch_size,
        max_workers=settings.max_workers,
        track_unchanged=settings.track_unchanged,
    )


def _run_ingest(args: argparse.Namespace, settings: Settings) -> None:
    """Run ingest command."""
    from grant_ingest.errors import GrantIngestError
    from grant_ingest.pipeline import run_pipeline

    try:
        stats = run_pipeline(
            settings,
            use_offline_fallback=args.offline,
            cleaner=args.cleaner,
            source=args.source,
        )
    except GrantIngestError as e:
        print(f"Ingest failed: {e}", file=sys.stderr)
        raise SystemExit(1)
    print(json.dumps(_stats_payload(stats), indent=2, default=str))
    if stats.status == "failed":
        raise SystemExit(1)


def _run_runs(args: argparse.Namespace, settings: Settings) -> None:
    """Run runs command."""
    store = _open_store(settings)
    stats = store.latest_run()
    if stats is None:
        print("No runs recorded.", file=sys.stderr)
        raise SystemExit(1)
    print(json.dumps(_stats_payload(stats), indent=2, default=str))


def _run_cleanup(args: argparse.Namespace, settings: Settings) -> None:
    """Run cleanup-expired command."""
    today = None
    if args.today:
        try:
            today = date.fromisoformat(args.today)
        except ValueError:
            raise SystemExit("Invalid --today format. Use YYYY-MM-DD.")
    store = _open_store(settings)
    deleted = store.delete_expired(today)
    print(f"Deleted {deleted} expired grants")


def _run_store(args: argparse.Namespace, settings: Settings) -> None:
    """Run store command."""
    store = _open_store(settings)
    if args.action == "list":
        output = json.dumps(
            [g.model_dump(mode="json") for g in store.get_all()],
            indent=2,
            default=str,
        )
        print(output)
    elif args.action == "count":
        print(store.count())


def _stats_payload(stats) -> dict:
    payload = stats.model_dump(mode="json")
    payload["status"] = stats.status
    payload["duration_ms"] = stats.duration_ms
    return payload


if __name__ == "__main__":
    main()
