"""
Congress.gov Sync Runner

Usage:
    python -m congress_mirror.run_sync [--family bills|members|committees|all]
                                       [--congress N] [--summary] [--verbose]
"""

import argparse
import json
import logging
import os
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from jsonschema import validate

from .config import FAMILIES, SyncSettings, load_settings
from .db import Database, get_latest_runs, get_table_counts, init_db, insert_sync_run
from .errors import ConfigurationError
from .sync import RunSummary, create_orchestrator

logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parents[1]


def load_run_schema() -> dict[str, Any]:
    return json.loads((ROOT / "schemas" / "sync_run.schema.json").read_text(encoding="utf-8"))


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def build_run_record(summary: RunSummary, started_at: str, ended_at: str) -> dict[str, Any]:
    if summary.failed_batches:
        status = "ERROR"
    elif not summary.written:
        status = "NO_DATA"
    else:
        status = "SUCCESS"

    counts = {
        k: v for k, v in summary.to_dict().items() if k not in ("family", "errors")
    }
    return {
        "source_id": f"congress_{summary.family}",
        "started_at": started_at,
        "ended_at": ended_at,
        "status": status,
        "records_fetched": summary.fetched,
        "errors": list(summary.errors),
        "counts": counts,
    }


def run_family_sync(
    family: str,
    settings: SyncSettings,
    database: Database | None = None,
    **kwargs,
) -> dict[str, Any]:
    """
    Run one family sync and record it.

    Returns:
        The validated run record.
    """
    schema = load_run_schema()
    started_at = _utc_now_iso()

    try:
        summary = create_orchestrator(family, settings, database=database, **kwargs).run()
    except ConfigurationError:
        raise
    except Exception as e:
        logger.exception("%s sync aborted", family)
        summary = RunSummary(family=family, errors=[f"EXCEPTION: {e!r}"])
        summary.failed_batches = 1

    run_record = build_run_record(summary, started_at, _utc_now_iso())
    validate(instance=run_record, schema=schema)
    insert_sync_run(run_record)
    return run_record


def print_summary() -> None:
    """Print store counts and the latest run per family."""
    counts = get_table_counts()
    print("\n" + "=" * 60)
    print("CONGRESS MIRROR - STATUS")
    print("=" * 60)
    for table, count in counts.items():
        print(f"{table + ':':<26}{count}")

    runs = get_latest_runs()
    if runs:
        print("\nLatest runs:")
        print("-" * 60)
        for run in runs:
            c = run["counts"]
            print(
                f"  {run['source_id']:<22} {run['status']:<8} {run['started_at'][:19]}  "
                f"written={c.get('written', 0)} failed={c.get('failed', 0)} "
                f"skipped_stale={c.get('skipped_stale', 0)}"
            )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Sync Congress.gov data into the local store")
    parser.add_argument(
        "--family",
        choices=[*FAMILIES, "all"],
        default="all",
        help="Entity family to sync (default: all)",
    )
    parser.add_argument("--congress", type=int, help="Congress number (default: $CONGRESS_NUMBER)")
    parser.add_argument("--summary", action="store_true", help="Show store stats only")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else os.environ.get("LOG_LEVEL", "INFO")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    init_db()
    if args.summary:
        print_summary()
        return 0

    try:
        settings = load_settings(congress=args.congress)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 2

    # Members first so bill sponsors mostly resolve without stub fetches.
    families = FAMILIES if args.family == "all" else (args.family,)
    ordered = [f for f in ("members", "committees", "bills") if f in families]

    database = Database()
    records = [run_family_sync(family, settings, database=database) for family in ordered]
    print(json.dumps(records, indent=2))
    return 1 if any(r["status"] == "ERROR" for r in records) else 0


if __name__ == "__main__":
    sys.exit(main())
