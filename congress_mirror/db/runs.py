"""Per-run sync records and store-wide counts."""

import json
import logging

from .core import connect, execute, fetch_scalar, insert_returning_id

logger = logging.getLogger(__name__)

COUNTED_TABLES = (
    "bills",
    "members",
    "committees",
    "committee_reports",
    "bill_actions",
    "bill_cosponsors",
    "related_bills",
    "report_associated_bills",
)


def insert_sync_run(run_record: dict) -> int | None:
    """Insert a run record and verify the write.

    Returns the row ID on success, None on verification failure.
    """
    source_id = run_record.get("source_id", "")
    started_at = run_record.get("started_at", "")
    if len(source_id) <= 1 or len(started_at) <= 1:
        logger.warning(
            "Skipping sync_run with invalid data: source_id=%r started_at=%r",
            source_id,
            started_at,
        )
        return None

    con = connect()
    try:
        row_id = insert_returning_id(
            con,
            """INSERT INTO sync_runs(
                 source_id, started_at, ended_at, status, records_fetched, errors_json, counts_json
               ) VALUES (
                 :source_id, :started_at, :ended_at, :status, :records_fetched, :errors_json,
                 :counts_json
               )""",
            {
                "source_id": source_id,
                "started_at": started_at,
                "ended_at": run_record["ended_at"],
                "status": run_record["status"],
                "records_fetched": run_record["records_fetched"],
                "errors_json": json.dumps(run_record["errors"]),
                "counts_json": json.dumps(run_record.get("counts", {})),
            },
        )
        con.commit()

        if fetch_scalar(con, "SELECT id FROM sync_runs WHERE id = :row_id", {"row_id": row_id}) is None:
            logger.error("Post-write verification failed for sync run %s (%s)", row_id, source_id)
            return None
        return row_id
    finally:
        con.close()


def get_latest_runs() -> list[dict]:
    """Most recent run per source."""
    con = connect()
    try:
        cur = execute(
            con,
            """SELECT r.source_id, r.started_at, r.ended_at, r.status, r.records_fetched, r.counts_json
               FROM sync_runs r
               WHERE r.id = (SELECT MAX(id) FROM sync_runs WHERE source_id = r.source_id)
               ORDER BY r.source_id""",
        )
        return [
            {
                "source_id": row[0],
                "started_at": row[1],
                "ended_at": row[2],
                "status": row[3],
                "records_fetched": row[4],
                "counts": json.loads(row[5] or "{}"),
            }
            for row in cur.fetchall()
        ]
    finally:
        con.close()


def get_table_counts() -> dict[str, int]:
    con = connect()
    try:
        return {
            table: int(fetch_scalar(con, f"SELECT COUNT(*) FROM {table}") or 0)
            for table in COUNTED_TABLES
        }
    finally:
        con.close()
