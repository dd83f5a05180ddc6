"""Committee rows, committee history and the parent hierarchy."""

from typing import Any

from .core import execute

UNKNOWN_CHAMBER = "Unknown"


def upsert_committee(
    con,
    system_code: str,
    name: str | None,
    chamber: str,
    now,
    committee_type_code: str | None = None,
) -> None:
    """
    Insert or merge a committee node.

    The stored chamber only changes when the incoming value is known, so a
    resolved chamber never regresses to Unknown.
    """
    execute(
        con,
        """INSERT INTO committees (system_code, name, chamber, committee_type_code, updated_at)
           VALUES (:system_code, COALESCE(:name, 'Unknown Committee'), :chamber,
                   :committee_type_code, :now)
           ON CONFLICT(system_code) DO UPDATE SET
             name = COALESCE(:name, committees.name),
             chamber = CASE WHEN excluded.chamber = 'Unknown'
                            THEN committees.chamber
                            ELSE excluded.chamber END,
             committee_type_code = COALESCE(excluded.committee_type_code, committees.committee_type_code),
             updated_at = excluded.updated_at""",
        {
            "system_code": system_code,
            "name": name,
            "chamber": chamber,
            "committee_type_code": committee_type_code,
            "now": now,
        },
    )


def set_committee_parent(con, system_code: str, parent_system_code: str) -> None:
    execute(
        con,
        """UPDATE committees SET parent_system_code = :parent
           WHERE system_code = :system_code""",
        {"system_code": system_code, "parent": parent_system_code},
    )


def update_committee_detail(con, detail: dict[str, Any]) -> None:
    """Refresh detail-only fields and advance the committee watermark."""
    execute(
        con,
        """UPDATE committees SET
             is_current = COALESCE(:is_current, is_current),
             update_date = COALESCE(:update_date, update_date),
             updated_at = :synced_at,
             last_synced_at = :synced_at
           WHERE system_code = :system_code""",
        detail,
    )


def upsert_committee_history(con, system_code: str, history: dict[str, Any]) -> None:
    execute(
        con,
        """INSERT INTO committee_history (
             committee_system_code, official_name, loc_name, start_date, end_date
           ) VALUES (
             :system_code, :official_name, :loc_name, :start_date, :end_date
           )
           ON CONFLICT(committee_system_code, official_name, start_date) DO UPDATE SET
             loc_name = COALESCE(excluded.loc_name, committee_history.loc_name),
             end_date = COALESCE(excluded.end_date, committee_history.end_date)""",
        {"system_code": system_code, **history},
    )


def get_committee(con, system_code: str) -> dict | None:
    cur = execute(
        con, "SELECT * FROM committees WHERE system_code = :code", {"code": system_code}
    )
    row = cur.fetchone()
    if row is None:
        return None
    return dict(zip([d[0] for d in cur.description], row))


def get_committee_watermarks(con) -> dict[str, Any]:
    cur = execute(con, "SELECT system_code, last_synced_at FROM committees")
    return {row[0]: row[1] for row in cur.fetchall()}
