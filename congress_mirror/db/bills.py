"""Bill rows and their nested sub-resources.

Every writer is an upsert keyed on the row's natural key. Fields the
payload may omit are coalesced against the stored value.
"""

import logging
from typing import Any

from .core import execute, fetch_scalar

logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE = "Untitled Bill"


def get_bill_id(con, congress: int, bill_type: str, number: int) -> int | None:
    return fetch_scalar(
        con,
        "SELECT id FROM bills WHERE congress = :congress AND type = :type AND number = :number",
        {"congress": congress, "type": bill_type, "number": number},
    )


def get_bill(con, congress: int, bill_type: str, number: int) -> dict | None:
    cur = execute(
        con,
        "SELECT * FROM bills WHERE congress = :congress AND type = :type AND number = :number",
        {"congress": congress, "type": bill_type, "number": number},
    )
    row = cur.fetchone()
    if row is None:
        return None
    return dict(zip([d[0] for d in cur.description], row))


def upsert_bill(con, bill: dict[str, Any]) -> int:
    """Insert or refresh a fully fetched bill and advance its watermark."""
    execute(
        con,
        """INSERT INTO bills (
             congress, type, number, title, introduced_date, origin_chamber,
             origin_chamber_code, policy_area, update_date, update_date_including_text,
             constitutional_authority_text, sponsor_bioguide_id, is_by_request,
             latest_action_date, latest_action_text, updated_at, last_synced_at
           ) VALUES (
             :congress, :type, :number, COALESCE(:title, 'Untitled Bill'), :introduced_date,
             :origin_chamber, :origin_chamber_code, :policy_area, :update_date,
             :update_date_including_text, :constitutional_authority_text,
             :sponsor_bioguide_id, :is_by_request, :latest_action_date,
             :latest_action_text, :synced_at, :synced_at
           )
           ON CONFLICT(congress, type, number) DO UPDATE SET
             title = COALESCE(:title, bills.title),
             introduced_date = COALESCE(excluded.introduced_date, bills.introduced_date),
             origin_chamber = COALESCE(excluded.origin_chamber, bills.origin_chamber),
             origin_chamber_code = COALESCE(excluded.origin_chamber_code, bills.origin_chamber_code),
             policy_area = COALESCE(excluded.policy_area, bills.policy_area),
             update_date = COALESCE(excluded.update_date, bills.update_date),
             update_date_including_text = COALESCE(
               excluded.update_date_including_text, bills.update_date_including_text
             ),
             constitutional_authority_text = COALESCE(
               excluded.constitutional_authority_text, bills.constitutional_authority_text
             ),
             sponsor_bioguide_id = COALESCE(excluded.sponsor_bioguide_id, bills.sponsor_bioguide_id),
             is_by_request = COALESCE(excluded.is_by_request, bills.is_by_request),
             latest_action_date = COALESCE(excluded.latest_action_date, bills.latest_action_date),
             latest_action_text = COALESCE(excluded.latest_action_text, bills.latest_action_text),
             updated_at = excluded.updated_at,
             last_synced_at = excluded.last_synced_at""",
        bill,
    )
    return get_bill_id(con, bill["congress"], bill["type"], bill["number"])


def ensure_bill_stub(
    con, congress: int, bill_type: str, number: int, title: str | None, now
) -> int:
    """
    Make sure a referenced bill row exists.

    A stub carries no watermark, so the next bill sync fetches it in full.
    An existing title is only replaced when it is still the placeholder.
    """
    execute(
        con,
        """INSERT INTO bills (congress, type, number, title, updated_at)
           VALUES (:congress, :type, :number, COALESCE(:title, 'Untitled Bill'), :now)
           ON CONFLICT(congress, type, number) DO UPDATE SET
             title = CASE WHEN bills.title = 'Untitled Bill'
                          THEN COALESCE(:title, bills.title)
                          ELSE bills.title END""",
        {"congress": congress, "type": bill_type, "number": number, "title": title, "now": now},
    )
    return get_bill_id(con, congress, bill_type, number)


def get_bill_watermarks(con, congress: int) -> dict[tuple[int, str, int], Any]:
    """(congress, type, number) -> last_synced_at for every stored bill of a congress."""
    cur = execute(
        con,
        "SELECT congress, type, number, last_synced_at FROM bills WHERE congress = :congress",
        {"congress": congress},
    )
    return {(row[0], row[1], row[2]): row[3] for row in cur.fetchall()}


# ── sub-resources ────────────────────────────────────────────────


def upsert_action(con, bill_id: int, action: dict[str, Any]) -> int:
    params = {"bill_id": bill_id, **action}
    execute(
        con,
        """INSERT INTO bill_actions (bill_id, action_date, text, type, action_code)
           VALUES (:bill_id, :action_date, :text, :type, :action_code)
           ON CONFLICT(bill_id, action_date, text) DO UPDATE SET
             type = COALESCE(excluded.type, bill_actions.type),
             action_code = COALESCE(excluded.action_code, bill_actions.action_code)""",
        params,
    )
    return fetch_scalar(
        con,
        """SELECT id FROM bill_actions
           WHERE bill_id = :bill_id AND action_date = :action_date AND text = :text""",
        params,
    )


def link_action_committee(con, action_id: int, committee_code: str) -> None:
    execute(
        con,
        """INSERT INTO bill_action_committees (action_id, committee_system_code)
           VALUES (:action_id, :code)
           ON CONFLICT DO NOTHING""",
        {"action_id": action_id, "code": committee_code},
    )


def upsert_bill_committee(
    con, bill_id: int, committee_code: str, activity_name: str, activity_date: str
) -> None:
    execute(
        con,
        """INSERT INTO bill_committees (bill_id, committee_system_code, activity_name, activity_date)
           VALUES (:bill_id, :code, :activity_name, :activity_date)
           ON CONFLICT DO NOTHING""",
        {
            "bill_id": bill_id,
            "code": committee_code,
            "activity_name": activity_name,
            "activity_date": activity_date,
        },
    )


def upsert_cosponsor(con, bill_id: int, cosponsor: dict[str, Any]) -> None:
    execute(
        con,
        """INSERT INTO bill_cosponsors (
             bill_id, bioguide_id, sponsorship_date, is_original_cosponsor,
             sponsorship_withdrawn_date
           ) VALUES (
             :bill_id, :bioguide_id, :sponsorship_date, :is_original_cosponsor,
             :sponsorship_withdrawn_date
           )
           ON CONFLICT(bill_id, bioguide_id) DO UPDATE SET
             sponsorship_date = COALESCE(excluded.sponsorship_date, bill_cosponsors.sponsorship_date),
             sponsorship_withdrawn_date = COALESCE(
               excluded.sponsorship_withdrawn_date, bill_cosponsors.sponsorship_withdrawn_date
             )""",
        {"bill_id": bill_id, **cosponsor},
    )


def upsert_summary(con, bill_id: int, summary: dict[str, Any]) -> None:
    execute(
        con,
        """INSERT INTO bill_summaries (bill_id, version_code, action_date, action_desc, text, update_date)
           VALUES (:bill_id, :version_code, :action_date, :action_desc, :text, :update_date)
           ON CONFLICT(bill_id, version_code, action_date) DO UPDATE SET
             action_desc = COALESCE(excluded.action_desc, bill_summaries.action_desc),
             text = COALESCE(excluded.text, bill_summaries.text),
             update_date = COALESCE(excluded.update_date, bill_summaries.update_date)""",
        {"bill_id": bill_id, **summary},
    )


def upsert_subject(con, bill_id: int, name: str) -> None:
    execute(
        con,
        """INSERT INTO bill_subjects (bill_id, name) VALUES (:bill_id, :name)
           ON CONFLICT DO NOTHING""",
        {"bill_id": bill_id, "name": name},
    )


def upsert_title(con, bill_id: int, title: dict[str, Any]) -> None:
    execute(
        con,
        """INSERT INTO bill_titles (bill_id, title_type, title_type_code, title)
           VALUES (:bill_id, :title_type, :title_type_code, :title)
           ON CONFLICT(bill_id, title_type, title) DO UPDATE SET
             title_type_code = COALESCE(excluded.title_type_code, bill_titles.title_type_code)""",
        {"bill_id": bill_id, **title},
    )


def upsert_text_version(con, bill_id: int, version: dict[str, Any]) -> None:
    execute(
        con,
        """INSERT INTO bill_text_versions (bill_id, type, date, format, url)
           VALUES (:bill_id, :type, :date, :format, :url)
           ON CONFLICT(bill_id, type, format) DO UPDATE SET
             url = excluded.url,
             date = COALESCE(excluded.date, bill_text_versions.date)""",
        {"bill_id": bill_id, **version},
    )


def upsert_related_bill(
    con, bill_id: int, related_bill_id: int, relationship_type: str | None, identified_by: str
) -> None:
    execute(
        con,
        """INSERT INTO related_bills (bill_id, related_bill_id, relationship_type, identified_by)
           VALUES (:bill_id, :related_bill_id, :relationship_type, :identified_by)
           ON CONFLICT(bill_id, related_bill_id, identified_by) DO UPDATE SET
             relationship_type = COALESCE(excluded.relationship_type, related_bills.relationship_type)""",
        {
            "bill_id": bill_id,
            "related_bill_id": related_bill_id,
            "relationship_type": relationship_type,
            "identified_by": identified_by,
        },
    )


def upsert_cost_estimate(con, bill_id: int, estimate: dict[str, Any]) -> None:
    execute(
        con,
        """INSERT INTO cbo_cost_estimates (bill_id, url, title, description, pub_date)
           VALUES (:bill_id, :url, :title, :description, :pub_date)
           ON CONFLICT(url) DO UPDATE SET
             title = COALESCE(excluded.title, cbo_cost_estimates.title),
             description = COALESCE(excluded.description, cbo_cost_estimates.description),
             pub_date = COALESCE(excluded.pub_date, cbo_cost_estimates.pub_date)""",
        {"bill_id": bill_id, **estimate},
    )


def upsert_law(con, bill_id: int, law_type: str | None, number: str) -> None:
    execute(
        con,
        """INSERT INTO laws (bill_id, type, number) VALUES (:bill_id, :type, :number)
           ON CONFLICT(bill_id) DO UPDATE SET
             type = COALESCE(excluded.type, laws.type),
             number = excluded.number""",
        {"bill_id": bill_id, "type": law_type, "number": number},
    )
