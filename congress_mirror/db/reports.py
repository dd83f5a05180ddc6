"""Committee reports and their committee / bill links."""

from typing import Any

from .core import execute, fetch_scalar


def upsert_report(con, report: dict[str, Any]) -> int:
    """Upsert a report by citation and return its surrogate id."""
    execute(
        con,
        """INSERT INTO committee_reports (
             citation, congress, chamber, type, number, part, update_date, updated_at
           ) VALUES (
             :citation, :congress, :chamber, :type, :number, :part, :update_date, :now
           )
           ON CONFLICT(citation) DO UPDATE SET
             congress = COALESCE(excluded.congress, committee_reports.congress),
             chamber = COALESCE(excluded.chamber, committee_reports.chamber),
             type = COALESCE(excluded.type, committee_reports.type),
             number = COALESCE(excluded.number, committee_reports.number),
             part = COALESCE(excluded.part, committee_reports.part),
             update_date = COALESCE(excluded.update_date, committee_reports.update_date),
             updated_at = excluded.updated_at""",
        report,
    )
    return fetch_scalar(
        con,
        "SELECT id FROM committee_reports WHERE citation = :citation",
        {"citation": report["citation"]},
    )


def update_report_detail(
    con, report_id: int, title: str | None, issue_date: str | None, is_conference: bool | None
) -> None:
    execute(
        con,
        """UPDATE committee_reports SET
             title = COALESCE(:title, title),
             issue_date = COALESCE(:issue_date, issue_date),
             is_conference_report = COALESCE(:is_conference, is_conference_report)
           WHERE id = :report_id""",
        {
            "report_id": report_id,
            "title": title,
            "issue_date": issue_date,
            "is_conference": is_conference,
        },
    )


def link_report_committee(con, report_id: int, committee_code: str) -> None:
    execute(
        con,
        """INSERT INTO report_committees (report_id, committee_system_code)
           VALUES (:report_id, :code)
           ON CONFLICT DO NOTHING""",
        {"report_id": report_id, "code": committee_code},
    )


def link_report_bill(con, report_id: int, bill_id: int) -> None:
    execute(
        con,
        """INSERT INTO report_associated_bills (report_id, bill_id)
           VALUES (:report_id, :bill_id)
           ON CONFLICT DO NOTHING""",
        {"report_id": report_id, "bill_id": bill_id},
    )


def count_committee_reports(con, committee_code: str, congress: int) -> tuple[int, int]:
    """(total reports, reports with at least one linked bill) for a committee and congress."""
    cur = execute(
        con,
        """SELECT COUNT(DISTINCT cr.id), COUNT(DISTINCT rab.report_id)
           FROM committee_reports cr
           INNER JOIN report_committees rc ON cr.id = rc.report_id
           LEFT JOIN report_associated_bills rab ON cr.id = rab.report_id
           WHERE rc.committee_system_code = :code AND cr.congress = :congress""",
        {"code": committee_code, "congress": congress},
    )
    total, with_bills = cur.fetchone()
    return int(total or 0), int(with_bills or 0)
