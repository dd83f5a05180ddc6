"""Tests for the committee report completeness heuristic."""

from congress_mirror import db
from congress_mirror.sync.report_freshness import ReportFreshnessChecker

NOW = "2025-06-01T00:00:00+00:00"


def _seed_reports(code, reports):
    """reports: list of (citation, congress, linked_to_bill)."""
    with db.Database().transaction() as con:
        db.upsert_committee(con, code, "Veterans' Affairs", "House", NOW)
        bill_id = db.ensure_bill_stub(con, 119, "hr", 1, None, NOW)
        for citation, congress, linked in reports:
            report_id = db.upsert_report(
                con,
                {
                    "citation": citation,
                    "congress": congress,
                    "chamber": "House",
                    "type": "HRPT",
                    "number": int(citation.rsplit("-", 1)[1]),
                    "part": 1,
                    "update_date": None,
                    "now": NOW,
                },
            )
            db.link_report_committee(con, report_id, code)
            if linked:
                db.link_report_bill(con, report_id, bill_id)


class TestReportFreshnessChecker:
    def test_nothing_stored_nothing_upstream(self):
        freshness = ReportFreshnessChecker(db.Database(), 119).check("HSVR00", 0)
        assert freshness.total == 0
        assert freshness.refetch is False

    def test_nothing_stored_upstream_has_reports(self):
        freshness = ReportFreshnessChecker(db.Database(), 119).check("HSVR00", 12)
        assert freshness.refetch is True
        assert freshness.upstream_count == 12

    def test_unlinked_reports_force_refetch(self):
        _seed_reports("HSVR00", [("H. Rept. 119-1", 119, True), ("H. Rept. 119-2", 119, False)])

        freshness = ReportFreshnessChecker(db.Database(), 119).check("HSVR00", None)

        assert freshness.total == 2
        assert freshness.with_bills == 1
        assert freshness.without_bills == 1
        assert freshness.refetch is True

    def test_fully_linked_and_nothing_upstream(self):
        _seed_reports("HSVR00", [("H. Rept. 119-1", 119, True)])

        freshness = ReportFreshnessChecker(db.Database(), 119).check("HSVR00", 0)

        assert freshness.without_bills == 0
        assert freshness.refetch is False

    def test_fully_linked_still_refetches_when_upstream_lists_reports(self):
        _seed_reports("HSVR00", [("H. Rept. 119-1", 119, True)])
        freshness = ReportFreshnessChecker(db.Database(), 119).check("HSVR00", 1)
        assert freshness.refetch is True

    def test_other_congress_not_counted(self):
        _seed_reports("HSVR00", [("H. Rept. 118-5", 118, False)])

        freshness = ReportFreshnessChecker(db.Database(), 119).check("HSVR00", 0)

        assert freshness.total == 0
        assert freshness.refetch is False

    def test_other_committee_not_counted(self):
        _seed_reports("HSVR00", [("H. Rept. 119-1", 119, False)])
        freshness = ReportFreshnessChecker(db.Database(), 119).check("SSVA00", 0)
        assert freshness.total == 0
