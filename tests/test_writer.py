"""Tests for transactional batch persistence."""

import sqlite3

import pytest

from congress_mirror import db
from congress_mirror.api.payloads import (
    Action,
    BillCommittee,
    BillDetail,
    CommitteeDetail,
    CommitteeListItem,
    Cosponsor,
    MemberDetail,
    RelatedBill,
    ReportDetail,
    ReportListItem,
    Subject,
    Summary,
    TextVersion,
    Title,
)
from congress_mirror.errors import BatchWriteError
from congress_mirror.sync.hydrate import FetchedReport, HydratedBill, HydratedCommittee, HydratedMember
from congress_mirror.sync.writer import BatchWriter, write_bill, write_committee, write_member

SYNCED_AT = "2025-06-01T12:00:00+00:00"

SAMPLE_BILL = {
    "congress": 119,
    "type": "HR",
    "number": "1234",
    "title": "Veterans Housing Act",
    "introducedDate": "2025-03-01",
    "originChamber": "House",
    "policyArea": {"name": "Armed Forces and National Security"},
    "sponsors": [{"bioguideId": "S000001", "isByRequest": "N"}],
    "latestAction": {"actionDate": "2025-03-02", "text": "Referred to committee."},
    "cboCostEstimates": [
        {"url": "https://www.cbo.gov/publication/1", "title": "H.R. 1234", "pubDate": "2025-04-01"}
    ],
    "laws": [{"number": "119-7", "type": "Public Law"}],
}


def _hydrated_bill(**overrides) -> HydratedBill:
    detail = BillDetail.model_validate({**SAMPLE_BILL, **overrides.pop("detail", {})})
    fields = dict(
        detail=detail,
        actions=[
            Action.model_validate(
                {
                    "actionDate": "2025-03-01",
                    "text": "Introduced in House",
                    "type": "IntroReferral",
                    "committees": [{"systemCode": "hsvr00", "name": "Veterans' Affairs Committee"}],
                }
            ),
            Action.model_validate({"actionDate": "2025-03-02", "text": None}),
        ],
        committees=[
            BillCommittee.model_validate(
                {
                    "systemCode": "hsvr00",
                    "name": "Veterans' Affairs Committee",
                    "chamber": "House",
                    "activities": [
                        {"name": "Referred To", "date": "2025-03-01T14:00:00Z"},
                        {"name": "Markup By"},
                    ],
                }
            )
        ],
        cosponsors=[
            Cosponsor.model_validate(
                {"bioguideId": "C000002", "sponsorshipDate": "2025-03-01", "isOriginalCosponsor": True}
            )
        ],
        related_bills=[
            RelatedBill.model_validate(
                {
                    "congress": 119,
                    "type": "S",
                    "number": 88,
                    "title": "Senate companion",
                    "relationshipDetails": [{"type": "Identical bill", "identifiedBy": "CRS"}],
                }
            )
        ],
        summaries=[
            Summary.model_validate({"versionCode": "00", "actionDate": "2025-03-01", "text": "<p>Sum</p>"}),
            Summary.model_validate({"versionCode": "01"}),
        ],
        subjects=[Subject(name="Housing for veterans"), Subject(name="Homelessness")],
        policy_area="Armed Forces and National Security",
        titles=[Title.model_validate({"title": "Veterans Housing Act", "titleType": "Short Title(s) as Introduced"})],
        text_versions=[
            TextVersion.model_validate(
                {
                    "type": "Introduced in House",
                    "date": "2025-03-01",
                    "formats": [
                        {"type": "PDF", "url": "https://www.congress.gov/119/bills/hr1234/ih.pdf"},
                        {"type": "Formatted XML", "url": "https://www.congress.gov/119/bills/hr1234/ih.xml"},
                    ],
                }
            )
        ],
    )
    fields.update(overrides)
    return HydratedBill(**fields)


def _seed_members(*bioguide_ids):
    with db.Database().transaction() as con:
        for bioguide_id in bioguide_ids:
            db.insert_member_stub(
                con,
                {
                    "bioguide_id": bioguide_id,
                    "direct_order_name": None,
                    "first_name": None,
                    "last_name": None,
                    "is_current_member": None,
                    "now": SYNCED_AT,
                },
            )


def _count(table, where="1=1", params=()):
    with db.Database().connection() as con:
        return con.execute(f"SELECT COUNT(*) FROM {table} WHERE {where}", params).fetchone()[0]


def _snapshot():
    tables = [
        "bills", "bill_actions", "bill_action_committees", "bill_committees", "bill_cosponsors",
        "related_bills", "bill_summaries", "bill_subjects", "bill_titles", "bill_text_versions",
        "cbo_cost_estimates", "laws", "committees",
    ]
    return {t: _count(t) for t in tables}


# ── write_bill ──────────────────────────────────────────────────


class TestWriteBill:
    def test_writes_bill_and_nested_rows(self):
        _seed_members("S000001", "C000002")
        with db.Database().transaction() as con:
            bill_id = write_bill(con, _hydrated_bill(), SYNCED_AT)

        with db.Database().connection() as con:
            bill = db.get_bill(con, 119, "hr", 1234)
        assert bill["id"] == bill_id
        assert bill["title"] == "Veterans Housing Act"
        assert bill["sponsor_bioguide_id"] == "S000001"
        assert bill["policy_area"] == "Armed Forces and National Security"
        assert bill["last_synced_at"] == SYNCED_AT
        assert bill["is_by_request"] == 0

        assert _count("bill_actions", "bill_id = ?", (bill_id,)) == 2
        assert _count("bill_actions", "text = 'No description'") == 1
        assert _count("bill_action_committees") == 1
        # The undated activity is skipped.
        assert _count("bill_committees", "bill_id = ?", (bill_id,)) == 1
        assert _count("bill_cosponsors", "bill_id = ? AND is_original_cosponsor = 1", (bill_id,)) == 1
        assert _count("bill_summaries") == 1
        assert _count("bill_subjects") == 2
        assert _count("bill_titles") == 1
        assert _count("bill_text_versions") == 2
        assert _count("cbo_cost_estimates") == 1
        assert _count("laws", "number = '119-7'") == 1

    def test_committee_chamber_inferred_for_action_committees(self):
        _seed_members("S000001", "C000002")
        bill = _hydrated_bill(committees=[])
        with db.Database().transaction() as con:
            write_bill(con, bill, SYNCED_AT)
            row = db.get_committee(con, "hsvr00")
        assert row["chamber"] == "House"

    def test_related_bill_becomes_stub(self):
        _seed_members("S000001", "C000002")
        with db.Database().transaction() as con:
            write_bill(con, _hydrated_bill(), SYNCED_AT)
            stub = db.get_bill(con, 119, "s", 88)
        assert stub["title"] == "Senate companion"
        assert stub["last_synced_at"] is None
        assert _count("related_bills", "identified_by = 'CRS'") == 1

    def test_rewrite_is_idempotent(self):
        _seed_members("S000001", "C000002")
        with db.Database().transaction() as con:
            write_bill(con, _hydrated_bill(), SYNCED_AT)
        first = _snapshot()

        with db.Database().transaction() as con:
            write_bill(con, _hydrated_bill(), "2025-06-09T12:00:00+00:00")

        assert _snapshot() == first

    def test_refresh_updates_fields_and_watermark(self):
        _seed_members("S000001", "C000002")
        with db.Database().transaction() as con:
            write_bill(con, _hydrated_bill(), SYNCED_AT)
            write_bill(
                con,
                _hydrated_bill(detail={"latestAction": {"actionDate": "2025-05-01", "text": "Passed House."}}),
                "2025-06-09T12:00:00+00:00",
            )
            bill = db.get_bill(con, 119, "hr", 1234)
        assert bill["latest_action_text"] == "Passed House."
        assert bill["last_synced_at"] == "2025-06-09T12:00:00+00:00"

    def test_stub_upgraded_by_full_write(self):
        _seed_members("S000001", "C000002")
        with db.Database().transaction() as con:
            db.ensure_bill_stub(con, 119, "hr", 1234, None, SYNCED_AT)
            assert db.get_bill(con, 119, "hr", 1234)["title"] == "Untitled Bill"
            write_bill(con, _hydrated_bill(), SYNCED_AT)
            bill = db.get_bill(con, 119, "hr", 1234)
        assert bill["title"] == "Veterans Housing Act"
        assert _count("bills", "congress = 119 AND type = 'hr' AND number = 1234") == 1

    def test_stub_never_overwrites_real_title(self):
        _seed_members("S000001", "C000002")
        with db.Database().transaction() as con:
            write_bill(con, _hydrated_bill(), SYNCED_AT)
            db.ensure_bill_stub(con, 119, "hr", 1234, "Some other reference title", SYNCED_AT)
            bill = db.get_bill(con, 119, "hr", 1234)
        assert bill["title"] == "Veterans Housing Act"
        assert bill["last_synced_at"] == SYNCED_AT

    def test_unseeded_sponsor_violates_foreign_key(self):
        with pytest.raises(sqlite3.IntegrityError):
            with db.Database().transaction() as con:
                write_bill(con, _hydrated_bill(cosponsors=[]), SYNCED_AT)
        assert _count("bills") == 0

    def test_bill_reports_link_back(self):
        _seed_members("S000001", "C000002")
        report = ReportDetail.model_validate(
            {
                "citation": "H. Rept. 119-12",
                "congress": 119,
                "type": "HRPT",
                "number": 12,
                "title": "Report to accompany H.R. 1234",
                "associatedBill": [{"congress": 119, "type": "HR", "number": 1234}],
            }
        )
        with db.Database().transaction() as con:
            bill_id = write_bill(con, _hydrated_bill(reports=[report]), SYNCED_AT)

        assert _count("committee_reports", "title = 'Report to accompany H.R. 1234'") == 1
        assert _count("report_associated_bills", "bill_id = ?", (bill_id,)) == 1


# ── BatchWriter ─────────────────────────────────────────────────


class TestBatchWriter:
    def test_commits_whole_batch(self):
        _seed_members("S000001", "C000002")
        writer = BatchWriter(db.Database(), "bills", write_bill, key=lambda b: b.key)
        batch = [_hydrated_bill(), _hydrated_bill(detail={"number": 1235, "title": "Second"})]

        result = writer.write(batch, SYNCED_AT)

        assert result.ok
        assert result.written == 2
        assert result.keys == [(119, "hr", 1234), (119, "hr", 1235)]
        assert _count("bills", "last_synced_at IS NOT NULL") == 2

    def test_failure_rolls_back_every_entity(self):
        _seed_members("S000001", "C000002")
        calls = []

        def flaky_write(con, bill, synced_at):
            calls.append(bill.key)
            if len(calls) == 2:
                raise sqlite3.OperationalError("database is locked")
            write_bill(con, bill, synced_at)

        writer = BatchWriter(db.Database(), "bills", flaky_write, key=lambda b: b.key)
        batch = [_hydrated_bill(), _hydrated_bill(detail={"number": 1235})]

        result = writer.write(batch, SYNCED_AT)

        assert not result.ok
        assert isinstance(result.error, BatchWriteError)
        assert result.failed == 2
        assert result.written == 0
        # The first bill's rows were rolled back with the second's failure.
        assert _snapshot() == {t: 0 for t in _snapshot()}

    def test_empty_batch(self):
        writer = BatchWriter(db.Database(), "bills", write_bill, key=lambda b: b.key)
        result = writer.write([], SYNCED_AT)
        assert result.ok
        assert result.written == 0


# ── members and committees ──────────────────────────────────────


class TestWriteMember:
    def test_full_member_with_children(self):
        detail = MemberDetail.model_validate(
            {
                "bioguideId": "S000001",
                "firstName": "Pat",
                "lastName": "Sample",
                "directOrderName": "Pat Sample",
                "birthYear": "1961",
                "currentMember": True,
                "depiction": {"imageUrl": "https://example/p.jpg", "attribution": "Official"},
                "addressInformation": {"officeAddress": "1 Independence Ave", "city": "Washington", "zipCode": 20515},
                "partyHistory": [{"partyName": "Independent", "partyAbbreviation": "I", "startYear": 2019}],
                "terms": [
                    {"congress": 118, "chamber": "House of Representatives", "stateCode": "VT", "district": 0},
                    {"congress": 119, "chamber": "House of Representatives", "stateCode": "VT", "district": 0},
                ],
                "leadership": [{"congress": 119, "type": "Ranking Member", "current": True}],
            }
        )
        with db.Database().transaction() as con:
            write_member(con, HydratedMember(detail), SYNCED_AT)
            write_member(con, HydratedMember(detail), SYNCED_AT)

        assert _count("members", "last_synced_at = ?", (SYNCED_AT,)) == 1
        assert _count("member_addresses", "zip_code = '20515'") == 1
        assert _count("member_party_history") == 1
        assert _count("member_terms") == 2
        assert _count("member_leadership", "is_current = 1") == 1

    def test_full_write_upgrades_stub(self):
        _seed_members("S000001")
        detail = MemberDetail.model_validate({"bioguideId": "S000001", "firstName": "Pat", "lastName": "Sample"})
        with db.Database().transaction() as con:
            write_member(con, HydratedMember(detail), SYNCED_AT)
            watermarks = db.get_member_watermarks(con)
        assert watermarks == {"S000001": SYNCED_AT}
        assert _count("members", "last_name = 'Sample'") == 1


class TestWriteCommittee:
    def test_detail_history_and_reports(self):
        listing = CommitteeListItem.model_validate(
            {"systemCode": "hsvr00", "name": "Veterans' Affairs Committee", "chamber": "House"}
        )
        with db.Database().transaction() as con:
            db.upsert_committee(con, "hsvr00", listing.name, "House", SYNCED_AT)

        committee = HydratedCommittee(
            listing=listing,
            detail=CommitteeDetail.model_validate(
                {
                    "systemCode": "hsvr00",
                    "isCurrent": True,
                    "history": [
                        {"officialName": "Committee on Veterans' Affairs", "startDate": "1947-01-03T05:00:00Z"}
                    ],
                }
            ),
            reports=[
                FetchedReport(
                    listing=ReportListItem.model_validate(
                        {"citation": "H. Rept. 119-12", "congress": 119, "chamber": "House", "type": "HRPT", "number": 12}
                    ),
                    detail=ReportDetail.model_validate(
                        {
                            "citation": "H. Rept. 119-12",
                            "title": "Report to accompany H.R. 1234",
                            "associatedBill": [{"congress": 119, "type": "HR", "number": 1234}],
                        }
                    ),
                ),
                FetchedReport(
                    listing=ReportListItem.model_validate({"citation": "H. Rept. 119-13", "congress": 119})
                ),
            ],
        )
        with db.Database().transaction() as con:
            write_committee(con, committee, SYNCED_AT)
            row = db.get_committee(con, "hsvr00")
            total, with_bills = db.count_committee_reports(con, "hsvr00", 119)

        assert row["last_synced_at"] == SYNCED_AT
        assert row["is_current"] == 1
        assert _count("committee_history") == 1
        assert (total, with_bills) == (2, 1)
        # The associated bill exists as a stub waiting for the bills sync.
        assert _count("bills", "type = 'hr' AND number = 1234 AND last_synced_at IS NULL") == 1
