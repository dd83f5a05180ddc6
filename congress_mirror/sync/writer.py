"""
Transactional batch persistence.

BatchWriter commits one batch of hydrated entities as a single
all-or-nothing transaction. The write_* functions below persist one entity
and all of its nested rows; parents are always written before the rows
that reference them.
"""

import logging
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .. import db
from ..api.payloads import AssociatedBill, ReportDetail
from ..errors import BatchWriteError
from .hierarchy import infer_chamber
from .hydrate import HydratedBill, HydratedCommittee, HydratedMember

logger = logging.getLogger(__name__)

E = TypeVar("E")

UNKNOWN_ACTION_TEXT = "No description"
UNKNOWN_TEXT_TYPE = "Unknown"


@dataclass
class BatchResult:
    family: str
    keys: list
    written: int = 0
    failed: int = 0
    error: BatchWriteError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchWriter(Generic[E]):
    """
    Usage:
        writer = BatchWriter(database, "bills", write_bill, key=lambda b: b.key)
        result = writer.write(hydrated_bills, synced_at)
    """

    def __init__(
        self,
        database: db.Database,
        family: str,
        write_entity: Callable[[Any, E, Any], None],
        key: Callable[[E], Hashable],
    ):
        self.database = database
        self.family = family
        self.write_entity = write_entity
        self.key = key

    def write(self, entities: Sequence[E], synced_at) -> BatchResult:
        """
        Write every entity in one transaction.

        Any failure rolls the whole batch back; the batch is then reported
        failed in its entirety and nothing it contained is persisted.
        """
        keys = [self.key(e) for e in entities]
        if not entities:
            return BatchResult(self.family, keys)

        try:
            with self.database.transaction() as con:
                for entity in entities:
                    self.write_entity(con, entity, synced_at)
        except Exception as exc:
            error = BatchWriteError(self.family, keys, exc)
            logger.error("%s", error, exc_info=True)
            return BatchResult(self.family, keys, failed=len(entities), error=error)

        logger.info("Committed %s batch of %d", self.family, len(entities))
        return BatchResult(self.family, keys, written=len(entities))


# ── shared helpers ───────────────────────────────────────────────


def _ensure_committee(con, system_code: str, name: str | None, chamber: str | None, now) -> None:
    db.upsert_committee(con, system_code, name, infer_chamber(system_code, name, chamber), now)


def _link_associated_bills(con, report_id: int, bills: Sequence[AssociatedBill], now) -> int:
    linked = 0
    for associated in bills:
        bill_id = db.ensure_bill_stub(
            con, associated.congress, associated.type, associated.number, None, now
        )
        db.link_report_bill(con, report_id, bill_id)
        linked += 1
    return linked


def _write_report_detail(con, report: ReportDetail, now) -> int:
    report_id = db.upsert_report(
        con,
        {
            "citation": report.citation,
            "congress": report.congress,
            "chamber": report.chamber,
            "type": report.type,
            "number": report.number,
            "part": report.part,
            "update_date": None,
            "now": now,
        },
    )
    db.update_report_detail(
        con, report_id, report.title, report.issue_date, report.is_conference_report
    )
    _link_associated_bills(con, report_id, report.associated_bills, now)
    return report_id


# ── bills ────────────────────────────────────────────────────────


def bill_row(bill: HydratedBill, synced_at) -> dict[str, Any]:
    detail = bill.detail
    sponsor = detail.sponsor
    latest = detail.latest_action
    return {
        "congress": detail.congress,
        "type": detail.type,
        "number": detail.number,
        "title": detail.title,
        "introduced_date": detail.introduced_date,
        "origin_chamber": detail.origin_chamber,
        "origin_chamber_code": detail.origin_chamber_code,
        "policy_area": bill.policy_area,
        "update_date": detail.update_date,
        "update_date_including_text": detail.update_date_including_text,
        "constitutional_authority_text": detail.constitutional_authority_text,
        "sponsor_bioguide_id": bill.sponsor_id,
        "is_by_request": (sponsor.is_by_request == "Y") if sponsor else None,
        "latest_action_date": latest.action_date if latest else None,
        "latest_action_text": latest.text if latest else None,
        "synced_at": synced_at,
    }


def write_bill(con, bill: HydratedBill, synced_at) -> int:
    """Persist one bill, its watermark, and every nested sub-resource."""
    bill_id = db.upsert_bill(con, bill_row(bill, synced_at))

    for action in bill.actions:
        action_id = db.upsert_action(
            con,
            bill_id,
            {
                "action_date": action.action_date,
                "text": action.text or UNKNOWN_ACTION_TEXT,
                "type": action.type,
                "action_code": action.action_code,
            },
        )
        for committee in action.committees:
            _ensure_committee(con, committee.system_code, committee.name, committee.chamber, synced_at)
            db.link_action_committee(con, action_id, committee.system_code)

    for committee in bill.committees:
        _ensure_committee(con, committee.system_code, committee.name, committee.chamber, synced_at)
        for activity in committee.activities:
            if not activity.date:
                logger.debug("Undated %s activity on %s skipped", activity.name, bill.detail.label)
                continue
            db.upsert_bill_committee(con, bill_id, committee.system_code, activity.name, activity.date)

    for cosponsor in bill.cosponsors:
        db.upsert_cosponsor(
            con,
            bill_id,
            {
                "bioguide_id": cosponsor.bioguide_id,
                "sponsorship_date": cosponsor.sponsorship_date,
                "is_original_cosponsor": cosponsor.is_original_cosponsor,
                "sponsorship_withdrawn_date": cosponsor.sponsorship_withdrawn_date,
            },
        )

    for related in bill.related_bills:
        related_id = db.ensure_bill_stub(
            con, related.congress, related.type, related.number, related.title, synced_at
        )
        details = related.relationship_details or []
        if not details:
            db.upsert_related_bill(con, bill_id, related_id, None, "Unknown")
        for relationship in details:
            db.upsert_related_bill(
                con, bill_id, related_id, relationship.type, relationship.identified_by
            )

    for summary in bill.summaries:
        if not summary.action_date:
            continue
        db.upsert_summary(
            con,
            bill_id,
            {
                "version_code": summary.version_code,
                "action_date": summary.action_date,
                "action_desc": summary.action_desc,
                "text": summary.text,
                "update_date": summary.update_date,
            },
        )

    for subject in bill.subjects:
        db.upsert_subject(con, bill_id, subject.name)

    for title in bill.titles:
        db.upsert_title(
            con,
            bill_id,
            {"title_type": title.title_type, "title_type_code": title.title_type_code, "title": title.title},
        )

    for version in bill.text_versions:
        for fmt in version.formats:
            db.upsert_text_version(
                con,
                bill_id,
                {
                    "type": version.type or UNKNOWN_TEXT_TYPE,
                    "date": version.date,
                    "format": fmt.type,
                    "url": fmt.url,
                },
            )

    for estimate in bill.detail.cbo_cost_estimates:
        db.upsert_cost_estimate(
            con,
            bill_id,
            {
                "url": estimate.url,
                "title": estimate.title,
                "description": estimate.description,
                "pub_date": estimate.pub_date,
            },
        )

    for law in bill.detail.laws:
        db.upsert_law(con, bill_id, law.type, law.number)

    for report in bill.reports:
        report_id = _write_report_detail(con, report, synced_at)
        db.link_report_bill(con, report_id, bill_id)

    return bill_id


# ── members ──────────────────────────────────────────────────────


def member_row(detail, synced_at) -> dict[str, Any]:
    depiction = detail.depiction
    return {
        "bioguide_id": detail.bioguide_id,
        "direct_order_name": detail.direct_order_name,
        "inverted_order_name": detail.inverted_order_name,
        "first_name": detail.first_name,
        "middle_name": detail.middle_name,
        "last_name": detail.last_name,
        "suffix_name": detail.suffix_name,
        "nickname": detail.nick_name,
        "honorific_name": detail.honorific_name,
        "birth_year": detail.birth_year,
        "death_year": detail.death_year,
        "official_url": detail.official_url,
        "image_url": depiction.image_url if depiction else None,
        "image_attribution": depiction.attribution if depiction else None,
        "is_current_member": detail.current_member,
        "update_date": detail.update_date,
        "synced_at": synced_at,
    }


def write_member(con, member: HydratedMember, synced_at) -> None:
    detail = member.detail
    db.upsert_member(con, member_row(detail, synced_at))

    address = detail.address
    if address is not None:
        db.upsert_member_address(
            con,
            detail.bioguide_id,
            {
                "office_address": address.office_address,
                "city": address.city,
                "district": address.district,
                "zip_code": str(address.zip_code) if address.zip_code is not None else None,
                "phone_number": address.phone_number,
            },
        )

    for party in detail.party_history:
        db.upsert_party_history(
            con,
            detail.bioguide_id,
            {
                "party_name": party.party_name,
                "party_abbreviation": party.party_abbreviation,
                "start_year": party.start_year,
                "end_year": party.end_year,
            },
        )

    for term in detail.terms:
        db.upsert_term(
            con,
            detail.bioguide_id,
            {
                "congress": term.congress,
                "chamber": term.chamber,
                "member_type": term.member_type,
                "state_code": term.state_code,
                "state_name": term.state_name,
                "district": term.district,
                "start_year": term.start_year,
                "end_year": term.end_year,
            },
        )

    for role in detail.leadership:
        db.upsert_leadership(con, detail.bioguide_id, role.congress, role.type, role.current)


# ── committees ───────────────────────────────────────────────────


def write_committee(con, committee: HydratedCommittee, synced_at) -> None:
    """Detail fields, history and (when re-fetched) the committee's reports."""
    code = committee.listing.system_code
    detail = committee.detail
    db.update_committee_detail(
        con,
        {
            "system_code": code,
            "is_current": detail.is_current,
            "update_date": detail.update_date,
            "synced_at": synced_at,
        },
    )

    for entry in detail.history:
        db.upsert_committee_history(
            con,
            code,
            {
                "official_name": entry.official_name,
                "loc_name": entry.loc_name,
                "start_date": entry.start_date,
                "end_date": entry.end_date,
            },
        )

    for fetched in committee.reports:
        listing = fetched.listing
        report_id = db.upsert_report(
            con,
            {
                "citation": listing.citation,
                "congress": listing.congress,
                "chamber": listing.chamber,
                "type": listing.type,
                "number": listing.number,
                "part": listing.part,
                "update_date": listing.update_date,
                "now": synced_at,
            },
        )
        db.link_report_committee(con, report_id, code)
        if fetched.detail is not None:
            db.update_report_detail(
                con,
                report_id,
                fetched.detail.title,
                fetched.detail.issue_date,
                fetched.detail.is_conference_report,
            )
            _link_associated_bills(con, report_id, fetched.detail.associated_bills, synced_at)
