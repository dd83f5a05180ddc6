"""
Detail and sub-resource fetching.

Turns a list-endpoint candidate into a fully hydrated entity: the detail
object plus every nested sub-collection, decoded through the contracts in
api.payloads. All network I/O for an entity happens here, before any
transaction is opened for it.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import requests
from pydantic import ValidationError

from ..api import payloads
from ..api.client import CongressClient
from ..api.pagination import PageWalker
from ..api.payloads import (
    Action,
    ApiModel,
    BillCommittee,
    BillDetail,
    BillListItem,
    Collection,
    CommitteeDetail,
    CommitteeListItem,
    Cosponsor,
    MemberDetail,
    MemberListItem,
    RelatedBill,
    ReportDetail,
    ReportListItem,
    Subject,
    Summary,
    TextVersion,
    Title,
)
from ..errors import MissingReferenceError, PartialFetchError
from ..resilience.rate_limit_guard import RateLimitGuard
from .report_freshness import ReportFreshness

logger = logging.getLogger(__name__)

PAGE_LIMIT = 250


def with_limit(url: str, limit: int = PAGE_LIMIT) -> str:
    """Add `limit` to a start URL unless it already carries one."""
    parsed = urlparse(url)
    query = dict(parse_qsl(parsed.query))
    query.setdefault("limit", str(limit))
    return urlunparse(parsed._replace(query=urlencode(query)))


@dataclass
class HydratedBill:
    detail: BillDetail
    actions: list[Action] = field(default_factory=list)
    committees: list[BillCommittee] = field(default_factory=list)
    cosponsors: list[Cosponsor] = field(default_factory=list)
    related_bills: list[RelatedBill] = field(default_factory=list)
    summaries: list[Summary] = field(default_factory=list)
    subjects: list[Subject] = field(default_factory=list)
    policy_area: str | None = None
    titles: list[Title] = field(default_factory=list)
    text_versions: list[TextVersion] = field(default_factory=list)
    reports: list[ReportDetail] = field(default_factory=list)
    partial_fetches: list[PartialFetchError] = field(default_factory=list)
    sponsor_id: str | None = None

    def __post_init__(self):
        if self.sponsor_id is None and self.detail.sponsor is not None:
            self.sponsor_id = self.detail.sponsor.bioguide_id

    @property
    def key(self) -> tuple[int, str, int]:
        return self.detail.key

    def member_references(self) -> set[str]:
        refs = {c.bioguide_id for c in self.cosponsors}
        if self.sponsor_id:
            refs.add(self.sponsor_id)
        return refs

    def drop_unresolved_members(self, resolved: set[str]) -> list[MissingReferenceError]:
        """Detach every member reference not in `resolved`; one error per dropped fact."""
        dropped = []
        if self.sponsor_id and self.sponsor_id not in resolved:
            dropped.append(MissingReferenceError("member", self.sponsor_id, f"{self.detail.label} sponsor"))
            self.sponsor_id = None
        kept = []
        for cosponsor in self.cosponsors:
            if cosponsor.bioguide_id in resolved:
                kept.append(cosponsor)
            else:
                dropped.append(
                    MissingReferenceError("member", cosponsor.bioguide_id, f"{self.detail.label} cosponsor")
                )
        self.cosponsors = kept
        return dropped


@dataclass
class HydratedMember:
    detail: MemberDetail

    @property
    def key(self) -> str:
        return self.detail.bioguide_id


@dataclass
class FetchedReport:
    listing: ReportListItem
    detail: ReportDetail | None = None


@dataclass
class HydratedCommittee:
    listing: CommitteeListItem
    detail: CommitteeDetail
    report_check: ReportFreshness | None = None
    reports: list[FetchedReport] = field(default_factory=list)
    partial_fetches: list[PartialFetchError] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.listing.system_code


class Hydrator:
    def __init__(
        self,
        client: CongressClient,
        guard: RateLimitGuard,
        congress: int,
        page_delay: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.guard = guard
        self.congress = congress
        self.page_delay = page_delay
        self._sleep = sleep

    # ── pagination ──

    def _guarded_get(self, url: str) -> dict:
        return self.guard.call(self.client.get_json, url)

    def walker(self, url: str, collection: Collection) -> PageWalker:
        return PageWalker(
            self._guarded_get,
            with_limit(url),
            collection,
            page_delay=self.page_delay,
            sleep=self._sleep,
        )

    def walk(self, url: str, collection: Collection) -> tuple[list[ApiModel], PartialFetchError | None]:
        """Every decodable item of a collection, plus the partial-fetch marker if the walk broke off."""
        walker = self.walker(url, collection)
        items = []
        for raw in walker:
            try:
                items.append(collection.model.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping undecodable %s item at %s: %s", collection.name, url, exc)
        return items, walker.partial

    def _walk_ref(self, ref, collection: Collection, partials: list[PartialFetchError]) -> list:
        if ref is None or not ref.url:
            return []
        items, partial = self.walk(ref.url, collection)
        if partial is not None:
            partials.append(partial)
        return items

    # ── bills ──

    def bill_list_url(self) -> str:
        return self.client.url(f"/bill/{self.congress}")

    def fetch_bill(self, item: BillListItem) -> HydratedBill:
        """
        Detail plus every sub-resource of one bill.

        The detail request is not retried in place: a 429 here raises
        ThrottledError so the whole batch can cool down. Sub-resource and
        report requests raise it only once their in-place retries run out.
        """
        url = item.url or self.client.url(f"/bill/{item.congress}/{item.type}/{item.number}")
        detail = self.client.get_detail(url, payloads.BILL)
        if detail is None:
            raise ValueError(f"No bill object in detail response for {item.label}")

        partials: list[PartialFetchError] = []
        bill = HydratedBill(detail=detail, partial_fetches=partials)
        bill.actions = self._walk_ref(detail.actions, payloads.ACTIONS, partials)
        bill.committees = self._walk_ref(detail.committees, payloads.BILL_COMMITTEES, partials)
        bill.cosponsors = self._walk_ref(detail.cosponsors, payloads.COSPONSORS, partials)
        bill.related_bills = self._walk_ref(detail.related_bills, payloads.RELATED_BILLS, partials)
        bill.summaries = self._walk_ref(detail.summaries, payloads.SUMMARIES, partials)
        bill.subjects = self._walk_ref(detail.subjects, payloads.SUBJECTS, partials)
        bill.titles = self._walk_ref(detail.titles, payloads.TITLES, partials)
        bill.text_versions = self._walk_ref(detail.text_versions, payloads.TEXT_VERSIONS, partials)
        bill.policy_area = detail.policy_area.name if detail.policy_area else None

        for citation in detail.committee_reports:
            if not citation.url:
                continue
            report = self._fetch_report(citation.url, citation.citation, partials)
            if report is not None:
                bill.reports.append(report)
        return bill

    def _fetch_report(
        self, url: str, citation: str, partials: list[PartialFetchError]
    ) -> ReportDetail | None:
        """
        One report detail, retried in place on 429.

        A throttle that outlasts the in-place retries propagates so the
        owning batch cools down; other failures are recorded in `partials`.
        """
        try:
            return self.guard.call(self.client.get_detail, url, payloads.REPORT)
        except (requests.RequestException, ValidationError) as exc:
            logger.warning("Report detail for %s unavailable: %s", citation, exc)
            partials.append(PartialFetchError(url, 0, exc))
            return None

    # ── members ──

    def member_list_url(self) -> str:
        return self.client.url(f"/member/congress/{self.congress}")

    def fetch_member(self, item: MemberListItem) -> HydratedMember:
        url = self.client.url(f"/member/{item.bioguide_id}")
        detail = self.client.get_detail(url, payloads.MEMBER)
        if detail is None:
            raise ValueError(f"No member object in detail response for {item.bioguide_id}")
        return HydratedMember(detail=detail)

    def fetch_member_detail(self, bioguide_id: str) -> MemberDetail | None:
        """Single member lookup with in-place throttle retries, for reference resolution."""
        return self.guard.call(
            self.client.get_detail, self.client.url(f"/member/{bioguide_id}"), payloads.MEMBER
        )

    # ── committees ──

    def committee_list_url(self) -> str:
        return self.client.url(f"/committee/{self.congress}")

    def fetch_committee(
        self,
        item: CommitteeListItem,
        check_reports: Callable[[str, int | None], ReportFreshness],
    ) -> HydratedCommittee:
        url = item.url
        if not url:
            chamber = (item.chamber or "").lower()
            url = self.client.url(f"/committee/{chamber}/{item.system_code}")
        detail = self.client.get_detail(url, payloads.COMMITTEE)
        if detail is None:
            raise ValueError(f"No committee object in detail response for {item.system_code}")

        committee = HydratedCommittee(listing=item, detail=detail)
        if detail.reports is None or not detail.reports.url:
            return committee

        committee.report_check = check_reports(item.system_code, detail.reports.count)
        if not committee.report_check.refetch:
            return committee

        listings, partial = self.walk(detail.reports.url, payloads.COMMITTEE_REPORTS)
        if partial is not None:
            committee.partial_fetches.append(partial)

        skipped = 0
        for listing in listings:
            if listing.congress != self.congress:
                skipped += 1
                continue
            fetched = FetchedReport(listing=listing)
            if listing.type and listing.number:
                fetched.detail = self._fetch_report(
                    self.client.url(
                        f"/committee-report/{listing.congress}/{listing.type.lower()}/{listing.number}"
                    ),
                    listing.citation,
                    committee.partial_fetches,
                )
            committee.reports.append(fetched)

        logger.info(
            "Reports for %s: %d from congress %d, %d from other congresses skipped",
            item.system_code,
            len(committee.reports),
            self.congress,
            skipped,
        )
        return committee
