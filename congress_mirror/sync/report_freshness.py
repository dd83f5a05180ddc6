"""Decides whether a committee's report listing needs to be walked again."""

import logging
from dataclasses import dataclass

from ..db import Database, count_committee_reports

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportFreshness:
    committee_code: str
    congress: int
    total: int
    with_bills: int
    upstream_count: int
    refetch: bool

    @property
    def without_bills(self) -> int:
        return self.total - self.with_bills


class ReportFreshnessChecker:
    """
    Completeness heuristic, not a timestamp: re-fetch when some stored
    reports still lack a bill link, or upstream lists any report at all
    for the committee.

    This can over-fetch a fully reconciled committee whose upstream count
    is nonzero, and can miss a changed bill association when the count is
    unchanged.
    """

    def __init__(self, database: Database, congress: int):
        self.database = database
        self.congress = congress

    def check(self, committee_code: str, upstream_count: int | None) -> ReportFreshness:
        with self.database.connection() as con:
            total, with_bills = count_committee_reports(con, committee_code, self.congress)

        upstream = upstream_count or 0
        freshness = ReportFreshness(
            committee_code=committee_code,
            congress=self.congress,
            total=total,
            with_bills=with_bills,
            upstream_count=upstream,
            refetch=(total - with_bills) > 0 or upstream > 0,
        )
        if freshness.without_bills > 0:
            logger.info(
                "Reports for %s queued: %d congress %d reports need bill links",
                committee_code,
                freshness.without_bills,
                self.congress,
            )
        elif freshness.refetch:
            logger.debug("Reports for %s queued: checking for new reports", committee_code)
        else:
            logger.debug("Reports for %s skipped: nothing to reconcile", committee_code)
        return freshness
