"""
Entity families.

Each family tells the orchestrator where its candidates come from, how
they are keyed against stored watermarks, how one candidate is hydrated,
and how one hydrated entity is written.
"""

import logging
from collections.abc import Hashable
from datetime import datetime
from typing import Any

from .. import db
from ..api import payloads
from ..api.payloads import BillListItem, Collection, CommitteeListItem, MemberListItem
from ..errors import MissingReferenceError, PartialFetchError
from .hierarchy import HierarchyLinker
from .hydrate import Hydrator
from .report_freshness import ReportFreshnessChecker
from .resolver import EntityResolver
from .writer import write_bill, write_committee, write_member

logger = logging.getLogger(__name__)


class EntityFamily:
    name: str = ""
    collection: Collection

    def __init__(self, database: db.Database, hydrator: Hydrator):
        self.database = database
        self.hydrator = hydrator

    def list_url(self) -> str:
        raise NotImplementedError

    def enumerate_candidates(self) -> tuple[list, PartialFetchError | None]:
        """Walk the family's list endpoint and decode every candidate."""
        return self.hydrator.walk(self.list_url(), self.collection)

    def prepare(self, candidates: list, now: datetime) -> None:
        """Hook run once over all candidates before staleness filtering."""

    def watermarks(self) -> dict[Hashable, Any]:
        raise NotImplementedError

    def candidate_key(self, candidate) -> Hashable:
        raise NotImplementedError

    def entity_key(self, entity) -> Hashable:
        return entity.key

    def fetch(self, candidate):
        raise NotImplementedError

    def resolve(self, entities: list, now: datetime) -> list[MissingReferenceError]:
        return []

    def write_entity(self, con, entity, synced_at) -> None:
        raise NotImplementedError


class BillFamily(EntityFamily):
    name = "bills"
    collection = payloads.BILL_LIST

    def __init__(self, database: db.Database, hydrator: Hydrator):
        super().__init__(database, hydrator)
        self.resolver = EntityResolver(database, hydrator.fetch_member_detail)

    def list_url(self) -> str:
        return self.hydrator.bill_list_url()

    def watermarks(self):
        with self.database.connection() as con:
            return db.get_bill_watermarks(con, self.hydrator.congress)

    def candidate_key(self, candidate: BillListItem):
        return candidate.key

    def fetch(self, candidate: BillListItem):
        return self.hydrator.fetch_bill(candidate)

    def resolve(self, entities, now):
        return self.resolver.resolve(entities, now=now).missing

    def write_entity(self, con, entity, synced_at):
        write_bill(con, entity, synced_at)


class MemberFamily(EntityFamily):
    name = "members"
    collection = payloads.MEMBER_LIST

    def list_url(self) -> str:
        return self.hydrator.member_list_url()

    def watermarks(self):
        with self.database.connection() as con:
            return db.get_member_watermarks(con)

    def candidate_key(self, candidate: MemberListItem):
        return candidate.bioguide_id

    def fetch(self, candidate: MemberListItem):
        return self.hydrator.fetch_member(candidate)

    def write_entity(self, con, entity, synced_at):
        write_member(con, entity, synced_at)


class CommitteeFamily(EntityFamily):
    """
    Committees plus their reports.

    Every listed committee goes through the HierarchyLinker before
    staleness filtering, so parent links are complete even for committees
    whose details are still fresh.
    """

    name = "committees"
    collection = payloads.COMMITTEE_LIST

    def __init__(self, database: db.Database, hydrator: Hydrator):
        super().__init__(database, hydrator)
        self.linker = HierarchyLinker(database)
        self.report_checker = ReportFreshnessChecker(database, hydrator.congress)

    def list_url(self) -> str:
        return self.hydrator.committee_list_url()

    def prepare(self, candidates: list[CommitteeListItem], now: datetime) -> None:
        self.linker.link(candidates, now=now)

    def watermarks(self):
        with self.database.connection() as con:
            return db.get_committee_watermarks(con)

    def candidate_key(self, candidate: CommitteeListItem):
        return candidate.system_code

    def fetch(self, candidate: CommitteeListItem):
        return self.hydrator.fetch_committee(candidate, self.report_checker.check)

    def write_entity(self, con, entity, synced_at):
        write_committee(con, entity, synced_at)


FAMILY_TYPES: dict[str, type[EntityFamily]] = {
    BillFamily.name: BillFamily,
    MemberFamily.name: MemberFamily,
    CommitteeFamily.name: CommitteeFamily,
}
