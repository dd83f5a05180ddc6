"""
Forward-reference resolution for member references.

Runs between fetching and writing: every member a batch refers to must
exist before the batch transaction starts, so missing ones are fetched
and stored as stubs in their own committed unit of work.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

import requests
from pydantic import ValidationError

from ..api.payloads import MemberDetail
from ..db import Database, as_db_timestamp, get_existing_member_ids, insert_member_stub
from ..errors import BatchWriteError, MissingReferenceError, ThrottledError
from .hydrate import HydratedBill

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    referenced: int = 0
    existing: int = 0
    stubs_created: int = 0
    missing: list[MissingReferenceError] = field(default_factory=list)


def member_stub_row(detail: MemberDetail, now) -> dict:
    return {
        "bioguide_id": detail.bioguide_id,
        "direct_order_name": detail.direct_order_name,
        "first_name": detail.first_name,
        "last_name": detail.last_name,
        "is_current_member": detail.current_member,
        "now": now,
    }


class EntityResolver:
    def __init__(
        self,
        database: Database,
        fetch_member: Callable[[str], MemberDetail | None],
    ):
        self.database = database
        self.fetch_member = fetch_member

    def resolve(self, batch: Sequence[HydratedBill], now: datetime | None = None) -> Resolution:
        """
        Make every member referenced by `batch` resolvable, then strip the
        references that could not be resolved from the bills themselves.
        """
        wanted: set[str] = set()
        for bill in batch:
            wanted |= bill.member_references()

        result = Resolution(referenced=len(wanted))
        if not wanted:
            return result

        with self.database.connection() as con:
            existing = get_existing_member_ids(con, wanted)
        result.existing = len(existing)

        stubs = []
        for bioguide_id in sorted(wanted - existing):
            try:
                detail = self.fetch_member(bioguide_id)
            except (requests.RequestException, ValidationError, ThrottledError) as exc:
                logger.warning("Could not fetch member %s: %s", bioguide_id, exc)
                continue
            if detail is None:
                logger.warning("Member %s not found upstream", bioguide_id)
                continue
            stubs.append(detail)

        if stubs:
            now_value = as_db_timestamp(now or datetime.now(UTC))
            try:
                with self.database.transaction() as con:
                    for detail in stubs:
                        insert_member_stub(con, member_stub_row(detail, now_value))
            except Exception as exc:
                raise BatchWriteError(
                    "member stubs", [d.bioguide_id for d in stubs], exc
                ) from exc
            result.stubs_created = len(stubs)
            logger.info("Inserted %d member stubs ahead of batch write", len(stubs))

        resolved = existing | {detail.bioguide_id for detail in stubs}
        for bill in batch:
            for missing in bill.drop_unresolved_members(resolved):
                logger.warning("%s; dropping the referencing fact", missing)
                result.missing.append(missing)
        return result
