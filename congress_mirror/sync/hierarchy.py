"""Two-pass committee hierarchy writes and chamber inference."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from ..api.payloads import CommitteeListItem
from ..db import Database, as_db_timestamp, get_committee, set_committee_parent, upsert_committee
from ..errors import BatchWriteError

logger = logging.getLogger(__name__)

HOUSE = "House"
SENATE = "Senate"
JOINT = "Joint"
UNKNOWN = "Unknown"


def infer_chamber(system_code: str | None, name: str | None, chamber: str | None = None) -> str:
    """
    Chamber for a committee, first match wins:
    explicit chamber, code prefix (s/h), joint markers, then name tokens.
    """
    if chamber:
        return chamber
    code = (system_code or "").lower()
    lowered = (name or "").lower()

    if code.startswith("s"):
        return SENATE
    if code.startswith("h"):
        return HOUSE
    if "jt" in code or "joint" in lowered:
        return JOINT
    if "senate" in lowered or "foreign relations" in lowered:
        return SENATE
    if "house" in lowered or "representatives" in lowered:
        return HOUSE
    return UNKNOWN


@dataclass
class LinkResult:
    nodes: int = 0
    parents_linked: int = 0
    parent_stubs: int = 0


class HierarchyLinker:
    """
    Writes self-referential committees in two passes over one batch.

    Pass 1 upserts every node with no parent pointer. Pass 2 sets parent
    pointers, creating a stub for any parent that is neither in the batch
    nor already stored. Both passes share one transaction.
    """

    def __init__(self, database: Database):
        self.database = database

    def link(self, nodes: list[CommitteeListItem], now: datetime | None = None) -> LinkResult:
        now_value = as_db_timestamp(now or datetime.now(UTC))
        result = LinkResult()
        written: set[str] = set()

        try:
            with self.database.transaction() as con:
                for node in nodes:
                    upsert_committee(
                        con,
                        node.system_code,
                        node.name,
                        infer_chamber(node.system_code, node.name, node.chamber),
                        now_value,
                        committee_type_code=node.committee_type_code,
                    )
                    written.add(node.system_code)
                result.nodes = len(written)

                for node in nodes:
                    parent = node.parent
                    if parent is None or parent.system_code == node.system_code:
                        continue
                    known = parent.system_code in written or get_committee(con, parent.system_code)
                    if not known:
                        upsert_committee(
                            con,
                            parent.system_code,
                            parent.name,
                            infer_chamber(parent.system_code, parent.name, parent.chamber),
                            now_value,
                        )
                        written.add(parent.system_code)
                        result.parent_stubs += 1
                    set_committee_parent(con, node.system_code, parent.system_code)
                    result.parents_linked += 1
        except Exception as exc:
            raise BatchWriteError("committee hierarchy", sorted(written), exc) from exc

        logger.info(
            "Committee hierarchy: %d nodes, %d parent links, %d parent stubs",
            result.nodes,
            result.parents_linked,
            result.parent_stubs,
        )
        return result
