"""Watermark-based change detection.

A candidate is due when its stored watermark is missing, null, or older
than the freshness window. Repeated runs therefore only touch what has
gone stale since the previous run.
"""

import logging
from collections.abc import Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_FRESHNESS_DAYS = 7.0


def parse_watermark(value: Any) -> datetime | None:
    """Normalize a stored watermark (ISO text or datetime) to an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Unparseable watermark %r treated as never synced", value)
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


@dataclass
class StalenessPlan(Generic[T]):
    due: list[T] = field(default_factory=list)
    discovered: int = 0
    never_synced: int = 0

    @property
    def skipped(self) -> int:
        return self.discovered - len(self.due)


class StalenessPlanner:
    def __init__(self, freshness_days: float = DEFAULT_FRESHNESS_DAYS):
        self.window = timedelta(days=freshness_days)

    def is_due(self, watermark: Any, now: datetime) -> bool:
        synced_at = parse_watermark(watermark)
        if synced_at is None:
            return True
        return synced_at < now - self.window

    def plan(
        self,
        candidates: Iterable[T],
        watermarks: Mapping[Hashable, Any],
        key: Callable[[T], Hashable],
        now: datetime | None = None,
    ) -> StalenessPlan[T]:
        """Filter candidates down to the ones due for refresh, keeping upstream order."""
        now = now or datetime.now(UTC)
        plan: StalenessPlan[T] = StalenessPlan()
        seen: set[Hashable] = set()

        for candidate in candidates:
            k = key(candidate)
            if k in seen:
                continue
            seen.add(k)
            plan.discovered += 1

            watermark = watermarks.get(k)
            if parse_watermark(watermark) is None:
                plan.never_synced += 1
                plan.due.append(candidate)
            elif self.is_due(watermark, now):
                plan.due.append(candidate)

        logger.info(
            "Staleness plan: %d discovered, %d due (%d never synced), %d fresh",
            plan.discovered,
            len(plan.due),
            plan.never_synced,
            plan.skipped,
        )
        return plan
