"""
Per-family sync driver.

    Planning -> Enumerating -> Fetching -> Resolving -> Writing -> Advancing -> Done
                                  ^   |                              |
                                  |   v                              |
                             Cooling-down                 (next batch) -> Fetching

A batch that hits a 429 anywhere in its fetch fan-out goes to
Cooling-down and is then fetched again whole; the cursor only moves in
Advancing. Each batch commits on its own, so an interrupted run leaves
earlier batches intact and the next run's watermarks pick up the rest.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Callable

from ..api.client import CongressClient
from ..config import FamilySettings, SyncSettings
from ..db import Database, as_db_timestamp
from ..errors import BatchWriteError, ThrottledError
from ..resilience.rate_limit_guard import BatchVerdict, RateLimitGuard
from ..resilience.rate_limiter import RateLimiter
from .families import FAMILY_TYPES, EntityFamily
from .hydrate import Hydrator
from .staleness import StalenessPlanner
from .writer import BatchWriter

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    PLANNING = "planning"
    ENUMERATING = "enumerating"
    FETCHING = "fetching"
    RESOLVING = "resolving"
    WRITING = "writing"
    COOLING_DOWN = "cooling_down"
    ADVANCING = "advancing"
    DONE = "done"


@dataclass
class RunSummary:
    """Operator-facing counts for one family run."""

    family: str
    discovered: int = 0
    fetched: int = 0
    skipped_stale: int = 0
    written: int = 0
    failed: int = 0
    batches: int = 0
    failed_batches: int = 0
    cooldowns: int = 0
    partial_fetches: int = 0
    missing_references: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FetchOutcome:
    candidate: Any
    entity: Any = None
    error: Exception | None = None

    @property
    def throttled(self) -> bool:
        return isinstance(self.error, ThrottledError)


class SyncOrchestrator:
    def __init__(
        self,
        family: EntityFamily,
        settings: FamilySettings,
        guard: RateLimitGuard,
        planner: StalenessPlanner,
        database: Database,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.family = family
        self.settings = settings
        self.guard = guard
        self.planner = planner
        self.writer = BatchWriter(database, family.name, family.write_entity, family.entity_key)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._sleep = sleep

        self.state = SyncState.PLANNING
        self.transitions: list[tuple[SyncState, int]] = []
        self.batches: list[list] = []
        self.cursor = 0
        self.summary = RunSummary(family=family.name)
        self._due: list = []
        self._entities: list = []
        self._batch_cooldowns = 0
        self._started: datetime | None = None
        self._synced_at: Any = None

    # ── driver ──

    def run(self) -> RunSummary:
        self._started = self._clock()
        self._synced_at = as_db_timestamp(self._started)
        handlers = {
            SyncState.PLANNING: self._plan,
            SyncState.ENUMERATING: self._enumerate,
            SyncState.FETCHING: self._fetch,
            SyncState.COOLING_DOWN: self._cool_down,
            SyncState.RESOLVING: self._resolve,
            SyncState.WRITING: self._write,
            SyncState.ADVANCING: self._advance,
        }
        self._enter(SyncState.PLANNING)
        while self.state is not SyncState.DONE:
            self._enter(handlers[self.state]())

        logger.info("%s sync done: %s", self.family.name, self._summary_line())
        return self.summary

    def _enter(self, state: SyncState) -> None:
        if state is not self.state:
            logger.debug(
                "%s: %s -> %s (batch %d)", self.family.name, self.state.value, state.value, self.cursor
            )
        self.state = state
        self.transitions.append((state, self.cursor))

    def _summary_line(self) -> str:
        s = self.summary
        return (
            f"discovered={s.discovered} fetched={s.fetched} skipped_stale={s.skipped_stale} "
            f"written={s.written} failed={s.failed}"
        )

    # ── states ──

    def _plan(self) -> SyncState:
        candidates = None
        cooldowns = 0
        while candidates is None:
            try:
                candidates, partial = self.family.enumerate_candidates()
            except ThrottledError as exc:
                verdict = self.guard.assess_batch(True, cooldowns)
                if verdict is BatchVerdict.GIVE_UP:
                    self.summary.errors.append(f"planning: {exc}")
                    logger.error("%s listing stayed throttled; nothing planned", self.family.name)
                    return SyncState.DONE
                self.guard.cool_down(f"{self.family.name} listing")
                cooldowns += 1
                self.summary.cooldowns += 1

        if partial is not None:
            self.summary.partial_fetches += 1
            self.summary.errors.append(str(partial))

        try:
            self.family.prepare(candidates, self._started)
        except BatchWriteError as exc:
            logger.error("%s", exc)
            self.summary.failed_batches += 1
            self.summary.errors.append(str(exc))

        plan = self.planner.plan(
            candidates, self.family.watermarks(), self.family.candidate_key, now=self._started
        )
        self.summary.discovered = plan.discovered
        self.summary.skipped_stale = plan.skipped
        self._due = plan.due

        if not self._due:
            logger.info("%s: nothing due for refresh", self.family.name)
            return SyncState.DONE
        return SyncState.ENUMERATING

    def _enumerate(self) -> SyncState:
        size = max(1, self.settings.batch_size)
        self.batches = [self._due[i : i + size] for i in range(0, len(self._due), size)]
        self.cursor = 0
        self.summary.batches = len(self.batches)
        logger.info(
            "%s: %d due in %d batches of up to %d",
            self.family.name,
            len(self._due),
            len(self.batches),
            size,
        )
        return SyncState.FETCHING

    def _fetch_batch(self, batch: list) -> list[FetchOutcome]:
        outcomes: list[FetchOutcome | None] = [None] * len(batch)
        workers = min(len(batch), max(1, self.settings.batch_size))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_index = {
                executor.submit(self.family.fetch, candidate): i for i, candidate in enumerate(batch)
            }
            for future in as_completed(future_to_index):
                i = future_to_index[future]
                try:
                    outcomes[i] = FetchOutcome(batch[i], entity=future.result())
                except ThrottledError as exc:
                    outcomes[i] = FetchOutcome(batch[i], error=exc)
                except Exception as exc:
                    logger.warning(
                        "%s detail fetch failed for %s: %s",
                        self.family.name,
                        self.family.candidate_key(batch[i]),
                        exc,
                    )
                    outcomes[i] = FetchOutcome(batch[i], error=exc)
        return outcomes

    def _fetch(self) -> SyncState:
        batch = self.batches[self.cursor]
        outcomes = self._fetch_batch(batch)
        throttled = any(o.throttled for o in outcomes)

        verdict = self.guard.assess_batch(throttled, self._batch_cooldowns)
        if verdict is BatchVerdict.COOL_DOWN:
            return SyncState.COOLING_DOWN
        if verdict is BatchVerdict.GIVE_UP:
            msg = (
                f"{self.family.name} batch {self.cursor + 1}/{len(self.batches)} still throttled "
                f"after {self._batch_cooldowns} cooldowns"
            )
            logger.error(msg)
            self.summary.failed += len(batch)
            self.summary.failed_batches += 1
            self.summary.errors.append(msg)
            return SyncState.ADVANCING

        self._entities = [o.entity for o in outcomes if o.error is None]
        failures = [o for o in outcomes if o.error is not None]
        self.summary.fetched += len(self._entities)
        self.summary.failed += len(failures)
        for failure in failures:
            self.summary.errors.append(
                f"fetch {self.family.candidate_key(failure.candidate)}: {failure.error}"
            )
        for entity in self._entities:
            self.summary.partial_fetches += len(getattr(entity, "partial_fetches", ()))

        if not self._entities:
            return SyncState.ADVANCING
        return SyncState.RESOLVING

    def _cool_down(self) -> SyncState:
        self.guard.cool_down(
            f"{self.family.name} batch {self.cursor + 1}/{len(self.batches)}"
        )
        self._batch_cooldowns += 1
        self.summary.cooldowns += 1
        return SyncState.FETCHING

    def _resolve(self) -> SyncState:
        try:
            missing = self.family.resolve(self._entities, self._started)
        except BatchWriteError as exc:
            logger.error("%s", exc)
            self.summary.failed += len(self._entities)
            self.summary.failed_batches += 1
            self.summary.errors.append(str(exc))
            return SyncState.ADVANCING
        self.summary.missing_references += len(missing)
        return SyncState.WRITING

    def _write(self) -> SyncState:
        result = self.writer.write(self._entities, self._synced_at)
        self.summary.written += result.written
        self.summary.failed += result.failed
        if result.error is not None:
            self.summary.failed_batches += 1
            self.summary.errors.append(str(result.error))
        return SyncState.ADVANCING

    def _advance(self) -> SyncState:
        self.cursor += 1
        self._batch_cooldowns = 0
        self._entities = []
        if self.cursor >= len(self.batches):
            return SyncState.DONE
        logger.info(
            "%s: batch %d/%d done (%s)",
            self.family.name,
            self.cursor,
            len(self.batches),
            self._summary_line(),
        )
        if self.settings.batch_pause_seconds:
            self._sleep(self.settings.batch_pause_seconds)
        return SyncState.FETCHING


def create_orchestrator(
    family_name: str,
    settings: SyncSettings,
    database: Database | None = None,
    client: CongressClient | None = None,
    clock: Callable[[], datetime] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SyncOrchestrator:
    """Wire client, guard, hydrator and family for one run."""
    family_settings = settings.family(family_name)
    database = database or Database()
    if client is None:
        client = CongressClient(
            settings.api_key,
            base_url=settings.base_url,
            limiter=RateLimiter.per_hour(settings.requests_per_hour, name="congress_api"),
        )
    guard = RateLimitGuard(
        page_retry_delay=settings.page_retry_delay,
        page_retry_attempts=settings.page_retry_attempts,
        cooldown_seconds=family_settings.cooldown_seconds,
        max_cooldowns=family_settings.max_cooldowns,
        sleep=sleep,
    )
    hydrator = Hydrator(client, guard, settings.congress, page_delay=settings.page_delay, sleep=sleep)
    family = FAMILY_TYPES[family_name](database, hydrator)
    return SyncOrchestrator(
        family,
        family_settings,
        guard,
        StalenessPlanner(settings.freshness_days),
        database,
        clock=clock,
        sleep=sleep,
    )
