"""Sync cycles over the configured repositories and their periodic re-runs."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import Any

from ghmirror.conf.sync import CollectionKind, ScheduleMode

from .walker import PaginationWalker, WalkStats

logger = getLogger(__name__)


@dataclass
class CycleResult:
    """Outcome of one pass over every (repository, collection) pair."""

    walks: list[WalkStats] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def aborted_walks(self) -> list[WalkStats]:
        return [walk for walk in self.walks if walk.aborted]


class SyncOrchestrator:
    """Walks a fixed, ordered list of (repository, collection) pairs one after another."""

    def __init__(
        self,
        walker: PaginationWalker,
        pairs: list[tuple[str, CollectionKind]],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.walker = walker
        self.pairs = list(pairs)
        self._clock = clock

    async def run_cycle(self) -> CycleResult:
        """Run one full cycle.

        Each pair is walked to completion before the next one starts. An
        error escaping a walk is logged and the cycle continues with the next
        pair.

        Returns:
            Per-pair statistics and errors of the cycle
        """
        result = CycleResult()
        started = self._clock()
        logger.info(f"Starting sync cycle over {len(self.pairs)} collections")

        for repo, kind in self.pairs:
            try:
                result.walks.append(await self.walker.walk_collection(repo, kind))
            except Exception as e:
                logger.error(f"Unexpected error walking {repo} {kind.value}: {e}", exc_info=True)
                result.errors.append(f"{repo} {kind.value}: {e}")

        result.duration_seconds = self._clock() - started
        logger.info(
            f"Sync cycle completed in {result.duration_seconds:.2f}s: "
            f"{len(result.walks)} walks, {len(result.aborted_walks)} aborted, {len(result.errors)} errors"
        )
        return result


class SyncScheduler:
    """Re-runs sync cycles on a fixed interval.

    The only state kept between cycles is the instant of the next trigger.
    In fixed_rate mode the next trigger is one interval after the previous
    trigger, so long cycles do not push the schedule back; a cycle that
    overruns the interval is followed immediately by the next one. In
    fixed_delay mode the interval is counted from the end of each cycle.
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        interval: float,
        mode: ScheduleMode = ScheduleMode.FIXED_RATE,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the scheduler.

        Args:
            orchestrator: Orchestrator running each cycle
            interval: Seconds between cycles
            mode: How the interval is measured
            clock: Monotonic clock returning seconds
            sleep: Coroutine function used to wait for the next trigger
        """
        self.orchestrator = orchestrator
        self.interval = interval
        self.mode = mode
        self._clock = clock
        self._sleep = sleep
        self.next_trigger: float | None = None

    def _schedule_next(self, cycle_started: float) -> float:
        if self.mode == ScheduleMode.FIXED_DELAY:
            return self._clock() + self.interval

        next_trigger = cycle_started + self.interval
        now = self._clock()
        if next_trigger < now:
            logger.warning(
                f"Sync cycle overran the {self.interval:.0f}s interval by {now - next_trigger:.0f}s, "
                f"starting the next cycle immediately"
            )
            next_trigger = now
        return next_trigger

    async def run_forever(self, max_cycles: int | None = None) -> list[CycleResult]:
        """Run a cycle now, then keep running cycles on schedule.

        Args:
            max_cycles: Stop after this many cycles (None runs forever)

        Returns:
            Results of the cycles run, when max_cycles is given
        """
        results: list[CycleResult] = []
        cycles_run = 0
        trigger = self._clock()

        while max_cycles is None or cycles_run < max_cycles:
            self.next_trigger = trigger
            wait = trigger - self._clock()
            if wait > 0:
                logger.info(f"Next sync cycle in {wait:.0f}s")
                await self._sleep(wait)

            cycle_started = trigger
            result = await self.orchestrator.run_cycle()
            cycles_run += 1
            if max_cycles is not None:
                results.append(result)
            trigger = self._schedule_next(cycle_started)
            self.next_trigger = trigger

        return results
