"""Self-rescheduling control loop: collection, generation, and learning."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from scribe import pipeline
from scribe.config import get_db_path, get_scheduler_config
from scribe.db import get_connection
from scribe.learning import LearningLoop
from scribe.models import (
    CollectionResult,
    GenerationResult,
    LearningResult,
    SchedulerState,
)

logger = logging.getLogger(__name__)

KINDS = ("collection", "generation", "learning")


class Scheduler:
    """Three independent asyncio loops sharing one stop event.

    Each loop sleeps for its interval, does its work, and only then re-arms,
    so a slow run delays the next one instead of overlapping it. Early
    triggers (burst of new items, low average quality) go through the same
    busy flags and are skipped while a run of the same kind is in flight.
    """

    def __init__(self, config: dict):
        self.config = config
        self.state = SchedulerState(config=get_scheduler_config(config))
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []
        self._busy = {kind: False for kind in KINDS}

    def is_busy(self, kind: str) -> bool:
        return self._busy[kind]

    def intervals(self) -> dict[str, float]:
        """Loop intervals in seconds."""
        cfg = self.state.config
        return {
            "collection": cfg.collect_interval_minutes * 60,
            "generation": cfg.generate_interval_hours * 3600,
            "learning": cfg.learning_interval_hours * 3600,
        }

    async def start(self) -> None:
        """Run one collection + generation pass, then arm the loops. Idempotent."""
        if self.state.is_running:
            logger.info("Scheduler already running")
            return
        self.state.is_running = True
        self._stop = asyncio.Event()
        logger.info("Scheduler started")

        await self.run_guarded("collection")
        if self._stop.is_set():
            return
        await self.run_guarded("generation")
        if self._stop.is_set():
            return

        self._tasks = [
            asyncio.create_task(self._loop(kind, seconds), name=f"scribe-{kind}")
            for kind, seconds in self.intervals().items()
        ]

    async def stop(self) -> None:
        """Stop re-arming the loops; in-flight work is allowed to finish."""
        if not self.state.is_running:
            return
        self.state.is_running = False
        self._stop.set()
        await self.wait_closed()
        logger.info("Scheduler stopped")

    async def wait_closed(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []

    async def run_forever(self) -> None:
        await self.start()
        await self.wait_closed()

    async def _loop(self, kind: str, interval: float) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass
            # timeout and stop can fire together
            if self._stop.is_set():
                break
            await self.run_guarded(kind)

    async def run_guarded(self, kind: str):
        """Run one unit of work, turning any exception into a logged outcome."""
        runner = {
            "collection": self.run_collection,
            "generation": self.run_generation,
            "learning": self.run_learning,
        }[kind]
        try:
            return await runner()
        except Exception as exc:
            logger.error("%s run aborted: %s", kind.capitalize(), exc)
            return None

    async def run_collection(self) -> CollectionResult | None:
        if self._busy["collection"]:
            logger.info("Collection already in progress, skipping trigger")
            return None
        self._busy["collection"] = True
        try:
            conn = get_connection(get_db_path(self.config))
            try:
                result = await pipeline.run_collection(self.config, conn)
            finally:
                conn.close()
            self.state.last_collection_run = datetime.utcnow()
        finally:
            self._busy["collection"] = False

        if self._stop.is_set():
            return result
        if result.total_new > self.state.config.burst_threshold:
            logger.info(
                "Burst of %d new items (threshold %d), triggering generation",
                result.total_new, self.state.config.burst_threshold,
            )
            await self.run_guarded("generation")
        return result

    async def run_generation(self) -> GenerationResult | None:
        if self._busy["generation"]:
            logger.info("Generation already in progress, skipping trigger")
            return None
        self._busy["generation"] = True
        try:
            conn = get_connection(get_db_path(self.config))
            try:
                result = await pipeline.run_generation(self.config, conn)
            finally:
                conn.close()
            self.state.last_generation_run = datetime.utcnow()
        finally:
            self._busy["generation"] = False

        average = result.average_score
        if self._stop.is_set():
            return result
        if average is not None and average < self.state.config.learning_trigger_score:
            logger.info(
                "Average quality %.1f below %.0f, triggering learning",
                average, self.state.config.learning_trigger_score,
            )
            await self.run_guarded("learning")
        return result

    async def run_learning(self) -> LearningResult | None:
        if self._busy["learning"]:
            logger.info("Learning already in progress, skipping trigger")
            return None
        self._busy["learning"] = True
        try:
            conn = get_connection(get_db_path(self.config))
            try:
                result = await LearningLoop(self.config, conn).run()
            finally:
                conn.close()
            self.state.last_learning_run = datetime.utcnow()
            return result
        finally:
            self._busy["learning"] = False
