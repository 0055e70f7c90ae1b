import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from models.restrictions import RestrictionCategory, RestrictionEntry, RestrictionKey
from services.executor import ActionResult
from services.restriction_store import RestrictionStore

logger = logging.getLogger(__name__)

LiftAction = Callable[[RestrictionEntry], Awaitable[ActionResult]]
LiftHook = Callable[[RestrictionCategory, RestrictionEntry], Awaitable[None]]


@dataclass
class TickReport:
    scanned: int = 0
    expired: int = 0
    lifted: int = 0
    failed: int = 0
    forced: int = 0


class ExpiryScheduler:
    """Periodic sweep that lifts expired restrictions of one category.

    Each cycle sleeps for ``interval`` seconds and then runs :meth:`tick`.
    A tick is always awaited to completion before the next sleep, so an entry
    is handed to ``lift`` at most once per interval. Failed lifts stay in the
    store and are retried on the next tick.
    """

    def __init__(
        self,
        category: RestrictionCategory,
        store: RestrictionStore,
        lift: LiftAction,
        interval: float,
        clock: Callable[[], float] = time.time,
        max_concurrency: int = 5,
        max_resolution_failures: Optional[int] = None,
        on_lifted: Optional[LiftHook] = None,
    ) -> None:
        self.category = category
        self.store = store
        self.lift = lift
        self.interval = interval
        self.clock = clock
        self.max_concurrency = max(1, max_concurrency)
        self.max_resolution_failures = max_resolution_failures
        self.on_lifted = on_lifted
        self.resolution_failures: Dict[RestrictionKey, int] = {}
        self.last_report: Optional[TickReport] = None
        self.last_tick_at: Optional[float] = None
        self.runner_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._tick_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self.runner_task is not None and not self.runner_task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        loop = asyncio.get_running_loop()
        self.runner_task = loop.create_task(self.run(), name=f"penaltybox-{self.category.value}-expiry")

    async def stop(self) -> None:
        self._stop_event.set()
        if self.runner_task is not None:
            await self.runner_task
            self.runner_task = None

    async def run(self) -> None:
        logger.info("%s expiry scheduler started (interval=%ss)", self.category.value, self.interval)
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            if self._stop_event.is_set():
                break
            try:
                await self.tick()
            except Exception:
                logger.exception("%s expiry tick crashed", self.category.value)
        logger.info("%s expiry scheduler stopped", self.category.value)

    async def tick(self, now: Optional[float] = None) -> TickReport:
        async with self._tick_lock:
            if now is None:
                now = self.clock()
            report = TickReport()
            snapshot = self.store.snapshot()
            report.scanned = len(snapshot)
            present = {entry.key for entry in snapshot}
            for key in [key for key in self.resolution_failures if key not in present]:
                del self.resolution_failures[key]
            expired = [entry for entry in snapshot if entry.is_expired(now)]
            report.expired = len(expired)
            if expired:
                semaphore = asyncio.Semaphore(self.max_concurrency)

                async def bounded(entry: RestrictionEntry) -> None:
                    async with semaphore:
                        await self._process(entry, report)

                await asyncio.gather(*(bounded(entry) for entry in expired))
            self.last_report = report
            self.last_tick_at = now
            if report.expired:
                logger.info(
                    "%s tick: %d expired, %d lifted, %d failed, %d forced",
                    self.category.value,
                    report.expired,
                    report.lifted,
                    report.failed,
                    report.forced,
                )
            return report

    async def _process(self, entry: RestrictionEntry, report: TickReport) -> None:
        try:
            result = await self.lift(entry)
            if result.ok:
                self.resolution_failures.pop(entry.key, None)
                self.store.remove(entry.key, expected_expires_at=entry.expires_at)
                report.lifted += 1
                await self._notify(entry)
                return
            report.failed += 1
            if not result.resolution_failed:
                self.resolution_failures.pop(entry.key, None)
                return
            count = self.resolution_failures.get(entry.key, 0) + 1
            self.resolution_failures[entry.key] = count
            limit = self.max_resolution_failures
            if limit is not None and count >= limit:
                self.resolution_failures.pop(entry.key, None)
                if not self.store.remove(entry.key, expected_expires_at=entry.expires_at):
                    return
                report.forced += 1
                logger.warning(
                    "Dropping %s for %s in %s after %d unresolvable attempts",
                    self.category.value,
                    entry.subject_id,
                    entry.scope_id,
                    count,
                )
        except Exception:
            report.failed += 1
            logger.exception(
                "Unexpected error lifting %s for %s in %s",
                self.category.value,
                entry.subject_id,
                entry.scope_id,
            )

    async def _notify(self, entry: RestrictionEntry) -> None:
        if self.on_lifted is None:
            return
        try:
            await self.on_lifted(self.category, entry)
        except Exception:
            logger.exception("Lift notification failed for %s", entry.key)
