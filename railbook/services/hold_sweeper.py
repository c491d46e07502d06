"""
Hold expiry sweeper.

Runs next to request handling as an asyncio task and gives seats back to the
pool when their hold outlived its TTL without being confirmed.

Each expired hold is reclaimed in its own transaction. A hold that a
concurrent confirm or release already consumed is simply skipped, and a
failure on one hold is logged without stopping the rest of the batch: whatever
is left over gets picked up on the next cycle.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from railbook.core.logging import get_logger
from railbook.core.metrics import sweeper_runs, sweeper_released, sweeper_failures, sweeper_last_run
from railbook.db.base import utcnow
from railbook.services import seat_ledger

logger = get_logger(__name__)


@dataclass
class SweepResult:
    scanned: int = 0
    released: int = 0
    skipped: int = 0
    failed: int = 0
    schedule_ids: set[int] = field(default_factory=set)


async def sweep_expired_holds(
    session_factory: async_sessionmaker[AsyncSession],
    now: Optional[datetime] = None,
) -> SweepResult:
    now = now or utcnow()
    result = SweepResult()

    async with session_factory() as db:
        expired = await seat_ledger.list_expired_holds(db, now)
        hold_ids = [hold.id for hold in expired]

    result.scanned = len(hold_ids)
    if not hold_ids:
        logger.debug("sweep_no_expired_holds")
        return result

    for hold_id in hold_ids:
        try:
            async with session_factory() as db:
                async with db.begin():
                    seat = await seat_ledger.reclaim_expired_hold(db, hold_id, now)
        except Exception as e:
            result.failed += 1
            sweeper_failures.inc()
            logger.error("sweep_hold_failed", hold_id=hold_id, error=str(e), exc_info=True)
            continue

        if seat is None:
            result.skipped += 1
            logger.debug("sweep_hold_already_gone", hold_id=hold_id)
            continue

        result.released += 1
        result.schedule_ids.add(seat.schedule_id)
        sweeper_released.inc()
        logger.info(
            "sweep_hold_released",
            hold_id=hold_id,
            seat_id=seat.id,
            seat_number=seat.seat_number,
            schedule_id=seat.schedule_id,
        )

    logger.info(
        "sweep_completed",
        scanned=result.scanned,
        released=result.released,
        skipped=result.skipped,
        failed=result.failed,
    )
    return result


class HoldSweeper:
    """
    Periodic background task wrapping sweep_expired_holds.

    `on_released` is awaited with the schedule ids whose availability changed;
    the app uses it to drop cached availability.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float,
        on_released: Optional[Callable[[set[int]], Awaitable[None]]] = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.on_released = on_released
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="hold-sweeper")
        logger.info("hold_sweeper_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("hold_sweeper_stopped")

    async def run_once(self) -> SweepResult:
        result = await sweep_expired_holds(self.session_factory)
        if result.schedule_ids and self.on_released is not None:
            await self.on_released(result.schedule_ids)
        return result

    async def _run(self) -> None:
        while True:
            try:
                await self.run_once()
                sweeper_runs.labels(result="ok").inc()
                sweeper_last_run.set_to_current_time()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # A broken cycle must not kill the loop; the next one retries
                sweeper_runs.labels(result="error").inc()
                logger.error("sweep_cycle_failed", error=str(e), exc_info=True)
            await asyncio.sleep(self.interval_seconds)
