from __future__ import annotations

import asyncio
import logging
import threading
from typing import Optional

from .reconciliation import ReconciliationSweep, SweepReport

logger = logging.getLogger(__name__)


class ReconciliationScheduler:
    """Background task that runs the reconciliation sweep on a fixed interval."""

    def __init__(self, sweep: ReconciliationSweep, *, interval_minutes: int) -> None:
        self._sweep = sweep
        self._interval_seconds = max(interval_minutes, 0) * 60
        self._task: Optional[asyncio.Task[None]] = None
        self._shutdown = asyncio.Event()
        self._stop_sweep = threading.Event()
        self.last_report: Optional[SweepReport] = None

    @property
    def enabled(self) -> bool:
        return self._interval_seconds > 0

    async def start(self) -> None:
        if self._task or not self.enabled:
            return
        logger.info("Starting reconciliation scheduler every %s seconds.", self._interval_seconds)
        self._shutdown.clear()
        self._stop_sweep.clear()
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="reconciliation-scheduler")

    async def stop(self) -> None:
        if not self._task:
            return
        logger.info("Stopping reconciliation scheduler.")
        self._shutdown.set()
        # An in-flight sweep stops at the next user boundary.
        self._stop_sweep.set()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def run_once(self) -> SweepReport:
        report = await asyncio.to_thread(self._sweep.run, self._stop_sweep)
        self.last_report = report
        return report

    async def _loop(self) -> None:
        while not self._shutdown.is_set():
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self._interval_seconds)
            except asyncio.TimeoutError:
                pass
            if self._shutdown.is_set():
                break
            try:
                await self.run_once()
            except Exception:
                logger.exception("Reconciliation sweep could not start.")
