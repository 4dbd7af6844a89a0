"""Cron-driven set-temperature jobs.

Each armed job runs its own dispatch task: sleep until the next cron
boundary, check the job's cancellation event, fire. Job definitions are
persisted through a ScheduleStore so that load_all() can re-arm them after a
restart.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Protocol

from croniter import croniter

from max_cube.const import LOCAL_TZ
from max_cube.correlation import correlation_context
from max_cube.metrics import registry
from max_cube.protocol.exceptions import CubeProtocolError
from max_cube.structs import ScheduleJob, ScheduleStore

logger = logging.getLogger(__name__)


class TemperatureSetter(Protocol):
    """The part of HeatingController a job needs."""

    async def set_temperature(self, rf_address: str, temperature: float) -> None: ...

    async def reconnect(self) -> str: ...


@dataclass
class ArmedJob:
    """A job with its cancellation token and dispatch task."""

    job: ScheduleJob
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task[None] | None = None


class CronScheduler:
    """Named cron jobs over HeatingController.set_temperature.

    The scheduler is the only writer of the job table and the sole owner of
    the name → ArmedJob map. Cancellation is cooperative: it stops future
    firings but never interrupts one already in progress.
    """

    def __init__(
        self,
        controller: TemperatureSetter,
        store: ScheduleStore,
        tz: tzinfo = LOCAL_TZ,
    ) -> None:
        self.controller: TemperatureSetter = controller
        self.store: ScheduleStore = store
        self.tz: tzinfo = tz
        self._armed: dict[str, ArmedJob] = {}

    @property
    def jobs(self) -> list[str]:
        """Names of the currently armed jobs."""
        return list(self._armed)

    def is_armed(self, name: str) -> bool:
        return name in self._armed

    async def add(self, job: ScheduleJob) -> None:
        """Persist ``job``, then arm it.

        Raises:
            DuplicateRecordError: From the store, when the name is taken
        """
        await self.store.add_job(job)
        self._arm(job)

    async def load_all(self) -> int:
        """Arm every persisted job; returns how many were armed."""
        jobs = await self.store.list_jobs()
        for job in jobs:
            self._arm(job)
        logger.info("Armed %d persisted job(s)", len(jobs))
        return len(jobs)

    async def remove(self, name: str) -> None:
        """Disarm ``name`` if armed, then delete its record. Unknown names are fine."""
        armed = self._armed.pop(name, None)
        if armed is not None:
            logger.info("Cancelling job %s", name)
            armed.cancelled.set()
            registry.record_scheduled_jobs(len(self._armed))
        await self.store.remove_job(name)

    async def shutdown(self) -> None:
        """Stop all dispatch loops and wait for in-progress firings; records are kept."""
        armed_jobs = list(self._armed.values())
        self._armed.clear()
        registry.record_scheduled_jobs(0)
        for armed in armed_jobs:
            armed.cancelled.set()
        tasks = [armed.task for armed in armed_jobs if armed.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _arm(self, job: ScheduleJob) -> None:
        previous = self._armed.get(job.name)
        if previous is not None:
            # Same name armed twice (load_all after add): keep one dispatcher
            previous.cancelled.set()
        armed = ArmedJob(job=job)
        armed.task = asyncio.create_task(self._dispatch(armed), name=f"cron:{job.name}")
        armed.task.add_done_callback(self._on_dispatch_done)
        self._armed[job.name] = armed
        registry.record_scheduled_jobs(len(self._armed))
        logger.info("Armed job %s (%s)", job.name, job.cron_expression)

    @staticmethod
    def _on_dispatch_done(task: asyncio.Task[None]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Dispatch task %s crashed", task.get_name(), exc_info=task.exception())

    async def _dispatch(self, armed: ArmedJob) -> None:
        job = armed.job
        last_fire: datetime | None = None
        while not armed.cancelled.is_set():
            now = datetime.now(self.tz)
            # Seed from now so boundaries missed during a long firing are skipped,
            # but never before the boundary that just fired (timers may wake early)
            base = now if last_fire is None else max(now, last_fire)
            next_fire: datetime = croniter(job.cron_expression, base).get_next(datetime)
            delay = max((next_fire - now).total_seconds(), 0.0)
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(armed.cancelled.wait(), timeout=delay)
            if armed.cancelled.is_set():
                break
            last_fire = next_fire
            await self.fire(job)
        logger.debug("Dispatch loop for %s stopped", job.name)

    async def fire(self, job: ScheduleJob) -> None:
        """Run one firing of ``job``.

        Addresses are handled in order. A failed set-temperature gets one
        forced reconnect and one retry; if that fails too the address is
        logged and skipped and the remaining addresses still run.
        """
        with correlation_context():
            logger.info(
                "Firing job %s: %.1f°C on %d device(s)",
                job.name,
                job.target_temperature,
                len(job.target_addresses),
            )
            registry.record_schedule_firing(job.name)
            for rf_address in job.target_addresses:
                await self._set_with_recovery(job, rf_address)

    async def _set_with_recovery(self, job: ScheduleJob, rf_address: str) -> None:
        try:
            await self.controller.set_temperature(rf_address, job.target_temperature)
        except CubeProtocolError as e:
            logger.warning("Job %s: set %s failed (%s), reconnecting", job.name, rf_address, e)
        else:
            registry.record_schedule_set_temperature("success")
            return

        try:
            await self.controller.reconnect()
            await self.controller.set_temperature(rf_address, job.target_temperature)
        except CubeProtocolError:
            registry.record_schedule_set_temperature("failed")
            logger.exception("Job %s: giving up on %s for this firing", job.name, rf_address)
        else:
            registry.record_schedule_set_temperature("recovered")
