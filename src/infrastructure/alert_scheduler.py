"""Periodic background runner for alert jobs.

The alert jobs themselves (expiring warranties, pending appointments...)
are supplied by the domain packages. The scheduler only runs them on a
fixed interval inside the server's event loop and keeps going when one
of them fails.
"""

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

type AlertJob = Callable[[], Awaitable[None]]


class AlertScheduler:
    """Run registered alert jobs every ``interval_seconds``.

    Args:
        interval_seconds: Delay between two scheduling passes.
    """

    def __init__(self, interval_seconds: float = 3600.0) -> None:
        self.interval_seconds = interval_seconds
        self._jobs: dict[str, AlertJob] = {}
        self._task: asyncio.Task[None] | None = None
        self._started = False

    @property
    def jobs(self) -> tuple[str, ...]:
        """Names of the registered jobs, in registration order."""
        return tuple(self._jobs)

    @property
    def running(self) -> bool:
        """Whether the scheduling loop is active."""
        return self._task is not None and not self._task.done()

    def register(self, name: str, job: AlertJob) -> None:
        """Add a job to every future scheduling pass.

        Raises:
            ValueError: If a job with the same name is already registered.
        """
        if name in self._jobs:
            msg = f"Alert job '{name}' is already registered"
            raise ValueError(msg)
        self._jobs[name] = job

    def start(self) -> None:
        """Start the scheduling loop on the running event loop.

        Raises:
            RuntimeError: If the scheduler was already started or no event
                loop is running.
        """
        if self._started:
            msg = "Alert scheduler has already been started"
            raise RuntimeError(msg)
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="alert-scheduler")
        self._started = True
        logger.info(
            "Alert scheduler started",
            jobs=list(self._jobs),
            interval_seconds=self.interval_seconds,
        )

    async def stop(self) -> None:
        """Cancel the scheduling loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.info("Alert scheduler stopped")
        self._task = None

    async def run_once(self) -> None:
        """Run every registered job once, isolating failures."""
        for name, job in list(self._jobs.items()):
            try:
                await job()
            except Exception:  # noqa: BLE001
                logger.exception("Alert job failed", job=name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()
