"""Periodic status reporting for an active emission strategy."""

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)

STATUS_INTERVAL_SECONDS = 10.0
INITIAL_STATUS_DELAY_SECONDS = 5.0


class StatusReporter:
    """Calls a report callback on a fixed interval until stopped.

    The callback only reads state for display; it never drives the
    strategy it reports on.
    """

    def __init__(
        self,
        report: Callable[[], None],
        interval: float = STATUS_INTERVAL_SECONDS,
        initial_delay: float | None = None,
    ):
        """Initialize the reporter.

        Args:
            report: Callback that emits one status report
            interval: Seconds between reports
            initial_delay: Seconds before the first report (defaults to interval)
        """
        self._report = report
        self._interval = interval
        self._initial_delay = interval if initial_delay is None else initial_delay
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start reporting on the running event loop."""
        if self._task:
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._report_loop())
        logger.debug("[STATUS] Status reporter started")

    async def stop(self) -> None:
        """Stop reporting."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.debug("[STATUS] Status reporter stopped")

    async def _report_loop(self) -> None:
        await asyncio.sleep(self._initial_delay)
        while True:
            try:
                self._report()
            except Exception as e:
                logger.error(f"[STATUS] Error reporting status: {e}")
            await asyncio.sleep(self._interval)
