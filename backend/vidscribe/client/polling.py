"""
Fixed-interval status polling with a consecutive-failure ceiling.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ..models import JobStatus

logger = logging.getLogger(__name__)

PollFn = Callable[[str], Awaitable[Dict[str, Any]]]
JobCallback = Callable[[Dict[str, Any]], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_FAILURES = 3


class PollingTask:
    """
    Polls one job until it reaches a terminal state.

    `tick()` performs a single poll and applies the retry policy, so the
    policy can be exercised without real timers; `start()` runs ticks on
    an asyncio task every `interval_seconds`. Every exit path (completion,
    provider failure, retry exhaustion, `cancel()`) stops the task.
    """

    def __init__(
        self,
        job_id: str,
        poll: PollFn,
        on_completed: Optional[JobCallback] = None,
        on_failed: Optional[JobCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_failures: int = DEFAULT_MAX_FAILURES,
    ):
        self.job_id = job_id
        self.poll = poll
        self.on_completed = on_completed
        self.on_failed = on_failed
        self.on_error = on_error
        self.interval_seconds = interval_seconds
        self.max_failures = max_failures
        self.consecutive_failures = 0
        self.last_error: Optional[Exception] = None
        self._stopped = False
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return not self._stopped

    def start(self) -> None:
        if self._stopped:
            raise RuntimeError(f"Polling for {self.job_id} has already stopped")
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"poll-{self.job_id}")

    def cancel(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        current = asyncio.current_task() if self._task is not None else None
        if self._task is not None and self._task is not current and not self._task.done():
            self._task.cancel()
        logger.info(f"Stopped polling {self.job_id}")

    async def wait(self) -> None:
        """Wait for the background loop to finish (after a terminal state or cancel)."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.interval_seconds)
            if self._stopped:
                break
            await self.tick()

    async def tick(self) -> Optional[Dict[str, Any]]:
        """Poll once. Returns the job on success, None if stopped or the poll failed."""
        if self._stopped:
            return None

        try:
            job = await self.poll(self.job_id)
        except Exception as e:
            if self._stopped:
                return None
            self.consecutive_failures += 1
            self.last_error = e
            logger.warning(
                f"Poll {self.consecutive_failures}/{self.max_failures} for {self.job_id} failed: {e}"
            )
            if self.consecutive_failures >= self.max_failures:
                self.cancel()
                if self.on_error:
                    await self.on_error(e)
            return None

        # A poll that was in flight when cancel() ran is discarded.
        if self._stopped:
            return None

        self.consecutive_failures = 0
        status = job.get("status")
        if status == JobStatus.COMPLETED.value:
            self.cancel()
            if self.on_completed:
                await self.on_completed(job)
        elif status == JobStatus.FAILED.value:
            self.cancel()
            if self.on_failed:
                await self.on_failed(job)
        return job
