"""Bounded, cancellable polling for long-running generation jobs."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from .exceptions import GenerationCancelled, GenerationTimeout

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag checked at every suspension point."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled by user") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled(self.reason or "cancelled")


@dataclass(slots=True)
class VideoJob:
    """Handle for a submitted video job and its latest known status."""

    handle: str
    raw: Any = None
    done: bool = False
    output_uri: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


class VideoPoller:
    """Poll a job at a fixed interval until it reports completion.

    The loop is bounded by ``timeout_seconds`` and checks the optional
    cancellation token before every sleep and after every wake-up.
    """

    def __init__(
        self,
        interval_seconds: float,
        timeout_seconds: float,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep
        self._clock = clock

    async def wait(
        self,
        job: VideoJob,
        refresh: Callable[[VideoJob], Awaitable[VideoJob]],
        cancel: CancellationToken | None = None,
    ) -> VideoJob:
        deadline = self._clock() + self.timeout_seconds
        attempts = job.attempts
        while not job.done:
            if cancel is not None:
                cancel.raise_if_cancelled()
            if self._clock() >= deadline:
                raise GenerationTimeout(
                    f"Video job {job.handle} did not finish within {self.timeout_seconds:.0f}s"
                )
            await self._sleep(self.interval_seconds)
            if cancel is not None:
                cancel.raise_if_cancelled()
            job = await refresh(job)
            attempts += 1
            job.attempts = attempts
            logger.debug(
                "Polled video job",
                extra={"job_handle": job.handle, "attempt": job.attempts, "done": job.done},
            )
        return job


__all__ = ["CancellationToken", "VideoJob", "VideoPoller"]
