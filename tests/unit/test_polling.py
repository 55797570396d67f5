"""Tests for the bounded video job poller."""

from __future__ import annotations

import pytest

from lumina_providers import CancellationToken, GenerationCancelled, GenerationTimeout, VideoJob, VideoPoller


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend():
    return "asyncio"


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _poller(clock: _FakeClock, *, interval: float = 10, timeout: float = 60) -> VideoPoller:
    return VideoPoller(interval_seconds=interval, timeout_seconds=timeout, sleep=clock.sleep, clock=clock)


async def test_wait_returns_after_job_reports_done() -> None:
    clock = _FakeClock()

    async def refresh(job: VideoJob) -> VideoJob:
        job.done = job.attempts >= 2
        return job

    job = await _poller(clock).wait(VideoJob(handle="op-1"), refresh)

    assert job.done is True
    assert job.attempts == 3
    assert clock.sleeps == [10, 10, 10]


async def test_wait_times_out_after_deadline() -> None:
    clock = _FakeClock()

    async def refresh(job: VideoJob) -> VideoJob:
        return job

    with pytest.raises(GenerationTimeout):
        await _poller(clock, interval=10, timeout=30).wait(VideoJob(handle="op-2"), refresh)

    assert clock.sleeps == [10, 10, 10]


async def test_cancellation_is_observed_after_sleep() -> None:
    clock = _FakeClock()
    token = CancellationToken()
    refreshed: list[int] = []

    async def sleep(seconds: float) -> None:
        token.cancel("stop")

    async def refresh(job: VideoJob) -> VideoJob:
        refreshed.append(1)
        return job

    poller = VideoPoller(interval_seconds=10, timeout_seconds=60, sleep=sleep, clock=clock)
    with pytest.raises(GenerationCancelled):
        await poller.wait(VideoJob(handle="op-3"), refresh, token)
    assert refreshed == []


async def test_done_job_is_returned_without_polling() -> None:
    clock = _FakeClock()

    async def refresh(job: VideoJob) -> VideoJob:  # pragma: no cover - must not be called
        raise AssertionError("refresh should not run")

    job = await _poller(clock).wait(VideoJob(handle="op-4", done=True, output_uri="x"), refresh)
    assert job.output_uri == "x"
    assert clock.sleeps == []


def test_poller_rejects_non_positive_bounds() -> None:
    with pytest.raises(ValueError):
        VideoPoller(interval_seconds=0, timeout_seconds=10)
    with pytest.raises(ValueError):
        VideoPoller(interval_seconds=1, timeout_seconds=0)
