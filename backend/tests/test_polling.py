import asyncio

import pytest

from vidscribe.client.polling import PollingTask
from vidscribe.errors import PollError


class ScriptedPoll:
    """Returns (or raises) the scripted results in order, recording each call."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    async def __call__(self, job_id):
        self.calls += 1
        result = self.results.pop(0) if self.results else {"id": job_id, "status": "processing"}
        if isinstance(result, Exception):
            raise result
        return result


class Recorder:
    def __init__(self):
        self.completed = []
        self.failed = []
        self.errors = []

    async def on_completed(self, job):
        self.completed.append(job)

    async def on_failed(self, job):
        self.failed.append(job)

    async def on_error(self, error):
        self.errors.append(error)


def _task(poll, recorder, **kwargs):
    return PollingTask(
        "job-1",
        poll,
        on_completed=recorder.on_completed,
        on_failed=recorder.on_failed,
        on_error=recorder.on_error,
        **kwargs,
    )


async def test_three_consecutive_failures_stop_polling():
    poll = ScriptedPoll(PollError("down"), PollError("down"), PollError("still down"))
    recorder = Recorder()
    task = _task(poll, recorder)

    for _ in range(3):
        await task.tick()

    assert not task.active
    assert len(recorder.errors) == 1
    assert str(recorder.errors[0]) == "still down"

    # A fourth tick makes no further call
    assert await task.tick() is None
    assert poll.calls == 3


async def test_success_resets_consecutive_failures():
    poll = ScriptedPoll(
        PollError("a"),
        PollError("b"),
        {"id": "job-1", "status": "processing"},
        PollError("c"),
        PollError("d"),
    )
    recorder = Recorder()
    task = _task(poll, recorder)

    for _ in range(5):
        await task.tick()

    assert task.active
    assert task.consecutive_failures == 2
    assert recorder.errors == []


async def test_completed_stops_and_reports_job():
    job = {"id": "job-1", "status": "completed", "transcription_text": "hi"}
    poll = ScriptedPoll({"id": "job-1", "status": "processing"}, job)
    recorder = Recorder()
    task = _task(poll, recorder)

    await task.tick()
    assert task.active
    await task.tick()

    assert not task.active
    assert recorder.completed == [job]
    assert await task.tick() is None
    assert poll.calls == 2


async def test_provider_failure_is_terminal_without_retry():
    job = {"id": "job-1", "status": "failed", "error_message": "bad audio"}
    poll = ScriptedPoll(job)
    recorder = Recorder()
    task = _task(poll, recorder)

    await task.tick()

    assert not task.active
    assert recorder.failed == [job]
    assert recorder.errors == []
    assert task.consecutive_failures == 0


async def test_cancel_discards_in_flight_result():
    release = asyncio.Event()
    calls = []

    async def slow_poll(job_id):
        calls.append(job_id)
        await release.wait()
        return {"id": job_id, "status": "completed"}

    recorder = Recorder()
    task = _task(slow_poll, recorder)

    in_flight = asyncio.create_task(task.tick())
    await asyncio.sleep(0)
    task.cancel()
    release.set()

    assert await in_flight is None
    assert recorder.completed == []
    assert calls == ["job-1"]


async def test_start_runs_on_interval_until_terminal():
    poll = ScriptedPoll(
        {"id": "job-1", "status": "processing"},
        {"id": "job-1", "status": "completed"},
    )
    recorder = Recorder()
    task = _task(poll, recorder, interval_seconds=0.01)

    task.start()
    await asyncio.wait_for(task.wait(), timeout=2)

    assert poll.calls == 2
    assert not task.active
    assert len(recorder.completed) == 1


async def test_cancel_stops_background_loop():
    poll = ScriptedPoll()
    recorder = Recorder()
    task = _task(poll, recorder, interval_seconds=10)

    task.start()
    await asyncio.sleep(0)
    task.cancel()
    await asyncio.wait_for(task.wait(), timeout=1)

    assert poll.calls == 0
    assert not task.active
    with pytest.raises(RuntimeError):
        task.start()
