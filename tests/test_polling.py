from __future__ import annotations

import asyncio
import logging

import pytest

from echoes_media.descriptors import JobDescriptor, extract_video
from echoes_media.json_utils import JSONObject
from echoes_media.polling import normalize_status, parse_logs, poll_until_terminal, read_status
from echoes_media.submission import JobHandle
from echoes_media.types import OnUpdate, PollOutcome, StatusSnapshot

from .queue_fakes import BASE_URL, FakeQueue, SleepRecorder, connect_error

_STATUS = "/fal-ai/test/requests/req-1/status"


def _passthrough(job_input: JSONObject) -> JSONObject:
    return dict(job_input)


def _descriptor(*, max_attempts: int = 5, grace: int = 2) -> JobDescriptor:
    return JobDescriptor(
        kind="test-video",
        endpoint="fal-ai/test",
        build_payload=_passthrough,
        extract_artifact=extract_video,
        poll_delay_seconds=0.5,
        max_attempts=max_attempts,
        not_found_grace_attempts=grace,
    )


async def _poll(
    queue: FakeQueue,
    descriptor: JobDescriptor,
    sleep: SleepRecorder,
    on_update: OnUpdate | None = None,
) -> PollOutcome:
    client = queue.client()
    try:
        return await poll_until_terminal(
            client,
            JobHandle("req-1", descriptor),
            BASE_URL,
            "secret-key",
            on_update=on_update,
            sleep=sleep,
        )
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_completes_after_in_progress_polls() -> None:
    queue = FakeQueue()
    queue.add(
        "GET",
        _STATUS,
        (200, {"status": "IN_QUEUE"}),
        (200, {"status": "IN_PROGRESS"}),
        (200, {"status": "IN_PROGRESS"}),
        (200, {"status": "COMPLETED"}),
    )
    sleep = SleepRecorder()
    out = await _poll(queue, _descriptor(), sleep)
    assert out["state"] == "completed"
    assert out["attempts"] == 4
    assert queue.count("GET", _STATUS) == 4
    # The fixed delay is awaited before every poll, never scaled.
    assert sleep.calls == [0.5, 0.5, 0.5, 0.5]


@pytest.mark.asyncio
async def test_status_request_is_authenticated() -> None:
    queue = FakeQueue()
    queue.add("GET", _STATUS, (200, {"status": "COMPLETED"}))
    await _poll(queue, _descriptor(), SleepRecorder())
    assert queue.requests[0].headers["Authorization"] == "Key secret-key"


@pytest.mark.asyncio
async def test_not_found_inside_grace_window_is_absorbed() -> None:
    queue = FakeQueue()
    queue.add("GET", _STATUS, *([(404, b"not found")] * 5), (200, {"status": "COMPLETED"}))
    out = await _poll(queue, _descriptor(max_attempts=20, grace=10), SleepRecorder())
    assert out["state"] == "completed"
    assert out["attempts"] == 6


@pytest.mark.asyncio
async def test_persistent_not_found_fails_rather_than_timing_out() -> None:
    queue = FakeQueue()
    queue.add("GET", _STATUS, (404, b"gone"))
    out = await _poll(queue, _descriptor(max_attempts=5, grace=2), SleepRecorder())
    assert out["state"] == "failed"
    assert out["code"] == "JOB_FAILED"
    assert out["http_status"] == 404
    assert out["detail"] == "gone"
    assert queue.count("GET", _STATUS) == 3


@pytest.mark.asyncio
async def test_server_error_fails_immediately() -> None:
    queue = FakeQueue()
    queue.add("GET", _STATUS, (500, b"boom"))
    out = await _poll(queue, _descriptor(), SleepRecorder())
    assert out["state"] == "failed"
    assert out["http_status"] == 500
    assert queue.count("GET", _STATUS) == 1


@pytest.mark.asyncio
async def test_times_out_after_max_attempts() -> None:
    queue = FakeQueue()
    queue.add("GET", _STATUS, (200, {"status": "IN_PROGRESS", "logs": ["still going"]}))
    out = await _poll(queue, _descriptor(max_attempts=5), SleepRecorder())
    assert out["state"] == "timed_out"
    assert out["code"] == "TIMED_OUT"
    assert out["logs"] == ["still going"]
    assert queue.count("GET", _STATUS) == 5


@pytest.mark.asyncio
async def test_failed_status_carries_error_and_logs() -> None:
    queue = FakeQueue()
    queue.add(
        "GET",
        _STATUS,
        (200, {"status": "IN_PROGRESS", "logs": [{"message": "loading model"}]}),
        (200, {"status": "FAILED", "error": "NSFW content"}),
    )
    out = await _poll(queue, _descriptor(), SleepRecorder())
    assert out["state"] == "failed"
    assert out["code"] == "JOB_FAILED"
    assert out["detail"] == "NSFW content"
    assert out["http_status"] is None
    assert out["logs"] == ["loading model"]


@pytest.mark.asyncio
async def test_status_aliases_are_terminal() -> None:
    queue = FakeQueue()
    queue.add("GET", _STATUS, (200, {"status": "SUCCEEDED"}))
    assert (await _poll(queue, _descriptor(), SleepRecorder()))["state"] == "completed"

    queue = FakeQueue()
    queue.add("GET", _STATUS, (200, {"status": "ERROR"}))
    assert (await _poll(queue, _descriptor(), SleepRecorder()))["state"] == "failed"


@pytest.mark.asyncio
async def test_unknown_status_and_garbage_body_keep_polling() -> None:
    queue = FakeQueue()
    queue.add(
        "GET",
        _STATUS,
        (200, {"status": "WARMING_UP"}),
        (200, b"<html>busy</html>"),
        (200, {"logs": []}),
        (200, {"status": "COMPLETED"}),
    )
    seen: list[StatusSnapshot] = []
    out = await _poll(queue, _descriptor(), SleepRecorder(), seen.append)
    assert out["state"] == "completed"
    assert [s["status"] for s in seen] == ["UNKNOWN", "UNKNOWN", "UNKNOWN", "COMPLETED"]
    assert seen[0]["raw_status"] == "WARMING_UP"


@pytest.mark.asyncio
async def test_transport_errors_are_transient_but_bounded() -> None:
    queue = FakeQueue()
    queue.add("GET", _STATUS, connect_error(), connect_error(), (200, {"status": "COMPLETED"}))
    out = await _poll(queue, _descriptor(), SleepRecorder())
    assert out["state"] == "completed"
    assert out["attempts"] == 3

    queue = FakeQueue()
    queue.add("GET", _STATUS, connect_error())
    out = await _poll(queue, _descriptor(max_attempts=4), SleepRecorder())
    assert out["state"] == "timed_out"
    assert queue.count("GET", _STATUS) == 4


@pytest.mark.asyncio
async def test_logs_replace_when_present_and_persist_when_absent() -> None:
    queue = FakeQueue()
    queue.add(
        "GET",
        _STATUS,
        (200, {"status": "IN_PROGRESS", "logs": [{"message": "a"}]}),
        (200, {"status": "IN_PROGRESS"}),
        (200, {"status": "COMPLETED", "logs": ["b", "c"]}),
    )
    seen: list[StatusSnapshot] = []
    out = await _poll(queue, _descriptor(), SleepRecorder(), seen.append)
    assert [s["logs"] for s in seen] == [["a"], ["a"], ["b", "c"]]
    assert [s["attempt"] for s in seen] == [1, 2, 3]
    assert out["logs"] == ["b", "c"]


@pytest.mark.asyncio
async def test_observer_errors_do_not_change_the_outcome(
    caplog: pytest.LogCaptureFixture,
) -> None:
    queue = FakeQueue()
    queue.add("GET", _STATUS, (200, {"status": "IN_PROGRESS"}), (200, {"status": "COMPLETED"}))

    def _explode(snapshot: StatusSnapshot) -> None:
        raise RuntimeError("observer broke")

    with caplog.at_level(logging.ERROR, logger="echoes_media.polling"):
        out = await _poll(queue, _descriptor(), SleepRecorder(), _explode)
    assert out["state"] == "completed"
    assert out["attempts"] == 2
    assert any(r.getMessage() == "job_observer_error" for r in caplog.records)


@pytest.mark.asyncio
async def test_cancellation_stops_further_polls() -> None:
    queue = FakeQueue()
    queue.add("GET", _STATUS, (200, {"status": "IN_PROGRESS"}))
    parked = asyncio.Event()
    calls = 0

    async def _sleep(seconds: float) -> None:
        nonlocal calls
        calls += 1
        if calls == 2:
            parked.set()
            await asyncio.Event().wait()

    client = queue.client()
    task = asyncio.create_task(
        poll_until_terminal(client, JobHandle("req-1", _descriptor()), BASE_URL, "k", sleep=_sleep)
    )
    await parked.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0)
    assert queue.count("GET", _STATUS) == 1
    assert calls == 2
    await client.aclose()


def test_normalize_status() -> None:
    assert normalize_status("completed") == "COMPLETED"
    assert normalize_status("IN_QUEUE") == "IN_QUEUE"
    assert normalize_status("ERROR") == "FAILED"
    assert normalize_status("PAUSED") == "UNKNOWN"
    assert normalize_status(None) == "UNKNOWN"


def test_parse_logs_shapes() -> None:
    assert parse_logs(None) is None
    assert parse_logs("not a list") is None
    assert parse_logs([]) == []
    assert parse_logs([{"message": "x"}, "y", {"level": "info"}, None, 3]) == [
        "x",
        "y",
        '{"level":"info"}',
        "3",
    ]


def test_read_status_prefers_error_then_detail() -> None:
    assert read_status({"status": "FAILED", "error": "bad"})["error"] == "bad"
    assert read_status({"status": "FAILED", "detail": [{"msg": "x"}]})["error"] == '[{"msg":"x"}]'
    assert read_status(None) == {
        "status": "UNKNOWN",
        "raw_status": None,
        "logs": None,
        "error": None,
    }
