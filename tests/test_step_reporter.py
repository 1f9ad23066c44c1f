import re

import pytest

from patchpilot.integrations.session_sink import InMemorySessionSink
from patchpilot.models.schemas import PipelineStep, SessionStatus
from patchpilot.utils.step_reporter import StepReporter, timestamped


def test_timestamped_format():
    assert re.match(r"^\[\d{4}-\d{2}-\d{2}T[^\]]+\+00:00\] hello\n$", timestamped("hello"))


@pytest.mark.asyncio
async def test_step_sends_status_step_and_log_together():
    sink = InMemorySessionSink()
    reporter = StepReporter("s1", sink)
    await reporter.step(PipelineStep.CLONING, "Cloning", status=SessionStatus.RUNNING)

    assert len(sink.updates) == 1
    _, update = sink.updates[0]
    assert update.status == SessionStatus.RUNNING
    assert update.step == PipelineStep.CLONING
    assert update.logs_append.endswith("] Cloning\n")


@pytest.mark.asyncio
async def test_logs_are_appended_in_order():
    sink = InMemorySessionSink()
    reporter = StepReporter("s1", sink)
    for i in range(5):
        await reporter.log(f"line {i}")
    logs = sink.get("s1")["logs"]
    assert [line.split("] ", 1)[1] for line in logs.splitlines()] == [f"line {i}" for i in range(5)]


@pytest.mark.asyncio
async def test_backward_transitions_are_dropped():
    sink = InMemorySessionSink()
    reporter = StepReporter("s1", sink)
    await reporter.update(status=SessionStatus.PATCH_FOUND, step=PipelineStep.GENERATING_PATCH)
    await reporter.update(status=SessionStatus.RUNNING, step=PipelineStep.CLONING, log="late")

    record = sink.get("s1")
    assert record["status"] == "patch_found"
    assert record["step"] == "generating_patch"
    assert "late" in record["logs"]
    assert reporter.statuses_seen() == [SessionStatus.PATCH_FOUND]


@pytest.mark.asyncio
async def test_failed_accepted_then_terminal():
    sink = InMemorySessionSink()
    reporter = StepReporter("s1", sink)
    await reporter.update(status=SessionStatus.TESTS_RUNNING)
    await reporter.fail("tests broke", log="✗ tests broke")
    await reporter.update(status=SessionStatus.COMPLETED, log="after")

    record = sink.get("s1")
    assert record["status"] == "failed"
    assert record["errorMessage"] == "tests broke"
    assert "after" in record["logs"]
    assert reporter.status == SessionStatus.FAILED


@pytest.mark.asyncio
async def test_empty_update_not_sent():
    sink = InMemorySessionSink()
    reporter = StepReporter("s1", sink)
    await reporter.update()
    assert sink.updates == []
    assert reporter.get_sent_updates() == []
