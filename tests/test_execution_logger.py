import asyncio
import json

import pytest

from conftest import TRACE_ID
from observability import traceparent
from observability.execution_logger import (
    ExecutionContext,
    LoggerState,
    LoggerStateError,
    NullExecutionLogger,
    PersistentExecutionLogger,
    build_log_path,
)
from observability.log_processing import LogQueue
from storage import InMemoryBlobStore, InMemoryExecutionLogRepository


def make_context(**overrides):
    values = dict(tenant_id=1, project_id=2, prompt_id=3, version=4)
    values.update(overrides)
    return ExecutionContext(**values)


class RecordingQueue(LogQueue):
    def __init__(self):
        self.messages = []

    async def send(self, message):
        self.messages.append(message)


@pytest.fixture
def repository():
    return InMemoryExecutionLogRepository()


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


def test_initial_state():
    logger = NullExecutionLogger()
    assert logger.state == LoggerState.UNINITIALIZED
    assert logger.trace_id is None
    assert logger.is_recorded is False


def test_set_context_uses_inbound_trace_id():
    header = f"00-{TRACE_ID}-00f067aa0ba902b7-01"
    logger = NullExecutionLogger()

    logger.set_context(make_context(raw_trace_id=header, trace_context=traceparent.parse(header)))

    assert logger.state == LoggerState.CONTEXTUALIZED
    assert logger.trace_id == TRACE_ID


def test_set_context_synthesizes_trace_id():
    logger = NullExecutionLogger()
    logger.set_context(make_context(raw_trace_id="not-a-traceparent"))

    assert logger.trace_id is not None
    assert len(logger.trace_id) == 32


def test_artifacts_before_context_are_rejected():
    logger = NullExecutionLogger()

    with pytest.raises(LoggerStateError):
        logger.log_input({"a": 1})
    with pytest.raises(LoggerStateError):
        logger.log_success(10)


@pytest.mark.asyncio
async def test_finish_requires_recorded_outcome():
    logger = NullExecutionLogger()
    logger.set_context(make_context())

    with pytest.raises(LoggerStateError):
        await logger.finish()


def test_outcome_recorded_once():
    logger = NullExecutionLogger()
    logger.set_context(make_context())
    logger.log_failure("boom", 5)

    assert logger.is_recorded
    with pytest.raises(LoggerStateError):
        logger.log_success(5)


def test_set_context_only_once():
    logger = NullExecutionLogger()
    logger.set_context(make_context())

    with pytest.raises(LoggerStateError):
        logger.set_context(make_context())


@pytest.mark.asyncio
async def test_logger_is_immutable_after_finish():
    logger = NullExecutionLogger()
    logger.set_context(make_context())
    logger.log_success(1)
    await logger.finish()

    assert logger.state == LoggerState.FINISHED
    with pytest.raises(LoggerStateError):
        logger.log_response({"response": "late"})
    with pytest.raises(LoggerStateError):
        await logger.finish()


def test_response_can_follow_outcome():
    logger = NullExecutionLogger()
    logger.set_context(make_context())
    logger.log_success(3)
    logger.log_response({"response": "ok"})

    assert logger.artifacts["response"] == {"response": "ok"}


@pytest.mark.asyncio
async def test_persistent_finish_writes_row_and_artifacts(repository, blobs):
    queue = RecordingQueue()
    logger = PersistentExecutionLogger(repository, blobs, queue=queue)
    logger.set_context(make_context(raw_trace_id="garbage"))
    logger.log_variables({"name": "Ada"})
    logger.log_input({"model": "m"})
    logger.log_output({"raw": True})
    logger.log_result({"content": "hi"})
    logger.log_success(42)
    logger.log_response({"response": "hi"})

    await logger.finish()

    [row] = repository.all_logs()
    assert row.id == logger.log_id
    assert row.is_success is True
    assert row.duration_ms == 42
    assert row.trace_id == logger.trace_id
    assert row.raw_trace_id == "garbage"
    assert row.log_path == build_log_path(row)
    assert row.log_path.startswith(f"logs/1/{row.created_at:%Y-%m-%d}/2/3/4/")

    names = [key.rsplit("/", 1)[-1] for key in blobs.keys(row.log_path)]
    assert sorted(names) == sorted([
        "metadata.json", "variables.json", "input.json",
        "output.json", "result.json", "response.json",
    ])

    metadata = json.loads(await blobs.get(f"{row.log_path}/metadata.json"))
    assert metadata["tenant_id"] == 1
    assert metadata["duration_ms"] == 42
    assert "error" not in metadata

    [message] = queue.messages
    assert message.log_id == row.id
    assert message.to_dict() == {
        "tenant_id": 1, "project_id": 2, "prompt_id": 3, "version": 4, "log_id": row.id,
    }


@pytest.mark.asyncio
async def test_persistent_failure_records_error(repository, blobs):
    logger = PersistentExecutionLogger(repository, blobs)
    logger.set_context(make_context())
    logger.log_failure("provider exploded", 9)

    await logger.finish()

    [row] = repository.all_logs()
    assert row.is_success is False
    assert row.error_message == "provider exploded"

    metadata = json.loads(await blobs.get(f"{row.log_path}/metadata.json"))
    assert metadata["error"] == "provider exploded"
    assert await blobs.get(f"{row.log_path}/variables.json") is None


@pytest.mark.asyncio
async def test_null_logger_persists_nothing(repository, blobs):
    logger = NullExecutionLogger()
    logger.set_context(make_context())
    logger.log_input({"x": 1})
    logger.log_success(1)

    await logger.finish()

    assert repository.all_logs() == []
    assert blobs.keys() == []


@pytest.mark.asyncio
async def test_created_at_is_stamped_at_set_context(repository, blobs):
    logger = PersistentExecutionLogger(repository, blobs)
    logger.set_context(make_context())
    stamped = logger.started_at
    logger.log_success(5)

    await asyncio.sleep(0.01)
    await logger.finish()

    [row] = repository.all_logs()
    assert stamped is not None
    assert row.created_at == stamped


@pytest.mark.asyncio
async def test_non_finite_numbers_are_stored_as_null(repository, blobs):
    logger = PersistentExecutionLogger(repository, blobs)
    logger.set_context(make_context())
    logger.log_variables({"score": float("nan"), "limits": [float("inf"), 1.5]})
    logger.log_success(5)

    await logger.finish()

    data = await blobs.get(f"{logger.log_path}/variables.json")
    assert b"NaN" not in data
    assert b"Infinity" not in data
    assert json.loads(data) == {"score": None, "limits": [None, 1.5]}
