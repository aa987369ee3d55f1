import json
import logging

import pytest

from observability.log_processing import (
    ExecutionLogProcessor,
    InProcessLogQueue,
    LogQueueMessage,
    detect_provider,
    extract_google_usage,
    extract_openai_usage,
)
from observability.trace_aggregation import TraceAggregator
from storage.models import ExecutionLog

OPENAI_INPUT = {
    "model": "gpt-test",
    "input": [{"role": "user", "content": [{"type": "input_text", "text": "Hi"}]}],
    "text": {"format": {"type": "text"}},
    "reasoning": {"effort": "medium"},
}
OPENAI_OUTPUT = {
    "model": "gpt-test-2025",
    "usage": {
        "input_tokens": 10,
        "input_tokens_details": {"cached_tokens": 4},
        "output_tokens": 6,
        "output_tokens_details": {"reasoning_tokens": 2},
        "total_tokens": 16,
    },
}
GOOGLE_INPUT = {"model": "gemini-test", "config": {}, "contents": [{"role": "user", "parts": [{"text": "Hi"}]}]}
GOOGLE_OUTPUT = [
    {"candidates": [], "model_version": "gemini-test-001"},
    {
        "candidates": [],
        "model_version": "gemini-test-002",
        "usage_metadata": {
            "prompt_token_count": 8,
            "candidates_token_count": 3,
            "thoughts_token_count": 5,
            "total_token_count": 16,
        },
    },
]


def test_detect_provider():
    assert detect_provider(OPENAI_INPUT) == "openai"
    assert detect_provider(GOOGLE_INPUT) == "google"
    assert detect_provider({"model": "x", "messages": []}) is None
    assert detect_provider(["not", "a", "dict"]) is None


def test_extract_openai_usage():
    model, usage = extract_openai_usage(OPENAI_OUTPUT)

    assert model == "gpt-test-2025"
    assert usage == {
        "input_tokens": 10,
        "cached_tokens": 4,
        "output_tokens": 6,
        "reasoning_tokens": 2,
        "total_tokens": 16,
    }


def test_extract_google_usage_uses_last_values():
    model, usage = extract_google_usage(GOOGLE_OUTPUT)

    assert model == "gemini-test-002"
    assert usage == {
        "prompt_tokens": 8,
        "cached_tokens": 0,
        "response_tokens": 3,
        "thoughts_tokens": 5,
        "tool_use_prompt_tokens": 0,
        "total_tokens": 16,
    }


def test_extract_google_usage_rejects_non_list():
    assert extract_google_usage({"usage_metadata": {}}) == (None, None)


async def store_log(log_repository, blob_store, input_payload, output_payload, trace_id="t" * 32, variables=None):
    row = await log_repository.insert(ExecutionLog(
        tenant_id=1, project_id=1, prompt_id=1, version=1,
        is_success=True, duration_ms=20, trace_id=trace_id,
    ))
    path = f"logs/1/2026-01-01/1/1/1/{row.id}"
    await log_repository.set_log_path(row.id, path)
    if input_payload is not None:
        await blob_store.put(f"{path}/input.json", json.dumps(input_payload).encode())
    if output_payload is not None:
        await blob_store.put(f"{path}/output.json", json.dumps(output_payload).encode())
    if variables is not None:
        await blob_store.put(f"{path}/variables.json", json.dumps(variables).encode())
    return row


def message_for(row):
    return LogQueueMessage(tenant_id=1, project_id=1, prompt_id=1, version=1, log_id=row.id)


@pytest.mark.asyncio
async def test_process_updates_usage_and_trace(log_repository, blob_store):
    row = await store_log(log_repository, blob_store, OPENAI_INPUT, OPENAI_OUTPUT)
    processor = ExecutionLogProcessor(
        log_repository, blob_store, trace_aggregator=TraceAggregator(log_repository, blob_store)
    )

    await processor.process(message_for(row))

    stored = await log_repository.get(1, 1, row.id)
    assert stored.provider == "openai"
    assert stored.model == "gpt-test-2025"
    assert stored.usage["total_tokens"] == 16

    summary = await log_repository.get_trace(1, 1, "t" * 32)
    assert summary is not None
    assert summary.total_logs == 1


@pytest.mark.asyncio
async def test_process_google_log(log_repository, blob_store):
    row = await store_log(log_repository, blob_store, GOOGLE_INPUT, GOOGLE_OUTPUT)

    await ExecutionLogProcessor(log_repository, blob_store).process(message_for(row))

    stored = await log_repository.get(1, 1, row.id)
    assert stored.provider == "google"
    assert stored.model == "gemini-test-002"
    assert stored.usage["thoughts_tokens"] == 5


@pytest.mark.asyncio
async def test_process_skips_missing_output(log_repository, blob_store):
    row = await store_log(log_repository, blob_store, OPENAI_INPUT, None)

    await ExecutionLogProcessor(log_repository, blob_store).process(message_for(row))

    stored = await log_repository.get(1, 1, row.id)
    assert stored.provider is None
    assert stored.usage is None


@pytest.mark.asyncio
async def test_process_skips_unknown_input_shape(log_repository, blob_store):
    row = await store_log(log_repository, blob_store, {"model": "x"}, OPENAI_OUTPUT)

    await ExecutionLogProcessor(log_repository, blob_store).process(message_for(row))

    assert (await log_repository.get(1, 1, row.id)).usage is None


@pytest.mark.asyncio
async def test_process_unknown_log_raises(log_repository, blob_store):
    processor = ExecutionLogProcessor(log_repository, blob_store)

    with pytest.raises(LookupError):
        await processor.process(LogQueueMessage(tenant_id=1, project_id=1, prompt_id=1, version=1, log_id=999))


@pytest.mark.asyncio
async def test_process_is_tenant_scoped(log_repository, blob_store):
    row = await store_log(log_repository, blob_store, OPENAI_INPUT, OPENAI_OUTPUT)
    processor = ExecutionLogProcessor(log_repository, blob_store)

    with pytest.raises(LookupError):
        await processor.process(LogQueueMessage(tenant_id=2, project_id=1, prompt_id=1, version=1, log_id=row.id))


@pytest.mark.asyncio
async def test_in_process_queue_swallows_failures(log_repository, blob_store, caplog):
    queue = InProcessLogQueue(ExecutionLogProcessor(log_repository, blob_store))

    with caplog.at_level(logging.ERROR):
        await queue.send(LogQueueMessage(tenant_id=1, project_id=1, prompt_id=1, version=1, log_id=404))

    assert queue.processed == []
    assert "404" in caplog.text


@pytest.mark.asyncio
async def test_in_process_queue_records_processed(log_repository, blob_store):
    row = await store_log(log_repository, blob_store, OPENAI_INPUT, OPENAI_OUTPUT)
    queue = InProcessLogQueue(ExecutionLogProcessor(log_repository, blob_store))

    await queue.send(message_for(row))

    assert queue.processed == [row.id]


@pytest.mark.asyncio
async def test_process_indexes_variables(log_repository, blob_store, search_repository):
    row = await store_log(
        log_repository, blob_store, OPENAI_INPUT, OPENAI_OUTPUT,
        variables={"user": {"name": "Ada Lovelace"}, "tags": ["math"], "empty": {}},
    )
    processor = ExecutionLogProcessor(log_repository, blob_store, search_repository=search_repository)

    await processor.process(message_for(row))

    records = search_repository.all_records()
    assert [(r.variable_path, r.variable_value) for r in records] == [
        ("user.name", "Ada Lovelace"),
        ("tags", '["math"]'),
    ]
    assert all(r.log_id == row.id and r.prompt_id == 1 for r in records)
    assert await search_repository.find_log_ids(1, 1, "user.name", "ada") == [row.id]
    # usage extraction still ran
    assert (await log_repository.get(1, 1, row.id)).provider == "openai"


@pytest.mark.asyncio
async def test_process_without_variables_still_aggregates_trace(log_repository, blob_store, search_repository):
    row = await store_log(log_repository, blob_store, OPENAI_INPUT, OPENAI_OUTPUT)
    processor = ExecutionLogProcessor(
        log_repository,
        blob_store,
        trace_aggregator=TraceAggregator(log_repository, blob_store),
        search_repository=search_repository,
    )

    await processor.process(message_for(row))

    assert search_repository.all_records() == []
    assert (await log_repository.get_trace(1, 1, "t" * 32)).total_logs == 1


@pytest.mark.asyncio
async def test_index_variables_ignores_empty_bag(log_repository, blob_store, search_repository):
    row = await store_log(log_repository, blob_store, OPENAI_INPUT, OPENAI_OUTPUT, variables={"meta": {}})
    processor = ExecutionLogProcessor(log_repository, blob_store, search_repository=search_repository)

    assert await processor.index_variables(await log_repository.get(1, 1, row.id)) == 0
    assert search_repository.all_records() == []
