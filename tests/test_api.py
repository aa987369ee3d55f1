import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from app import dependencies
from app.main import app
from conftest import API_KEY, INACTIVE_API_KEY, OTHER_API_KEY, TRACEPARENT, TRACE_ID, FakeProvider
from llm.factory import ProviderConfig, ProviderFactory
from llm.service import ProviderService
from observability.execution_logger import ExecutionLogger
from observability.scheduler import InlineScheduler
from orchestration.executor import PromptExecutor
from orchestration.resolver import EntityResolver

client = TestClient(app)

EXECUTE_URL = "/v1/projects/{project}/prompts/{prompt}/execute"


@pytest.fixture
def provider_content():
    return {"content": "Hello Ada"}


@pytest.fixture(autouse=True)
def wired_app(catalog, log_repository, blob_store, search_repository, provider_content):
    """Point the app at in-memory storage and a FakeProvider."""

    def prompt_executor(
        execution_logger: ExecutionLogger = Depends(dependencies.get_execution_logger),
    ) -> PromptExecutor:
        factory = MagicMock(spec=ProviderFactory)
        factory.create_provider.return_value = FakeProvider(execution_logger, **provider_content)
        return PromptExecutor(
            resolver=EntityResolver(catalog),
            provider_service=ProviderService(ProviderConfig(), execution_logger, factory=factory),
            execution_logger=execution_logger,
            scheduler=InlineScheduler(),
        )

    app.dependency_overrides[dependencies.get_catalog] = lambda: catalog
    app.dependency_overrides[dependencies.get_log_repository] = lambda: log_repository
    app.dependency_overrides[dependencies.get_blob_store] = lambda: blob_store
    app.dependency_overrides[dependencies.get_search_repository] = lambda: search_repository
    app.dependency_overrides[dependencies.get_prompt_executor] = prompt_executor
    app.dependency_overrides[dependencies.get_provider_config] = lambda: ProviderConfig()
    yield
    app.dependency_overrides.clear()


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_whoami():
    response = client.get("/v1/whoami", headers={"x-api-key": API_KEY})
    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.parametrize("headers, message", [
    ({}, "API key required"),
    ({"x-api-key": "nope"}, "Invalid API key"),
    ({"x-api-key": INACTIVE_API_KEY}, "Invalid API key"),
])
def test_whoami_rejects_bad_keys(headers, message):
    response = client.get("/v1/whoami", headers=headers)
    assert response.status_code == 401
    assert response.json() == {"error": message}


def test_list_providers():
    response = client.get("/v1/providers", headers={"x-api-key": API_KEY})

    assert response.status_code == 200
    assert [p["id"] for p in response.json()] == ["openai", "google"]


def test_execute_prompt(log_repository):
    response = client.post(
        EXECUTE_URL.format(project="demo", prompt="greeter"),
        headers={"x-api-key": API_KEY, "traceparent": TRACEPARENT},
        json={"variables": {"name": "Ada"}},
    )

    assert response.status_code == 200
    assert response.json() == {"response": "Hello Ada"}

    [row] = log_repository.all_logs()
    assert row.is_success
    assert row.trace_id == TRACE_ID
    assert row.log_path is not None


def test_execute_prompt_without_body():
    response = client.post(
        EXECUTE_URL.format(project="1", prompt="1"),
        headers={"x-api-key": API_KEY},
    )

    assert response.status_code == 200
    assert response.json() == {"response": "Hello Ada"}


@pytest.mark.parametrize("provider_content", [{"content": '{"label": "positive"}'}])
def test_execute_structured_prompt(provider_content):
    response = client.post(
        EXECUTE_URL.format(project="demo", prompt="structured"),
        headers={"x-api-key": API_KEY},
        json={"variables": {"text": "great"}},
    )

    assert response.status_code == 200
    assert response.json() == {"response": {"label": "positive"}}


@pytest.mark.parametrize("project, prompt, status, message", [
    ("missing", "greeter", 404, "Project not found"),
    ("demo", "missing", 404, "Prompt not found"),
    ("demo", "retired", 400, "Prompt is not active"),
    ("demo", "unrouted", 404, "No active version found for prompt"),
    ("demo", "broken", 500, "Invalid prompt body format"),
    ("demo", "empty", 400, "No messages found in prompt body"),
])
def test_execute_error_responses(project, prompt, status, message):
    response = client.post(
        EXECUTE_URL.format(project=project, prompt=prompt),
        headers={"x-api-key": API_KEY},
        json={},
    )

    assert response.status_code == status
    assert response.json() == {"error": message}


def test_execute_is_tenant_isolated():
    response = client.post(
        EXECUTE_URL.format(project="demo", prompt="greeter"),
        headers={"x-api-key": OTHER_API_KEY},
    )

    assert response.status_code == 404
    assert response.json() == {"error": "Project not found"}


def test_execute_requires_api_key():
    response = client.post(EXECUTE_URL.format(project="demo", prompt="greeter"))

    assert response.status_code == 401
    assert response.json() == {"error": "API key required"}


def test_execute_rejects_malformed_body():
    response = client.post(
        EXECUTE_URL.format(project="demo", prompt="greeter"),
        headers={"x-api-key": API_KEY},
        json={"variables": "not-an-object"},
    )

    assert response.status_code == 400
    assert "error" in response.json()


def test_unexpected_error_uses_error_shape(catalog, monkeypatch):
    monkeypatch.setattr(
        catalog, "get_project_by_slug", AsyncMock(side_effect=RuntimeError("catalog offline"))
    )
    lenient_client = TestClient(app, raise_server_exceptions=False)

    response = lenient_client.post(
        EXECUTE_URL.format(project="demo", prompt="greeter"),
        headers={"x-api-key": API_KEY},
    )

    assert response.status_code == 500
    assert response.json() == {"error": "catalog offline"}


@pytest.mark.parametrize("provider_content", [{"content": "NaN"}])
def test_execute_structured_prompt_non_finite_output(provider_content, log_repository, blob_store):
    response = client.post(
        EXECUTE_URL.format(project="demo", prompt="structured"),
        headers={"x-api-key": API_KEY},
    )

    assert response.status_code == 200
    assert response.json() == {"response": "NaN"}

    [row] = log_repository.all_logs()
    stored = asyncio.run(blob_store.get(f"{row.log_path}/response.json"))
    assert json.loads(stored) == {"response": "NaN"}


SEARCH_URL = "/v1/projects/{project}/logs/search"


def test_executed_variables_are_searchable(log_repository):
    for name in ("Ada Lovelace", "Alan Turing"):
        client.post(
            EXECUTE_URL.format(project="demo", prompt="greeter"),
            headers={"x-api-key": API_KEY},
            json={"variables": {"user": {"name": name}}},
        )
    ada_log, alan_log = [row.id for row in log_repository.all_logs()]

    response = client.get(
        SEARCH_URL.format(project="demo"),
        headers={"x-api-key": API_KEY},
        params={"variablePath": "user.name", "variableValue": "ada"},
    )
    assert response.status_code == 200
    assert response.json() == {"log_ids": [ada_log]}

    response = client.get(
        SEARCH_URL.format(project="1"),
        headers={"x-api-key": API_KEY},
        params={"variablePath": "user.name", "variableOperator": "notEmpty"},
    )
    assert response.json() == {"log_ids": [alan_log, ada_log]}

    response = client.get("/v1/projects/demo/logs/variables", headers={"x-api-key": API_KEY})
    assert response.json() == {"paths": ["user.name"]}


@pytest.mark.parametrize("params", [
    {"variableValue": "ada"},
    {"variablePath": "user.name", "variableOperator": "startsWith", "variableValue": "ada"},
    {"variablePath": "user.name"},
])
def test_search_rejects_malformed_filter(params):
    response = client.get(SEARCH_URL.format(project="demo"), headers={"x-api-key": API_KEY}, params=params)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid filter:")


def test_search_is_tenant_isolated():
    response = client.get(
        SEARCH_URL.format(project="demo"),
        headers={"x-api-key": OTHER_API_KEY},
        params={"variablePath": "user.name", "variableValue": "ada"},
    )

    assert response.status_code == 404
    assert response.json() == {"error": "Project not found"}
