import json
import time

import pytest
from unittest.mock import MagicMock

from llm.base import AIProvider
from llm.factory import ProviderConfig, ProviderFactory
from llm.service import ProviderService
from observability.execution_logger import ExecutionContext, PersistentExecutionLogger
from observability.scheduler import InlineScheduler
from orchestration.executor import PromptExecutor
from orchestration.resolver import EntityResolver
from schemas.execution import ExecutionResult, TokenUsage
from storage import (
    InMemoryBlobStore,
    InMemoryCatalog,
    InMemoryExecutionLogRepository,
    InMemoryKeyValueCache,
    InMemoryVariableSearchRepository,
)
from storage.seed import seed_catalog

API_KEY = "key-tenant-1"
OTHER_API_KEY = "key-tenant-2"
INACTIVE_API_KEY = "key-inactive"

TRACEPARENT = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"
TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"


def _prompt(prompt_id, slug, body, tenant_id=1, project_id=1, active_version=1, **extra):
    item = {
        "id": prompt_id,
        "tenant_id": tenant_id,
        "project_id": project_id,
        "name": slug.title(),
        "slug": slug,
        "provider": "openai",
        "model": "gpt-test",
        "versions": [{"version": 1, "body": body}],
    }
    if active_version is not None:
        item["active_version"] = active_version
    item.update(extra)
    return item


GREETER_BODY = {
    "messages": [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Say hello to {{name}}"},
    ],
}

SEED = {
    "tenants": [
        {"id": 1, "api_keys": [API_KEY]},
        {"id": 2, "api_keys": [OTHER_API_KEY]},
        {"id": 3, "api_keys": [INACTIVE_API_KEY], "is_active": False},
    ],
    "projects": [
        {"id": 1, "tenant_id": 1, "name": "Demo", "slug": "demo"},
        {"id": 2, "tenant_id": 2, "name": "Other", "slug": "other"},
    ],
    "prompts": [
        _prompt(1, "greeter", GREETER_BODY),
        _prompt(2, "retired", GREETER_BODY, is_active=False),
        _prompt(3, "unrouted", GREETER_BODY, active_version=None),
        _prompt(4, "broken", "{not json"),
        _prompt(5, "empty", {"messages": []}),
        _prompt(6, "structured", {
            "messages": [{"role": "user", "content": "Classify {{text}}"}],
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": "label", "schema": {"type": "object"}},
            },
        }),
        _prompt(7, "dangling", GREETER_BODY, active_version=9),
        _prompt(8, "array-body", "[1, 2]"),
        _prompt(10, "secret", GREETER_BODY, tenant_id=2, project_id=2),
    ],
}


class FakeProvider(AIProvider):
    """Provider double that records requests and logs like a real provider."""

    provider_name = "fake"

    def __init__(self, execution_logger, content="Hello Ada", error=None):
        super().__init__("test-key", execution_logger)
        self.content = content
        self.error = error
        self.requests = []

    async def execute(self, request):
        started_at = time.perf_counter()
        self._log_variables(request.variables)
        self.requests.append(request)
        self._execution_logger.log_input({
            "model": request.model,
            "messages": [m.model_dump() for m in request.messages],
        })
        if self.error is not None:
            raise self._fail(self.error, started_at)

        result = ExecutionResult(
            content=self.content,
            model=request.model,
            usage=TokenUsage(prompt_tokens=3, completion_tokens=2, total_tokens=5),
            duration_ms=7,
        )
        self._execution_logger.log_output({"raw": self.content})
        self._execution_logger.log_result(result.model_dump())
        self._execution_logger.log_success(result.duration_ms)
        return result


class ExecutionHarness:
    """PromptExecutor wired to in-memory storage and a FakeProvider."""

    def __init__(self, catalog, log_repository, blob_store, content="Hello Ada", error=None, scheduler=None):
        self.log_repository = log_repository
        self.blob_store = blob_store
        self.logger = PersistentExecutionLogger(log_repository, blob_store)
        self.provider = FakeProvider(self.logger, content=content, error=error)
        self.factory = MagicMock(spec=ProviderFactory)
        self.factory.create_provider.return_value = self.provider
        self.scheduler = scheduler or InlineScheduler()
        self.executor = PromptExecutor(
            resolver=EntityResolver(catalog),
            provider_service=ProviderService(ProviderConfig(), self.logger, factory=self.factory),
            execution_logger=self.logger,
            scheduler=self.scheduler,
        )

    def rows(self):
        return self.log_repository.all_logs()

    async def artifact(self, name):
        row = self.rows()[-1]
        data = await self.blob_store.get(f"{row.log_path}/{name}.json")
        return json.loads(data) if data is not None else None


@pytest.fixture
def catalog():
    catalog = InMemoryCatalog()
    seed_catalog(catalog, SEED)
    return catalog


@pytest.fixture
def log_repository():
    return InMemoryExecutionLogRepository()


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def search_repository():
    return InMemoryVariableSearchRepository()


@pytest.fixture
def kv_cache():
    return InMemoryKeyValueCache()


@pytest.fixture
def harness(catalog, log_repository, blob_store):
    def build(**kwargs):
        return ExecutionHarness(catalog, log_repository, blob_store, **kwargs)
    return build


@pytest.fixture
def recording_logger():
    """Execution logger with context set, as providers receive it."""
    logger = PersistentExecutionLogger(InMemoryExecutionLogRepository(), InMemoryBlobStore())
    logger.set_context(ExecutionContext(tenant_id=1, project_id=1, prompt_id=1, version=1))
    return logger
