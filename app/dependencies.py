"""
FastAPI Dependencies

Long-lived collaborators are created once here (lru_cache singletons).
Per-request objects (execution logger, executor) are built per call.

RULE: the execute route calls exactly one entry point: PromptExecutor.execute()
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from app.core.config import settings
from llm.base import GatewayConfig
from llm.factory import ProviderConfig
from llm.service import ProviderService
from observability.execution_logger import ExecutionLogger, NullExecutionLogger, PersistentExecutionLogger
from observability.log_processing import ExecutionLogProcessor, InProcessLogQueue, LogQueue
from observability.scheduler import BackgroundScheduler, InlineScheduler, Scheduler
from observability.trace_aggregation import TraceAggregator
from orchestration.errors import UnauthorizedError
from orchestration.executor import PromptExecutor
from orchestration.log_search import LogSearch
from orchestration.resolver import EntityResolver
from storage import (
    BlobStore,
    FileBlobStore,
    InMemoryBlobStore,
    InMemoryCatalog,
    InMemoryExecutionLogRepository,
    InMemoryKeyValueCache,
    InMemoryVariableSearchRepository,
    KeyValueCache,
)
from storage.repository import CatalogRepository, ExecutionLogRepository, VariableSearchRepository


@lru_cache(maxsize=1)
def get_catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@lru_cache(maxsize=1)
def get_log_repository() -> ExecutionLogRepository:
    return InMemoryExecutionLogRepository()


@lru_cache(maxsize=1)
def get_search_repository() -> VariableSearchRepository:
    return InMemoryVariableSearchRepository()


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    if settings.blob_storage_dir:
        return FileBlobStore(settings.blob_storage_dir)
    return InMemoryBlobStore()


@lru_cache(maxsize=1)
def get_kv_cache() -> KeyValueCache:
    return InMemoryKeyValueCache()


@lru_cache(maxsize=1)
def get_scheduler() -> Scheduler:
    """Background finalization unless disabled in settings."""
    if settings.background_finalization:
        return BackgroundScheduler()
    return InlineScheduler()


def get_log_queue(
    log_repository: ExecutionLogRepository = Depends(get_log_repository),
    blob_store: BlobStore = Depends(get_blob_store),
    search_repository: VariableSearchRepository = Depends(get_search_repository),
) -> LogQueue:
    """Usage extraction, variable indexing and trace aggregation after each finish()."""
    processor = ExecutionLogProcessor(
        log_repository,
        blob_store,
        trace_aggregator=TraceAggregator(log_repository, blob_store),
        search_repository=search_repository,
    )
    return InProcessLogQueue(processor)


@lru_cache(maxsize=1)
def get_provider_config() -> ProviderConfig:
    return ProviderConfig(
        openai_api_key=settings.openai_api_key,
        gemini_api_key=settings.gemini_api_key,
        gateway=GatewayConfig(
            base_url=settings.ai_gateway_base_url,
            token=settings.ai_gateway_token,
        ),
        gemini_cache_ttl_seconds=settings.gemini_cache_ttl_seconds,
    )


async def get_tenant_id(
    x_api_key: Optional[str] = Header(default=None, alias="x-api-key"),
    catalog: CatalogRepository = Depends(get_catalog),
) -> int:
    """Resolve the calling tenant from the x-api-key header."""
    if not x_api_key:
        raise UnauthorizedError("API key required")

    tenant = await catalog.get_tenant_by_api_key(x_api_key)
    if tenant is None or not tenant.is_active:
        raise UnauthorizedError("Invalid API key")
    return tenant.id


def get_execution_logger(
    log_repository: ExecutionLogRepository = Depends(get_log_repository),
    blob_store: BlobStore = Depends(get_blob_store),
    queue: LogQueue = Depends(get_log_queue),
) -> ExecutionLogger:
    return PersistentExecutionLogger(log_repository, blob_store, queue=queue)


def get_prompt_executor(
    execution_logger: ExecutionLogger = Depends(get_execution_logger),
    catalog: CatalogRepository = Depends(get_catalog),
    config: ProviderConfig = Depends(get_provider_config),
    cache: KeyValueCache = Depends(get_kv_cache),
    scheduler: Scheduler = Depends(get_scheduler),
) -> PromptExecutor:
    return PromptExecutor(
        resolver=EntityResolver(catalog),
        provider_service=ProviderService(config, execution_logger, cache=cache),
        execution_logger=execution_logger,
        scheduler=scheduler,
    )


def get_provider_service(
    config: ProviderConfig = Depends(get_provider_config),
) -> ProviderService:
    """Provider service for metadata queries; nothing is executed or logged."""
    return ProviderService(config, NullExecutionLogger())


def get_log_search(
    catalog: CatalogRepository = Depends(get_catalog),
    search_repository: VariableSearchRepository = Depends(get_search_repository),
) -> LogSearch:
    return LogSearch(EntityResolver(catalog), search_repository)
