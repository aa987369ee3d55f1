# Storage Package
from storage.blob_store import BlobStore, FileBlobStore, InMemoryBlobStore
from storage.cache import InMemoryKeyValueCache, KeyValueCache
from storage.memory import InMemoryCatalog, InMemoryExecutionLogRepository, InMemoryVariableSearchRepository
from storage.repository import CatalogRepository, ExecutionLogRepository, VariableSearchRepository

__all__ = [
    "BlobStore",
    "FileBlobStore",
    "InMemoryBlobStore",
    "KeyValueCache",
    "InMemoryKeyValueCache",
    "CatalogRepository",
    "ExecutionLogRepository",
    "VariableSearchRepository",
    "InMemoryCatalog",
    "InMemoryExecutionLogRepository",
    "InMemoryVariableSearchRepository",
]
