"""
Blob Store

Key/value storage for execution log artifacts (JSON documents).
Keys are slash-separated paths, e.g. logs/1/2026-01-27/3/4/1/17/input.json

DESIGN RULES:
- put() overwrites, get() returns None for unknown keys
- Storage-agnostic interface
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional


class BlobStore(ABC):
    """
    Abstract base for artifact storage.

    Implementations:
    - InMemoryBlobStore (default, tests)
    - FileBlobStore (local directory)
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str = "application/json") -> None:
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        pass


class InMemoryBlobStore(BlobStore):
    """Process-local blob storage."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._lock = Lock()

    async def put(self, key: str, data: bytes, content_type: str = "application/json") -> None:
        with self._lock:
            self._blobs[key] = bytes(data)

    async def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._blobs.get(key)

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._blobs if k.startswith(prefix))


class FileBlobStore(BlobStore):
    """
    Directory-backed blob storage.

    Each key maps to a file below the root directory.
    File I/O runs in a worker thread to keep the event loop free.
    """

    def __init__(self, root: str):
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root.resolve() not in path.parents:
            raise ValueError(f"Blob key escapes storage root: {key}")
        return path

    async def put(self, key: str, data: bytes, content_type: str = "application/json") -> None:
        path = self._path_for(key)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(write)

    async def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)

        def read() -> Optional[bytes]:
            return path.read_bytes() if path.exists() else None

        return await asyncio.to_thread(read)
