"""Object store factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import WatchConfig, load_config
from ..constants import STORE_BACKEND_ENV
from .base import ObjectStore
from .errors import ConflictError, NotFoundError, StoreError, TransientStoreError
from .inmemory import InMemoryObjectStore


def get_store(
    backend: Optional[str] = None, config: Optional[WatchConfig] = None
) -> ObjectStore:
    """Factory function to get the configured object store."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv(STORE_BACKEND_ENV)
        or config.store.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryObjectStore()
    elif backend == "kubernetes":
        from .kubernetes import KubernetesObjectStore

        store_conf = config.store
        return KubernetesObjectStore(
            api_url=store_conf.api_url,
            token=store_conf.token,
            verify_ssl=store_conf.verify_ssl,
            timeout=store_conf.request_timeout_seconds,
        )
    else:
        raise ValueError(f"Unsupported store backend: {backend}")


__all__ = [
    "ObjectStore",
    "InMemoryObjectStore",
    "StoreError",
    "NotFoundError",
    "ConflictError",
    "TransientStoreError",
    "get_store",
]
