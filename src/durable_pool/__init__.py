"""durable-pool: a FIFO item pool backed by an embedded transactional store."""

__version__ = "0.1.0"

from durable_pool.core import (  # noqa: E402
    BytesItem,
    CodecError,
    ConfigurationError,
    IntItem,
    PoolError,
    PoolItem,
    PoolRegistry,
    StoreError,
    TextItem,
    get_global_registry,
    new_pool,
    register_default_backends,
    to_item,
)
from durable_pool.persistence import DurablePool, MemoryPool, Pool  # noqa: E402

__all__ = [
    "BytesItem",
    "CodecError",
    "ConfigurationError",
    "DurablePool",
    "IntItem",
    "MemoryPool",
    "Pool",
    "PoolError",
    "PoolItem",
    "PoolRegistry",
    "StoreError",
    "TextItem",
    "__version__",
    "get_global_registry",
    "new_pool",
    "register_default_backends",
    "to_item",
]
