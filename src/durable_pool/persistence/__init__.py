"""Pool backends."""

from durable_pool.persistence.durable import DurablePool
from durable_pool.persistence.memory import MemoryPool
from durable_pool.persistence.protocol import Pool

__all__ = [
    "DurablePool",
    "MemoryPool",
    "Pool",
]
