"""Cache providers.

In-memory TTL cache used for weather averages and geocoding results, which
change slowly and are requested once per crop suggestion run.
"""

from src.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
