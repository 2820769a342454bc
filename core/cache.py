# server/core/cache.py
"""
Caching utilities
"""
from typing import Any, Optional, Dict
from cachetools import TTLCache

class CacheManager:
    """Simple in-memory cache manager"""

    def __init__(self, max_size: int = 256, ttl: int = 3600):
        self.ttl = ttl
        self._cache: Dict[str, Any] = TTLCache(maxsize=max_size, ttl=ttl)

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        return self._cache.get(key)

    async def set(self, key: str, value: Any) -> None:
        """Set value in cache; entries expire after the manager's TTL"""
        self._cache[key] = value

    async def delete(self, key: str) -> None:
        """Delete value from cache"""
        self._cache.pop(key, None)

    async def clear(self) -> None:
        """Clear all cache"""
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
