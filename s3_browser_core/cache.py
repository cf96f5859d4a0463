from __future__ import annotations
"""TTL caching of read results with scope-based invalidation."""
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from .paths import containing_prefix
from .responses import Response

LOGGER = logging.getLogger(__name__)

DEFAULT_TTL = 3600

# Scope names used by the client components.
OBJECTS_SCOPE = "objects"
EXISTS_SCOPE = "exists"
CORS_SCOPE = "cors"
BUCKET_SCOPE = "bucket"


class TTLStore(Protocol):
    """Key-value store with per-entry expiry."""

    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any, ttl: int) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float


class MemoryTTLStore:
    """In-process :class:`TTLStore` backed by a dictionary."""

    def __init__(self, clock: Callable[[], float] | None = None):
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: int) -> None:
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class CacheLayer:
    """Caches :class:`Response` values and tracks which scope owns each key.

    Keys are grouped per bucket and per scope (for example
    ``("objects", "photos/")`` for every listing of ``photos/``), so a
    mutation can drop exactly the entries it may have made stale.
    """

    def __init__(
        self,
        store: TTLStore | None = None,
        *,
        enabled: bool = True,
        ttl: int = DEFAULT_TTL,
        namespace: str = "s3_",
        clock: Callable[[], float] | None = None,
    ):
        self._store = store if store is not None else MemoryTTLStore()
        self.enabled = enabled
        self.ttl = ttl
        self._namespace = namespace
        self._clock = clock or time.monotonic
        # bucket -> scope -> key -> expiry, mirroring what the store holds.
        self._scopes: dict[str, dict[tuple[str, str], dict[str, float]]] = {}

    def __len__(self) -> int:
        return sum(len(keys) for scopes in self._scopes.values() for keys in scopes.values())

    def make_key(self, operation: str, bucket: str, params: dict[str, Any] | None = None) -> str:
        payload = json.dumps(
            {"operation": operation, "bucket": bucket, "params": params or {}},
            sort_keys=True,
            default=str,
        )
        return self._namespace + hashlib.md5(payload.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Any | None:
        if not self.enabled:
            return None
        return self._store.get(key)

    def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
        *,
        bucket: str,
        scope: tuple[str, str],
    ) -> None:
        if not self.enabled:
            return
        ttl = self.ttl if ttl is None else ttl
        self._store.set(key, value, ttl)
        self._prune()
        self._scopes.setdefault(bucket, {}).setdefault(scope, {})[key] = self._clock() + ttl

    def _prune(self) -> None:
        now = self._clock()
        for bucket, scopes in list(self._scopes.items()):
            for scope, keys in list(scopes.items()):
                for key in [key for key, expires_at in keys.items() if expires_at <= now]:
                    del keys[key]
                if not keys:
                    del scopes[scope]
            if not scopes:
                del self._scopes[bucket]

    def _forget(self, bucket: str, scope: tuple[str, str], key: str) -> None:
        scopes = self._scopes.get(bucket, {})
        keys = scopes.get(scope)
        if keys is None:
            return
        keys.pop(key, None)
        if not keys:
            del scopes[scope]
        if not scopes:
            self._scopes.pop(bucket, None)

    def fetch(
        self,
        operation: str,
        *,
        bucket: str,
        scope: tuple[str, str],
        params: dict[str, Any],
        loader: Callable[[], Response],
        use_cache: bool = True,
        cache_if: Optional[Callable[[Response], bool]] = None,
    ) -> Response:
        """Read-through helper: return a cached response or load and store one.

        Only successful responses are stored unless ``cache_if`` says otherwise.
        """

        if not (use_cache and self.enabled):
            return loader()
        key = self.make_key(operation, bucket, params)
        cached = self._store.get(key)
        if cached is not None:
            LOGGER.debug("Cache hit for %s on %s", operation, bucket)
            return cached
        LOGGER.debug("Cache miss for %s on %s", operation, bucket)
        self._forget(bucket, scope, key)
        result = loader()
        should_cache = cache_if(result) if cache_if else result.successful
        if should_cache:
            self.set(key, result, bucket=bucket, scope=scope)
        return result

    def invalidate_scope(self, bucket: str, scope: tuple[str, str]) -> int:
        keys = self._scopes.get(bucket, {}).pop(scope, {})
        for key in keys:
            self._store.delete(key)
        if keys:
            LOGGER.debug("Invalidated %d cache entries for %s %s", len(keys), bucket, scope)
        return len(keys)

    def invalidate_prefix(self, bucket: str, prefix: str) -> int:
        """Drop every cached listing of exactly ``prefix``."""

        return self.invalidate_scope(bucket, (OBJECTS_SCOPE, prefix))

    def invalidate_key(self, bucket: str, key: str) -> int:
        """Drop the listing of the key's containing prefix and its existence entry."""

        removed = self.invalidate_prefix(bucket, containing_prefix(key))
        return removed + self.invalidate_scope(bucket, (EXISTS_SCOPE, key))

    def invalidate_subtree(self, bucket: str, prefix: str) -> int:
        """Drop listings and existence entries at or below ``prefix``."""

        scopes = self._scopes.get(bucket, {})
        matching = [
            scope
            for scope in scopes
            if scope[0] in (OBJECTS_SCOPE, EXISTS_SCOPE) and scope[1].startswith(prefix)
        ]
        return sum(self.invalidate_scope(bucket, scope) for scope in matching)

    def invalidate_bucket(self, bucket: str) -> int:
        scopes = self._scopes.pop(bucket, {})
        count = 0
        for keys in scopes.values():
            for key in keys:
                self._store.delete(key)
            count += len(keys)
        LOGGER.debug("Invalidated %d cache entries for bucket %s", count, bucket)
        return count

    def clear(self) -> int:
        """Remove every entry written by this cache layer."""

        return sum(self.invalidate_bucket(bucket) for bucket in list(self._scopes))
