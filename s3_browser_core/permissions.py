from __future__ import annotations
"""Live read/write/delete capability checks for a set of credentials.

The probe runs three stages in order and stops at the first one that
fails: a minimal listing, the upload of a small test object and the
deletion of that same object.  When the object cannot be deleted a
``.note`` file is left next to it so an operator can find and remove it.
"""
from datetime import datetime, timezone
import logging
import secrets
from typing import Callable, Optional

from .models import PermissionResult
from .objects import ObjectStore

LOGGER = logging.getLogger(__name__)

PermissionKey = tuple[str, str, str, str]

TEST_KEY_STEM = "permissions-test-"


class PermissionCache:
    """In-process store of probe results, shared by reference."""

    def __init__(self):
        self._results: dict[PermissionKey, PermissionResult] = {}

    @staticmethod
    def make_key(provider: str, region: str, bucket: str, context: Optional[str]) -> PermissionKey:
        return (provider, region, bucket, context or "default")

    def get(self, key: PermissionKey) -> PermissionResult | None:
        return self._results.get(key)

    def set(self, key: PermissionKey, result: PermissionResult) -> None:
        self._results[key] = result

    def clear(self, bucket: Optional[str] = None) -> int:
        if bucket is None:
            count = len(self._results)
            self._results.clear()
            return count
        stale = [key for key in self._results if key[2] == bucket]
        for key in stale:
            del self._results[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._results)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PermissionProbe:
    """Determines what the configured credentials may do in a bucket."""

    def __init__(
        self,
        objects: ObjectStore,
        cache: PermissionCache | None = None,
        *,
        provider: str = "",
        region: str = "",
        context: Optional[str] = None,
        token_factory: Callable[[int], str] = secrets.token_hex,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._objects = objects
        self.cache = cache if cache is not None else PermissionCache()
        self.provider = provider
        self.region = region
        self.context = context
        self._token_factory = token_factory
        self._clock = clock

    def check_permissions(self, bucket: str, use_cache: bool = True, force_test: bool = False) -> PermissionResult:
        key = PermissionCache.make_key(self.provider, self.region, bucket, self.context)
        if use_cache and not force_test:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        result = PermissionResult(bucket=bucket, context=self.context, tested_at=self._clock())
        if self._test_read(bucket, result):
            test_key = self._test_key()
            if self._test_write(bucket, test_key, result):
                self._test_delete(bucket, test_key, result)

        self.cache.set(key, result)
        return result

    def _test_key(self) -> str:
        prefix = f"{self.context}-" if self.context else ""
        return f"{prefix}{TEST_KEY_STEM}{self._token_factory(8)}.txt"

    def _context_label(self) -> str:
        return f" (Context: {self.context})" if self.context else ""

    def _test_read(self, bucket: str, result: PermissionResult) -> bool:
        listing = self._objects.list_objects(bucket, 1, use_cache=False)
        result.read = listing.successful
        if not listing.successful:
            result.errors["read"] = listing.message
        return result.read

    def _test_write(self, bucket: str, test_key: str, result: PermissionResult) -> bool:
        content = (
            f"S3 permissions test file{self._context_label()}. Safe to delete. "
            f"Created: {self._clock().isoformat()}"
        )
        upload = self._objects.put_object(bucket, test_key, content, "text/plain", expires_minutes=1)
        result.write = upload.successful
        if not upload.successful:
            result.errors["write"] = upload.message
        return result.write

    def _test_delete(self, bucket: str, test_key: str, result: PermissionResult) -> bool:
        removed = self._objects.delete_object(bucket, test_key)
        result.delete = removed.successful
        if removed.successful:
            return True

        result.errors["delete"] = removed.message
        result.orphan_key = test_key
        LOGGER.warning("Permission test object %s/%s could not be deleted", bucket, test_key)
        note = (
            f"Failed to delete test file{self._context_label()}. Please manually delete "
            f"'{test_key}' and this note file. Created: {self._clock().isoformat()}"
        )
        noted = self._objects.put_object(bucket, f"{test_key}.note", note, "text/plain", expires_minutes=1)
        if not noted.successful:
            LOGGER.warning("Could not leave a cleanup note for %s: %s", test_key, noted.message)
        return False

    def can_read(self, bucket: str, use_cache: bool = True) -> bool:
        return self.check_permissions(bucket, use_cache).read

    def can_write(self, bucket: str, use_cache: bool = True) -> bool:
        return self.check_permissions(bucket, use_cache).write

    def can_upload(self, bucket: str, use_cache: bool = True) -> bool:
        return self.can_write(bucket, use_cache)

    def can_delete(self, bucket: str, use_cache: bool = True) -> bool:
        return self.check_permissions(bucket, use_cache).delete

    def has_full_access(self, bucket: str, use_cache: bool = True) -> bool:
        return self.check_permissions(bucket, use_cache).full_access

    def clear_permissions_cache(self, bucket: Optional[str] = None) -> int:
        return self.cache.clear(bucket)
