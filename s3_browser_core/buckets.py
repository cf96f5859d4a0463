from __future__ import annotations
"""Bucket listing, existence checks and bucket-level metadata."""
import logging
from typing import Sequence

from .cache import BUCKET_SCOPE, CacheLayer
from .responses import Err, Ok, Response, invalid_parameters
from .signer import Signer

LOGGER = logging.getLogger(__name__)

MISSING_BUCKET_CODES = frozenset({"NoSuchBucket", "NotFound", "404"})

# Cache key scope for the account-wide bucket listing.
ACCOUNT_BUCKET = ""


class BucketManager:
    """Read-only bucket operations with read-through caching."""

    def __init__(self, signer: Signer, cache: CacheLayer | None = None):
        self._signer = signer
        self._cache = cache if cache is not None else CacheLayer()

    def list_buckets(self, max_keys: int = 1000, prefix: str = "", marker: str = "", use_cache: bool = True) -> Response:
        return self._cache.fetch(
            "list_buckets",
            bucket=ACCOUNT_BUCKET,
            scope=(BUCKET_SCOPE, ""),
            params={"max_keys": max_keys, "prefix": prefix, "marker": marker},
            loader=lambda: self._signer.list_buckets(max_keys, prefix, marker),
            use_cache=use_cache,
        )

    def find_bucket(self, bucket: str, use_cache: bool = True):
        """Return the :class:`Bucket` named ``bucket`` from the listing, if any."""

        listing = self.list_buckets(use_cache=use_cache)
        if not listing.successful:
            return None
        for entry in listing.data.get("buckets", []):
            if entry.name == bucket:
                return entry
        return None

    def bucket_exists(self, bucket: str, use_cache: bool = True) -> Response:
        if not bucket:
            return invalid_parameters("Bucket name is required")
        return self._cache.fetch(
            "bucket_exists",
            bucket=bucket,
            scope=(BUCKET_SCOPE, bucket),
            params={},
            loader=lambda: self._check_bucket(bucket),
            use_cache=use_cache,
        )

    def _check_bucket(self, bucket: str) -> Response:
        result = self._signer.list_objects(bucket, 1, "", "/", "")
        if result.successful:
            return Ok(200, f'Bucket "{bucket}" exists', {"bucket": bucket, "exists": True})
        if result.code in MISSING_BUCKET_CODES:
            return Ok(404, f'Bucket "{bucket}" does not exist', {"bucket": bucket, "exists": False})
        return Err(
            result.status_code if result.status_code in (401, 403) else 400,
            "bucket_check_failed",
            f'Unable to determine if bucket "{bucket}" exists: {result.message}',
            {"bucket": bucket, "original_code": result.code},
        )

    def buckets_exist(self, buckets: Sequence[str], use_cache: bool = True) -> Response:
        """Check several buckets; 200 when all exist, 404 when none do, 207 otherwise."""

        buckets = list(buckets)
        if not buckets:
            return invalid_parameters("At least one bucket name is required")

        results: dict[str, dict[str, object]] = {}
        errors: list[dict[str, str]] = []
        existing = 0
        for bucket in buckets:
            if not bucket:
                errors.append({"bucket": bucket, "error": "Empty bucket name"})
                continue
            check = self.bucket_exists(bucket, use_cache)
            if not check.successful:
                errors.append({"bucket": bucket, "error": check.message})
                results[bucket] = {"exists": None, "error": check.message}
                continue
            exists = bool(check.data.get("exists"))
            existing += int(exists)
            results[bucket] = {"exists": exists, "error": None}

        data = {
            "buckets": results,
            "summary": {
                "total_checked": len(buckets),
                "existing": existing,
                "all_exist": existing == len(buckets),
                "none_exist": existing == 0 and not errors,
                "error_count": len(errors),
            },
            "failures": errors,
        }
        if existing == len(buckets):
            return Ok(200, "All buckets exist", data)
        if existing == 0 and not errors:
            return Ok(404, "None of the buckets exist", data)
        return Ok(207, "Mixed results for bucket existence", data)

    def get_bucket_location(self, bucket: str, use_cache: bool = True) -> Response:
        return self._bucket_lookup("get_bucket_location", bucket, use_cache)

    def get_bucket_versioning(self, bucket: str, use_cache: bool = True) -> Response:
        return self._bucket_lookup("get_bucket_versioning", bucket, use_cache)

    def get_bucket_policy(self, bucket: str, use_cache: bool = True) -> Response:
        return self._bucket_lookup("get_bucket_policy", bucket, use_cache)

    def get_bucket_lifecycle(self, bucket: str, use_cache: bool = True) -> Response:
        return self._bucket_lookup("get_bucket_lifecycle", bucket, use_cache)

    def _bucket_lookup(self, operation: str, bucket: str, use_cache: bool) -> Response:
        if not bucket:
            return invalid_parameters("Bucket name is required")
        method = getattr(self._signer, operation)
        return self._cache.fetch(
            operation,
            bucket=bucket,
            scope=(BUCKET_SCOPE, bucket),
            params={},
            loader=lambda: method(bucket),
            use_cache=use_cache,
        )
