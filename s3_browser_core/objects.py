from __future__ import annotations
"""Object primitives: listing, existence checks, uploads, deletes and copies."""
import logging
import mimetypes
import os
from pathlib import Path
from typing import Iterator, Sequence

from .cache import EXISTS_SCOPE, OBJECTS_SCOPE, CacheLayer
from .hooks import HookChain, Veto
from .models import ListingPage, ObjectMetadata
from .paths import containing_prefix
from .responses import Err, Ok, Response, invalid_parameters, prevented
from .settings import ClientSettings
from .signer import Signer
from .transport import HttpTransport, TransportError

LOGGER = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404", "not_found", "object_not_found"})
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def is_not_found(response: Err) -> bool:
    """True only for an explicit not-found signal from the backend."""

    return response.status_code == 404 or response.code in NOT_FOUND_CODES


class ObjectIterator:
    """Lazy, finite iteration over every entry of a listing.

    Yields ``("object", ObjectSummary)`` and ``("prefix", str)`` pairs and
    follows continuation tokens until the listing is no longer truncated.
    A failed page ends iteration and is kept on :attr:`error`.  There is no
    rewind: build a new iterator to start over.
    """

    def __init__(
        self,
        store: "ObjectStore",
        bucket: str,
        *,
        prefix: str = "",
        delimiter: str = "/",
        max_keys: int = 1000,
        use_cache: bool = True,
    ):
        self._store = store
        self.bucket = bucket
        self.prefix = prefix
        self.delimiter = delimiter
        self.max_keys = max_keys
        self.use_cache = use_cache
        self.continuation_token = ""
        self.pages_fetched = 0
        self.exhausted = False
        self.error: Err | None = None
        self._buffer: list[tuple[str, object]] = []

    def next_page(self) -> ListingPage | None:
        if self.exhausted:
            return None
        result = self._store.list_objects(
            self.bucket,
            max_keys=self.max_keys,
            prefix=self.prefix,
            delimiter=self.delimiter,
            continuation_token=self.continuation_token,
            use_cache=self.use_cache,
        )
        if not result.successful:
            LOGGER.warning("Listing %s/%s stopped: %s", self.bucket, self.prefix, result.message)
            self.error = result
            self.exhausted = True
            return None
        page: ListingPage = result.data["page"]
        self.pages_fetched += 1
        self.continuation_token = page.continuation_token if page.truncated else ""
        if not self.continuation_token:
            self.exhausted = True
        return page

    def __iter__(self) -> Iterator[tuple[str, object]]:
        return self

    def __next__(self) -> tuple[str, object]:
        while not self._buffer:
            page = self.next_page()
            if page is None:
                raise StopIteration
            self._buffer.extend(("object", obj) for obj in page.objects)
            self._buffer.extend(("prefix", prefix) for prefix in page.prefixes)
        return self._buffer.pop(0)


class ObjectStore:
    """Bucket/object primitives with read-through caching."""

    def __init__(
        self,
        signer: Signer,
        *,
        transport: HttpTransport,
        cache: CacheLayer | None = None,
        hooks: HookChain | None = None,
        settings: ClientSettings | None = None,
    ):
        self._signer = signer
        self._transport = transport
        self._cache = cache if cache is not None else CacheLayer()
        self._hooks = hooks or HookChain()
        self._settings = settings or ClientSettings()

    @property
    def cache(self) -> CacheLayer:
        return self._cache

    def list_objects(
        self,
        bucket: str,
        max_keys: int = 1000,
        prefix: str = "",
        delimiter: str = "/",
        continuation_token: str = "",
        use_cache: bool = True,
    ) -> Response:
        if not bucket:
            return invalid_parameters("Bucket name is required")
        params = {
            "max_keys": max_keys,
            "prefix": prefix,
            "delimiter": delimiter,
            "continuation_token": continuation_token,
        }
        return self._cache.fetch(
            "list_objects",
            bucket=bucket,
            scope=(OBJECTS_SCOPE, prefix),
            params=params,
            loader=lambda: self._signer.list_objects(bucket, max_keys, prefix, delimiter, continuation_token),
            use_cache=use_cache,
        )

    def get_objects_iterator(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "/",
        max_keys: int = 1000,
        use_cache: bool = True,
    ) -> ObjectIterator:
        return ObjectIterator(
            self,
            bucket,
            prefix=prefix,
            delimiter=delimiter,
            max_keys=max_keys,
            use_cache=use_cache,
        )

    def list_all(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        use_cache: bool = False,
    ) -> Response:
        """Collect every page of a listing into a single :class:`ListingPage`."""

        iterator = self.get_objects_iterator(bucket, prefix, delimiter, use_cache=use_cache)
        combined = ListingPage(prefix=prefix, delimiter=delimiter)
        while True:
            page = iterator.next_page()
            if page is None:
                break
            combined.objects.extend(page.objects)
            combined.prefixes.extend(page.prefixes)
        if iterator.error is not None:
            return iterator.error
        return Ok(200, f"Listed {len(combined.objects)} objects", {"page": combined, "pages": iterator.pages_fetched})

    def object_exists(self, bucket: str, key: str, use_cache: bool = True) -> Response:
        if not bucket or not key:
            return invalid_parameters("Bucket and object key are required")
        return self._cache.fetch(
            "object_exists",
            bucket=bucket,
            scope=(EXISTS_SCOPE, key),
            params={"key": key},
            loader=lambda: self._probe_existence(bucket, key),
            use_cache=use_cache,
        )

    def _probe_existence(self, bucket: str, key: str) -> Response:
        head = self._signer.head_object(bucket, key)
        if head.successful:
            return Ok(
                200,
                f'Object "{key}" exists in bucket "{bucket}"',
                {"bucket": bucket, "key": key, "exists": True, "metadata": head.data.get("metadata")},
            )
        if is_not_found(head):
            return Ok(
                404,
                f'Object "{key}" does not exist in bucket "{bucket}"',
                {"bucket": bucket, "key": key, "exists": False, "original_code": head.code},
            )
        return Err(
            head.status_code if head.status_code in (401, 403) else 400,
            "object_check_failed",
            f'Unable to determine if object "{key}" exists in bucket "{bucket}": {head.message}',
            {"bucket": bucket, "key": key, "original_code": head.code, "original_message": head.message},
        )

    def objects_exist(self, bucket: str, keys: Sequence[str], use_cache: bool = True) -> Response:
        if not bucket:
            return invalid_parameters("Bucket name is required")
        if not keys:
            return invalid_parameters("At least one object key is required")

        results: dict[str, dict[str, object]] = {}
        errors: list[dict[str, str]] = []
        existing = 0
        for key in keys:
            check = self.object_exists(bucket, key, use_cache)
            if not check.successful:
                errors.append({"key": key, "error": check.message})
                results[key] = {"exists": None, "error": check.message, "metadata": None}
                continue
            exists = bool(check.data.get("exists"))
            existing += int(exists)
            results[key] = {
                "exists": exists,
                "error": None,
                "metadata": check.data.get("metadata") if exists else None,
            }

        data = {
            "bucket": bucket,
            "objects": results,
            "summary": {
                "total_checked": len(keys),
                "existing": existing,
                "all_exist": existing == len(keys),
                "none_exist": existing == 0 and not errors,
                "error_count": len(errors),
            },
            "failures": errors,
        }
        if existing == len(keys):
            return Ok(200, f'All objects exist in bucket "{bucket}"', data)
        if existing == 0 and not errors:
            return Ok(404, f'None of the objects exist in bucket "{bucket}"', data)
        return Ok(207, f'Mixed results for object existence in bucket "{bucket}"', data)

    def get_object_info(self, bucket: str, key: str, use_cache: bool = True) -> Response:
        exists = self.object_exists(bucket, key, use_cache)
        if not exists.successful:
            return exists
        if not exists.data.get("exists"):
            return Err(
                404,
                "object_not_found",
                f'Object "{key}" does not exist in bucket "{bucket}"',
                {"bucket": bucket, "key": key},
            )
        metadata: ObjectMetadata | None = exists.data.get("metadata")
        filename = key.rstrip("/").rsplit("/", 1)[-1]
        _, dot, extension = filename.rpartition(".")
        return Ok(
            200,
            f'Object information for "{key}" in bucket "{bucket}"',
            {
                "bucket": bucket,
                "key": key,
                "exists": True,
                "filename": filename,
                "directory": containing_prefix(key),
                "extension": extension.lower() if dot else "",
                "metadata": metadata,
                "is_folder_placeholder": key.endswith("/")
                and metadata is not None
                and metadata.content_type == "application/x-directory",
            },
        )

    def get_presigned_url(self, bucket: str, key: str, expires_minutes: int = 60) -> Response:
        if not bucket or not key:
            return invalid_parameters("Bucket and object key are required")
        return self._signer.get_presigned_url(bucket, key, expires_minutes)

    def get_presigned_upload_url(
        self, bucket: str, key: str, expires_minutes: int = 15, content_type: str | None = None
    ) -> Response:
        if not bucket or not key:
            return invalid_parameters("Bucket and object key are required")
        return self._signer.get_presigned_upload_url(bucket, key, expires_minutes, content_type)

    def put_object(
        self,
        bucket: str,
        key: str,
        content_or_path: bytes | str | os.PathLike,
        content_type: str | None = None,
        *,
        is_path: bool = False,
        expires_minutes: int | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> Response:
        """Upload content (or a local file) through a presigned PUT.

        ``content_or_path`` is a local path when it is a :class:`os.PathLike`
        or when ``is_path`` is true; otherwise it is the payload itself.
        """

        if not bucket or not key:
            return invalid_parameters("Bucket and object key are required")
        params = self._hooks.before("put_object", {"bucket": bucket, "key": key, "content_type": content_type})
        if isinstance(params, Veto):
            return prevented("operation_prevented", params.reason or "Upload was prevented by a hook", bucket=bucket, key=key)
        bucket, key, content_type = params["bucket"], params["key"], params["content_type"]

        from_path = is_path or isinstance(content_or_path, os.PathLike)
        if from_path:
            path = Path(content_or_path)  # type: ignore[arg-type]
            try:
                body = path.read_bytes()
            except OSError as exc:
                return Err(400, "file_read_error", f"Failed to read file: {exc}", {"file_path": str(path)})
            guessed = mimetypes.guess_type(path.name)[0]
        else:
            body = content_or_path.encode("utf-8") if isinstance(content_or_path, str) else bytes(content_or_path)
            guessed = mimetypes.guess_type(key)[0]
        content_type = content_type or guessed or DEFAULT_CONTENT_TYPE

        expiry = expires_minutes or self._settings.upload_url_expiry_minutes
        upload_url = self._signer.get_presigned_upload_url(bucket, key, expiry, content_type)
        if not upload_url.successful:
            return Err(
                400,
                "upload_url_error",
                "Failed to generate upload URL",
                {"bucket": bucket, "key": key, "error": upload_url.message},
            )

        headers = {"Content-Type": content_type, "Content-Length": str(len(body))}
        headers.update(extra_headers or {})
        try:
            sent = self._transport.put(
                upload_url.data["url"],
                body,
                headers,
                timeout=self._settings.upload_timeout,
            )
        except TransportError as exc:
            LOGGER.warning("Upload of %s/%s failed: %s", bucket, key, exc)
            return Err(400, "transport_error", str(exc), {"bucket": bucket, "key": key})

        if not sent.ok:
            return Err(
                sent.status_code if sent.status_code >= 400 else 400,
                "upload_error",
                f"Upload failed with status code: {sent.status_code}",
                {"bucket": bucket, "key": key, "body": sent.body.decode("utf-8", "replace")},
            )

        self._cache.invalidate_key(bucket, key)
        result = Ok(
            sent.status_code,
            "File uploaded successfully",
            {"bucket": bucket, "key": key, "size": len(body), "content_type": content_type},
        )
        return self._hooks.after("put_object", result)

    def delete_object(self, bucket: str, key: str) -> Response:
        if not bucket or not key:
            return invalid_parameters("Bucket and object key are required")
        params = self._hooks.before("delete_object", {"bucket": bucket, "key": key})
        if isinstance(params, Veto):
            return prevented("deletion_prevented", params.reason or "Deletion was prevented by a hook", bucket=bucket, key=key)
        bucket, key = params["bucket"], params["key"]

        result = self._signer.delete_object(bucket, key)
        LOGGER.debug("delete_object %s/%s -> %s", bucket, key, result.status_code)
        if result.successful:
            self._cache.invalidate_key(bucket, key)
        return self._hooks.after("delete_object", result)

    def copy_object(self, source_bucket: str, source_key: str, target_bucket: str, target_key: str) -> Response:
        if not source_bucket or not source_key or not target_bucket or not target_key:
            return invalid_parameters("Source and target bucket/key are required")
        params = self._hooks.before(
            "copy_object",
            {
                "source_bucket": source_bucket,
                "source_key": source_key,
                "target_bucket": target_bucket,
                "target_key": target_key,
            },
        )
        if isinstance(params, Veto):
            return prevented("operation_prevented", params.reason or "Copy was prevented by a hook", source_key=source_key)

        result = self._signer.copy_object(
            params["source_bucket"], params["source_key"], params["target_bucket"], params["target_key"]
        )
        LOGGER.debug("copy_object %s -> %s: %s", params["source_key"], params["target_key"], result.status_code)
        if result.successful:
            self._cache.invalidate_key(params["target_bucket"], params["target_key"])
        return self._hooks.after("copy_object", result)

    def rename_object(self, bucket: str, source_key: str, target_key: str) -> Response:
        if source_key == target_key:
            return invalid_parameters("Source and target keys must differ")
        copied = self.copy_object(bucket, source_key, bucket, target_key)
        if not copied.successful:
            return Err(
                copied.status_code if copied.status_code == 403 else 400,
                "rename_error",
                "Failed to copy object during rename operation",
                {"source_key": source_key, "target_key": target_key, "error": copied.message},
            )
        deleted = self.delete_object(bucket, source_key)
        if not deleted.successful:
            LOGGER.warning("Renamed %s to %s but the original could not be deleted", source_key, target_key)
            return Ok(
                207,
                "Object renamed, but failed to delete the original",
                {
                    "source_key": source_key,
                    "target_key": target_key,
                    "warning": "The object was copied but the original could not be deleted",
                    "error": deleted.message,
                },
            )
        return Ok(200, "Object renamed successfully", {"source_key": source_key, "target_key": target_key})
