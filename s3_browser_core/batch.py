from __future__ import annotations
"""Multi-object deletes using the backend's batch delete call."""
import logging
from typing import Any, Sequence

from .folders import FolderManager
from .hooks import HookChain, Veto
from .models import ListingPage
from .objects import ObjectStore
from .paths import normalize_folder, parent_folder
from .responses import Err, Ok, Response, invalid_parameters, multi_status, prevented
from .settings import MAX_BATCH_SIZE, ClientSettings
from .signer import Signer

LOGGER = logging.getLogger(__name__)


def chunked(keys: Sequence[str], size: int) -> list[list[str]]:
    return [list(keys[start:start + size]) for start in range(0, len(keys), size)]


class BatchOperations:
    """Deletes keys in chunks of at most :data:`MAX_BATCH_SIZE`."""

    def __init__(
        self,
        signer: Signer,
        objects: ObjectStore,
        folders: FolderManager,
        *,
        hooks: HookChain | None = None,
        settings: ClientSettings | None = None,
    ):
        self._signer = signer
        self._objects = objects
        self._folders = folders
        self._hooks = hooks or HookChain()
        self._settings = settings or ClientSettings()

    def _batch_size(self, requested: int | None) -> int:
        size = requested if requested is not None else self._settings.batch_size
        return max(1, min(int(size), MAX_BATCH_SIZE))

    def batch_delete_objects(self, bucket: str, keys: Sequence[str], batch_size: int | None = None) -> Response:
        """Delete ``keys`` with one batch request per chunk.

        Keys are chunked in the order given, duplicates included, so N keys
        always take ceil(N / batch_size) requests.
        """

        if not bucket:
            return invalid_parameters("Bucket name is required")
        keys = list(keys)
        if not keys:
            return invalid_parameters("At least one object key is required")

        params = self._hooks.before("batch_delete_objects", {"bucket": bucket, "keys": keys})
        if isinstance(params, Veto):
            return prevented(
                "deletion_prevented",
                params.reason or "Batch deletion was prevented by a hook",
                bucket=bucket,
                key_count=len(keys),
            )
        bucket, keys = params["bucket"], list(params["keys"])

        size = self._batch_size(batch_size)
        deleted_objects: list[dict[str, Any]] = []
        failed_objects: list[dict[str, Any]] = []
        chunks = chunked(keys, size)
        for index, chunk in enumerate(chunks, start=1):
            LOGGER.debug("Deleting batch %d/%d (%d keys) from %s", index, len(chunks), len(chunk), bucket)
            result = self._signer.delete_objects(bucket, chunk)
            if not result.successful:
                failed_objects.extend(
                    {"key": key, "code": result.error_code, "error": result.message} for key in chunk
                )
                continue
            deleted_objects.extend(result.data.get("deleted", []))
            failed_objects.extend(result.data.get("errors", []))

        if deleted_objects:
            self._objects.cache.invalidate_bucket(bucket)
        if failed_objects:
            LOGGER.warning("Batch delete in %s: %d of %d keys failed", bucket, len(failed_objects), len(keys))

        result = multi_status(
            success_count=len(deleted_objects),
            failure_count=len(failed_objects),
            success_message=f"Successfully deleted {len(deleted_objects)} objects",
            partial_message=f"Deleted {len(deleted_objects)} objects, {len(failed_objects)} failed",
            failure_message=f"Failed to delete all {len(keys)} objects",
            failure_code="batch_delete_failed",
            data={
                "bucket": bucket,
                "total_requested": len(keys),
                "success_count": len(deleted_objects),
                "error_count": len(failed_objects),
                "deleted_objects": deleted_objects,
                "failed_objects": failed_objects,
                "batches": len(chunks),
                "batch_size": size,
            },
        )
        return self._hooks.after("batch_delete_objects", result)

    def delete_folder_batch(self, bucket: str, folder_path: str, use_batch: bool = True) -> Response:
        """Recursively delete a folder, using batch deletes when worthwhile."""

        normalized = normalize_folder(folder_path or "")
        if not bucket or not normalized:
            return invalid_parameters("Bucket and folder path are required")

        params = self._hooks.before(
            "delete_folder",
            {"bucket": bucket, "folder_path": normalized, "recursive": True, "force": True},
        )
        if isinstance(params, Veto):
            return prevented(
                "deletion_prevented",
                params.reason or "Folder deletion was prevented by a hook",
                bucket=bucket,
                folder_path=normalized,
            )
        bucket, normalized = params["bucket"], normalize_folder(params["folder_path"] or "")

        listing = self._objects.list_all(bucket, normalized, delimiter="", use_cache=False)
        if not listing.successful:
            return Err(
                400,
                "folder_check_error",
                f'Failed to list folder "{normalized}"',
                {"bucket": bucket, "folder_path": normalized, "error": listing.message},
            )
        page: ListingPage = listing.data["page"]
        keys = page.keys()
        if normalized not in keys:
            placeholder = self._objects.object_exists(bucket, normalized, use_cache=False)
            if placeholder.successful and placeholder.data.get("exists"):
                keys.append(normalized)
        if not keys:
            return Err(
                404,
                "folder_not_found",
                f'Folder "{normalized}" does not exist',
                {"bucket": bucket, "folder_path": normalized},
            )

        if use_batch and len(keys) > 1:
            result = self.batch_delete_objects(bucket, keys)
            result = result.map(lambda data: {**data, "folder_path": normalized, "method": "batch"})
        else:
            # The delete_folder hooks already ran above.
            result = self._folders.remove_folder(bucket, normalized, recursive=True, force=True)
            result = result.map(lambda data: {**data, "method": "individual"})

        self._objects.delete_object(bucket, normalized)
        self._objects.cache.invalidate_subtree(bucket, normalized)
        self._objects.cache.invalidate_prefix(bucket, parent_folder(normalized))
        return self._hooks.after("delete_folder", result)

    def cleanup_folder_after_deletion(self, bucket: str, folder_path: str) -> Response:
        """Make sure a deleted folder no longer shows up in listings.

        Removes the placeholder, then deletes whatever is still listed under
        the folder.  Leftovers that cannot be removed are reported in
        ``failures``; the cleanup itself always succeeds.
        """

        normalized = normalize_folder(folder_path or "")
        if not bucket or not normalized:
            return invalid_parameters("Bucket and folder path are required")

        placeholder = self._objects.delete_object(bucket, normalized)
        removed: list[str] = []
        failures: list[dict[str, Any]] = []
        check = self._folders.folder_exists(bucket, normalized)
        if check.successful and check.data["exists"]:
            leftovers = self._objects.list_all(bucket, normalized, delimiter="", use_cache=False)
            if leftovers.successful:
                for key in leftovers.data["page"].keys():
                    deleted = self._objects.delete_object(bucket, key)
                    if deleted.successful:
                        removed.append(key)
                    else:
                        failures.append({"key": key, "code": deleted.error_code, "error": deleted.message})
            else:
                LOGGER.warning("Could not list leftovers of %s: %s", normalized, leftovers.message)
        elif not check.successful:
            LOGGER.warning("Could not re-check folder %s after deletion: %s", normalized, check.message)

        self._objects.cache.invalidate_subtree(bucket, normalized)
        self._objects.cache.invalidate_prefix(bucket, parent_folder(normalized))
        return Ok(
            200,
            f'Folder cleanup completed for "{normalized}"',
            {
                "bucket": bucket,
                "folder_path": normalized,
                "placeholder_deleted": placeholder.successful,
                "removed": removed,
                "failures": failures,
            },
        )
