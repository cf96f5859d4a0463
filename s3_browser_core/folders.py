from __future__ import annotations
"""Folder semantics on top of a flat key space.

A folder is either a zero-byte placeholder object whose key ends with
``/`` or a prefix implied by the keys listed beneath it.  Creating a folder
writes a placeholder, deleting and renaming walk every key below the
prefix.
"""
from enum import Enum
import logging
from typing import Any

from .hooks import HookChain, Veto
from .models import ListingPage
from .objects import ObjectStore
from .paths import descendant_folders, folder_name, normalize_folder, parent_folder, relative_key
from .responses import Err, Ok, Response, invalid_parameters, multi_status, prevented
from .settings import ClientSettings

LOGGER = logging.getLogger(__name__)

FOLDER_CONTENT_TYPE = "application/x-directory"
INFO_PAGE_SIZE = 1000


class FolderState(Enum):
    NON_EXISTENT = "non_existent"
    PREFIX_ONLY = "prefix_only"
    WITH_PLACEHOLDER = "with_placeholder"


class FolderManager:
    """Create, inspect, delete and rename folders."""

    def __init__(
        self,
        objects: ObjectStore,
        *,
        hooks: HookChain | None = None,
        settings: ClientSettings | None = None,
    ):
        self._objects = objects
        self._hooks = hooks or HookChain()
        self._settings = settings or ClientSettings()

    @property
    def _cache(self):
        return self._objects.cache

    def folder_exists(self, bucket: str, folder_path: str, use_cache: bool = False) -> Response:
        """Report whether ``folder_path`` exists and how.

        The listing bypasses the cache unless ``use_cache`` is set since
        existence checks usually guard a mutation.
        """

        normalized = normalize_folder(folder_path or "")
        if not bucket or not normalized:
            return invalid_parameters("Bucket and folder path are required")

        listing = self._objects.list_objects(bucket, 1, normalized, "/", "", use_cache)
        if not listing.successful:
            return Err(
                400,
                "folder_check_error",
                "Failed to check folder existence",
                {"bucket": bucket, "folder_path": normalized, "error": listing.message},
            )

        page: ListingPage = listing.data["page"]
        has_placeholder = any(obj.key == normalized for obj in page.objects)
        if has_placeholder:
            state = FolderState.WITH_PLACEHOLDER
        elif not page.is_empty:
            state = FolderState.PREFIX_ONLY
        else:
            state = FolderState.NON_EXISTENT
        exists = state is not FolderState.NON_EXISTENT
        return Ok(
            200,
            f'Folder "{normalized}" exists' if exists else f'Folder "{normalized}" does not exist',
            {
                "bucket": bucket,
                "folder_path": normalized,
                "exists": exists,
                "state": state,
                "has_placeholder": has_placeholder,
                "has_objects": bool(page.objects),
                "has_subfolders": bool(page.prefixes),
            },
        )

    def create_folder(self, bucket: str, folder_path: str) -> Response:
        normalized = normalize_folder(folder_path or "")
        if not bucket or not normalized:
            return invalid_parameters("Bucket and folder path are required")

        check = self.folder_exists(bucket, normalized)
        if not check.successful:
            return check
        if check.data["exists"]:
            return Ok(
                200,
                f'Folder "{normalized}" already exists',
                {"bucket": bucket, "folder_path": normalized, "existed": True},
            )

        upload = self._objects.put_object(bucket, normalized, b"", FOLDER_CONTENT_TYPE)
        if not upload.successful:
            return Err(
                403 if upload.status_code == 403 else 400,
                "folder_creation_error",
                f'Failed to create folder "{normalized}"',
                {"bucket": bucket, "folder_path": normalized, "upload_error": upload.message},
            )
        self._cache.invalidate_prefix(bucket, normalized)
        return Ok(
            201,
            f'Folder "{normalized}" created successfully',
            {"bucket": bucket, "folder_path": normalized, "created": True, "existed": False},
        )

    def delete_folder(self, bucket: str, folder_path: str, recursive: bool = False, force: bool = False) -> Response:
        """Delete a folder and, depending on the flags, what it contains.

        Without ``recursive`` or ``force`` only an empty folder (its
        placeholder) is removed.  ``force`` also removes the objects directly
        inside the folder but leaves its subfolders alone; ``recursive``
        removes every descendant.
        """

        normalized = normalize_folder(folder_path or "")
        if not bucket or not normalized:
            return invalid_parameters("Bucket and folder path are required")

        params = self._hooks.before(
            "delete_folder",
            {"bucket": bucket, "folder_path": normalized, "recursive": recursive, "force": force},
        )
        if isinstance(params, Veto):
            return prevented(
                "deletion_prevented",
                params.reason or "Folder deletion was prevented by a hook",
                bucket=bucket,
                folder_path=normalized,
            )
        bucket = params["bucket"]
        normalized = normalize_folder(params["folder_path"] or "")
        recursive, force = bool(params["recursive"]), bool(params["force"])
        return self._hooks.after("delete_folder", self.remove_folder(bucket, normalized, recursive, force))

    def remove_folder(self, bucket: str, folder: str, recursive: bool = False, force: bool = False) -> Response:
        """Delete ``folder`` without running the ``delete_folder`` hooks.

        For callers that already consulted the hooks for this deletion.
        """

        folder = normalize_folder(folder or "")
        if not bucket or not folder:
            return invalid_parameters("Bucket and folder path are required")
        result = self._delete_tree(bucket, folder, recursive, force, depth=0)
        self._cache.invalidate_subtree(bucket, folder)
        self._cache.invalidate_prefix(bucket, parent_folder(folder))
        return result

    def _depth_exceeded(self, bucket: str, folder: str, depth: int) -> Err:
        return Err(
            400,
            "max_depth_exceeded",
            f"Folder nesting exceeds the maximum depth of {self._settings.max_folder_depth}",
            {"bucket": bucket, "folder_path": folder, "depth": depth},
        )

    def _delete_tree(self, bucket: str, folder: str, recursive: bool, force: bool, depth: int) -> Response:
        if depth > self._settings.max_folder_depth:
            return self._depth_exceeded(bucket, folder, depth)

        listing = self._objects.list_all(bucket, folder, delimiter="" if recursive else "/", use_cache=False)
        if not listing.successful:
            return Err(
                400,
                "folder_check_error",
                f'Failed to list folder "{folder}"',
                {"bucket": bucket, "folder_path": folder, "error": listing.message},
            )
        page: ListingPage = listing.data["page"]
        if page.is_empty:
            return Err(404, "folder_not_found", f'Folder "{folder}" does not exist', {"bucket": bucket, "folder_path": folder})

        has_placeholder = any(obj.key == folder for obj in page.objects)
        contents = [obj for obj in page.objects if obj.key != folder]
        subfolders = [prefix for prefix in page.prefixes if prefix != folder]

        if recursive:
            # A deep listing is flat; each "/" below the folder is one level.
            nesting = max((relative_key(obj.key, folder).count("/") for obj in contents), default=0)
            if depth + nesting > self._settings.max_folder_depth:
                return self._depth_exceeded(bucket, folder, depth + nesting)

        if not recursive and not force and (contents or subfolders):
            return Err(
                400,
                "folder_not_empty",
                f'Folder "{folder}" is not empty',
                {
                    "bucket": bucket,
                    "folder_path": folder,
                    "object_count": len(contents),
                    "subfolder_count": len(subfolders),
                },
            )

        deleted: list[str] = []
        failures: list[dict[str, Any]] = []
        skipped: list[str] = []

        if recursive:
            for subfolder in subfolders:
                child = self._delete_tree(bucket, subfolder, True, True, depth + 1)
                if child.error_code == "max_depth_exceeded":
                    return child
                deleted.extend(child.data.get("deleted", []))
                failures.extend(child.data.get("failures", []))
                skipped.extend(child.data.get("skipped", []))
                if not child.successful and not child.data.get("failures"):
                    failures.append({"key": subfolder, "code": child.error_code, "error": child.message})

        for obj in contents:
            params = self._hooks.before("delete_folder_object", {"bucket": bucket, "key": obj.key})
            if isinstance(params, Veto):
                skipped.append(obj.key)
                continue
            key = params["key"]
            removed = self._objects.delete_object(params["bucket"], key)
            if removed.successful:
                deleted.append(key)
            else:
                failures.append({"key": key, "code": removed.error_code, "error": removed.message})

        # The placeholder is removed last so the folder does not linger in
        # listings; its outcome does not count towards the totals.
        placeholder = self._objects.delete_object(bucket, folder)
        if not placeholder.successful and has_placeholder:
            LOGGER.warning("Placeholder %s could not be removed: %s", folder, placeholder.message)

        data = {
            "bucket": bucket,
            "folder_path": folder,
            "recursive": recursive,
            "deleted": deleted,
            "deleted_count": len(deleted),
            "failures": failures,
            "failed_count": len(failures),
            "skipped": skipped,
            "placeholder_deleted": placeholder.successful,
            "skipped_prefixes": [] if recursive else subfolders,
        }
        if not contents and not subfolders:
            if placeholder.successful:
                return Ok(200, f'Folder "{folder}" deleted successfully', data)
            return Err(400, "folder_deletion_error", f'Failed to delete folder "{folder}"', data)

        if failures:
            LOGGER.warning("Deleting %s left %d objects behind", folder, len(failures))
        return multi_status(
            success_count=len(deleted),
            failure_count=len(failures),
            success_message=f'Folder "{folder}" deleted successfully',
            partial_message=f'Folder "{folder}" partially deleted: {len(deleted)} deleted, {len(failures)} failed',
            failure_message=f'Failed to delete any objects in folder "{folder}"',
            failure_code="folder_deletion_error",
            data=data,
        )

    def rename_folder(self, bucket: str, source_path: str, target_path: str, recursive: bool = True) -> Response:
        """Move every key under ``source_path`` to ``target_path``.

        Each object is copied first and its source deleted only after the
        copy succeeded.  A failed delete leaves the object at both
        locations; it is reported as a warning and still counts as renamed.
        """

        source = normalize_folder(source_path or "")
        target = normalize_folder(target_path or "")
        problem = _rename_paths_problem(bucket, source, target)
        if problem is not None:
            return problem

        params = self._hooks.before(
            "rename_folder",
            {"bucket": bucket, "source": source, "target": target, "recursive": recursive},
        )
        if isinstance(params, Veto):
            return prevented(
                "update_prevented",
                params.reason or "Folder rename was prevented by a hook",
                bucket=bucket,
                source=source,
                target=target,
            )
        bucket = params["bucket"]
        source = normalize_folder(params["source"] or "")
        target = normalize_folder(params["target"] or "")
        recursive = bool(params["recursive"])
        problem = _rename_paths_problem(bucket, source, target)
        if problem is not None:
            return problem

        listing = self._objects.list_all(bucket, source, delimiter="" if recursive else "/", use_cache=False)
        if not listing.successful:
            return Err(
                400,
                "rename_prefix_error",
                f'Failed to list objects under "{source}"',
                {"bucket": bucket, "source": source, "error": listing.message},
            )
        page: ListingPage = listing.data["page"]
        if not page.objects:
            return Ok(
                200,
                "No objects found to rename",
                {"bucket": bucket, "source": source, "target": target, "renamed": [], "success_count": 0, "failure_count": 0},
            )

        renamed: list[dict[str, str]] = []
        failures: list[dict[str, Any]] = []
        warnings: list[dict[str, Any]] = []
        skipped: list[str] = []
        for obj in page.objects:
            params = self._hooks.before(
                "rename_folder_object",
                {"bucket": bucket, "source_key": obj.key, "target_key": target + relative_key(obj.key, source)},
            )
            if isinstance(params, Veto):
                skipped.append(obj.key)
                continue
            source_key, target_key = params["source_key"], params["target_key"]
            copied = self._objects.copy_object(bucket, source_key, bucket, target_key)
            if not copied.successful:
                failures.append(
                    {"key": source_key, "target_key": target_key, "code": copied.error_code, "error": copied.message}
                )
                continue
            removed = self._objects.delete_object(bucket, source_key)
            if not removed.successful:
                LOGGER.warning("Copied %s to %s but could not delete the source", source_key, target_key)
                warnings.append(
                    {"key": source_key, "target_key": target_key, "code": removed.error_code, "error": removed.message}
                )
            renamed.append({"source_key": source_key, "target_key": target_key})

        for prefix in (source, target):
            self._cache.invalidate_subtree(bucket, prefix)
            self._cache.invalidate_prefix(bucket, parent_folder(prefix))

        result = multi_status(
            success_count=len(renamed),
            failure_count=len(failures),
            success_message=f'Renamed "{source}" to "{target}"',
            partial_message=f'Partially renamed "{source}" to "{target}": {len(renamed)} moved, {len(failures)} failed',
            failure_message=f'Failed to rename any objects under "{source}"',
            failure_code="rename_prefix_error",
            data={
                "bucket": bucket,
                "source": source,
                "target": target,
                "renamed": renamed,
                "success_count": len(renamed),
                "failure_count": len(failures),
                "failures": failures,
                "warnings": warnings,
                "skipped": skipped,
                "skipped_prefixes": [] if recursive else list(page.prefixes),
            },
        )
        return self._hooks.after("rename_folder", result)

    rename_prefix = rename_folder

    def get_folder_info(self, bucket: str, folder_path: str, recursive: bool = False, use_cache: bool = True) -> Response:
        """Summarize one listing page of a folder.

        Only the first page (up to 1000 keys) is inspected; ``is_complete``
        is false when the listing was truncated.
        """

        normalized = normalize_folder(folder_path or "")
        if not bucket or not normalized:
            return invalid_parameters("Bucket and folder path are required")

        listing = self._objects.list_objects(
            bucket, INFO_PAGE_SIZE, normalized, "" if recursive else "/", "", use_cache
        )
        if not listing.successful:
            return listing
        page: ListingPage = listing.data["page"]
        if page.is_empty:
            return Err(
                404,
                "folder_not_found",
                f'Folder "{normalized}" does not exist',
                {"bucket": bucket, "folder_path": normalized},
            )

        files = [obj for obj in page.objects if obj.key != normalized]
        if recursive:
            subfolder_count = len(descendant_folders(page.keys(), normalized))
        else:
            subfolder_count = len(page.prefixes)
        modified = [obj.last_modified for obj in files if obj.last_modified is not None]
        return Ok(
            200,
            f'Folder information for "{normalized}"',
            {
                "bucket": bucket,
                "folder_path": normalized,
                "name": folder_name(normalized),
                "parent": parent_folder(normalized),
                "object_count": len(files),
                "subfolder_count": subfolder_count,
                "total_size": sum(obj.size for obj in files),
                "last_modified": max(modified) if modified else None,
                "has_placeholder": len(files) != len(page.objects),
                "is_complete": not page.truncated,
                "recursive": recursive,
            },
        )


def _rename_paths_problem(bucket: str, source: str, target: str) -> Err | None:
    if not bucket or not source or not target:
        return invalid_parameters("Bucket, source and target paths are required")
    if source == target:
        return invalid_parameters("Source and target paths must differ", source=source, target=target)
    if target.startswith(source):
        return invalid_parameters("Target path cannot be inside the source path", source=source, target=target)
    return None
