from __future__ import annotations
"""Authenticated access to the storage backend.

The client core never signs requests itself: every backend call goes through
a :class:`Signer`.  :class:`BotoSigner` is the default implementation and
delegates signing and the wire protocol to boto3.
"""
import json
import logging
from typing import Any, Callable, Protocol, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .models import Bucket, CorsRule, ListingPage, ObjectMetadata, ObjectSummary
from .responses import Err, Ok, Response

LOGGER = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30


class Signer(Protocol):
    """Backend operations, each returning a :class:`Response`."""

    def list_buckets(self, max_keys: int = 1000, prefix: str = "", marker: str = "") -> Response:
        ...

    def list_objects(
        self,
        bucket: str,
        max_keys: int = 1000,
        prefix: str = "",
        delimiter: str = "/",
        continuation_token: str = "",
    ) -> Response:
        ...

    def head_object(self, bucket: str, key: str) -> Response:
        ...

    def delete_object(self, bucket: str, key: str) -> Response:
        ...

    def delete_objects(self, bucket: str, keys: Sequence[str]) -> Response:
        ...

    def copy_object(self, source_bucket: str, source_key: str, target_bucket: str, target_key: str) -> Response:
        ...

    def get_presigned_url(self, bucket: str, key: str, expires_minutes: int = 60) -> Response:
        ...

    def get_presigned_upload_url(
        self, bucket: str, key: str, expires_minutes: int = 15, content_type: str | None = None
    ) -> Response:
        ...

    def get_cors_configuration(self, bucket: str) -> Response:
        ...

    def set_cors_configuration(self, bucket: str, rules: Sequence[CorsRule]) -> Response:
        ...

    def delete_cors_configuration(self, bucket: str) -> Response:
        ...

    def get_bucket_location(self, bucket: str) -> Response:
        ...

    def get_bucket_versioning(self, bucket: str) -> Response:
        ...

    def get_bucket_policy(self, bucket: str) -> Response:
        ...

    def get_bucket_lifecycle(self, bucket: str) -> Response:
        ...


def error_from_exception(exc: Exception, operation: str) -> Err:
    """Translate a botocore exception into an :class:`Err`."""

    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {}) or {}
        metadata = exc.response.get("ResponseMetadata", {}) or {}
        code = str(error.get("Code") or "client_error")
        status = int(metadata.get("HTTPStatusCode") or 400)
        message = error.get("Message") or str(exc)
        return Err(status, code, message, {"operation": operation})
    return Err(400, "transport_error", str(exc), {"operation": operation})


def _strip_etag(value: str | None) -> str | None:
    return value.strip('"') if value else value


class BotoSigner:
    """:class:`Signer` backed by a boto3 S3 client."""

    def __init__(
        self,
        *,
        endpoint_url: str | None,
        access_key: str,
        secret_key: str,
        region: str = "us-east-1",
        addressing_style: str = "path",
        request_timeout: int = DEFAULT_REQUEST_TIMEOUT,
        client_factory: Callable[..., Any] | None = None,
    ):
        self._client_factory = client_factory or boto3.client
        self.region = region
        config = Config(
            signature_version="s3v4",
            region_name=region,
            connect_timeout=request_timeout,
            read_timeout=request_timeout,
            retries={"total_max_attempts": 1, "mode": "standard"},
            s3={"addressing_style": addressing_style},
        )
        self._client = self._client_factory(
            "s3",
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=config,
        )

    def _call(self, operation: str, fn: Callable[[], Response]) -> Response:
        try:
            return fn()
        except (ClientError, BotoCoreError) as exc:
            LOGGER.debug("%s failed: %s", operation, exc)
            return error_from_exception(exc, operation)

    def list_buckets(self, max_keys: int = 1000, prefix: str = "", marker: str = "") -> Response:
        def _list() -> Response:
            response = self._client.list_buckets()
            buckets = [
                Bucket(name=entry["Name"], creation_date=entry.get("CreationDate"), region=entry.get("BucketRegion"))
                for entry in response.get("Buckets", [])
                if entry["Name"].startswith(prefix) and (not marker or entry["Name"] > marker)
            ]
            truncated = len(buckets) > max_keys
            buckets = buckets[:max_keys]
            return Ok(
                200,
                f"Retrieved {len(buckets)} buckets",
                {
                    "buckets": buckets,
                    "truncated": truncated,
                    "next_marker": buckets[-1].name if truncated else "",
                    "owner": (response.get("Owner") or {}).get("DisplayName"),
                },
            )

        return self._call("list_buckets", _list)

    def list_objects(
        self,
        bucket: str,
        max_keys: int = 1000,
        prefix: str = "",
        delimiter: str = "/",
        continuation_token: str = "",
    ) -> Response:
        def _list() -> Response:
            list_params: dict[str, Any] = {"Bucket": bucket, "MaxKeys": max_keys}
            if prefix:
                list_params["Prefix"] = prefix
            if delimiter:
                list_params["Delimiter"] = delimiter
            if continuation_token:
                list_params["ContinuationToken"] = continuation_token
            response = self._client.list_objects_v2(**list_params)
            objects = [
                ObjectSummary(
                    key=entry["Key"],
                    size=int(entry.get("Size") or 0),
                    last_modified=entry.get("LastModified"),
                    etag=_strip_etag(entry.get("ETag")),
                    storage_class=entry.get("StorageClass"),
                )
                for entry in response.get("Contents", [])
            ]
            prefixes = [common["Prefix"] for common in response.get("CommonPrefixes", [])]
            truncated = bool(response.get("IsTruncated", False))
            page = ListingPage(
                objects=objects,
                prefixes=prefixes,
                truncated=truncated,
                continuation_token=(response.get("NextContinuationToken") or "") if truncated else "",
                prefix=prefix,
                delimiter=delimiter,
            )
            return Ok(200, f"Listed {len(objects)} objects and {len(prefixes)} prefixes", {"page": page})

        return self._call("list_objects", _list)

    def head_object(self, bucket: str, key: str) -> Response:
        def _head() -> Response:
            response = self._client.head_object(Bucket=bucket, Key=key, ChecksumMode="ENABLED")
            checksums = {
                "CRC32": response.get("ChecksumCRC32"),
                "CRC32C": response.get("ChecksumCRC32C"),
                "SHA1": response.get("ChecksumSHA1"),
                "SHA256": response.get("ChecksumSHA256"),
            }
            metadata = ObjectMetadata(
                content_length=response.get("ContentLength"),
                content_type=response.get("ContentType"),
                etag=_strip_etag(response.get("ETag")),
                last_modified=response.get("LastModified"),
                storage_class=response.get("StorageClass") or "STANDARD",
                checksum={name: value for name, value in checksums.items() if value},
                user_metadata=dict(response.get("Metadata") or {}),
            )
            return Ok(200, f"Retrieved metadata for {key}", {"metadata": metadata})

        return self._call("head_object", _head)

    def delete_object(self, bucket: str, key: str) -> Response:
        def _delete() -> Response:
            self._client.delete_object(Bucket=bucket, Key=key)
            return Ok(200, f"Deleted {key}", {"bucket": bucket, "key": key})

        return self._call("delete_object", _delete)

    def delete_objects(self, bucket: str, keys: Sequence[str]) -> Response:
        def _delete() -> Response:
            response = self._client.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": False},
            )
            deleted = [
                {"key": entry["Key"], "version_id": entry.get("VersionId")}
                for entry in response.get("Deleted", [])
            ]
            errors = [
                {"key": entry.get("Key"), "code": entry.get("Code"), "error": entry.get("Message")}
                for entry in response.get("Errors", [])
            ]
            return Ok(
                200,
                f"Deleted {len(deleted)} objects, {len(errors)} failed",
                {"deleted": deleted, "errors": errors},
            )

        return self._call("delete_objects", _delete)

    def copy_object(self, source_bucket: str, source_key: str, target_bucket: str, target_key: str) -> Response:
        def _copy() -> Response:
            response = self._client.copy_object(
                Bucket=target_bucket,
                Key=target_key,
                CopySource={"Bucket": source_bucket, "Key": source_key},
            )
            result = response.get("CopyObjectResult") or {}
            return Ok(
                200,
                f"Copied {source_key} to {target_key}",
                {
                    "source_bucket": source_bucket,
                    "source_key": source_key,
                    "target_bucket": target_bucket,
                    "target_key": target_key,
                    "etag": _strip_etag(result.get("ETag")),
                },
            )

        return self._call("copy_object", _copy)

    def get_presigned_url(self, bucket: str, key: str, expires_minutes: int = 60) -> Response:
        return self._presign("get_object", {"Bucket": bucket, "Key": key}, expires_minutes)

    def get_presigned_upload_url(
        self, bucket: str, key: str, expires_minutes: int = 15, content_type: str | None = None
    ) -> Response:
        params: dict[str, str] = {"Bucket": bucket, "Key": key}
        if content_type:
            params["ContentType"] = content_type
        return self._presign("put_object", params, expires_minutes)

    def _presign(self, client_method: str, params: dict[str, str], expires_minutes: int) -> Response:
        if expires_minutes <= 0:
            return Err(400, "invalid_parameters", "expires_minutes must be greater than zero")

        def _generate() -> Response:
            url = self._client.generate_presigned_url(
                client_method,
                Params=params,
                ExpiresIn=int(expires_minutes) * 60,
            )
            if not url:
                return Err(400, "presign_error", "Generated presigned URL is empty")
            return Ok(200, "Presigned URL generated", {"url": str(url), "expires_in": int(expires_minutes) * 60})

        return self._call("generate_presigned_url", _generate)

    def get_cors_configuration(self, bucket: str) -> Response:
        try:
            response = self._client.get_bucket_cors(Bucket=bucket)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "NoSuchCORSConfiguration":
                return Ok(200, "No CORS configuration", {"rules": [], "has_cors": False, "rules_count": 0})
            return error_from_exception(exc, "get_bucket_cors")
        except BotoCoreError as exc:
            return error_from_exception(exc, "get_bucket_cors")
        rules = [CorsRule.from_wire(rule) for rule in response.get("CORSRules", [])]
        return Ok(200, "CORS configuration retrieved", {"rules": rules, "has_cors": bool(rules), "rules_count": len(rules)})

    def set_cors_configuration(self, bucket: str, rules: Sequence[CorsRule]) -> Response:
        def _put() -> Response:
            self._client.put_bucket_cors(
                Bucket=bucket,
                CORSConfiguration={"CORSRules": [rule.to_wire() for rule in rules]},
            )
            return Ok(200, "CORS configuration updated", {"bucket": bucket, "rules_count": len(rules)})

        return self._call("put_bucket_cors", _put)

    def delete_cors_configuration(self, bucket: str) -> Response:
        def _delete() -> Response:
            self._client.delete_bucket_cors(Bucket=bucket)
            return Ok(200, "CORS configuration deleted", {"bucket": bucket})

        return self._call("delete_bucket_cors", _delete)

    def get_bucket_location(self, bucket: str) -> Response:
        def _location() -> Response:
            response = self._client.get_bucket_location(Bucket=bucket)
            # An empty constraint is the legacy encoding of us-east-1.
            location = response.get("LocationConstraint") or "us-east-1"
            return Ok(200, "Bucket location retrieved", {"bucket": bucket, "location": location})

        return self._call("get_bucket_location", _location)

    def get_bucket_versioning(self, bucket: str) -> Response:
        def _versioning() -> Response:
            response = self._client.get_bucket_versioning(Bucket=bucket)
            status = response.get("Status") or "Disabled"
            return Ok(
                200,
                "Bucket versioning retrieved",
                {
                    "bucket": bucket,
                    "status": status,
                    "enabled": status == "Enabled",
                    "mfa_delete": response.get("MFADelete") or "Disabled",
                },
            )

        return self._call("get_bucket_versioning", _versioning)

    def get_bucket_policy(self, bucket: str) -> Response:
        try:
            response = self._client.get_bucket_policy(Bucket=bucket)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "NoSuchBucketPolicy":
                return Ok(200, "No bucket policy", {"bucket": bucket, "has_policy": False, "policy": None})
            return error_from_exception(exc, "get_bucket_policy")
        except BotoCoreError as exc:
            return error_from_exception(exc, "get_bucket_policy")
        raw = response.get("Policy") or ""
        try:
            policy = json.loads(raw) if raw else None
        except json.JSONDecodeError:
            policy = raw
        return Ok(200, "Bucket policy retrieved", {"bucket": bucket, "has_policy": bool(raw), "policy": policy})

    def get_bucket_lifecycle(self, bucket: str) -> Response:
        try:
            response = self._client.get_bucket_lifecycle_configuration(Bucket=bucket)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "NoSuchLifecycleConfiguration":
                return Ok(200, "No lifecycle configuration", {"bucket": bucket, "has_lifecycle": False, "rules": []})
            return error_from_exception(exc, "get_bucket_lifecycle")
        except BotoCoreError as exc:
            return error_from_exception(exc, "get_bucket_lifecycle")
        rules = list(response.get("Rules", []))
        return Ok(200, "Lifecycle configuration retrieved", {"bucket": bucket, "has_lifecycle": bool(rules), "rules": rules})
