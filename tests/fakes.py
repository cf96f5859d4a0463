"""In-memory stand-ins for the signer and HTTP transport used by the tests."""
from datetime import datetime, timedelta, timezone
from urllib.parse import quote, unquote, urlparse

from s3_browser_core.models import Bucket, ListingPage, ObjectMetadata, ObjectSummary
from s3_browser_core.responses import Err, Ok
from s3_browser_core.transport import TransportError, TransportResponse

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeSigner:
    """Bucket store kept in dictionaries, with call recording and failure injection.

    ``fail_keys`` maps an operation name to keys that fail individually,
    ``fail_calls`` maps an operation name to an :class:`Err` returned for
    the whole call.
    """

    def __init__(self, buckets=None):
        self.store = {name: {} for name in (buckets or ["bucket"])}
        self.cors = {}
        self.calls = []
        self.fail_keys = {}
        self.fail_calls = {}
        self._tick = 0

    def put(self, bucket, key, body=b"", content_type="application/octet-stream"):
        self._tick += 1
        self.store.setdefault(bucket, {})[key] = {
            "body": body,
            "content_type": content_type,
            "last_modified": BASE_TIME + timedelta(minutes=self._tick),
        }

    def keys(self, bucket):
        return sorted(self.store.get(bucket, {}))

    def count(self, operation):
        return sum(1 for name, _ in self.calls if name == operation)

    def _record(self, operation, *args):
        self.calls.append((operation, args))
        return self.fail_calls.get(operation)

    def _missing_bucket(self, bucket):
        if bucket not in self.store:
            return Err(404, "NoSuchBucket", "The specified bucket does not exist")
        return None

    def list_buckets(self, max_keys=1000, prefix="", marker=""):
        failure = self._record("list_buckets")
        if failure:
            return failure
        buckets = [Bucket(name=name, creation_date=BASE_TIME) for name in sorted(self.store) if name.startswith(prefix)]
        return Ok(200, "Retrieved buckets", {"buckets": buckets[:max_keys], "truncated": False})

    def list_objects(self, bucket, max_keys=1000, prefix="", delimiter="/", continuation_token=""):
        failure = self._record("list_objects", bucket, prefix, delimiter, continuation_token, max_keys)
        if failure:
            return failure
        missing = self._missing_bucket(bucket)
        if missing:
            return missing

        entries = []
        seen_prefixes = set()
        for key in self.keys(bucket):
            if not key.startswith(prefix):
                continue
            remainder = key[len(prefix):]
            if delimiter and delimiter in remainder:
                common = prefix + remainder.split(delimiter, 1)[0] + delimiter
                if common not in seen_prefixes:
                    seen_prefixes.add(common)
                    entries.append(("prefix", common))
                continue
            entries.append(("object", key))

        start = int(continuation_token or 0)
        window = entries[start:start + max_keys]
        truncated = start + max_keys < len(entries)
        objects = []
        prefixes = []
        for kind, value in window:
            if kind == "prefix":
                prefixes.append(value)
            else:
                item = self.store[bucket][value]
                objects.append(
                    ObjectSummary(
                        key=value,
                        size=len(item["body"]),
                        last_modified=item["last_modified"],
                        etag="etag-" + value,
                        storage_class="STANDARD",
                    )
                )
        page = ListingPage(
            objects=objects,
            prefixes=prefixes,
            truncated=truncated,
            continuation_token=str(start + max_keys) if truncated else "",
            prefix=prefix,
            delimiter=delimiter,
        )
        return Ok(200, "Listed", {"page": page})

    def head_object(self, bucket, key):
        failure = self._record("head_object", bucket, key)
        if failure:
            return failure
        item = self.store.get(bucket, {}).get(key)
        if item is None:
            return Err(404, "NotFound", "Not Found")
        metadata = ObjectMetadata(
            content_length=len(item["body"]),
            content_type=item["content_type"],
            etag="etag-" + key,
            last_modified=item["last_modified"],
            storage_class="STANDARD",
        )
        return Ok(200, "Retrieved metadata", {"metadata": metadata})

    def delete_object(self, bucket, key):
        failure = self._record("delete_object", bucket, key)
        if failure:
            return failure
        if key in self.fail_keys.get("delete_object", ()):
            return Err(403, "AccessDenied", f"Access denied for {key}")
        self.store.get(bucket, {}).pop(key, None)
        return Ok(200, f"Deleted {key}", {"bucket": bucket, "key": key})

    def delete_objects(self, bucket, keys):
        failure = self._record("delete_objects", bucket, list(keys))
        if failure:
            return failure
        deleted = []
        errors = []
        for key in keys:
            if key in self.fail_keys.get("delete_objects", ()):
                errors.append({"key": key, "code": "AccessDenied", "error": "Access Denied"})
                continue
            self.store.get(bucket, {}).pop(key, None)
            deleted.append({"key": key, "version_id": None})
        return Ok(200, "Batch delete finished", {"deleted": deleted, "errors": errors})

    def copy_object(self, source_bucket, source_key, target_bucket, target_key):
        failure = self._record("copy_object", source_bucket, source_key, target_bucket, target_key)
        if failure:
            return failure
        if source_key in self.fail_keys.get("copy_object", ()):
            return Err(500, "InternalError", f"Copy failed for {source_key}")
        item = self.store.get(source_bucket, {}).get(source_key)
        if item is None:
            return Err(404, "NoSuchKey", "The specified key does not exist.")
        self.store.setdefault(target_bucket, {})[target_key] = dict(item)
        return Ok(200, "Copied", {"source_key": source_key, "target_key": target_key})

    def get_presigned_url(self, bucket, key, expires_minutes=60):
        failure = self._record("get_presigned_url", bucket, key, expires_minutes)
        if failure:
            return failure
        return Ok(200, "Presigned", {"url": f"https://fake.local/{bucket}/{quote(key)}", "expires_in": expires_minutes * 60})

    def get_presigned_upload_url(self, bucket, key, expires_minutes=15, content_type=None):
        failure = self._record("get_presigned_upload_url", bucket, key, expires_minutes, content_type)
        if failure:
            return failure
        return Ok(
            200,
            "Presigned",
            {"url": f"https://fake.local/{bucket}/{quote(key)}?expires={expires_minutes}", "expires_in": expires_minutes * 60},
        )

    def get_cors_configuration(self, bucket):
        failure = self._record("get_cors_configuration", bucket)
        if failure:
            return failure
        rules = list(self.cors.get(bucket, []))
        return Ok(200, "CORS", {"rules": rules, "has_cors": bool(rules), "rules_count": len(rules)})

    def set_cors_configuration(self, bucket, rules):
        failure = self._record("set_cors_configuration", bucket, list(rules))
        if failure:
            return failure
        self.cors[bucket] = list(rules)
        return Ok(200, "CORS configuration updated", {"bucket": bucket, "rules_count": len(rules)})

    def delete_cors_configuration(self, bucket):
        failure = self._record("delete_cors_configuration", bucket)
        if failure:
            return failure
        self.cors.pop(bucket, None)
        return Ok(200, "CORS configuration deleted", {"bucket": bucket})

    def get_bucket_location(self, bucket):
        failure = self._record("get_bucket_location", bucket)
        return failure or Ok(200, "Location", {"bucket": bucket, "location": "eu-west-1"})

    def get_bucket_versioning(self, bucket):
        failure = self._record("get_bucket_versioning", bucket)
        return failure or Ok(200, "Versioning", {"bucket": bucket, "status": "Disabled", "enabled": False})

    def get_bucket_policy(self, bucket):
        failure = self._record("get_bucket_policy", bucket)
        return failure or Ok(200, "No bucket policy", {"bucket": bucket, "has_policy": False, "policy": None})

    def get_bucket_lifecycle(self, bucket):
        failure = self._record("get_bucket_lifecycle", bucket)
        return failure or Ok(200, "No lifecycle", {"bucket": bucket, "has_lifecycle": False, "rules": []})


class FakeTransport:
    """Applies presigned PUTs to a :class:`FakeSigner` store."""

    def __init__(self, signer, status_code=200, error=None, fail_keys=()):
        self.signer = signer
        self.status_code = status_code
        self.error = error
        self.fail_keys = set(fail_keys)
        self.requests = []

    def put(self, url, body, headers, timeout=300.0):
        self.requests.append({"url": url, "body": body, "headers": dict(headers), "timeout": timeout})
        if self.error is not None:
            raise TransportError(self.error)
        parsed = urlparse(url)
        bucket, _, key = parsed.path.lstrip("/").partition("/")
        key = unquote(key)
        if key in self.fail_keys:
            return TransportResponse(status_code=403, body=b"<Error>AccessDenied</Error>")
        if 200 <= self.status_code < 300:
            self.signer.put(bucket, key, body, headers.get("Content-Type", "application/octet-stream"))
        return TransportResponse(status_code=self.status_code)
