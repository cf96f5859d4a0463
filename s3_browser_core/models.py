from __future__ import annotations
"""Data models representing buckets, listings and access policy."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class Bucket:
    """A bucket as reported by a bucket listing."""

    name: str
    region: Optional[str] = None
    creation_date: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectSummary:
    """A single entry of an object listing."""

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    storage_class: Optional[str] = None

    @property
    def is_folder_placeholder(self) -> bool:
        return self.key.endswith("/")

    @property
    def name(self) -> str:
        return self.key.rstrip("/").rsplit("/", 1)[-1]


@dataclass
class ListingPage:
    """One page of a (possibly delimited) object listing."""

    objects: list[ObjectSummary] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)
    truncated: bool = False
    continuation_token: str = ""
    prefix: str = ""
    delimiter: str = "/"

    @property
    def is_empty(self) -> bool:
        return not self.objects and not self.prefixes

    def keys(self) -> list[str]:
        return [obj.key for obj in self.objects]


@dataclass
class ObjectMetadata:
    """Metadata about a single object, as returned by a HEAD request."""

    content_length: Optional[int] = None
    content_type: Optional[str] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    storage_class: Optional[str] = None
    checksum: dict[str, str] = field(default_factory=dict)
    user_metadata: dict[str, str] = field(default_factory=dict)


VALID_CORS_METHODS = ("GET", "PUT", "POST", "DELETE", "HEAD")


@dataclass
class CorsRule:
    """A single CORS rule of a bucket configuration."""

    allowed_methods: list[str] = field(default_factory=list)
    allowed_origins: list[str] = field(default_factory=list)
    allowed_headers: list[str] = field(default_factory=list)
    expose_headers: list[str] = field(default_factory=list)
    max_age_seconds: int = 0
    id: Optional[str] = None

    @classmethod
    def from_wire(cls, payload: dict[str, Any]) -> "CorsRule":
        return cls(
            id=payload.get("ID"),
            allowed_methods=[str(m).upper() for m in payload.get("AllowedMethods", [])],
            allowed_origins=list(payload.get("AllowedOrigins", [])),
            allowed_headers=list(payload.get("AllowedHeaders", [])),
            expose_headers=list(payload.get("ExposeHeaders", [])),
            max_age_seconds=int(payload.get("MaxAgeSeconds") or 0),
        )

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "AllowedMethods": list(self.allowed_methods),
            "AllowedOrigins": list(self.allowed_origins),
        }
        if self.id:
            payload["ID"] = self.id
        if self.allowed_headers:
            payload["AllowedHeaders"] = list(self.allowed_headers)
        if self.expose_headers:
            payload["ExposeHeaders"] = list(self.expose_headers)
        if self.max_age_seconds:
            payload["MaxAgeSeconds"] = int(self.max_age_seconds)
        return payload


@dataclass
class PermissionResult:
    """Outcome of a live read/write/delete capability probe."""

    bucket: str
    read: bool = False
    write: bool = False
    delete: bool = False
    errors: dict[str, str] = field(default_factory=dict)
    tested_at: Optional[datetime] = None
    context: Optional[str] = None
    # Key of a test object that could not be removed.
    orphan_key: Optional[str] = None

    @property
    def full_access(self) -> bool:
        return self.read and self.write and self.delete
