from __future__ import annotations
"""High level client wiring every component around one signer."""
import logging
from typing import Optional

from .batch import BatchOperations
from .buckets import BucketManager
from .cache import CacheLayer, TTLStore
from .cors import CorsManager
from .folders import FolderManager
from .hooks import HookChain
from .models import PermissionResult
from .objects import ObjectStore
from .permissions import PermissionCache, PermissionProbe
from .profiles import ConnectionProfile
from .providers import get_provider
from .responses import Ok, Response, invalid_parameters
from .settings import ClientSettings
from .signer import BotoSigner, Signer
from .transport import HttpTransport, HttpxTransport

LOGGER = logging.getLogger(__name__)


class S3Client:
    """Entry point grouping objects, buckets, folders, batch, CORS and permissions.

    All components share one cache layer and one hook chain, so a mutation
    made through any of them invalidates what the others cached.
    """

    def __init__(
        self,
        signer: Signer,
        *,
        transport: HttpTransport | None = None,
        settings: ClientSettings | None = None,
        cache_store: TTLStore | None = None,
        hooks: HookChain | None = None,
        permission_cache: PermissionCache | None = None,
        provider: str = "",
        region: str = "",
        context: Optional[str] = None,
    ):
        self.settings = settings or ClientSettings()
        self.signer = signer
        self.transport = transport or HttpxTransport()
        self.cache = CacheLayer(cache_store, enabled=self.settings.cache_enabled, ttl=self.settings.cache_ttl)
        self.hooks = hooks or HookChain()

        self.objects = ObjectStore(
            signer,
            transport=self.transport,
            cache=self.cache,
            hooks=self.hooks,
            settings=self.settings,
        )
        self.buckets = BucketManager(signer, self.cache)
        self.folders = FolderManager(self.objects, hooks=self.hooks, settings=self.settings)
        self.batch = BatchOperations(signer, self.objects, self.folders, hooks=self.hooks, settings=self.settings)
        self.cors = CorsManager(signer, self.cache, self.hooks)
        self.permissions = PermissionProbe(
            self.objects,
            permission_cache,
            provider=provider,
            region=region,
            context=context,
        )

    @classmethod
    def from_profile(
        cls,
        profile: ConnectionProfile,
        settings: ClientSettings | None = None,
        **kwargs,
    ) -> "S3Client":
        """Build a client using a :class:`BotoSigner` for ``profile``."""

        settings = settings or ClientSettings()
        provider = get_provider(profile.provider)
        signer = BotoSigner(
            endpoint_url=profile.resolve_endpoint(),
            access_key=profile.access_key,
            secret_key=profile.secret_key,
            region=profile.signing_region(),
            addressing_style=provider.addressing_style,
            request_timeout=settings.request_timeout,
        )
        return cls(
            signer,
            settings=settings,
            provider=provider.id,
            region=profile.region or provider.default_region,
            **kwargs,
        )

    @property
    def context(self) -> Optional[str]:
        return self.permissions.context

    @context.setter
    def context(self, value: Optional[str]) -> None:
        self.permissions.context = value or None

    def clear_cache(self, bucket: Optional[str] = None) -> int:
        if bucket is None:
            return self.cache.clear()
        return self.cache.invalidate_bucket(bucket)

    def check_permissions(self, bucket: str, use_cache: bool = True, force_test: bool = False) -> PermissionResult:
        return self.permissions.check_permissions(bucket, use_cache, force_test)

    def clear_permissions_cache(self, bucket: Optional[str] = None) -> int:
        return self.permissions.clear_permissions_cache(bucket)

    def get_bucket_details(
        self,
        bucket: str,
        origin: str = "*",
        use_cache: bool = True,
        include_permissions: bool = True,
    ) -> Response:
        """Gather region, creation date, CORS readiness and permissions.

        Each part is best effort: a failing lookup leaves its field empty
        instead of failing the whole call.
        """

        if not bucket:
            return invalid_parameters("Bucket name is required")

        details = {
            "bucket": bucket,
            "basic": {"name": bucket, "region": None, "created": None},
            "cors": {
                "analysis": None,
                "upload_ready": False,
                "allowed_methods": [],
                "current_origin": origin,
                "details": "CORS not configured",
            },
            "permissions": None,
        }

        location = self.buckets.get_bucket_location(bucket, use_cache)
        if location.successful:
            details["basic"]["region"] = location.data.get("location")

        entry = self.buckets.find_bucket(bucket, use_cache)
        if entry is not None:
            details["basic"]["created"] = entry.creation_date

        analysis = self.cors.analyze_cors_configuration(bucket, use_cache)
        if analysis.successful:
            details["cors"]["analysis"] = analysis.data
            upload = self.cors.cors_allows_upload(bucket, origin, use_cache)
            if upload.successful:
                allows = upload.data["allows_upload"]
                details["cors"]["upload_ready"] = allows
                details["cors"]["allowed_methods"] = upload.data["allowed_methods"]
                details["cors"]["details"] = (
                    "Upload allowed from current domain" if allows else "Upload not allowed from current domain"
                )

        if include_permissions:
            result = self.permissions.check_permissions(bucket, use_cache)
            details["permissions"] = {"read": result.read, "write": result.write, "delete": result.delete}

        return Ok(200, f'Complete details retrieved for bucket "{bucket}"', details)
