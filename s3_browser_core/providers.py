from __future__ import annotations
"""Known S3-compatible providers and how to reach them."""
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Provider:
    """Endpoint layout and regions of an S3-compatible service.

    ``endpoint_pattern`` may reference ``{region}``, ``{account_id}``,
    ``{region_prefix}`` or ``{endpoint}``.  ``signing_region`` overrides the
    region used for request signing when the service expects a fixed value.
    """

    id: str
    label: str
    endpoint_pattern: str
    default_region: str
    regions: tuple[str, ...] = ()
    path_style: bool = True
    signing_region: Optional[str] = None
    # Region -> hostname, for services without a regular pattern.
    region_endpoints: dict[str, str] = field(default_factory=dict)
    region_prefixes: dict[str, str] = field(default_factory=dict)

    def is_valid_region(self, region: str) -> bool:
        return not self.regions or region in self.regions

    def endpoint_host(self, region: str = "", **params: str) -> str:
        region = region or self.default_region
        if not self.is_valid_region(region):
            raise ValueError(
                f'Invalid region "{region}" for provider "{self.label}". '
                f"Available regions: {', '.join(self.regions)}"
            )
        if region in self.region_endpoints:
            return self.region_endpoints[region]
        if "{account_id}" in self.endpoint_pattern and not params.get("account_id"):
            raise ValueError(f"Account ID is required for {self.label}")
        if "{endpoint}" in self.endpoint_pattern:
            endpoint = params.get("endpoint", "")
            if not endpoint:
                raise ValueError(f"Endpoint is required for {self.label}")
            params = {**params, "endpoint": endpoint.split("://", 1)[-1].rstrip("/")}
        return self.endpoint_pattern.format(
            region=region,
            region_prefix=self.region_prefixes.get(region, ""),
            **params,
        )

    def endpoint_url(self, region: str = "", **params: str) -> str:
        return "https://" + self.endpoint_host(region, **params)

    def signing_region_for(self, region: str = "") -> str:
        return self.signing_region or region or self.default_region

    @property
    def addressing_style(self) -> str:
        return "path" if self.path_style else "virtual"


_LINODE_REGIONS = {
    "us-southeast": "us-southeast-1.linodeobjects.com",
    "us-ord": "us-ord-1.linodeobjects.com",
    "us-lax": "us-lax-1.linodeobjects.com",
    "us-mia": "us-mia-1.linodeobjects.com",
    "us-east": "us-east-1.linodeobjects.com",
    "us-sea": "us-sea-1.linodeobjects.com",
    "us-iad": "us-iad-1.linodeobjects.com",
    "eu-central": "eu-central-1.linodeobjects.com",
    "de-fra-2": "de-fra-1.linodeobjects.com",
    "fr-par": "fr-par-1.linodeobjects.com",
    "gb-lon": "gb-lon-1.linodeobjects.com",
    "nl-ams": "nl-ams-1.linodeobjects.com",
    "se-sto": "se-sto-1.linodeobjects.com",
    "jp-osa": "jp-osa-1.linodeobjects.com",
    "sg-sin-2": "sg-sin-1.linodeobjects.com",
    "au-mel": "au-mel-1.linodeobjects.com",
    "br-gru": "br-gru-1.linodeobjects.com",
}

PROVIDERS: dict[str, Provider] = {
    provider.id: provider
    for provider in (
        Provider(
            id="aws",
            label="Amazon S3",
            endpoint_pattern="s3.{region}.amazonaws.com",
            default_region="us-east-1",
            regions=(
                "us-east-1", "us-east-2", "us-west-1", "us-west-2", "ca-central-1",
                "eu-west-1", "eu-west-2", "eu-west-3", "eu-central-1", "eu-central-2",
                "eu-north-1", "eu-south-1", "eu-south-2", "ap-east-1", "ap-northeast-1",
                "ap-northeast-2", "ap-northeast-3", "ap-southeast-1", "ap-southeast-2",
                "ap-southeast-3", "ap-southeast-4", "ap-south-1", "ap-south-2", "sa-east-1",
                "me-south-1", "me-central-1", "af-south-1", "il-central-1",
            ),
        ),
        Provider(
            id="backblaze_b2",
            label="Backblaze B2",
            endpoint_pattern="s3.{region}.backblazeb2.com",
            default_region="us-west-004",
            regions=("us-west-000", "us-west-001", "us-west-002", "us-west-003", "us-west-004", "eu-central-003"),
            path_style=False,
        ),
        Provider(
            id="cloudflare_r2",
            label="Cloudflare R2",
            endpoint_pattern="{account_id}.{region_prefix}r2.cloudflarestorage.com",
            default_region="default",
            regions=("default", "eu", "fedramp", "apac"),
            signing_region="auto",
            region_prefixes={"eu": "eu.", "fedramp": "fedramp.", "apac": "apac."},
        ),
        Provider(
            id="digitalocean",
            label="DigitalOcean Spaces",
            endpoint_pattern="{region}.digitaloceanspaces.com",
            default_region="sfo3",
            regions=("nyc3", "sfo3", "sfo2", "ams3", "sgp1", "fra1", "syd1"),
            path_style=False,
        ),
        Provider(
            id="linode",
            label="Linode Object Storage",
            endpoint_pattern="{region}.linodeobjects.com",
            default_region="us-east",
            regions=tuple(_LINODE_REGIONS),
            region_endpoints=_LINODE_REGIONS,
        ),
        Provider(
            id="wasabi",
            label="Wasabi",
            endpoint_pattern="s3.{region}.wasabisys.com",
            default_region="us-east-1",
            regions=(
                "us-east-1", "us-east-2", "us-central-1", "us-west-1", "ca-central-1",
                "eu-west-1", "eu-west-2", "eu-central-1", "eu-central-2",
                "ap-northeast-1", "ap-northeast-2", "ap-southeast-1", "ap-southeast-2",
            ),
            path_style=False,
        ),
        Provider(
            id="vultr",
            label="Vultr Object Storage",
            endpoint_pattern="{region}.vultrobjects.com",
            default_region="ewr1",
            regions=("ams1", "blr1", "sgp1", "del1", "ewr1", "sjc1"),
        ),
        Provider(
            id="mega_s4",
            label="Mega S4",
            endpoint_pattern="s3.{region}.s4.mega.io",
            default_region="eu-central-1",
            regions=("eu-central-1", "eu-central-2", "ca-central-1", "ca-west-1"),
        ),
        Provider(
            id="generic",
            label="S3-Compatible Storage",
            endpoint_pattern="{endpoint}",
            default_region="us-east-1",
        ),
    )
}

DEFAULT_PROVIDER = "generic"


def get_provider(provider_id: str) -> Provider:
    try:
        return PROVIDERS[provider_id or DEFAULT_PROVIDER]
    except KeyError:
        raise ValueError(f"Unknown provider: {provider_id}") from None
