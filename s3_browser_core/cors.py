from __future__ import annotations
"""Cross-origin resource sharing configuration for buckets."""
import logging
from typing import Any, Iterable, Sequence

from .cache import CORS_SCOPE, CacheLayer
from .hooks import HookChain, Veto
from .models import VALID_CORS_METHODS, CorsRule
from .responses import Ok, Response, invalid_parameters, prevented
from .signer import Signer

LOGGER = logging.getLogger(__name__)

MAX_CORS_RULES = 100
MAX_RULE_ID_LENGTH = 255
UPLOAD_METHODS = ("PUT", "POST")
WRITE_METHODS = ("PUT", "POST", "DELETE")
LONG_CACHE_SECONDS = 86400

SCENARIOS = ("public_read", "upload_only", "full_access", "presigned_upload", "mixed", "custom")

_READ_EXPOSE_HEADERS = ["Content-Length", "Content-Type", "ETag", "Last-Modified"]


def generate_cors_rules(
    scenario: str = "public_read",
    origins: Sequence[str] = ("*",),
    extra_config: dict[str, Any] | None = None,
) -> list[CorsRule]:
    """Build the rule set for a named scenario.

    ``extra_config["max_age"]`` overrides the scenario's cache duration.
    Unknown scenarios produce a single GET rule that ``extra_config`` may
    customise with ``allowed_methods``, ``allowed_headers``,
    ``expose_headers`` and ``id``.
    """

    origins = list(origins) or ["*"]
    extra = dict(extra_config or {})
    max_age = extra.get("max_age")

    if scenario == "public_read":
        return [
            CorsRule(
                id="PublicRead",
                allowed_methods=["GET", "HEAD"],
                allowed_origins=origins,
                allowed_headers=["Range"],
                expose_headers=list(_READ_EXPOSE_HEADERS),
                max_age_seconds=int(max_age or 86400),
            )
        ]
    if scenario == "upload_only":
        return [
            CorsRule(
                id="UploadOnly",
                allowed_methods=["PUT", "POST"],
                allowed_origins=origins,
                allowed_headers=["Content-Type", "Content-Length", "Content-MD5", "x-amz-*"],
                max_age_seconds=int(max_age or 3600),
            )
        ]
    if scenario == "full_access":
        return [
            CorsRule(
                id="FullAccess",
                allowed_methods=list(VALID_CORS_METHODS),
                allowed_origins=origins,
                allowed_headers=["*"],
                expose_headers=list(_READ_EXPOSE_HEADERS),
                max_age_seconds=int(max_age or 3600),
            )
        ]
    if scenario == "presigned_upload":
        return [
            CorsRule(
                id="PresignedUpload",
                allowed_methods=["PUT"],
                allowed_origins=origins,
                allowed_headers=["Content-Type", "Content-Length"],
                max_age_seconds=int(max_age or 600),
            )
        ]
    if scenario == "mixed":
        return [
            CorsRule(
                id="PublicRead",
                allowed_methods=["GET", "HEAD"],
                allowed_origins=["*"],
                expose_headers=["Content-Length", "Content-Type", "ETag"],
                max_age_seconds=86400,
            ),
            CorsRule(
                id="RestrictedUpload",
                allowed_methods=["PUT", "POST"],
                allowed_origins=origins,
                allowed_headers=["Content-Type", "Content-Length", "x-amz-*"],
                max_age_seconds=int(max_age or 3600),
            ),
        ]
    return [
        CorsRule(
            id=extra.get("id", "Custom"),
            allowed_methods=[m.upper() for m in extra.get("allowed_methods", ["GET"])],
            allowed_origins=list(extra.get("allowed_origins", origins)),
            allowed_headers=list(extra.get("allowed_headers", [])),
            expose_headers=list(extra.get("expose_headers", [])),
            max_age_seconds=int(max_age or extra.get("max_age_seconds", 3600)),
        )
    ]


def validate_cors_rules(rules: Sequence[CorsRule]) -> list[str]:
    """Return a list of problems with ``rules``; empty when they are valid."""

    problems: list[str] = []
    if not rules:
        problems.append("At least one CORS rule is required")
    if len(rules) > MAX_CORS_RULES:
        problems.append(f"A CORS configuration can contain at most {MAX_CORS_RULES} rules")
    for index, rule in enumerate(rules):
        label = f"Rule {index + 1}"
        if not rule.allowed_methods:
            problems.append(f"{label}: allowed methods cannot be empty")
        invalid = [method for method in rule.allowed_methods if method.upper() not in VALID_CORS_METHODS]
        if invalid:
            problems.append(f"{label}: invalid methods {', '.join(invalid)}")
        if not rule.allowed_origins:
            problems.append(f"{label}: allowed origins cannot be empty")
        if rule.id and len(rule.id) > MAX_RULE_ID_LENGTH:
            problems.append(f"{label}: ID cannot exceed {MAX_RULE_ID_LENGTH} characters")
        if rule.max_age_seconds < 0:
            problems.append(f"{label}: max age cannot be negative")
    return problems


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


def analyze_cors_rules(rules: Sequence[CorsRule], bucket: str = "") -> dict[str, Any]:
    """Summarize capabilities and security concerns of a rule set."""

    analysis: dict[str, Any] = {
        "bucket": bucket,
        "has_cors": bool(rules),
        "rules_count": len(rules),
        "supports_public_read": False,
        "supports_upload": False,
        "supports_delete": False,
        "allows_all_origins": False,
        "max_cache_time": 0,
    }
    capabilities: list[str] = []
    warnings: list[str] = []
    origins: list[str] = []
    methods: list[str] = []
    for rule in rules:
        rule_methods = [m.upper() for m in rule.allowed_methods]
        if "GET" in rule_methods:
            analysis["supports_public_read"] = True
            capabilities.append("read")
        if set(UPLOAD_METHODS) & set(rule_methods):
            analysis["supports_upload"] = True
            capabilities.append("upload")
        if "DELETE" in rule_methods:
            analysis["supports_delete"] = True
            capabilities.append("delete")
        if "*" in rule.allowed_origins:
            analysis["allows_all_origins"] = True
            if set(WRITE_METHODS) & set(rule_methods):
                warnings.append("Allows write operations from any origin (*)")
        if "*" in rule.allowed_headers:
            warnings.append("Allows all headers (*)")
        analysis["max_cache_time"] = max(analysis["max_cache_time"], rule.max_age_seconds)
        origins.extend(rule.allowed_origins)
        methods.extend(rule_methods)

    analysis["capabilities"] = _unique(capabilities)
    analysis["security_warnings"] = _unique(warnings)
    analysis["origins_summary"] = _unique(origins)
    analysis["methods_summary"] = _unique(methods)
    analysis["recommendations"] = _recommendations(analysis)
    return analysis


def _recommendations(analysis: dict[str, Any]) -> list[str]:
    recommendations = []
    if analysis["allows_all_origins"] and analysis["supports_upload"]:
        recommendations.append('Consider restricting allowed origins instead of using "*" for upload operations')
    if analysis["supports_delete"] and analysis["allows_all_origins"]:
        recommendations.append("DELETE operations with wildcard origins pose security risks")
    if analysis["max_cache_time"] > LONG_CACHE_SECONDS:
        recommendations.append("Very long cache times may cause issues when updating CORS configuration")
    if not analysis["has_cors"]:
        recommendations.append("Consider adding CORS configuration if cross-origin access is needed")
    if analysis["has_cors"] and not analysis["security_warnings"]:
        recommendations.append("CORS configuration appears secure")
    return recommendations


def upload_rules_for_origin(rules: Sequence[CorsRule], origin: str) -> tuple[list[CorsRule], list[str]]:
    """Return the rules allowing uploads from ``origin`` and their upload methods."""

    matching: list[CorsRule] = []
    methods: list[str] = []
    for rule in rules:
        if "*" not in rule.allowed_origins and origin not in rule.allowed_origins:
            continue
        allowed = [m for m in UPLOAD_METHODS if m in {x.upper() for x in rule.allowed_methods}]
        if allowed:
            matching.append(rule)
            methods.extend(allowed)
    return matching, _unique(methods)


class CorsManager:
    """Reads and updates bucket CORS configuration."""

    def __init__(self, signer: Signer, cache: CacheLayer | None = None, hooks: HookChain | None = None):
        self._signer = signer
        self._cache = cache if cache is not None else CacheLayer()
        self._hooks = hooks or HookChain()

    def get_cors_configuration(self, bucket: str, use_cache: bool = True) -> Response:
        if not bucket:
            return invalid_parameters("Bucket name is required")
        return self._cache.fetch(
            "cors_config",
            bucket=bucket,
            scope=(CORS_SCOPE, ""),
            params={},
            loader=lambda: self._signer.get_cors_configuration(bucket),
            use_cache=use_cache,
        )

    def set_cors_configuration(self, bucket: str, rules: Sequence[CorsRule]) -> Response:
        if not bucket:
            return invalid_parameters("Bucket name is required")
        rules = list(rules)
        problems = validate_cors_rules(rules)
        if problems:
            return invalid_parameters("Invalid CORS configuration", errors=problems)

        params = self._hooks.before("set_cors_configuration", {"bucket": bucket, "rules": rules})
        if isinstance(params, Veto):
            return prevented("update_prevented", params.reason or "CORS update was prevented by a hook", bucket=bucket)

        bucket = params["bucket"]
        result = self._signer.set_cors_configuration(bucket, params["rules"])
        if result.successful:
            self._cache.invalidate_scope(bucket, (CORS_SCOPE, ""))
        else:
            LOGGER.warning("Failed to update CORS for %s: %s", bucket, result.message)
        return self._hooks.after("set_cors_configuration", result)

    def delete_cors_configuration(self, bucket: str) -> Response:
        if not bucket:
            return invalid_parameters("Bucket name is required")
        params = self._hooks.before("delete_cors_configuration", {"bucket": bucket})
        if isinstance(params, Veto):
            return prevented(
                "deletion_prevented", params.reason or "CORS deletion was prevented by a hook", bucket=bucket
            )
        bucket = params["bucket"]
        result = self._signer.delete_cors_configuration(bucket)
        if result.successful:
            self._cache.invalidate_scope(bucket, (CORS_SCOPE, ""))
        return self._hooks.after("delete_cors_configuration", result)

    def has_cors_configuration(self, bucket: str, use_cache: bool = True) -> Response:
        current = self.get_cors_configuration(bucket, use_cache)
        if not current.successful:
            return current
        has_cors = bool(current.data.get("rules"))
        return Ok(
            200,
            f'Bucket "{bucket}" has CORS configuration' if has_cors else f'Bucket "{bucket}" has no CORS configuration',
            {"bucket": bucket, "has_cors": has_cors, "rules_count": len(current.data.get("rules", []))},
        )

    def cors_allows_upload(self, bucket: str, origin: str = "*", use_cache: bool = True) -> Response:
        current = self.get_cors_configuration(bucket, use_cache)
        if not current.successful:
            return current
        rules = current.data.get("rules", [])
        matching, methods = upload_rules_for_origin(rules, origin)
        allows = bool(matching)
        return Ok(
            200,
            f'CORS allows uploads from "{origin}" to bucket "{bucket}"'
            if allows
            else f'CORS does not allow uploads from "{origin}" to bucket "{bucket}"',
            {
                "bucket": bucket,
                "origin": origin,
                "allows_upload": allows,
                "allowed_methods": methods,
                "matching_rules": matching,
                "rules_checked": len(rules),
            },
        )

    def analyze_cors_configuration(self, bucket: str, use_cache: bool = True) -> Response:
        current = self.get_cors_configuration(bucket, use_cache)
        if not current.successful:
            return current
        analysis = analyze_cors_rules(current.data.get("rules", []), bucket)
        return Ok(200, f'CORS analysis completed for bucket "{bucket}"', analysis)

    def set_cors_scenario(
        self,
        bucket: str,
        scenario: str = "public_read",
        origins: Sequence[str] = ("*",),
        extra_config: dict[str, Any] | None = None,
    ) -> Response:
        if scenario not in SCENARIOS:
            LOGGER.info("Unknown CORS scenario %r, applying a custom rule", scenario)
        return self.set_cors_configuration(bucket, generate_cors_rules(scenario, origins, extra_config))
