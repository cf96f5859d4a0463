from __future__ import annotations
"""Connection profiles persisted as JSON with secrets in the OS keychain."""
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Any

import keyring
from keyring.errors import KeyringError

from .providers import DEFAULT_PROVIDER, get_provider

LOGGER = logging.getLogger(__name__)

KEYCHAIN_SERVICE = "s3-browser-core"


@dataclass
class ConnectionProfile:
    """Credentials and location of one storage account."""

    name: str
    endpoint_url: str
    access_key: str
    secret_key: str
    provider: str = DEFAULT_PROVIDER
    region: str = ""
    account_id: str = ""

    def resolve_endpoint(self) -> str:
        """Return the explicit endpoint or the one derived from the provider."""

        if self.endpoint_url:
            return self.endpoint_url
        provider = get_provider(self.provider)
        params = {"account_id": self.account_id} if self.account_id else {}
        return provider.endpoint_url(self.region, **params)

    def signing_region(self) -> str:
        return get_provider(self.provider).signing_region_for(self.region)

    def to_public_dict(self) -> dict[str, str]:
        payload = {
            "name": self.name,
            "endpoint_url": self.endpoint_url,
            "access_key": self.access_key,
            "provider": self.provider,
            "region": self.region,
        }
        if self.account_id:
            payload["account_id"] = self.account_id
        return payload


class KeychainStore:
    """Stores secret keys under a keyring service, one entry per profile."""

    def __init__(self, service_name: str = KEYCHAIN_SERVICE):
        self._service_name = service_name

    def get_secret(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        try:
            return keyring.get_password(self._service_name, profile_name) or ""
        except KeyringError as exc:
            LOGGER.warning("Could not read secret for %s: %s", profile_name, exc)
            return ""

    def set_secret(self, profile_name: str, secret_key: str) -> None:
        if not profile_name:
            return
        if not secret_key:
            self.delete_secret(profile_name)
            return
        try:
            keyring.set_password(self._service_name, profile_name, secret_key)
        except KeyringError as exc:
            LOGGER.warning("Could not store secret for %s: %s", profile_name, exc)

    def delete_secret(self, profile_name: str) -> None:
        if not profile_name:
            return
        try:
            keyring.delete_password(self._service_name, profile_name)
        except KeyringError:
            return


def _profile_from_entry(entry: dict[str, Any], secret_key: str) -> ConnectionProfile:
    return ConnectionProfile(
        name=entry["name"],
        endpoint_url=entry.get("endpoint_url", ""),
        access_key=entry["access_key"],
        secret_key=secret_key,
        provider=entry.get("provider") or DEFAULT_PROVIDER,
        region=entry.get("region", ""),
        account_id=entry.get("account_id", ""),
    )


class ProfileStorage:
    """JSON-backed store for connection profiles; secrets never touch the file."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3_browser_core_connections.json"
        self._path = Path(storage_path)
        self._keychain = KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        entries = self._read_entries()
        profiles: list[ConnectionProfile] = []
        migrated = False
        for entry in entries:
            if not isinstance(entry, dict) or "name" not in entry or "access_key" not in entry:
                continue
            secret_key = entry.get("secret_key", "")
            if secret_key:
                # Older files kept the secret inline; move it to the keychain.
                migrated = True
                self._keychain.set_secret(entry["name"], secret_key)
            else:
                secret_key = self._keychain.get_secret(entry["name"])
            profiles.append(_profile_from_entry(entry, secret_key))
        if migrated:
            self._write_data([profile.to_public_dict() for profile in profiles])
        return profiles

    def get(self, name: str) -> ConnectionProfile | None:
        for profile in self.load():
            if profile.name == name:
                return profile
        return None

    def save(self, profiles: list[ConnectionProfile]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        for profile in profiles:
            self._keychain.set_secret(profile.name, profile.secret_key)
        current_names = {profile.name for profile in profiles}
        for name in self._load_profile_names() - current_names:
            self._keychain.delete_secret(name)
        self._write_data([profile.to_public_dict() for profile in profiles])

    def _read_entries(self) -> list[Any]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        return data if isinstance(data, list) else []

    def _load_profile_names(self) -> set[str]:
        return {
            entry["name"]
            for entry in self._read_entries()
            if isinstance(entry, dict) and isinstance(entry.get("name"), str) and entry["name"]
        }

    def _write_data(self, data: list[dict[str, str]]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
