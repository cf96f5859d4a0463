from __future__ import annotations
"""Client settings and their JSON persistence."""

from dataclasses import asdict, dataclass
import json
from pathlib import Path

MAX_BATCH_SIZE = 1000


@dataclass
class ClientSettings:
    """Tunables shared by every component of the client."""

    cache_enabled: bool = True
    cache_ttl: int = 3600
    batch_size: int = MAX_BATCH_SIZE
    upload_url_expiry_minutes: int = 15
    upload_timeout: int = 300
    request_timeout: int = 30
    max_folder_depth: int = 64

    @property
    def effective_batch_size(self) -> int:
        return max(1, min(int(self.batch_size), MAX_BATCH_SIZE))


_POSITIVE_INT_FIELDS = (
    "cache_ttl",
    "batch_size",
    "upload_url_expiry_minutes",
    "upload_timeout",
    "request_timeout",
    "max_folder_depth",
)


def _positive_int(value: object, default: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


class SettingsStorage:
    """JSON-backed persistence for :class:`ClientSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3_browser_core_settings.json"
        self._path = Path(storage_path)

    def load(self) -> ClientSettings:
        if not self._path.exists():
            return ClientSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return ClientSettings()
        if not isinstance(data, dict):
            return ClientSettings()

        defaults = ClientSettings()
        values = {
            name: _positive_int(data.get(name, getattr(defaults, name)), getattr(defaults, name))
            for name in _POSITIVE_INT_FIELDS
        }
        values["batch_size"] = min(values["batch_size"], MAX_BATCH_SIZE)
        cache_enabled = data.get("cache_enabled", defaults.cache_enabled)
        if not isinstance(cache_enabled, bool):
            cache_enabled = defaults.cache_enabled
        return ClientSettings(cache_enabled=cache_enabled, **values)

    def save(self, settings: ClientSettings) -> None:
        payload = asdict(settings)
        for name in _POSITIVE_INT_FIELDS:
            payload[name] = max(int(payload[name]), 1)
        payload["batch_size"] = min(payload["batch_size"], MAX_BATCH_SIZE)
        payload["cache_enabled"] = bool(payload["cache_enabled"])
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
