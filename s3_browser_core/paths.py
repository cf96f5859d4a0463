from __future__ import annotations
"""Helpers for treating flat object keys as folder paths."""


def normalize_folder(path: str) -> str:
    """Return ``path`` with exactly one trailing slash and no leading slash."""

    cleaned = path.strip().lstrip("/").rstrip("/")
    return f"{cleaned}/" if cleaned else ""


def containing_prefix(key: str) -> str:
    """Return the folder a key is listed under (``""`` for the bucket root).

    A placeholder key such as ``a/b/`` is listed under ``a/``.
    """

    trimmed = key.rstrip("/")
    if "/" not in trimmed:
        return ""
    return trimmed.rsplit("/", 1)[0] + "/"


def parent_folder(path: str) -> str:
    return containing_prefix(normalize_folder(path))


def folder_name(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


def compose_key(prefix: str, name: str) -> str:
    key_name = name.strip()
    if not key_name:
        raise ValueError("Object name cannot be empty")
    cleaned_prefix = prefix.strip().lstrip("/")
    if cleaned_prefix and not cleaned_prefix.endswith("/"):
        cleaned_prefix += "/"
    return f"{cleaned_prefix}{key_name}" if cleaned_prefix else key_name


def breadcrumbs(prefix: str) -> list[tuple[str, str]]:
    """Return ``(name, path)`` pairs for each level of ``prefix``."""

    crumbs: list[tuple[str, str]] = []
    current = ""
    for part in prefix.split("/"):
        if not part:
            continue
        current += part + "/"
        crumbs.append((part, current))
    return crumbs


def relative_key(key: str, prefix: str) -> str:
    return key[len(prefix):] if key.startswith(prefix) else key


def descendant_folders(keys: list[str], prefix: str) -> set[str]:
    """Return every folder path implied by ``keys`` below ``prefix``."""

    folders: set[str] = set()
    for key in keys:
        relative = relative_key(key, prefix)
        parts = relative.split("/")[:-1]
        current = prefix
        for part in parts:
            if not part:
                break
            current += part + "/"
            folders.add(current)
    return folders
