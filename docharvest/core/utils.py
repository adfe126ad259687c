"""Utility functions."""

import os
from pathlib import Path
from typing import Hashable, Iterable, TypeVar

T = TypeVar("T", bound=Hashable)


def to_posix(path: str) -> str:
    """Convert an OS path to forward-slash form."""
    return path.replace(os.sep, "/")


def with_trailing_slash(path: str) -> str:
    """Ensure a path ends with a slash."""
    return path if path.endswith("/") else f"{path}/"


def resolve_inside(root: str | Path, *segments: str) -> Path:
    """Resolve segments against root, refusing paths that escape it."""
    root_path = Path(root).resolve()
    resolved = root_path.joinpath(*segments).resolve()
    if resolved != root_path and root_path not in resolved.parents:
        raise ValueError(f"Resolved path escapes root: {resolved}")
    return resolved


def dedupe(items: Iterable[T]) -> list[T]:
    """Remove duplicates while preserving first-seen order."""
    seen: set[T] = set()
    out: list[T] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated option into trimmed, non-empty parts."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]
