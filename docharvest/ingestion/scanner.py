"""Scan local directories for documentation files."""

import os
from pathlib import Path
from typing import Optional

from docharvest.core.schemas import ScanConfig
from docharvest.core.utils import to_posix

DocTree = dict[str, list[str]]


def scan_docs(root: str | Path, scan: ScanConfig) -> DocTree:
    """Map each relative directory (``""`` for root) to its sorted doc files.

    A file root yields a single entry when its extension is included.
    Raises FileNotFoundError when root does not exist.
    """
    root = Path(root)
    extensions = scan.extension_set()

    if root.is_file():
        if root.suffix.lower() in extensions:
            return {"": [root.name]}
        return {}
    if not root.is_dir():
        raise FileNotFoundError(f"Path not found: {root}")

    excluded = set(scan.exclude_dirs)
    tree: DocTree = {}
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d
            for d in dirnames
            if d not in excluded and (scan.include_hidden_dirs or not d.startswith("."))
        )
        files = sorted(f for f in filenames if Path(f).suffix.lower() in extensions)
        if files:
            rel = os.path.relpath(dirpath, root)
            tree["" if rel == "." else to_posix(rel)] = files
    return tree


def scan_multiple_paths(
    paths: list[Path], scan: ScanConfig, base_dir: Optional[Path] = None
) -> DocTree:
    """Scan several roots and merge them, keyed relative to base_dir."""
    combined: DocTree = {}
    for path in paths:
        tree = scan_docs(path, scan)

        prefix = ""
        if base_dir is not None:
            anchor = path.parent if path.is_file() else path
            prefix = to_posix(os.path.relpath(anchor, base_dir))
            if prefix == ".":
                prefix = ""

        for directory, files in tree.items():
            full = f"{prefix}/{directory}" if prefix and directory else (prefix or directory)
            combined[full] = sorted(set(combined.get(full, [])) | set(files))
    return combined
