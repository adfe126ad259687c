"""Compact single-line index of a source's documentation tree."""

import re

from docharvest.ingestion.scanner import DocTree


def _marker_name(name: str) -> str:
    return re.sub(r"[^A-Z0-9-]", "-", name.strip().upper())


def escape_token(value: str) -> str:
    """Backslash-escape the index delimiters."""
    value = value.replace("\\", "\\\\")
    return re.sub(r"([|{},:])", r"\\\1", value)


def build_index(tree: DocTree, name: str, docs_root: str, content_type: str = "docs") -> str:
    """Encode a scanned tree as one marker-delimited line."""
    marker = _marker_name(name)
    if content_type == "source":
        title = f"{name} Source Index"
        warning = f"STOP. This is source code from {name}. Search and read files before making changes."
    else:
        title = f"{name} Docs Index"
        warning = (
            f"STOP. What you remember about {name} may be WRONG for this project. "
            "Always search docs and read before any task."
        )

    entries = []
    for directory in sorted(tree):
        label = directory or "(root)"
        files = ",".join(escape_token(f) for f in sorted(tree[directory]))
        entries.append(f"{escape_token(label)}:{{{files}}}")

    body = "|".join([f"[{title}]", f"root: {escape_token(docs_root)}", warning, *entries])
    return f"<!-- {marker}-AGENTS-MD-START -->{body}<!-- {marker}-AGENTS-MD-END -->"
