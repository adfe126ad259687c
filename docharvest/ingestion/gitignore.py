"""Maintain a generated-files section in .gitignore."""

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)


def _find_section(lines: list[str], header: str) -> tuple[int, int]:
    """Start and end (exclusive) line index of the section, or (-1, -1)."""
    for start, line in enumerate(lines):
        if line.strip() != header:
            continue
        end = start + 1
        for j in range(start + 1, len(lines)):
            stripped = lines[j].strip()
            if stripped.startswith("#") and stripped != header:
                break
            end = j + 1
            if stripped == "":
                break
        return start, end
    return -1, -1


def update_gitignore(repo_root: str | Path, entries: list[str], section_header: str) -> bool:
    """Add entries under ``# <section_header>``; returns True if the file changed."""
    entries = [e for e in entries if e]
    if not entries:
        return False

    path = Path(repo_root) / ".gitignore"
    content = path.read_text(encoding="utf-8") if path.exists() else ""
    header = f"# {section_header}"
    lines = content.split("\n")

    start, end = _find_section(lines, header)
    existing = []
    if start != -1:
        existing = [l.strip() for l in lines[start + 1:end] if l.strip() and not l.strip().startswith("#")]

    new_entries = [e for e in entries if e not in existing]
    if not new_entries:
        return False

    if start == -1:
        section = "\n".join(["", header, *entries, ""])
        trimmed = content.rstrip()
        new_content = trimmed + section if trimmed else section.lstrip()
    else:
        section_lines = [header, *existing, *new_entries]
        new_lines = lines[:start] + section_lines + [""] + lines[end:]
        new_content = re.sub(r"\n{3,}", "\n\n", "\n".join(new_lines))

    path.write_text(new_content, encoding="utf-8")
    logger.info(f"Added {len(new_entries)} entries to {path}")
    return True
