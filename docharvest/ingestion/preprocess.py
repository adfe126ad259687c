"""Turn non-Markdown documentation in a checkout into Markdown."""

import asyncio
import logging
import os
import re
import shutil
import sys
from pathlib import Path
from typing import Optional

from docharvest.core.constants import DEFAULT_PREPROCESS_OUTPUT_DIR, HTML_SUFFIXES
from docharvest.core.schemas import HtmlPreprocess, SourceConfig, SphinxPreprocess
from docharvest.core.utils import resolve_inside
from docharvest.ingestion.html_markdown import html_to_markdown, parse_html

logger = logging.getLogger(__name__)

_MISSING_MODULE = re.compile(r"no module named\s+['\"]?([A-Za-z0-9_.-]+)['\"]?", re.IGNORECASE)


class PreprocessError(Exception):
    """Raised when a preprocessing step cannot produce Markdown."""


def _work_and_output_dirs(
    checkout_root: Path, source: SourceConfig, work_dir: Optional[str], output_dir: Optional[str]
) -> tuple[Path, Path]:
    work = work_dir or source.selectors[0]
    try:
        resolved_work = resolve_inside(checkout_root, work)
        resolved_output = resolve_inside(checkout_root, output_dir or DEFAULT_PREPROCESS_OUTPUT_DIR)
    except ValueError as e:
        raise PreprocessError(f"{source.name}: {e}") from e
    if resolved_output == resolved_work or resolved_output in resolved_work.parents:
        raise PreprocessError(
            f"{source.name}: output_dir must not contain work_dir ({resolved_output})"
        )
    return resolved_work, resolved_output


def _recreate(path: Path) -> None:
    shutil.rmtree(path, ignore_errors=True)
    path.mkdir(parents=True, exist_ok=True)


def explain_sphinx_failure(message: str, stderr: str = "") -> str:
    """Map a failed sphinx run to an actionable message."""
    combined_raw = f"{stderr}\n{message}"
    combined = combined_raw.lower()

    match = _MISSING_MODULE.search(combined_raw)
    if match:
        module = match.group(1).lower()
        if module == "sphinx" or module.startswith("sphinx."):
            return "Sphinx is not installed. Run: python -m pip install sphinx sphinx-markdown-builder"
        if module == "sphinx_markdown_builder" or module.startswith("sphinx_markdown_builder."):
            return (
                "Markdown builder is unavailable. Install sphinx-markdown-builder "
                "and ensure it is accessible to Sphinx."
            )
        if module.startswith("sphinx"):
            return (
                f"A Sphinx dependency appears to be missing ({match.group(1)}). "
                "Install it in the same Python environment."
            )

    if "builder name" in combined and "markdown" in combined:
        return (
            "Markdown builder is unavailable. Install sphinx-markdown-builder "
            "and ensure it is accessible to Sphinx."
        )

    return stderr.strip() or message


async def run_sphinx_preprocess(
    checkout_root: Path, source: SourceConfig, config: SphinxPreprocess
) -> Path:
    """Build the Sphinx project with the markdown builder; returns the output dir."""
    work_dir, output_dir = _work_and_output_dirs(
        checkout_root, source, config.work_dir, config.output_dir
    )
    if not work_dir.is_dir():
        raise PreprocessError(f"Sphinx work_dir not found: {work_dir}")

    _recreate(output_dir)
    args = [
        "-m", "sphinx", "-b", config.builder,
        os.path.relpath(work_dir, checkout_root),
        os.path.relpath(output_dir, checkout_root),
    ]

    try:
        proc = await asyncio.create_subprocess_exec(
            sys.executable,
            *args,
            cwd=str(checkout_root),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise PreprocessError(
            f"Sphinx preprocess failed for {source.name}: Python interpreter not found ({sys.executable})"
        ) from e

    _, stderr = await proc.communicate()
    if proc.returncode != 0:
        detail = explain_sphinx_failure(
            f"exit status {proc.returncode}", stderr.decode(errors="replace")
        )
        raise PreprocessError(f"Sphinx preprocess failed for {source.name}: {detail}")

    logger.info(f"Sphinx build for {source.name} written to {output_dir}")
    return output_dir


def collect_html_files(root: Path, skip_dir: Optional[Path] = None) -> list[Path]:
    """All .html/.htm files under root, skipping dot-dirs and skip_dir."""
    found = []
    skip = skip_dir.resolve() if skip_dir else None
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        if skip is not None and (current.resolve() == skip or skip in current.resolve().parents):
            dirnames[:] = []
            continue
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for filename in sorted(filenames):
            if filename.lower().endswith(HTML_SUFFIXES):
                found.append(current / filename)
    return found


def run_html_preprocess(checkout_root: Path, source: SourceConfig, config: HtmlPreprocess) -> Path:
    """Convert every HTML file under work_dir to Markdown, mirroring the tree."""
    work_dir, output_dir = _work_and_output_dirs(
        checkout_root, source, config.work_dir, config.output_dir
    )
    if not work_dir.is_dir():
        raise PreprocessError(f"HTML work_dir not found: {work_dir}")

    _recreate(output_dir)
    html_files = collect_html_files(work_dir, skip_dir=output_dir)

    selector = config.selector.strip() if config.selector else None
    written = 0
    for html_file in html_files:
        soup = parse_html(html_file.read_text(encoding="utf-8", errors="replace"))
        # nav/header/footer removal is left to the configured selector
        markdown = html_to_markdown(soup, selector=selector, rewrite=config.rewrite_links)

        target = (output_dir / html_file.relative_to(work_dir)).with_suffix(".md")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(markdown, encoding="utf-8")
        written += 1

    if written == 0:
        raise PreprocessError(
            f"HTML preprocess produced no markdown files for {source.name}. "
            "Check work_dir and output_dir."
        )

    logger.info(f"Converted {written} HTML files for {source.name}")
    return output_dir


async def run_preprocess(checkout_root: Path, source: SourceConfig) -> Path:
    """Apply the source's preprocess step; returns the directory to scan."""
    preprocess = source.preprocess
    if preprocess is None:
        return checkout_root
    if isinstance(preprocess, SphinxPreprocess):
        return await run_sphinx_preprocess(checkout_root, source, preprocess)
    return await asyncio.to_thread(run_html_preprocess, checkout_root, source, preprocess)
