"""Generate run orchestration: acquire, scan, copy and index every source."""

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

import httpx

from docharvest.core.config import ConfigError, load_config, settings
from docharvest.core.progress import NullReporter, ProgressReporter
from docharvest.core.schemas import ProjectConfig, ScanConfig, SourceConfig
from docharvest.core.utils import to_posix, with_trailing_slash
from docharvest.ingestion.git_checkout import GitRunner, run_git
from docharvest.ingestion.gitignore import update_gitignore
from docharvest.ingestion.http import create_client
from docharvest.ingestion.indexer import build_index
from docharvest.ingestion.models import GenerateSummary, SourceFailure, SourceOutcome
from docharvest.ingestion.preprocess import run_preprocess
from docharvest.ingestion.scanner import DocTree, scan_docs, scan_multiple_paths
from docharvest.ingestion.sources import acquire_source

logger = logging.getLogger(__name__)


def copy_docs(source_root: Path, target_root: Path, tree: DocTree) -> int:
    """Copy the scanned files from source_root into target_root."""
    copied = 0
    for directory, files in tree.items():
        source_dir = source_root / directory if directory else source_root
        target_dir = target_root / directory if directory else target_root
        target_dir.mkdir(parents=True, exist_ok=True)
        for name in files:
            shutil.copyfile(source_dir / name, target_dir / name)
            copied += 1
    return copied


def _replace_dir(staging: Path, target: Path) -> None:
    shutil.rmtree(target, ignore_errors=True)
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(staging), str(target))


class GenerateRun:
    """State shared by the sources of one generate run."""

    def __init__(
        self,
        config: ProjectConfig,
        repo_root: Path,
        reporter: ProgressReporter,
        fetch_concurrency: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        git_runner: GitRunner = run_git,
    ):
        self.config = config
        self.repo_root = repo_root
        self.docs_root = (repo_root / config.docs_dir).resolve()
        self.indices_root = (repo_root / config.indices_dir).resolve()
        self.reporter = reporter
        self.fetch_concurrency = fetch_concurrency or settings.fetch_concurrency
        self.transport = transport
        self.git_runner = git_runner
        self.gitignore_lock = asyncio.Lock()

    def _scan_config(self, source: SourceConfig) -> ScanConfig:
        return source.scan.merge_onto(self.config.scan) if source.scan else self.config.scan

    async def _acquire_git(self, source: SourceConfig, temp_dir: Path, output_dir: Path) -> None:
        result = await acquire_source(
            source, temp_dir / "checkout", output_dir, git_runner=self.git_runner
        )
        if not result.ok:
            raise RuntimeError(f"failed to clone {source.name}: {result.error}")

        scan = self._scan_config(source)
        if source.preprocess is not None:
            scan_root = await run_preprocess(result.checkout_root, source)
            tree = await asyncio.to_thread(scan_docs, scan_root, scan)
        elif len(result.paths) == 1 and result.paths[0].is_dir():
            # a single directory is copied flat, without its repository prefix
            scan_root = result.paths[0]
            tree = await asyncio.to_thread(scan_docs, scan_root, scan)
        else:
            scan_root = result.checkout_root
            tree = await asyncio.to_thread(
                scan_multiple_paths, result.paths, scan, base_dir=scan_root
            )

        if not tree:
            raise RuntimeError(f"No documentation files found for {source.name}")

        staging = temp_dir / "out"
        staging.mkdir(parents=True, exist_ok=True)
        copied = await asyncio.to_thread(copy_docs, scan_root, staging, tree)
        await asyncio.to_thread(_replace_dir, staging, output_dir)
        logger.info(f"{source.name}: copied {copied} files at {result.ref}")

    async def _acquire_urls(self, source: SourceConfig, temp_dir: Path, output_dir: Path) -> None:
        staging = temp_dir / "out"
        async with create_client(transport=self.transport) as client:
            result = await acquire_source(
                source, temp_dir, staging, self.fetch_concurrency, client
            )
        if not result.ok:
            raise RuntimeError(result.error)
        for warning in result.warnings:
            self.reporter.warn(f"Warning: {warning}")
        await asyncio.to_thread(_replace_dir, staging, output_dir)

    async def _write_index(self, source: SourceConfig, output_dir: Path) -> Path:
        # fetched pages are always .md, whatever the project scan says
        scan = self._scan_config(source) if source.mode == "git" else ScanConfig()
        tree = await asyncio.to_thread(scan_docs, output_dir, scan)
        docs_rel = to_posix(os.path.relpath(output_dir, self.repo_root))
        index_path = self.indices_root / f"{source.name}-index.md"
        index_path.parent.mkdir(parents=True, exist_ok=True)
        index_path.write_text(
            build_index(tree, source.name, docs_rel, source.content_type), encoding="utf-8"
        )
        return index_path

    async def _update_gitignore(self, output_dir: Path, index_path: Path) -> None:
        gitignore = self.config.gitignore
        entries = []
        if gitignore.add_docs_dir:
            entries.append(with_trailing_slash(to_posix(os.path.relpath(output_dir, self.repo_root))))
        if gitignore.add_index_files:
            entries.append(to_posix(os.path.relpath(index_path, self.repo_root)))
        if not entries:
            return
        async with self.gitignore_lock:
            try:
                update_gitignore(self.repo_root, entries, gitignore.section_header)
            except OSError as e:
                self.reporter.warn(f"Warning: failed to update .gitignore: {e}")

    async def process_source(self, source: SourceConfig) -> SourceOutcome:
        """Run one source end to end; every failure becomes a failed outcome."""
        output_dir = self.docs_root / source.name
        temp_dir = Path(tempfile.mkdtemp(prefix="docharvest-"))
        try:
            if source.mode == "git":
                await self._acquire_git(source, temp_dir, output_dir)
            else:
                await self._acquire_urls(source, temp_dir, output_dir)
            index_path = await self._write_index(source, output_dir)
            await self._update_gitignore(output_dir, index_path)
        except Exception as e:
            logger.error(f"Source {source.name} failed: {e}")
            return SourceOutcome(name=source.name, success=False, error=str(e))
        finally:
            await asyncio.to_thread(shutil.rmtree, temp_dir, ignore_errors=True)

        return SourceOutcome(name=source.name, success=True)


def select_sources(config: ProjectConfig, only: Optional[list[str]]) -> list[SourceConfig]:
    """Sources named in ``only`` (all when empty); raises ConfigError if none match."""
    sources = config.sources
    if only:
        wanted = set(only)
        sources = [s for s in sources if s.name in wanted]
    if not sources:
        raise ConfigError("No sources matched the provided filter.")
    return sources


async def generate_docs(
    config_path: Optional[str] = None,
    only: Optional[list[str]] = None,
    concurrency: Optional[int] = None,
    cwd: Optional[str] = None,
    reporter: Optional[ProgressReporter] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    git_runner: GitRunner = run_git,
    fetch_concurrency: Optional[int] = None,
) -> GenerateSummary:
    """Acquire every configured source and build its index.

    Configuration problems raise ConfigError before anything is fetched.
    Source failures never abort the run; they are collected in the summary.
    ``fetch_concurrency`` bounds the page and sitemap requests of each source.
    """
    repo_root = Path(cwd or os.getcwd()).resolve()
    config, _ = load_config(config_path, search_dir=str(repo_root))
    sources = select_sources(config, only)
    reporter = reporter or NullReporter()

    limit = concurrency or config.concurrency or settings.source_concurrency
    if limit <= 0:
        limit = settings.source_concurrency
    semaphore = asyncio.Semaphore(limit)

    run = GenerateRun(
        config,
        repo_root,
        reporter,
        fetch_concurrency=fetch_concurrency,
        transport=transport,
        git_runner=git_runner,
    )
    run.docs_root.mkdir(parents=True, exist_ok=True)
    run.indices_root.mkdir(parents=True, exist_ok=True)

    total = len(sources)
    reporter.start(f"Processing 0/{total}...", total)
    started = 0

    async def worker(source: SourceConfig) -> SourceOutcome:
        nonlocal started
        async with semaphore:
            started += 1
            reporter.update(f"Processing {started}/{total}: {source.name}")
            outcome = await run.process_source(source)
            if not outcome.success:
                reporter.warn(f"Warning: failed to process {source.name}: {outcome.error}")
            reporter.update(f"Completed {source.name}", advance=1)
            return outcome

    outcomes = await asyncio.gather(*(worker(s) for s in sources))

    failures = [SourceFailure(name=o.name, error=o.error or "unknown error") for o in outcomes if not o.success]
    summary = GenerateSummary(
        total=total,
        succeeded=total - len(failures),
        failed=len(failures),
        failures=failures,
    )
    message = f"Processed {total} sources ({summary.succeeded} succeeded, {summary.failed} failed)."
    if summary.failed:
        reporter.fail(message)
    else:
        reporter.succeed(message)
    return summary


def run_generate(**kwargs) -> GenerateSummary:
    """Synchronous wrapper around generate_docs."""
    return asyncio.run(generate_docs(**kwargs))
