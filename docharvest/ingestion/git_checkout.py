"""Shallow, sparse git checkouts of documentation paths."""

import asyncio
import logging
import os
import posixpath
import re
import shutil
from pathlib import Path
from typing import Awaitable, Callable, Optional

from docharvest.core.constants import FALLBACK_BRANCHES
from docharvest.core.utils import dedupe
from docharvest.ingestion.models import CheckoutResult

logger = logging.getLogger(__name__)

_SYMREF_HEAD = re.compile(r"ref: refs/heads/(\S+)\s+HEAD")

GitRunner = Callable[[list[str], Path], Awaitable[str]]


class GitCommandError(Exception):
    """A git subprocess exited non-zero or could not be started."""

    def __init__(self, args: list[str], returncode: Optional[int], stderr: str):
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr or f"exit status {returncode}"
        super().__init__(f"git {' '.join(args)} failed: {detail}")


async def run_git(args: list[str], cwd: Path) -> str:
    """Run one git command and return its stdout.

    Credential prompts are disabled so private or missing repositories fail
    immediately instead of waiting on a terminal.
    """
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", "GCM_INTERACTIVE": "never"}
    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=str(cwd),
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise GitCommandError(args, None, "git executable not found on PATH") from e

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise GitCommandError(args, proc.returncode, stderr.decode(errors="replace").strip())
    return stdout.decode(errors="replace")


def normalize_source_path(path: str) -> str:
    """Forward slashes, no leading ``./``, no leading or trailing slashes."""
    normalized = path.replace("\\", "/").strip()
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.strip("/")


def is_root_path(path: str) -> bool:
    return path in ("", ".")


def looks_like_file(path: str) -> bool:
    """Whether a selector names a file rather than a directory (has an extension)."""
    return bool(posixpath.splitext(posixpath.basename(path))[1])


def sparse_plan(selectors: list[str]) -> tuple[Optional[str], list[str]]:
    """Choose the sparse-checkout mode and its arguments.

    Returns ``(None, [])`` when every selector is the repository root,
    ``("no-cone", patterns)`` when any selector is a file, else
    ``("cone", directories)``. Root selectors add no restriction.
    """
    restricted = [s for s in selectors if not is_root_path(s)]
    if not restricted:
        return None, []
    if any(looks_like_file(s) for s in restricted):
        patterns = [f"/{s}" if looks_like_file(s) else f"/{s}/**" for s in restricted]
        return "no-cone", dedupe(patterns)
    return "cone", dedupe(restricted)


async def get_default_branch(cwd: Path, runner: GitRunner = run_git) -> Optional[str]:
    """Default branch advertised by ``origin``, or None if it can't be read."""
    try:
        output = await runner(["ls-remote", "--symref", "origin", "HEAD"], cwd)
    except GitCommandError as e:
        logger.debug(f"Could not read default branch: {e}")
        return None
    match = _SYMREF_HEAD.search(output)
    return match.group(1) if match else None


def candidate_refs(requested: Optional[str], default_branch: Optional[str]) -> list[str]:
    """Refs to try in order: the requested one alone, else default then main/master."""
    if requested:
        return [requested]
    refs = [default_branch] if default_branch else []
    return dedupe(refs + FALLBACK_BRANCHES)


def _reset_dir(path: Path) -> None:
    shutil.rmtree(path, ignore_errors=True)
    path.mkdir(parents=True, exist_ok=True)


async def sparse_checkout(
    repo_url: str,
    source_paths: list[str],
    work_dir: str | Path,
    ref: Optional[str] = None,
    runner: GitRunner = run_git,
) -> CheckoutResult:
    """Fetch only the requested paths of a repository at depth 1.

    Each candidate ref is fetched and checked out in turn; the first one whose
    checkout succeeds and contains at least one requested path wins. Failures
    come back as ``CheckoutResult(ok=False, error=...)``.
    """
    work_dir = Path(work_dir)
    selectors = [normalize_source_path(p) for p in source_paths] or [""]
    requested_ref = ref.strip() if ref else None

    try:
        _reset_dir(work_dir)
        await runner(["init"], work_dir)
        await runner(["remote", "add", "origin", repo_url], work_dir)

        mode, sparse_args = sparse_plan(selectors)
        if mode == "cone":
            await runner(["sparse-checkout", "init", "--cone"], work_dir)
            await runner(["sparse-checkout", "set", *sparse_args], work_dir)
        elif mode == "no-cone":
            await runner(["sparse-checkout", "init", "--no-cone"], work_dir)
            await runner(["sparse-checkout", "set", "--no-cone", *sparse_args], work_dir)

        default_branch = None if requested_ref else await get_default_branch(work_dir, runner)
        refs = candidate_refs(requested_ref, default_branch)
    except (GitCommandError, OSError) as e:
        return CheckoutResult(ok=False, error=str(e))

    last_error = ""
    for candidate in refs:
        try:
            await runner(["fetch", "--depth=1", "origin", candidate], work_dir)
            await runner(["checkout", "FETCH_HEAD"], work_dir)
        except GitCommandError as e:
            logger.debug(f"Ref {candidate} of {repo_url} unusable: {e}")
            last_error = str(e)
            continue

        resolved = [work_dir if is_root_path(s) else work_dir / s for s in selectors]
        existing = dedupe(p for p in resolved if p.exists())
        if not existing:
            last_error = (
                f"None of the requested paths exist at {candidate}: "
                f"{', '.join(s or '.' for s in selectors)}"
            )
            continue

        for path, selector in zip(resolved, selectors):
            if not path.exists():
                logger.warning(f"Requested path not found in {repo_url}@{candidate}: {selector}")
        logger.info(f"Checked out {repo_url} at {candidate}")
        return CheckoutResult(ok=True, paths=existing, ref=candidate)

    return CheckoutResult(ok=False, error=last_error or "No requested paths found.")

