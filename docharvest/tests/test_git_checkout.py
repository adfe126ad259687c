"""Tests for sparse git checkouts."""

import asyncio

from docharvest.ingestion.git_checkout import (
    GitCommandError,
    candidate_refs,
    get_default_branch,
    is_root_path,
    looks_like_file,
    normalize_source_path,
    sparse_checkout,
    sparse_plan,
)

REPO = "https://github.com/example/project.git"


def checkout(runner, paths, work_dir, ref=None):
    return asyncio.run(sparse_checkout(REPO, paths, work_dir, ref=ref, runner=runner))


def test_normalize_source_path():
    """Test separator and slash normalization."""
    assert normalize_source_path("./docs/") == "docs"
    assert normalize_source_path("\\docs\\api\\") == "docs/api"
    assert normalize_source_path("  /guides  ") == "guides"
    assert normalize_source_path(".") == "."
    assert normalize_source_path("./") == ""


def test_root_and_file_detection():
    """Test root selectors and file-like selectors."""
    assert is_root_path("")
    assert is_root_path(".")
    assert not is_root_path("docs")
    assert looks_like_file("README.md")
    assert looks_like_file("docs/guide.mdx")
    assert not looks_like_file("docs/api")


def test_sparse_plan():
    """Test cone, pattern and unrestricted sparse modes."""
    assert sparse_plan(["docs", "guides"]) == ("cone", ["docs", "guides"])
    assert sparse_plan(["docs", "README.md"]) == ("no-cone", ["/docs/**", "/README.md"])
    assert sparse_plan(["", "."]) == (None, [])
    assert sparse_plan(["", "docs"]) == ("cone", ["docs"])


def test_candidate_refs():
    """Test ref ordering and de-duplication."""
    assert candidate_refs(None, "develop") == ["develop", "main", "master"]
    assert candidate_refs(None, "main") == ["main", "master"]
    assert candidate_refs(None, None) == ["main", "master"]
    assert candidate_refs("v1.2.0", "develop") == ["v1.2.0"]


def test_get_default_branch(fake_git, tmp_path):
    """Test parsing of the ls-remote symref output."""
    assert asyncio.run(get_default_branch(tmp_path, fake_git(default_branch="trunk"))) == "trunk"
    assert asyncio.run(get_default_branch(tmp_path, fake_git(default_branch=None))) is None


def test_default_branch_fails_then_main(fake_git, tmp_path):
    """Test fallback to main when the default branch can't be fetched."""
    git = fake_git(default_branch="trunk", good_refs=["main"], files=["docs"])

    result = checkout(git, ["docs"], tmp_path / "work")

    assert result.ok
    assert result.ref == "main"
    assert result.paths == [tmp_path / "work" / "docs"]
    assert [c[-1] for c in git.commands("fetch")] == ["trunk", "main"]
    assert git.calls[-1] == ["checkout", "FETCH_HEAD"]


def test_cone_mode_commands(fake_git, tmp_path):
    """Test the command sequence for directory selectors."""
    git = fake_git(default_branch="main", files=["docs", "guides"])

    result = checkout(git, ["./docs/", "guides"], tmp_path / "work")

    assert result.ok
    assert git.calls[:4] == [
        ["init"],
        ["remote", "add", "origin", REPO],
        ["sparse-checkout", "init", "--cone"],
        ["sparse-checkout", "set", "docs", "guides"],
    ]
    assert ["ls-remote", "--symref", "origin", "HEAD"] in git.calls
    assert ["fetch", "--depth=1", "origin", "main"] in git.calls


def test_pattern_mode_for_files(fake_git, tmp_path):
    """Test that a file selector switches to pattern mode."""
    git = fake_git(default_branch="main", files=["docs", "README.md"])

    result = checkout(git, ["docs", "README.md"], tmp_path / "work")

    assert result.ok
    assert ["sparse-checkout", "init", "--no-cone"] in git.calls
    assert ["sparse-checkout", "set", "--no-cone", "/docs/**", "/README.md"] in git.calls
    assert result.paths == [tmp_path / "work" / "docs", tmp_path / "work" / "README.md"]


def test_root_selector_skips_sparse(fake_git, tmp_path):
    """Test that a root selector checks out the whole tree."""
    git = fake_git(default_branch="main")

    result = checkout(git, ["."], tmp_path / "work")

    assert result.ok
    assert result.paths == [tmp_path / "work"]
    assert git.commands("sparse-checkout") == []


def test_requested_ref_only(fake_git, tmp_path):
    """Test that an explicit ref is the only candidate and skips ls-remote."""
    git = fake_git(default_branch="main", good_refs=["main"], files=["docs"])

    result = checkout(git, ["docs"], tmp_path / "work", ref="v2.0.0")

    assert not result.ok
    assert "v2.0.0" in result.error
    assert git.commands("ls-remote") == []
    assert [c[-1] for c in git.commands("fetch")] == ["v2.0.0"]


def test_missing_paths_fail(fake_git, tmp_path):
    """Test that a checkout without any requested path fails."""
    git = fake_git(default_branch="main", good_refs=["main", "master"], files=[])

    result = checkout(git, ["docs"], tmp_path / "work")

    assert not result.ok
    assert result.error == "None of the requested paths exist at master: docs"
    assert [c[-1] for c in git.commands("fetch")] == ["main", "master"]


def test_partial_paths_succeed(fake_git, tmp_path):
    """Test that one existing path out of several is enough."""
    git = fake_git(default_branch="main", files=["docs"])

    result = checkout(git, ["docs", "guides"], tmp_path / "work")

    assert result.ok
    assert result.paths == [tmp_path / "work" / "docs"]


def test_setup_failure_is_reported(tmp_path):
    """Test that a failing init is captured as a diagnostic."""

    async def broken(args, cwd):
        raise GitCommandError(args, None, "git executable not found on PATH")

    result = checkout(broken, ["docs"], tmp_path / "work")

    assert not result.ok
    assert result.error == "git init failed: git executable not found on PATH"


def test_work_dir_is_reset(fake_git, tmp_path):
    """Test that leftovers in the work dir are removed before checkout."""
    work = tmp_path / "work"
    work.mkdir()
    (work / "stale.txt").write_text("old", encoding="utf-8")

    checkout(fake_git(default_branch="main", files=["docs"]), ["docs"], work)

    assert not (work / "stale.txt").exists()
