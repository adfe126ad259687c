"""Tests for documentation tree scanning."""

import pytest

from docharvest.core.schemas import ScanConfig
from docharvest.ingestion.scanner import scan_docs, scan_multiple_paths


def make_tree(root, files):
    for rel in files:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("# doc\n", encoding="utf-8")


def test_scan_docs(tmp_path):
    """Test default scanning of md/mdx files."""
    make_tree(
        tmp_path,
        [
            "index.md",
            "intro.mdx",
            "notes.txt",
            "api/client.md",
            "api/deep/server.MD",
            "node_modules/pkg/readme.md",
            ".github/contributing.md",
        ],
    )

    tree = scan_docs(tmp_path, ScanConfig())

    assert tree == {
        "": ["index.md", "intro.mdx"],
        "api": ["client.md"],
        "api/deep": ["server.MD"],
    }


def test_scan_options(tmp_path):
    """Test hidden dirs, md toggles and custom extensions."""
    make_tree(tmp_path, ["a.md", "b.mdx", "c.rst", ".hidden/d.md"])

    assert scan_docs(tmp_path, ScanConfig(include_mdx=False)) == {"": ["a.md"]}
    assert scan_docs(tmp_path, ScanConfig(include_hidden_dirs=True))[".hidden"] == ["d.md"]
    assert scan_docs(tmp_path, ScanConfig(extensions=["rst", ".MD"])) == {"": ["a.md", "c.rst"]}


def test_scan_file_root(tmp_path):
    """Test that a single file can be scanned."""
    make_tree(tmp_path, ["README.md", "setup.py"])

    assert scan_docs(tmp_path / "README.md", ScanConfig()) == {"": ["README.md"]}
    assert scan_docs(tmp_path / "setup.py", ScanConfig()) == {}


def test_scan_missing_root(tmp_path):
    """Test that a missing root raises."""
    with pytest.raises(FileNotFoundError):
        scan_docs(tmp_path / "nope", ScanConfig())


def test_scan_multiple_paths(tmp_path):
    """Test merging several roots relative to a base directory."""
    make_tree(tmp_path, ["docs/guide.md", "docs/api/ref.md", "README.md", "CHANGELOG.md"])

    tree = scan_multiple_paths(
        [tmp_path / "docs", tmp_path / "README.md"], ScanConfig(), base_dir=tmp_path
    )

    assert tree == {"docs": ["guide.md"], "docs/api": ["ref.md"], "": ["README.md"]}
