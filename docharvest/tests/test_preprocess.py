"""Tests for checkout preprocessing."""

import asyncio

import pytest

from docharvest.core.schemas import SourceConfig
from docharvest.ingestion.preprocess import (
    PreprocessError,
    collect_html_files,
    explain_sphinx_failure,
    run_preprocess,
)


def html_source(**preprocess):
    return SourceConfig.model_validate(
        {
            "name": "site",
            "repo": "https://example.com/site.git",
            "source_path": "site",
            "preprocess": {"type": "html", **preprocess},
        }
    )


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_html_preprocess_mirrors_tree(tmp_path):
    """Test that HTML files become a mirrored Markdown tree with rewritten links."""
    write(
        tmp_path / "site" / "index.html",
        '<html><body><h1>Home</h1><p>See <a href="guide/setup.html#cli">setup</a>.</p></body></html>',
    )
    write(
        tmp_path / "site" / "guide" / "setup.htm",
        '<html><body><nav>Menu</nav><h1>Setup</h1><a href="../index.html">Back</a></body></html>',
    )
    write(tmp_path / "site" / ".buildinfo" / "skip.html", "<p>skip</p>")

    output = asyncio.run(run_preprocess(tmp_path, html_source()))

    assert output == (tmp_path / "docharvest-build").resolve()
    index = (output / "index.md").read_text(encoding="utf-8")
    setup = (output / "guide" / "setup.md").read_text(encoding="utf-8")
    assert index.startswith("# Home")
    assert "[setup](guide/setup.md#cli)" in index
    assert "[Back](../index.md)" in setup
    # layout elements are kept unless a selector excludes them
    assert "Menu" in setup
    assert not (output / ".buildinfo").exists()


def test_html_preprocess_selector_and_no_rewrite(tmp_path):
    """Test the selector and the rewrite_links switch."""
    write(
        tmp_path / "site" / "page.html",
        '<body><div class="nav">Menu</div><div class="body"><a href="x.html">X</a></div></body>',
    )

    output = asyncio.run(
        run_preprocess(tmp_path, html_source(selector=".body", rewrite_links=False, output_dir="out"))
    )

    page = (output / "page.md").read_text(encoding="utf-8")
    assert output.name == "out"
    assert "[X](x.html)" in page
    assert "Menu" not in page


def test_html_preprocess_no_files(tmp_path):
    """Test that an empty work dir fails."""
    (tmp_path / "site").mkdir()

    with pytest.raises(PreprocessError, match="no markdown files"):
        asyncio.run(run_preprocess(tmp_path, html_source()))


def test_missing_work_dir(tmp_path):
    """Test that a missing work dir fails."""
    with pytest.raises(PreprocessError, match="work_dir not found"):
        asyncio.run(run_preprocess(tmp_path, html_source()))


def test_output_dir_must_not_contain_work_dir(tmp_path):
    """Test that the output dir cannot wipe the sources it converts."""
    (tmp_path / "site").mkdir()

    with pytest.raises(PreprocessError, match="must not contain work_dir"):
        asyncio.run(run_preprocess(tmp_path, html_source(output_dir=".")))


def test_paths_must_stay_inside_checkout(tmp_path):
    """Test that work and output dirs cannot escape the checkout."""
    (tmp_path / "site").mkdir()

    with pytest.raises(PreprocessError, match="escapes root"):
        asyncio.run(run_preprocess(tmp_path, html_source(output_dir="../elsewhere")))


def test_collect_html_files_skips_output(tmp_path):
    """Test that the output dir is never re-read as input."""
    write(tmp_path / "a.html", "<p>a</p>")
    write(tmp_path / "out" / "b.html", "<p>b</p>")
    write(tmp_path / "sub" / "c.HTM", "<p>c</p>")

    found = collect_html_files(tmp_path, skip_dir=tmp_path / "out")

    assert found == [tmp_path / "a.html", tmp_path / "sub" / "c.HTM"]


def test_explain_sphinx_failure():
    """Test actionable messages for common Sphinx failures."""
    assert "Sphinx is not installed" in explain_sphinx_failure(
        "exit status 1", "No module named sphinx"
    )
    assert "sphinx-markdown-builder" in explain_sphinx_failure(
        "exit status 2", "ModuleNotFoundError: No module named 'sphinx_markdown_builder'"
    )
    assert "sphinxcontrib.mermaid" in explain_sphinx_failure(
        "exit status 2", "No module named 'sphinxcontrib.mermaid'"
    )
    assert "Markdown builder is unavailable" in explain_sphinx_failure(
        "exit status 2", "Sphinx error:\nBuilder name markdown not registered"
    )
    assert explain_sphinx_failure("exit status 2", "  some other error  ") == "some other error"
    assert explain_sphinx_failure("exit status 2") == "exit status 2"


def test_html_preprocess_leaves_event_loop_free(tmp_path):
    """Test that other tasks keep running while HTML is converted."""
    for i in range(40):
        write(tmp_path / "site" / f"page{i}.html", f"<body><h1>Page {i}</h1><p>{'text ' * 200}</p></body>")

    async def scenario():
        done = asyncio.Event()
        ticks = 0

        async def convert():
            try:
                return await run_preprocess(tmp_path, html_source())
            finally:
                done.set()

        async def ticker():
            nonlocal ticks
            while not done.is_set():
                ticks += 1
                await asyncio.sleep(0)

        output, _ = await asyncio.gather(convert(), ticker())
        return output, ticks

    output, ticks = asyncio.run(scenario())

    assert len(list(output.glob("*.md"))) == 40
    assert ticks > 0
