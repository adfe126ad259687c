"""HTML to GitHub-flavored Markdown conversion."""

import logging
import re
from typing import Optional, Union

import soupsieve
from bs4 import BeautifulSoup, NavigableString, Tag
from markdownify import ATX, MarkdownConverter

from docharvest.core.constants import (
    ALWAYS_STRIPPED_TAGS,
    CONTENT_ROOT_CANDIDATES,
    DEFAULT_TITLE,
    HTML_SUFFIXES,
    LAYOUT_TAGS,
)

logger = logging.getLogger(__name__)

_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_LANGUAGE_CLASS = re.compile(r"^(?:language|lang|highlight)-(.+)$")


def _code_language(el: Tag) -> str:
    """Pick a fence language from ``language-*`` style classes on <pre> or its <code>."""
    candidates = [el]
    code = el.find("code")
    if isinstance(code, Tag):
        candidates.append(code)
    for node in candidates:
        for cls in node.get("class") or []:
            match = _LANGUAGE_CLASS.match(cls)
            if match:
                return match.group(1)
    return ""


class DocsMarkdownConverter(MarkdownConverter):
    """markdownify converter preset for documentation pages."""

    def __init__(self, **options):
        defaults = {
            "heading_style": ATX,
            "bullets": "-",
            "code_language_callback": _code_language,
            "escape_misc": False,
            "table_infer_header": True,
        }
        defaults.update(options)
        super().__init__(**defaults)


def parse_html(html: str) -> BeautifulSoup:
    """Parse an HTML document or fragment."""
    return BeautifulSoup(html, "lxml")


def extract_title(soup: BeautifulSoup) -> str:
    """Document <title> text, or "untitled"."""
    title_tag = soup.find("title")
    if title_tag:
        text = title_tag.get_text().strip()
        if text:
            return text
    return DEFAULT_TITLE


def _select_first(soup: BeautifulSoup, selector: str) -> Optional[Tag]:
    try:
        return soup.select_one(selector)
    except soupsieve.SelectorSyntaxError as e:
        logger.warning(f"Ignoring invalid selector {selector!r}: {e}")
        return None


def select_content(soup: BeautifulSoup, selector: Optional[str] = None) -> Tag:
    """Pick the element holding the page's main content."""
    if selector:
        found = _select_first(soup, selector)
        if found is not None:
            return found
        logger.debug(f"Selector {selector!r} matched nothing, using default content roots")

    for candidate in CONTENT_ROOT_CANDIDATES:
        found = soup.select_one(candidate)
        if found is not None:
            return found

    return soup.body or soup


def strip_elements(root: Tag, names: list[str]) -> None:
    """Remove every descendant element with one of the given tag names."""
    for tag in root.find_all(names):
        tag.decompose()


def rewrite_href(href: str) -> Optional[str]:
    """Rewrite a relative ``.html``/``.htm`` link to ``.md``.

    Returns None when the link should be left untouched: empty, same-page
    fragments, protocol-relative and scheme-qualified URLs, and paths without
    an HTML extension.
    """
    trimmed = href.strip()
    if not trimmed or trimmed.startswith("#") or trimmed.startswith("//"):
        return None
    if _SCHEME.match(trimmed):
        return None

    path, hash_sep, fragment = trimmed.partition("#")
    path, query_sep, query = path.partition("?")
    if not path:
        return None

    lower = path.lower()
    for ext in HTML_SUFFIXES:
        if lower.endswith(ext):
            rewritten = f"{path[: -len(ext)]}.md"
            if query_sep:
                rewritten += f"?{query}"
            if hash_sep:
                rewritten += f"#{fragment}"
            return rewritten
    return None


def rewrite_links(root: Tag) -> int:
    """Rewrite internal HTML links under root in place. Returns the count."""
    anchors = root.find_all("a", href=True)
    if root.name == "a" and root.get("href"):
        anchors.insert(0, root)

    count = 0
    for anchor in anchors:
        rewritten = rewrite_href(anchor["href"])
        if rewritten:
            anchor["href"] = rewritten
            count += 1
    return count


def _mark_task_items(root: Tag) -> None:
    """Turn checkbox inputs into ``[ ]``/``[x]`` text so list items become task items."""
    for box in root.find_all("input"):
        if (box.get("type") or "").lower() != "checkbox":
            continue
        mark = "[x]" if box.has_attr("checked") else "[ ]"
        following = box.next_sibling
        if not (isinstance(following, NavigableString) and following[:1].isspace()):
            mark += " "
        box.replace_with(NavigableString(mark))
    for strike in root.find_all("strike"):
        strike.name = "s"


def tidy_markdown(text: str) -> str:
    """Collapse blank-line runs and trailing spaces."""
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip() + "\n" if text.strip() else ""


def html_to_markdown(
    html: Union[str, BeautifulSoup],
    selector: Optional[str] = None,
    strip_layout: bool = False,
    rewrite: bool = False,
) -> str:
    """Convert an HTML page to Markdown.

    The content root is chosen by ``select_content``. Scripts and styles are
    always dropped; ``strip_layout`` also drops nav/header/footer, and
    ``rewrite`` turns relative ``.html`` links into ``.md`` links.
    """
    soup = parse_html(html) if isinstance(html, str) else html
    root = select_content(soup, selector)

    strip_elements(root, ALWAYS_STRIPPED_TAGS)
    if strip_layout:
        strip_elements(root, LAYOUT_TAGS)
    if rewrite:
        rewrite_links(root)
    _mark_task_items(root)

    markdown = DocsMarkdownConverter().convert_soup(root)
    return tidy_markdown(markdown)
