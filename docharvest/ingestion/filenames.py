"""Derive unique, filesystem-safe file names from page titles."""

import re

from docharvest.core.constants import DEFAULT_SLUG, MAX_SLUG_LENGTH, TITLE_SEPARATORS

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def _common_lead(strings: list[str]) -> str:
    """Longest leading run shared by all strings (via the sorted extremes)."""
    ordered = sorted(strings)
    first, last = ordered[0], ordered[-1]
    i = 0
    while i < len(first) and i < len(last) and first[i] == last[i]:
        i += 1
    return first[:i]


def find_common_prefix(titles: list[str]) -> str:
    """Common title prefix, truncated to end right after a separator.

    Returns "" when there are fewer than two titles or no separator-aligned
    prefix exists.
    """
    if len(titles) < 2:
        return ""
    raw = _common_lead(titles)
    best = ""
    for sep in TITLE_SEPARATORS:
        idx = raw.rfind(sep)
        if idx >= 0:
            candidate = raw[: idx + len(sep)]
            if len(candidate) > len(best):
                best = candidate
    return best


def find_common_suffix(titles: list[str]) -> str:
    """Common title suffix, truncated to start right at a separator."""
    if len(titles) < 2:
        return ""
    raw = _common_lead([t[::-1] for t in titles])[::-1]
    best = ""
    for sep in TITLE_SEPARATORS:
        idx = raw.find(sep)
        if idx >= 0:
            candidate = raw[idx:]
            if len(candidate) > len(best):
                best = candidate
    return best


def strip_common_affixes(titles: list[str]) -> list[str]:
    """Strip the batch-wide site prefix/suffix (e.g. " - X Docs") from every title."""
    if len(titles) < 2:
        return list(titles)

    prefix = find_common_prefix(titles)
    suffix = find_common_suffix(titles)

    stripped = []
    for title in titles:
        result = title
        if prefix and result.startswith(prefix):
            result = result[len(prefix):]
        if suffix and result.endswith(suffix):
            result = result[: len(result) - len(suffix)]
        stripped.append(result.strip() or title)
    return stripped


def slugify(text: str) -> str:
    """Lowercase, hyphen-delimited slug, at most 100 characters."""
    slug = _NON_ALNUM.sub("-", text.lower()).strip("-")
    return slug[:MAX_SLUG_LENGTH] or DEFAULT_SLUG


def assign_filenames(titles: list[str]) -> list[str]:
    """Map ordered titles to unique base names (without extension).

    A slug already used earlier in the batch gets ``-<index>`` appended, where
    index is the title's zero-based position. If that suffixed form is itself
    taken the number is bumped until it is free.
    """
    used: set[str] = set()
    names = []
    for index, title in enumerate(strip_common_affixes(titles)):
        slug = slugify(title)
        if slug in used:
            n = index
            while f"{slug}-{n}" in used:
                n += 1
            slug = f"{slug}-{n}"
        used.add(slug)
        names.append(slug)
    return names
