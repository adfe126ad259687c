"""Data models for the acquisition pipeline."""

from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ContentKind(str, Enum):
    """How a fetched page's Markdown was obtained."""

    NATIVE_MARKDOWN = "native_markdown"
    CONVERTED_FROM_HTML = "converted_from_html"


class PageRecord(BaseModel):
    """One fetched page, alive only until its file is written."""

    source_url: str
    title: str
    content: str
    content_kind: ContentKind


class CheckoutResult(BaseModel):
    """Outcome of a sparse git checkout."""

    ok: bool
    paths: list[Path] = Field(default_factory=list)
    ref: Optional[str] = None
    error: Optional[str] = None


class UrlFetchReport(BaseModel):
    """Files written by a URL fetch run plus the per-URL warnings."""

    written: list[Path] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class AcquisitionResult(BaseModel):
    """Outcome of acquiring one source.

    Git sources hand back checkout paths for a later scan; URL and sitemap
    sources have already written Markdown into ``output_dir``.
    """

    ok: bool
    kind: Literal["git", "urls", "sitemap"]
    paths: list[Path] = Field(default_factory=list)
    checkout_root: Optional[Path] = None
    output_dir: Optional[Path] = None
    ref: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class SourceOutcome(BaseModel):
    """Per-source result reported to the caller."""

    name: str
    success: bool
    error: Optional[str] = None


class SourceFailure(BaseModel):
    name: str
    error: str


class GenerateSummary(BaseModel):
    """Aggregate result of a generate run."""

    total: int
    succeeded: int
    failed: int
    failures: list[SourceFailure] = Field(default_factory=list)
