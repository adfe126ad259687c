"""Pydantic schemas for project configuration."""

from typing import Annotated, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from docharvest.core.constants import DEFAULT_EXCLUDE_DIRS


class ScanConfig(BaseModel):
    """Which files a local tree scan picks up."""

    model_config = ConfigDict(extra="forbid")

    include_md: bool = True
    include_mdx: bool = True
    include_hidden_dirs: bool = False
    exclude_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    extensions: Optional[list[str]] = None

    def extension_set(self) -> set[str]:
        """Lower-cased extensions to include; custom extensions win over the md/mdx flags."""
        if self.extensions:
            return {
                ext.lower() if ext.startswith(".") else f".{ext.lower()}"
                for ext in self.extensions
            }
        exts = set()
        if self.include_md:
            exts.add(".md")
        if self.include_mdx:
            exts.add(".mdx")
        return exts


class ScanOverride(BaseModel):
    """Per-source scan settings, merged onto the project scan config."""

    model_config = ConfigDict(extra="forbid")

    include_md: Optional[bool] = None
    include_mdx: Optional[bool] = None
    include_hidden_dirs: Optional[bool] = None
    exclude_dirs: Optional[list[str]] = None
    extensions: Optional[list[str]] = None

    def merge_onto(self, base: ScanConfig) -> ScanConfig:
        return base.model_copy(update=self.model_dump(exclude_none=True))


class GitignoreConfig(BaseModel):
    """Gitignore bookkeeping settings."""

    model_config = ConfigDict(extra="forbid")

    add_docs_dir: bool = True
    add_index_files: bool = False
    section_header: str = "docharvest generated docs"


class SitemapPathRule(BaseModel):
    """Sitemap inclusion rule: a path prefix plus opted-in nested sub-sections."""

    prefix: str
    subs: list[str] = Field(default_factory=list)


class SphinxPreprocess(BaseModel):
    """Build Markdown from a Sphinx project inside the checkout."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["sphinx"]
    work_dir: Optional[str] = None
    output_dir: Optional[str] = None
    builder: Literal["markdown"] = "markdown"


class HtmlPreprocess(BaseModel):
    """Convert a static HTML dump inside the checkout to Markdown."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["html"]
    work_dir: Optional[str] = None
    output_dir: Optional[str] = None
    selector: Optional[str] = None
    rewrite_links: bool = True


PreprocessConfig = Annotated[
    Union[SphinxPreprocess, HtmlPreprocess], Field(discriminator="type")
]


class SourceConfig(BaseModel):
    """One documentation source.

    Exactly one acquisition mode is allowed: a git repository (``repo`` plus
    ``source_path`` or ``source_paths``), a static ``urls`` list, or a
    ``sitemap`` endpoint with optional ``paths`` rules.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str = Field(..., min_length=1)

    # git mode
    repo: Optional[str] = None
    source_path: Optional[str] = None
    source_paths: Optional[list[str]] = None
    ref: Optional[str] = None

    # url mode
    urls: Optional[list[str]] = None

    # sitemap mode
    sitemap: Optional[str] = None
    paths: list[SitemapPathRule] = Field(default_factory=list)

    selector: Optional[str] = None
    preprocess: Optional[PreprocessConfig] = None
    scan: Optional[ScanOverride] = None
    content_type: Literal["docs", "source"] = "docs"

    @field_validator("name")
    @classmethod
    def name_is_path_safe(cls, value: str) -> str:
        value = value.strip()
        if not value or "/" in value or "\\" in value or value in (".", ".."):
            raise ValueError("name must be a non-empty single path segment")
        return value

    @model_validator(mode="after")
    def check_mode(self) -> "SourceConfig":
        modes = [m for m, v in (("repo", self.repo), ("urls", self.urls), ("sitemap", self.sitemap)) if v]
        if len(modes) != 1:
            raise ValueError("exactly one of repo, urls or sitemap is required")

        if self.repo:
            if not self.source_path and not self.source_paths:
                raise ValueError("repo sources need source_path or source_paths")
            if self.source_path and self.source_paths:
                raise ValueError("use either source_path or source_paths, not both")
            if self.preprocess and not self.preprocess.work_dir and len(self.selectors) > 1:
                raise ValueError("preprocess requires a single source path or an explicit work_dir")
        else:
            if self.source_path or self.source_paths or self.ref:
                raise ValueError("source_path, source_paths and ref only apply to repo sources")
            if self.preprocess:
                raise ValueError("preprocess only applies to repo sources")

        if self.paths and not self.sitemap:
            raise ValueError("paths rules only apply to sitemap sources")
        return self

    @property
    def mode(self) -> Literal["git", "urls", "sitemap"]:
        if self.repo:
            return "git"
        if self.urls:
            return "urls"
        return "sitemap"

    @property
    def selectors(self) -> list[str]:
        """Requested repository paths, single-path shorthand included."""
        if self.source_paths:
            return list(self.source_paths)
        return [self.source_path] if self.source_path else []


class ProjectConfig(BaseModel):
    """Top-level project configuration file."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    docs_dir: str = "documentation"
    indices_dir: str = "documentation/indices"
    gitignore: GitignoreConfig = Field(default_factory=GitignoreConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    sources: list[SourceConfig] = Field(
        ..., min_length=1, validation_alias=AliasChoices("sources", "repos")
    )
    concurrency: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def unique_names(self) -> "ProjectConfig":
        names = [s.name for s in self.sources]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate source names: {', '.join(duplicates)}")
        return self
