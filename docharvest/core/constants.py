"""Application constants."""

# Project config discovery order
CONFIG_SEARCH_PLACES = [
    "docharvest.config.yaml",
    "docharvest.config.yml",
    "docharvest.config.json",
    ".docharvestrc",
    ".docharvestrc.yaml",
    ".docharvestrc.yml",
    ".docharvestrc.json",
]

# Title affix separators, each with its surrounding spacing
TITLE_SEPARATORS = [" - ", " | ", ": ", " — ", " – "]

# Filenames
MAX_SLUG_LENGTH = 100
DEFAULT_SLUG = "page"
DEFAULT_TITLE = "untitled"

# Git
FALLBACK_BRANCHES = ["main", "master"]

# Content negotiation
MARKDOWN_CONTENT_TYPES = ("text/markdown", "text/x-markdown")
MARKDOWN_SUFFIXES = (".md", ".mdx", ".markdown")
HTML_SUFFIXES = (".html", ".htm")

# HTML content roots, tried in order after a caller selector
CONTENT_ROOT_CANDIDATES = ["main", "article", "#content", ".content", ".document"]
ALWAYS_STRIPPED_TAGS = ["script", "style"]
LAYOUT_TAGS = ["nav", "header", "footer"]

# Preprocessing
DEFAULT_PREPROCESS_OUTPUT_DIR = "docharvest-build"

# Scanning
DEFAULT_EXCLUDE_DIRS = ["node_modules", "images", "img", "media", "assets", "css", "fonts"]
