"""Application configuration using Pydantic Settings."""

import json
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from docharvest.core.constants import CONFIG_SEARCH_PLACES
from docharvest.core.schemas import ProjectConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DOCHARVEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # HTTP
    user_agent: str = "docharvest/0.1"
    request_timeout: float = 30.0
    fetch_retries: int = 3

    # Concurrency
    fetch_concurrency: int = 5
    source_concurrency: int = 2

    # Project config file (searched in the working directory when empty)
    config_file: str = ""

    # Logging
    log_level: str = "INFO"


# Global settings instance
settings = Settings()


class ConfigError(Exception):
    """Raised when the project configuration is missing or invalid."""


def find_config_file(search_dir: Optional[str] = None) -> Optional[Path]:
    """Find the first project config file in a directory."""
    base = Path(search_dir or os.getcwd())
    for name in CONFIG_SEARCH_PLACES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def _read_config_data(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return json.loads(text)
    # YAML is a superset of JSON, so extensionless rc files go through it too
    return yaml.safe_load(text)


def format_validation_error(error: ValidationError) -> str:
    """Render pydantic issues as an indented bullet list."""
    lines = []
    for issue in error.errors():
        loc = ".".join(str(part) for part in issue["loc"])
        lines.append(f"  - {loc}: {issue['msg']}")
    return "\n".join(lines)


def load_config(
    config_path: Optional[str] = None, search_dir: Optional[str] = None
) -> tuple[ProjectConfig, Path]:
    """Load and validate the project configuration.

    Returns the validated config and the directory containing the config file.
    Raises ConfigError when no file is found or validation fails.
    """
    config_path = config_path or settings.config_file or None
    if config_path:
        path = Path(config_path)
        if search_dir and not path.is_absolute():
            path = Path(search_dir) / path
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
    else:
        path = find_config_file(search_dir)
        if path is None:
            raise ConfigError(
                "No docharvest configuration found. Create a docharvest.config.yaml file."
            )

    try:
        data = _read_config_data(path)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not parse {path}: {e}") from e

    if not data:
        raise ConfigError(f"Configuration file is empty: {path}")

    try:
        config = ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration:\n{format_validation_error(e)}") from e

    return config, path.resolve().parent
