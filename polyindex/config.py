"""Configuration management for polyindex.

Handles loading, saving, and validating configuration from TOML files.
Configuration is stored at <project>/.polyindex/config.toml by default.

Example configuration:
    [project]
    name = "myapp"
    include = ["**/*"]
    exclude = ["**/generated/**"]
    languages = []  # empty = every supported language

    [indexing]
    max_workers = 4
    max_file_size_bytes = 1000000
    respect_gitignore = true
    index_dir = ".polyindex"

    [search]
    default_limit = 50
    fuzzy = true
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from polyindex.engine.languages import Language
from polyindex.engine.types import ProjectConfig

logger = logging.getLogger(__name__)

DEFAULT_INDEX_DIR = ".polyindex"
CONFIG_FILENAME = "config.toml"

DEFAULT_EXCLUDE_DIRS: tuple[str, ...] = (
    "node_modules",
    ".git",
    "dist",
    "build",
    ".next",
    ".nuxt",
    ".output",
    "coverage",
    ".cache",
    "__pycache__",
    ".pytest_cache",
    "venv",
    ".venv",
    "vendor",
    "target",
    "bin",
    "obj",
    ".idea",
    ".vscode",
    DEFAULT_INDEX_DIR,
)


@dataclass
class ProjectSection:
    """Which files belong to the project."""

    name: str = ""
    include: list[str] = field(default_factory=lambda: ["**/*"])
    exclude: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)  # empty = all supported

    def to_project_config(self) -> ProjectConfig:
        return ProjectConfig(
            name=self.name,
            include=tuple(self.include),
            exclude=tuple(self.exclude),
            languages=tuple(self.languages),
        )


@dataclass
class IndexingConfig:
    """Configuration for index builds."""

    max_workers: int = 4
    max_file_size_bytes: int = 1_000_000  # 1MB
    respect_gitignore: bool = True
    index_dir: str = DEFAULT_INDEX_DIR


@dataclass
class SearchConfig:
    """Defaults for symbol search."""

    default_limit: int = 50
    fuzzy: bool = True


@dataclass
class PolyindexConfig:
    """Complete polyindex configuration."""

    project: ProjectSection = field(default_factory=ProjectSection)
    indexing: IndexingConfig = field(default_factory=IndexingConfig)
    search: SearchConfig = field(default_factory=SearchConfig)

    @classmethod
    def default(cls) -> PolyindexConfig:
        """Create default configuration."""
        return cls()


def config_path_for(project_path: str | Path, index_dir: str = DEFAULT_INDEX_DIR) -> Path:
    """Default config file location for a project."""
    return Path(project_path) / index_dir / CONFIG_FILENAME


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return default
    return value


def _string_list(value: Any, default: list[str]) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        return list(default)
    return list(value)


def _parse_project_config(data: dict[str, Any]) -> ProjectSection:
    """Parse project configuration from dict."""
    languages = []
    for name in _string_list(data.get("languages", []), []):
        try:
            languages.append(Language(name.lower()).value)
        except ValueError:
            logger.warning("Ignoring unknown language in config: %s", name)

    return ProjectSection(
        name=str(data.get("name", "")),
        include=_string_list(data.get("include", ["**/*"]), ["**/*"]),
        exclude=_string_list(data.get("exclude", []), []),
        languages=languages,
    )


def _parse_indexing_config(data: dict[str, Any]) -> IndexingConfig:
    """Parse indexing configuration from dict."""
    return IndexingConfig(
        max_workers=_positive_int(data.get("max_workers", 4), 4),
        max_file_size_bytes=_positive_int(data.get("max_file_size_bytes", 1_000_000), 1_000_000),
        respect_gitignore=bool(data.get("respect_gitignore", True)),
        index_dir=str(data.get("index_dir", DEFAULT_INDEX_DIR)) or DEFAULT_INDEX_DIR,
    )


def _parse_search_config(data: dict[str, Any]) -> SearchConfig:
    """Parse search configuration from dict."""
    return SearchConfig(
        default_limit=_positive_int(data.get("default_limit", 50), 50),
        fuzzy=bool(data.get("fuzzy", True)),
    )


def load_config(config_path: Path | None = None) -> PolyindexConfig:
    """Load configuration from TOML file.

    Args:
        config_path: Path to config file. Uses defaults if not provided.

    Returns:
        Loaded configuration, or default if file doesn't exist or is invalid.
    """
    if config_path is None or not config_path.exists():
        return PolyindexConfig.default()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        logger.warning("Failed to load config from %s: %s", config_path, e)
        return PolyindexConfig.default()

    return PolyindexConfig(
        project=_parse_project_config(data.get("project", {})),
        indexing=_parse_indexing_config(data.get("indexing", {})),
        search=_parse_search_config(data.get("search", {})),
    )


def _format_toml_value(value: Any) -> str:
    """Format a Python value as TOML."""
    if isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, str):
        # Escape and quote strings
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    elif isinstance(value, (int, float)):
        return str(value)
    elif isinstance(value, (list, tuple)):
        items = [_format_toml_value(item) for item in value]
        return "[" + ", ".join(items) + "]"
    elif isinstance(value, Enum):
        return f'"{value.value}"'
    else:
        return f'"{value}"'


def save_config(config: PolyindexConfig, config_path: Path) -> None:
    """Save configuration to TOML file.

    Args:
        config: Configuration to save
        config_path: Path to config file
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        "# polyindex configuration",
        "",
        "[project]",
        f"name = {_format_toml_value(config.project.name)}",
        f"include = {_format_toml_value(config.project.include)}",
        f"exclude = {_format_toml_value(config.project.exclude)}",
        f"languages = {_format_toml_value(config.project.languages)}",
        "",
        "[indexing]",
        f"max_workers = {config.indexing.max_workers}",
        f"max_file_size_bytes = {config.indexing.max_file_size_bytes}",
        f"respect_gitignore = {_format_toml_value(config.indexing.respect_gitignore)}",
        f"index_dir = {_format_toml_value(config.indexing.index_dir)}",
        "",
        "[search]",
        f"default_limit = {config.search.default_limit}",
        f"fuzzy = {_format_toml_value(config.search.fuzzy)}",
        "",
    ]

    with open(config_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))


def generate_default_config() -> str:
    """Generate default configuration as TOML string.

    Returns:
        Default configuration in TOML format
    """
    return """# polyindex configuration
# Copy this file to <project>/.polyindex/config.toml and customize

[project]
name = ""
include = ["**/*"]
exclude = []
languages = []  # empty = every supported language

[indexing]
max_workers = 4
max_file_size_bytes = 1000000
respect_gitignore = true
index_dir = ".polyindex"

[search]
default_limit = 50
fuzzy = true
"""
