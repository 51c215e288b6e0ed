"""Configuration loading and validation for class tag builds."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


class ConfigError(Exception):
    """Error in class tag configuration."""

    def __init__(
        self,
        message: str,
        file: Optional[str] = None,
        line: Optional[int] = None,
        error_type: str = "config_invalid",
    ):
        super().__init__(message)
        self.message = message
        self.file = file
        self.line = line
        self.error_type = error_type

    def to_json(self) -> dict[str, Any]:
        """Serialize error to JSON format for machine parsing."""
        result: dict[str, Any] = {
            "error": self.error_type,
            "message": self.message,
        }
        if self.file:
            result["file"] = self.file
        if self.line:
            result["line"] = self.line
        return result

    def __str__(self) -> str:
        parts = [self.message]
        if self.file:
            parts.append(f"file: {self.file}")
        if self.line:
            parts.append(f"line: {self.line}")
        return " | ".join(parts)


# Key listing tag class names that lack the @tag marker
EXTERNAL_TAGS = "externalTags"
EXTERNAL_TAGS_SEPARATOR = ";"

DEFAULT_CONFIG_PATH = ".classtags.yaml"
DEFAULT_INDEX_FILE = "classtags.idx"
DEFAULT_STATE_PATH = ".classtags-state.json"


@dataclass
class ClassTagsConfig:
    """Complete class tag configuration."""

    external_tags: set[str] = field(default_factory=set)
    source_dirs: list[str] = field(default_factory=lambda: ["src"])
    skip_dirs: list[str] = field(
        default_factory=lambda: ["__pycache__", ".git", "node_modules", ".venv", "tests"]
    )
    output_dir: Optional[str] = None  # first source dir when unset
    index_file: str = DEFAULT_INDEX_FILE
    state_file: str = DEFAULT_STATE_PATH

    def index_path(self, root: Path) -> Path:
        """Location of the index this project produces."""
        output_dir = self.output_dir
        if output_dir is None:
            output_dir = self.source_dirs[0] if self.source_dirs else "."
        return root / output_dir / self.index_file


def get_default_config() -> ClassTagsConfig:
    """Return the default configuration."""
    return ClassTagsConfig()


def parse_external_tags(value: Any, config_file: Optional[str] = None) -> set[str]:
    """Parse the external tags setting.

    Accepts a ``;``-separated string or a list of names. Empty items are
    ignored.
    """
    if value is None:
        return set()
    if isinstance(value, str):
        items = value.split(EXTERNAL_TAGS_SEPARATOR)
    elif isinstance(value, list):
        items = value
    else:
        raise ConfigError(
            f"'{EXTERNAL_TAGS}' must be a string or a list",
            file=config_file,
            error_type="config_invalid",
        )

    result = set()
    for item in items:
        if not isinstance(item, str):
            raise ConfigError(
                f"'{EXTERNAL_TAGS}' entries must be strings, got {item!r}",
                file=config_file,
                error_type="config_invalid",
            )
        item = item.strip()
        if item:
            result.add(item)
    return result


def _check_str_list(data: dict[str, Any], key: str, config_file: Optional[str]) -> None:
    value = data.get(key)
    if value is None:
        return
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(
            f"'{key}' must be a list of strings",
            file=config_file,
            error_type="config_invalid",
        )


def _check_str(data: dict[str, Any], key: str, config_file: Optional[str]) -> None:
    value = data.get(key)
    if value is not None and (not isinstance(value, str) or not value):
        raise ConfigError(
            f"'{key}' must be a non-empty string",
            file=config_file,
            error_type="config_invalid",
        )


def validate_config(config: ClassTagsConfig, config_file: Optional[str] = None) -> None:
    """Validate configuration values.

    Raises:
        ConfigError: If configuration is invalid.
    """
    for name in config.external_tags:
        if ":" in name:
            raise ConfigError(
                f"Invalid external tag '{name}': tag names cannot contain ':'",
                file=config_file,
                error_type="config_invalid",
            )
    if ":" in config.index_file or "/" in config.index_file:
        raise ConfigError(
            f"Invalid index_file '{config.index_file}': must be a plain file name",
            file=config_file,
            error_type="config_invalid",
        )


def load_config(config_path: Path | str) -> ClassTagsConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the .classtags.yaml file.

    Returns:
        ClassTagsConfig with loaded values merged with defaults.

    Raises:
        ConfigError: If the file exists but contains invalid configuration.
    """
    config_path = Path(config_path)
    config_file = str(config_path)

    defaults = get_default_config()

    if not config_path.exists():
        return defaults

    try:
        content = config_path.read_text(encoding="utf-8")
        if not content.strip():
            return defaults

        data = yaml.safe_load(content)
        if not data:
            return defaults
        if not isinstance(data, dict):
            raise ConfigError(
                "Top-level classtags config must be a mapping",
                file=config_file,
                error_type="config_invalid",
            )

    except yaml.YAMLError as e:
        line = None
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            line = mark.line + 1
        raise ConfigError(
            f"Invalid YAML: {e}",
            file=config_file,
            line=line,
            error_type="config_invalid",
        )

    for key in ("source_dirs", "skip_dirs"):
        _check_str_list(data, key, config_file)
    for key in ("output_dir", "index_file", "state_file"):
        _check_str(data, key, config_file)

    config = ClassTagsConfig(
        external_tags=parse_external_tags(data.get(EXTERNAL_TAGS), config_file),
        source_dirs=data.get("source_dirs", defaults.source_dirs),
        skip_dirs=data.get("skip_dirs", defaults.skip_dirs),
        output_dir=data.get("output_dir", defaults.output_dir),
        index_file=data.get("index_file", defaults.index_file),
        state_file=data.get("state_file", defaults.state_file),
    )

    validate_config(config, config_file)

    return config
