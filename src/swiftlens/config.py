"""Configuration for swiftlens.

Settings come from three layers, later ones winning:
- built-in defaults declared on the models below
- an optional YAML file (`--config`, or `.swiftlens.yml` in the working directory)
- command line options
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .ai.client import DEFAULT_MODEL
from .exceptions import ConfigError

DEFAULT_CONFIG_NAME = ".swiftlens.yml"

TEST_PATH_PATTERNS = ["*Tests*/**", "Tests/**", "**/*Tests*/**", "**/Tests/**"]
SAMPLE_PATH_PATTERNS = [
    "*Sample*/**",
    "**/*Sample*/**",
    "Examples/**",
    "*/Examples/**",
    "**/Examples/**",
]


class GodTypeSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    line_threshold: int = Field(default=300, ge=1)
    function_threshold: int = Field(default=20, ge=1)


class DISmellSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    shared_threshold: int = Field(default=5, ge=1)
    instantiation_threshold: int = Field(default=20, ge=1)
    singleton_allowlist: List[str] = Field(default_factory=list)
    excluded_instantiation_types: Optional[List[str]] = Field(
        default=None,
        description="Replaces the built-in value-type exclusions when set",
    )


class AsyncLifecycleSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    async_threshold: int = Field(default=3, ge=1)
    cancel_hint_threshold: int = Field(default=1, ge=1)


class Settings(BaseModel):
    """swiftlens settings."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    path: Path = Field(
        default_factory=lambda: Path(".").resolve(),
        description="Root of the Swift sources to lint",
    )
    rules: Union[Literal["all"], List[str]] = "all"
    format: Literal["markdown", "json"] = "markdown"
    out: Optional[Path] = None
    fail_on: Literal["off", "low", "medium", "high"] = "off"
    annotations: Literal["off", "github"] = "off"
    include_extensions: bool = False
    include_tests: bool = False
    include_samples: bool = False
    exclude_paths: List[str] = Field(default_factory=list)
    max_findings: Optional[int] = Field(default=None, ge=0)
    path_style: Literal["relative", "absolute"] = "relative"
    strategy: Literal["auto", "syntax", "regex"] = "auto"
    workers: int = Field(default=1, ge=1)
    git_tracked_only: bool = False
    ai: bool = Field(default=False, description="Append AI recommendations to Markdown reports")
    ai_limit: int = Field(default=10, ge=0)
    ai_model: str = DEFAULT_MODEL
    god_type: GodTypeSettings = Field(default_factory=GodTypeSettings)
    di_smell: DISmellSettings = Field(default_factory=DISmellSettings)
    async_lifecycle: AsyncLifecycleSettings = Field(default_factory=AsyncLifecycleSettings)

    @field_validator("path", "out", mode="before")
    def _coerce_path(cls, value: str | Path | None) -> Path | None:
        if value is None:
            return None
        return Path(value).expanduser().resolve()

    @field_validator("format", "fail_on", "annotations", "path_style", "strategy", mode="before")
    def _lowercase(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("rules", mode="before")
    def _coerce_rules(cls, value: Any) -> Any:
        if value is None:
            return "all"
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",")]
        if isinstance(value, (list, tuple)):
            ids = [str(item).strip() for item in value if str(item).strip()]
            if not ids or (len(ids) == 1 and ids[0].lower() == "all"):
                return "all"
            return ids
        return value

    @field_validator("exclude_paths", mode="before")
    def _coerce_patterns(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    def excluded_path_patterns(self) -> List[str]:
        """User exclusions plus the default test/sample exclusions."""
        patterns: List[str] = []
        if not self.include_tests:
            patterns.extend(TEST_PATH_PATTERNS)
        if not self.include_samples:
            patterns.extend(SAMPLE_PATH_PATTERNS)
        patterns.extend(self.exclude_paths)
        return patterns


def discover_config_path(explicit: Optional[Path], cwd: Optional[Path] = None) -> Optional[Path]:
    if explicit is not None:
        path = Path(explicit).expanduser().resolve()
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        return path
    candidate = (cwd or Path.cwd()) / DEFAULT_CONFIG_NAME
    return candidate if candidate.exists() else None


def load_settings(
    config_path: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
    cwd: Optional[Path] = None,
) -> Settings:
    """Load configuration from YAML if present, then apply ``overrides``.

    Raises:
        ConfigError: If the file is missing, unreadable or any value is invalid.
    """
    path = discover_config_path(config_path, cwd)
    data: dict[str, Any] = {}
    if path is not None:
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Invalid config file {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"Invalid config file {path}: expected a mapping")
        data = {str(key).replace("-", "_"): value for key, value in loaded.items()}
    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value
    try:
        return Settings(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
