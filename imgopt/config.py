from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError
from .quality import QualityRule

CONFIG_ENV_VAR = "IMGOPT_CONFIG"
CONFIG_FILE_NAMES = ("imgopt.yaml", "imgopt.yml", ".imagerc", ".imagerc.json")

OutputFormat = Literal["webp", "avif", "original", "jpeg", "png"]


class ErrorRecoveryConfig(BaseModel):
    """Retry and failure policy."""

    max_retries: int = Field(default=3, ge=1)
    retry_delay: int = Field(default=1000, ge=0, description="Milliseconds")
    exponential_backoff: bool = True
    continue_on_error: bool = False


class ImgoptConfig(BaseModel):
    """Top-level configuration model."""

    input_dir: str = "original"
    output_dir: str = "optimized"
    recursive: bool = False
    formats: List[OutputFormat] = Field(
        default_factory=lambda: ["webp", "avif", "original"]
    )
    quality: Dict[str, int] = Field(
        default_factory=lambda: {"webp": 80, "avif": 80, "jpeg": 80}
    )
    quality_rules: List[QualityRule] = Field(default_factory=list)
    generate_thumbnails: bool = True
    thumbnail_width: int = 200
    preserve_metadata: bool = False
    checkpoint_interval: int = Field(default=10, ge=1)
    mtime_tolerance: float = Field(default=0.0, ge=0.0, description="Seconds")
    state_file: str = ".image-optimization-state.json"
    error_log: str = "image-optimization-errors.log"
    error_recovery: ErrorRecoveryConfig = ErrorRecoveryConfig()

    @field_validator("formats")
    @classmethod
    def _check_formats(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one output format must be specified")
        return value

    @field_validator("quality")
    @classmethod
    def _check_quality(cls, value: Dict[str, int]) -> Dict[str, int]:
        for fmt, q in value.items():
            if not 1 <= q <= 100:
                raise ValueError(f"Quality for {fmt} must be between 1 and 100")
        return value

    @field_validator("thumbnail_width")
    @classmethod
    def _check_thumbnail_width(cls, value: int) -> int:
        if not 10 <= value <= 1000:
            raise ValueError("Thumbnail width must be between 10 and 1000")
        return value

    @field_validator("output_dir", "input_dir")
    @classmethod
    def _check_dir(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Directory cannot be empty")
        return value

    def snapshot(self) -> Dict[str, Any]:
        """Plain copy stored alongside run state."""
        return self.model_dump(mode="json")


def find_config_file(project_root: Optional[Path] = None) -> Optional[Path]:
    root = project_root or Path.cwd()
    for name in CONFIG_FILE_NAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None


def merge_overrides(data: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay ``overrides`` onto ``data``; ``quality`` and ``error_recovery`` merge per key."""
    merged = dict(data)
    for key, value in overrides.items():
        if value is None:
            continue
        if key in ("quality", "error_recovery") and isinstance(value, dict):
            merged[key] = {**(merged.get(key) or {}), **value}
        else:
            merged[key] = value
    return merged


def load_config(
    path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    project_root: Optional[Path] = None,
) -> ImgoptConfig:
    """Load configuration from a YAML (or JSON) file.

    Args:
        path: Optional path to config file. Falls back to the IMGOPT_CONFIG
            env variable, then to ``imgopt.yaml`` / ``.imagerc`` in
            ``project_root`` (default: current directory).
        overrides: Values taking precedence over the file, typically CLI
            flags. ``None`` values are ignored.
    """

    config_path = path or os.getenv(CONFIG_ENV_VAR)
    if config_path is None:
        found = find_config_file(project_root)
        config_path = str(found) if found else None

    data: Dict[str, Any] = {}
    if config_path:
        if not os.path.exists(config_path):
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid config in {config_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config in {config_path} must be a mapping")

    data = merge_overrides(data, overrides or {})
    try:
        return ImgoptConfig(**data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
