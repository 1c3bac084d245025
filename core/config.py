"""
Configuration Management for Frame Enhancer
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def json_config_settings_source() -> Dict[str, Any]:
    """Loads settings from a JSON file for Pydantic settings."""
    config_path = Path(os.environ.get("APP_CONFIG_FILE", "config.json"))
    if not config_path.is_file():
        return {}
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {config_path}: {e}") from e
    return data if isinstance(data, dict) else {}


class Config(BaseSettings):
    """Manages the application's configuration settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="APP_", case_sensitive=False, extra="ignore")

    # Paths
    logs_dir: str = "logs"
    output_dir: str = "output"

    # Remote services
    gemini_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("gemini_api_key", "APP_GEMINI_API_KEY", "GEMINI_API_KEY")
    )
    classifier_model: str = "gemini-2.5-flash"
    enhancer_model: str = "gemini-2.5-flash-image-preview"
    remote_timeout_seconds: Optional[float] = 120.0

    # Retry
    retry_max_attempts: int = 2
    retry_backoff_seconds: List[float] = Field(default_factory=lambda: [1.0, 3.0])

    # Extraction
    default_fps: int = 4
    fps_choices: List[int] = Field(default_factory=lambda: [1, 2, 4, 8])
    default_gender_filter: str = "All"
    jpeg_quality: int = 90

    # Enhancement
    default_colorize: bool = True
    max_selected: int = 8

    # Progress
    progress_throttle_seconds: float = 0.1

    # Logging Config
    log_level: str = "INFO"
    log_format: str = "%(asctime)s | %(levelname)8s | %(name)s | %(message)s"
    log_colored: bool = True
    log_structured_path: str = "structured_log.jsonl"
    log_ui_buffer_size: int = 500

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        return (init_settings, env_settings, dotenv_settings, json_config_settings_source, file_secret_settings)

    def model_post_init(self, __context: Any) -> None:
        """Post-initialization hook to validate paths."""
        self._validate_paths()

    def _validate_paths(self):
        """Ensures working directories exist."""
        for p in [self.logs_dir, self.output_dir]:
            Path(p).mkdir(parents=True, exist_ok=True)

    @field_validator("jpeg_quality")
    @classmethod
    def _validate_jpeg_quality(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("jpeg_quality must be between 1 and 100.")
        return v

    @model_validator(mode="after")
    def _validate_config(self) -> "Config":
        """Validates cross-field constraints."""
        if self.max_selected < 1:
            raise ValueError("max_selected must be at least 1.")
        if any(fps <= 0 for fps in self.fps_choices):
            raise ValueError("fps_choices must all be positive.")
        if self.default_fps not in self.fps_choices:
            raise ValueError(f"default_fps ({self.default_fps}) must be one of {self.fps_choices}.")
        if self.retry_max_attempts < 1:
            raise ValueError("retry_max_attempts must be at least 1.")
        return self
