"""Service configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `RCV_`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `RCV_` env overrides."""

    model_config = SettingsConfigDict(env_prefix="RCV_", validate_assignment=True)

    video_source: str = Field("webcam", description="webcam|file")
    video_path: str | None = None
    camera_index: int = 0

    # Detection provider (Gemini REST API).
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    request_timeout_s: float = 30.0
    jpeg_quality: int = 80

    # Cycle timing.
    analysis_interval_s: float = 30.0
    rate_limit_pause_s: float = 61.0

    # Track reconciliation and attendance.
    match_threshold: float = 0.4
    max_inactivity_s: float = 20.0
    attendance_cooldown_s: float = 300.0

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file"}:
            raise ValueError("video_source must be webcam|file")
        return v

    @field_validator("camera_index")
    @classmethod
    def _validate_camera_index(cls, v: int) -> int:
        if v < 0:
            raise ValueError("camera_index must be >= 0")
        return v

    @field_validator("jpeg_quality")
    @classmethod
    def _validate_jpeg_quality(cls, v: int) -> int:
        if not 10 <= v <= 100:
            raise ValueError("jpeg_quality must be in [10, 100]")
        return v

    @field_validator("request_timeout_s", "analysis_interval_s")
    @classmethod
    def _validate_positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0 seconds")
        return float(v)

    @field_validator("rate_limit_pause_s", "max_inactivity_s", "attendance_cooldown_s")
    @classmethod
    def _validate_non_negative_seconds(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0 seconds")
        return float(v)

    @field_validator("match_threshold")
    @classmethod
    def _validate_match_threshold(cls, v: float) -> float:
        if not 0.0 <= float(v) < 1.0:
            raise ValueError("match_threshold must be in [0, 1)")
        return float(v)


def settings_to_dict(settings: AppSettings) -> dict[str, Any]:
    """Convert settings to a plain dict."""

    return cast(dict[str, Any], settings.model_dump())


def _fields_set(obj: AppSettings) -> set[str]:
    """Return the set of fields explicitly provided/overridden on a settings object."""

    return set(obj.model_fields_set)


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/rollcall.config.yml)."""

    return Path(os.getenv("RCV_CONFIG", "config/rollcall.config.yml"))


def load_settings() -> AppSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = AppSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in _fields_set(env_settings)
    }

    merged = {**data, **env_overrides}
    return AppSettings(**merged)
