"""Configuration management."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.palette import PaletteMode
from .core.validation import ValidationError


class ExportSettings(BaseSettings):
    """Export settings, read from ``BEAMNG_TERRAIN_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BEAMNG_TERRAIN_",
        env_file=".env",
        extra="ignore",
    )

    # Output
    map_name: str = Field(default="YourMap", description="Base name of exported files")
    resolution: int = Field(default=1024, gt=0, description="Terrain grid size N")

    # Palette
    palette_size: int = Field(default=16, gt=0, le=256, description="Maximum material count")
    palette_mode: PaletteMode = Field(default=PaletteMode.FREQUENCY, description="Palette strategy")
    kmeans_iterations: int = Field(default=100, ge=0, description="K-means rounds")
    kmeans_seed: Optional[int] = Field(default=None, ge=0, description="K-means random seed")
    alpha_threshold: float = Field(default=0.5, ge=0.0, lt=1.0, description="Transparency cut-off")

    # Resampling
    scale_factor: float = Field(default=1.0, gt=0, description="Target cells per source sample")

    # Terrain file header
    terrain_size: float = Field(default=1024.0, gt=0, description="World-space terrain size")
    square_size: float = Field(default=1.0, gt=0, description="Grid spacing")
    height_scale: float = Field(default=255.0, gt=0, description="Height scale")

    # Materials
    swatch_size: int = Field(default=16, gt=0, description="Swatch texture size in pixels")

    # Logging
    log_level: str = Field(default="WARNING", description="Log level for command line runs")

    @field_validator('map_name')
    @classmethod
    def _plain_name(cls, v: str) -> str:
        if not v.strip() or any(sep in v for sep in ('/', '\\')):
            raise ValueError(f"map_name must be a plain file name, got {v!r}")
        return v

    @field_validator('log_level')
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level {v!r}")
        return v


def load_settings(
    config_file: Optional[Union[str, Path]] = None,
    **overrides: Any,
) -> ExportSettings:
    """
    Build settings from environment, an optional JSON file, and overrides.

    Precedence, highest first: explicit overrides, the config file,
    environment variables, defaults. Overrides whose value is None are
    ignored so unset command line options fall through. Unknown keys in the
    config file are ignored.

    Raises:
        ValidationError: If the config file is unreadable or not a JSON object
        pydantic.ValidationError: If a value is out of range
    """
    values = {}

    if config_file is not None:
        path = Path(config_file)
        try:
            with open(path, encoding='utf-8') as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ValidationError(f"Cannot read config file '{path}': {e}") from e

        if not isinstance(loaded, dict):
            raise ValidationError(
                f"Config file '{path}' must contain a JSON object, "
                f"got {type(loaded).__name__}"
            )
        known = ExportSettings.model_fields
        values.update({k: v for k, v in loaded.items() if k in known})

    values.update({k: v for k, v in overrides.items() if v is not None})
    return ExportSettings(**values)
