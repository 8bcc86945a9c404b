"""Configuration management for attnflow.

Configuration is loaded from ~/.attnflow/config.toml with sensible defaults,
so the analysis runs unconfigured.

Example config file:
    [analysis]
    related_time_window_ms = 300000
    session_gap_ms = 300000
    calibration_window = 500
    filtered_domains = ["google.com", "bing.com"]

    [storage]
    db_path = "~/.attnflow/attnflow.db"
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

# Use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

DEFAULT_FILTERED_DOMAINS = ["google.com", "bing.com", "duckduckgo.com"]


class AnalysisConfig(BaseModel):
    """Tunable thresholds and windows for the analysis pipeline."""

    related_time_window_ms: int = Field(default=300_000, ge=0)
    topic_shift_time_window_ms: int = Field(default=1_800_000, ge=0)
    session_gap_ms: int = Field(default=300_000, ge=0)
    chain_jaccard_min: float = Field(default=0.3, ge=0.0, le=1.0)
    session_jaccard_min: float = Field(default=0.4, ge=0.0, le=1.0)

    # Initial similarity thresholds when nothing has been persisted
    related_threshold: float = Field(default=0.50, ge=0.0, le=1.0)
    topic_shift_threshold: float = Field(default=0.25, ge=0.0, le=1.0)
    # Thresholds for the basic heuristic used when the backend fails
    fallback_related_threshold: float = Field(default=0.40, ge=0.0, le=1.0)
    fallback_topic_shift_threshold: float = Field(default=0.10, ge=0.0, le=1.0)

    calibration_window: int = Field(default=500, ge=1)
    calibration_adjust_every: int = Field(default=100, ge=1)
    calibration_target_top_fraction: float = Field(default=0.33, gt=0.0, lt=1.0)

    shortlist_size: int = Field(default=10, ge=1)
    batch_size: int = Field(default=12, ge=1)
    lru_size: int = Field(default=200, ge=1)
    progress_every: int = Field(default=50, ge=1)

    filtered_domains: list[str] = Field(default_factory=lambda: list(DEFAULT_FILTERED_DOMAINS))


class StorageConfig(BaseModel):
    """Where calibration state and cached embeddings are persisted."""

    db_path: str = "~/.attnflow/attnflow.db"

    def get_db_path(self) -> Path:
        """Get the expanded database path."""
        return Path(self.db_path).expanduser()


class Config(BaseModel):
    """Main configuration model for attnflow."""

    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def get_default_config() -> Config:
    """Get the default configuration.

    Returns:
        Config object with default values.
    """
    return Config()


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from a TOML file.

    If the file doesn't exist, returns the default configuration.
    Partial configurations are merged with defaults; unknown keys are ignored.

    Args:
        config_path: Path to the config file. Defaults to ~/.attnflow/config.toml.

    Returns:
        Config object with loaded or default values.
    """
    if config_path is None:
        config_path = Path.home() / ".attnflow" / "config.toml"

    default_config = get_default_config()

    if not config_path.exists():
        return default_config

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path, e)
        return default_config

    return _merge_config(default_config, data)


def _merge_config(default: Config, data: dict[str, Any]) -> Config:
    """Merge loaded config data with defaults.

    Args:
        default: Default configuration.
        data: Loaded TOML data.

    Returns:
        Merged Config object. Sections that fail validation keep their defaults.
    """
    analysis = default.analysis
    analysis_data = data.get("analysis", {})
    if isinstance(analysis_data, dict):
        known = {k: v for k, v in analysis_data.items() if k in AnalysisConfig.model_fields}
        try:
            analysis = AnalysisConfig(**{**default.analysis.model_dump(), **known})
        except ValidationError as e:
            logger.warning("Invalid [analysis] config, using defaults: %s", e)

    storage = default.storage
    storage_data = data.get("storage", {})
    if isinstance(storage_data, dict) and "db_path" in storage_data:
        storage = StorageConfig(db_path=str(storage_data["db_path"]))

    return Config(analysis=analysis, storage=storage)


# Global config cache
_config_cache: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Loads from ~/.attnflow/config.toml on first call, then returns cached instance.

    Returns:
        The global Config instance.
    """
    global _config_cache
    if _config_cache is None:
        _config_cache = load_config()
    return _config_cache


def _clear_config_cache() -> None:
    """Clear the config cache. Used for testing."""
    global _config_cache
    _config_cache = None
