"""
config.py

Typed configuration loading and validation for BeatGrid.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- No other I/O beyond reading the config file (no directory creation)

Config file location
- If BEATGRID_CONFIG_PATH is set, that file is used.
- Otherwise BeatGrid searches these paths in order and uses the first one that exists:
  1) ./beatgrid_config.json (current working directory)
  2) <user_config_dir>/BeatGrid/beatgrid_config.json
- If none exists the built-in defaults are used.

Example config file (beatgrid_config.json)
{
  "rhythm": {
    "bpm": 120,
    "tier_windows": [
      {"half_width_beats": 0.05, "tier": "perfect"},
      {"half_width_beats": 0.15, "tier": "good"}
    ],
    "min_input_interval_seconds": 0.12,
    "deadzone": 0.5,
    "require_beat_timing": true
  },
  "grid": {
    "cell_size": 1.0,
    "move_duration_seconds": 0.3
  },
  "web_server": {
    "enabled": false,
    "host": "127.0.0.1",
    "port": 5178
  },
  "logging": {
    "level": "INFO"
  }
}
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from gameplay_models import Tier

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Fatal configuration problem. The session refuses to start."""


class TierWindowConfig(BaseModel):
    half_width_beats: float = Field(gt=0.0, le=0.5, description="Half width of the window in beats.")
    tier: Tier = Field(description="Tier awarded when |accuracy| falls inside this window.")

    @field_validator("tier", mode="before")
    @classmethod
    def normalize_tier(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("tier")
    @classmethod
    def reject_miss_tier(cls, value: Tier) -> Tier:
        if value is Tier.MISS:
            raise ValueError("tier windows cannot award miss")
        return value


def _default_tier_windows() -> List[TierWindowConfig]:
    return [
        TierWindowConfig(half_width_beats=0.05, tier=Tier.PERFECT),
        TierWindowConfig(half_width_beats=0.15, tier=Tier.GOOD),
    ]


class RhythmConfig(BaseModel):
    bpm: float = Field(default=120.0, gt=0.0, description="Beats per minute.")
    tier_windows: List[TierWindowConfig] = Field(default_factory=_default_tier_windows)
    min_input_interval_seconds: float = Field(default=0.12, ge=0.0, description="Cooldown between accepted inputs.")
    deadzone: float = Field(default=0.5, ge=0.0, lt=1.0, description="Axis magnitude below this resolves to no direction.")
    require_beat_timing: bool = Field(default=True, description="False enables free movement without judgement.")

    @model_validator(mode="after")
    def validate_tier_windows(self) -> "RhythmConfig":
        if not self.tier_windows:
            raise ValueError("tier_windows must contain at least one window")
        widths = [window.half_width_beats for window in self.tier_windows]
        if widths != sorted(widths):
            raise ValueError("tier_windows must be ordered by ascending half_width_beats")
        return self


class FeedbackConfig(BaseModel):
    display_seconds: float = Field(default=1.0, gt=0.0, description="How long feedback text stays visible.")


class GridConfig(BaseModel):
    cell_size: float = Field(default=1.0, gt=0.0)
    move_duration_seconds: float = Field(default=0.3, gt=0.0, le=1.0)
    half_extent: Optional[int] = Field(default=None, ge=0, description="Optional square bound around the origin.")


class WebServerConfig(BaseModel):
    enabled: bool = Field(default=False, description="Start the local control API with the harness.")
    host: str = Field(default="127.0.0.1", description="Bind address for local web server.")
    port: int = Field(default=5178, ge=1, le=65535, description="Port for local web server.")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        normalized = (value or "").strip().upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError("level must be one of: " + ", ".join(sorted(allowed)))
        return normalized


class AppConfig(BaseModel):
    rhythm: RhythmConfig = Field(default_factory=RhythmConfig)
    feedback: FeedbackConfig = Field(default_factory=FeedbackConfig)
    grid: GridConfig = Field(default_factory=GridConfig)
    web_server: WebServerConfig = Field(default_factory=WebServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir("BeatGrid", "BeatGrid"))
    return [
        Path.cwd() / "beatgrid_config.json",
        config_directory / "beatgrid_config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("BEATGRID_CONFIG_PATH", "").strip()
    if explicit_path_text:
        return Path(explicit_path_text)

    for candidate_path in _default_config_candidates():
        if candidate_path.exists():
            return candidate_path

    return None


def _read_json_file_utf8(config_path: Path) -> Dict[str, Any]:
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Failed to read config file: {config_path}. Error: {exception}") from exception

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exception:
        raise ConfigurationError(f"Config file is not valid JSON: {config_path}. Error: {exception}") from exception

    if not isinstance(parsed, dict):
        raise ConfigurationError(f"Config file root must be a JSON object: {config_path}")

    return parsed


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Environment overrides are optional. The config file is the primary source of truth.

    Override variables:
    - BEATGRID_BPM
    - BEATGRID_MIN_INPUT_INTERVAL
    - BEATGRID_REQUIRE_BEAT_TIMING
    - BEATGRID_WEB_ENABLED
    - BEATGRID_WEB_HOST
    - BEATGRID_WEB_PORT
    - BEATGRID_LOG_LEVEL
    """
    def ensure_nested(config_root: Dict[str, Any], section_name: str) -> Dict[str, Any]:
        section = config_root.get(section_name)
        if isinstance(section, dict):
            section = dict(section)
        else:
            section = {}
        config_root[section_name] = section
        return section

    updated_config = dict(config_dict)

    rhythm_section = ensure_nested(updated_config, "rhythm")
    web_server_section = ensure_nested(updated_config, "web_server")
    logging_section = ensure_nested(updated_config, "logging")

    def override_string(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "")
        if value_text.strip():
            target_dict[key_name] = value_text.strip()

    def override_number(env_name: str, target_dict: Dict[str, Any], key_name: str, cast) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = cast(value_text)
        except ValueError:
            logger.warning("Ignoring %s=%r: not a valid number", env_name, value_text)

    def override_bool(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip().lower()
        if not value_text:
            return
        truthy = {"1", "true", "yes", "on"}
        falsy = {"0", "false", "no", "off"}
        if value_text in truthy:
            target_dict[key_name] = True
        elif value_text in falsy:
            target_dict[key_name] = False
        else:
            logger.warning("Ignoring %s=%r: not a boolean", env_name, value_text)

    override_number("BEATGRID_BPM", rhythm_section, "bpm", float)
    override_number("BEATGRID_MIN_INPUT_INTERVAL", rhythm_section, "min_input_interval_seconds", float)
    override_bool("BEATGRID_REQUIRE_BEAT_TIMING", rhythm_section, "require_beat_timing")

    override_bool("BEATGRID_WEB_ENABLED", web_server_section, "enabled")
    override_string("BEATGRID_WEB_HOST", web_server_section, "host")
    override_number("BEATGRID_WEB_PORT", web_server_section, "port", int)

    override_string("BEATGRID_LOG_LEVEL", logging_section, "level")

    return updated_config


def validate_config_dict(json_dict: Dict[str, Any], *, source: str = "<memory>") -> AppConfig:
    try:
        return AppConfig.model_validate(json_dict)
    except ValidationError as exception:
        raise ConfigurationError(f"Config validation failed for {source}:\n{exception}") from exception


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    if resolved_path is None:
        logger.debug("No config file found, using defaults")
        json_dict: Dict[str, Any] = {}
    else:
        json_dict = _read_json_file_utf8(resolved_path)
    json_dict = _apply_environment_overrides(json_dict)

    config = validate_config_dict(json_dict, source=str(resolved_path or "<defaults>"))
    return config, resolved_path


@lru_cache(maxsize=1)
def get_config() -> Tuple[AppConfig, Optional[Path]]:
    return load_config()


def to_json(config: AppConfig) -> str:
    return json.dumps(config.model_dump(mode="json"), ensure_ascii=False, indent=2)


def main() -> int:
    try:
        config, resolved_path = load_config()
    except (ConfigurationError, OSError) as exception:
        error_payload = {"ok": False, "error": str(exception)}
        print(json.dumps(error_payload, ensure_ascii=False, indent=2))
        return 2

    output_payload = {
        "ok": True,
        "config_path": str(resolved_path) if resolved_path is not None else None,
        "config": json.loads(to_json(config)),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
