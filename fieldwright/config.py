"""Configuration management for fieldwright.

Config resolution order (highest priority first):
1. Programmatic (FieldwrightConfig constructed in code, passed to configure())
2. Environment variables (FIELDWRIGHT_*), including a .env file in cwd
3. Config file (~/.config/fieldwright/config.json)
4. Hardcoded defaults
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)


# =============================================================================
# Config file location
# =============================================================================

CONFIG_DIR = Path.home() / ".config" / "fieldwright"
CONFIG_FILE = CONFIG_DIR / "config.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


# =============================================================================
# Config dataclasses
# =============================================================================


@dataclass
class CompilerConfig:
    """ModifierCompiler settings.

    - merge_chains: merge adjacent chainable tokens into one operation.
      Turning it off yields one operation per modifier, useful when debugging
      which modifier rejected a value.
    """

    merge_chains: bool = True


@dataclass
class RuntimeConfig:
    """FieldMaterializer and generator settings."""

    random_text_length: int = 32
    timezone: str = "utc"  # "utc" or "local" for generated timestamps
    trim_text: bool = True


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class FieldwrightConfig:
    """Top-level fieldwright configuration.

    Examples:
        # Package use, no files needed
        configure(FieldwrightConfig(runtime=RuntimeConfig(timezone="local")))

        # CLI use, loads from ~/.config/fieldwright/config.json + env
        config = FieldwrightConfig.load()
    """

    compiler: CompilerConfig = field(default_factory=CompilerConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls) -> "FieldwrightConfig":
        """Load config from file + env vars."""
        config = cls()

        if CONFIG_FILE.exists():
            try:
                with open(CONFIG_FILE) as f:
                    _apply_dict(config, json.load(f))
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Failed to load config from %s: %s", CONFIG_FILE, exc)

        _load_dotenv()

        if val := os.environ.get("FIELDWRIGHT_MERGE_CHAINS"):
            parsed = _parse_bool(val)
            if parsed is None:
                logger.warning("Invalid FIELDWRIGHT_MERGE_CHAINS=%r, ignoring", val)
            else:
                config.compiler.merge_chains = parsed
        if val := os.environ.get("FIELDWRIGHT_RANDOM_TEXT_LENGTH"):
            try:
                config.runtime.random_text_length = int(val)
            except ValueError:
                logger.warning(
                    "Invalid FIELDWRIGHT_RANDOM_TEXT_LENGTH=%r, ignoring", val
                )
        if val := os.environ.get("FIELDWRIGHT_TIMEZONE"):
            if val.lower() in ("utc", "local"):
                config.runtime.timezone = val.lower()
            else:
                logger.warning("Invalid FIELDWRIGHT_TIMEZONE=%r, ignoring", val)
        if val := os.environ.get("FIELDWRIGHT_TRIM_TEXT"):
            parsed = _parse_bool(val)
            if parsed is None:
                logger.warning("Invalid FIELDWRIGHT_TRIM_TEXT=%r, ignoring", val)
            else:
                config.runtime.trim_text = parsed
        if val := os.environ.get("FIELDWRIGHT_LOG_LEVEL"):
            config.logging.level = val.upper()

        return config

    def save(self) -> None:
        """Save config to ~/.config/fieldwright/config.json."""
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "compiler": asdict(self.compiler),
            "runtime": asdict(self.runtime),
            "logging": asdict(self.logging),
        }


def _parse_bool(value: str) -> bool | None:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


def _apply_dict(config: FieldwrightConfig, data: dict) -> None:
    """Apply a dict of values onto a FieldwrightConfig, ignoring unknown keys."""
    for section_name in ("compiler", "runtime", "logging"):
        section_data = data.get(section_name)
        if not isinstance(section_data, dict):
            continue
        section = getattr(config, section_name)
        for k, v in section_data.items():
            if hasattr(section, k):
                setattr(section, k, v)
            else:
                logger.warning("Unknown config key %s.%s, ignoring", section_name, k)


_dotenv_loaded = False


def _load_dotenv() -> None:
    """Load .env file into os.environ once, without overriding set variables."""
    global _dotenv_loaded
    if _dotenv_loaded:
        return
    _dotenv_loaded = True
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)


# =============================================================================
# Global config singleton
# =============================================================================

_config: FieldwrightConfig | None = None


def get_config() -> FieldwrightConfig:
    """Get the global FieldwrightConfig instance.

    First call loads from file + env vars. Subsequent calls return the
    cached instance. Use configure() to replace it programmatically.
    """
    global _config
    if _config is None:
        _config = FieldwrightConfig.load()
    return _config


def configure(config: FieldwrightConfig) -> None:
    """Set the global FieldwrightConfig programmatically."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global config (forces reload on next get_config())."""
    global _config
    _config = None
