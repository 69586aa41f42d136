"""Load and validate search configuration from DefaultConfig.yaml."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    field_validator,
)

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG_PATH = PACKAGE_DIR / "DefaultConfig.yaml"

API_URL: HttpUrl = TypeAdapter(HttpUrl).validate_python(
    "https://neal.fun/api/infinite-craft/pair"
)
DEFAULT_SEEDS: tuple[str, ...] = ("Water", "Fire", "Wind", "Earth")


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


class CrafterConfig(BaseModel):
    db_path: Path = Field(default=Path("db.json"))
    save_interval_seconds: float = Field(default=60.0, gt=0)
    retry_delay_seconds: float = Field(default=3.0, ge=0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    api_url: HttpUrl = Field(default=API_URL)
    referer: str = Field(default="https://neal.fun/infinite-craft/")
    user_agent: str = Field(default="curl/7.54.1")
    seeds: List[str] = Field(default_factory=lambda: list(DEFAULT_SEEDS), min_length=1)

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("seeds")
    @classmethod
    def _strip_seeds(cls, value: List[str]) -> List[str]:
        seeds = [seed.strip() for seed in value]
        if any(not seed for seed in seeds):
            raise ValueError("seed names cannot be empty")
        return seeds

    @property
    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.timeout_seconds)

    @property
    def headers(self) -> Dict[str, str]:
        return {"Referer": self.referer, "User-Agent": self.user_agent}


# Normalised YAML key -> model field
_KEY_ALIASES: Dict[str, str] = {
    "dbpath": "db_path",
    "db": "db_path",
    "saveinterval": "save_interval_seconds",
    "saveintervalseconds": "save_interval_seconds",
    "retrydelay": "retry_delay_seconds",
    "retrydelayseconds": "retry_delay_seconds",
    "timeout": "timeout_seconds",
    "timeoutseconds": "timeout_seconds",
    "apiurl": "api_url",
    "baseurl": "api_url",
    "referer": "referer",
    "useragent": "user_agent",
    "seeds": "seeds",
}


def _normalize_key(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


def _coerce_path(value: Any, *, key: str, path: Path) -> Path:
    if isinstance(value, Path):
        return value
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            raise ConfigError(f"Path for '{key}' in {path} cannot be empty")
        return Path(trimmed)
    raise ConfigError(f"Expected string path for '{key}' in {path}, got {type(value).__name__}")


def load_config(config_path: Optional[Path] = None) -> CrafterConfig:
    """
    Load configuration YAML into a CrafterConfig.

    With no path the bundled DefaultConfig.yaml is used, falling back to
    built-in defaults when it is absent. An explicit path must exist.
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return CrafterConfig()
        config_path = DEFAULT_CONFIG_PATH
    elif not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        raw_data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read {config_path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigError(f"{config_path} is not valid UTF-8: {exc}") from exc

    if raw_data is None:
        raw_data = {}
    if not isinstance(raw_data, dict):
        raise ConfigError(f"Top-level configuration in {config_path} must be a mapping")

    overrides: Dict[str, Any] = {}
    for key, value in raw_data.items():
        if not isinstance(key, str):
            raise ConfigError(f"Configuration keys must be strings in {config_path}")
        field_name = _KEY_ALIASES.get(_normalize_key(key))
        if field_name is None:
            raise ConfigError(f"Unknown configuration key '{key}' in {config_path}")
        if value is None:
            continue
        if field_name == "db_path":
            value = _coerce_path(value, key=key, path=config_path)
        elif field_name == "seeds" and not isinstance(value, list):
            raise ConfigError(f"'{key}' in {config_path} must be a list of element names")
        overrides[field_name] = value

    try:
        return CrafterConfig(**overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc
