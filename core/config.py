"""
Core Module - Configuration.

============================================================
RESPONSIBILITY
============================================================
Process-level settings for the tracker.

Configuration can be loaded from:
- Default values
- Environment variables (a .env file is honoured via python-dotenv)

Environment variables:
- TRACKER_DATABASE_URL, TRACKER_LEGACY_PATH, TRACKER_LEGACY_MAX_BYTES
- TRACKER_LOG_LEVEL, TRACKER_LOG_FORMAT
- TRACKER_FETCH_INTERVAL_MINUTES, TRACKER_INTER_ENTITY_DELAY
- TRACKER_HISTORY_WINDOW_DAYS, TRACKER_PROVIDER
- GEMINI_API_KEY, GEMINI_MODEL, OLLAMA_URL, OLLAMA_MODEL
- HUGGINGFACE_API_KEY, OPENROUTER_API_KEY, GNEWS_API_KEY

============================================================
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from core.constants import (
    DEFAULT_DATABASE_URL,
    DEFAULT_FETCH_INTERVAL_MINUTES,
    DEFAULT_HISTORY_WINDOW_DAYS,
    DEFAULT_INTER_ENTITY_DELAY_SECONDS,
    DEFAULT_LEGACY_PATH,
    LEGACY_MAX_BYTES,
)
from core.exceptions import InvalidConfigError
from core.models import ProviderConfig, ProviderKind


logger = logging.getLogger(__name__)


# =============================================================
# TRACKER CONFIG
# =============================================================


@dataclass
class TrackerConfig:
    """
    Complete tracker configuration.
    """
    database_url: str = DEFAULT_DATABASE_URL
    legacy_path: str = DEFAULT_LEGACY_PATH
    legacy_max_bytes: int = LEGACY_MAX_BYTES

    log_level: str = "INFO"
    log_format: str = "text"

    fetch_interval_minutes: int = DEFAULT_FETCH_INTERVAL_MINUTES
    inter_entity_delay_seconds: float = DEFAULT_INTER_ENTITY_DELAY_SECONDS
    history_window_days: int = DEFAULT_HISTORY_WINDOW_DAYS

    gnews_api_key: str = ""
    provider: ProviderConfig = field(default_factory=ProviderConfig)

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        """
        Load configuration from environment variables.

        Unset variables keep their defaults. Malformed numeric values
        raise InvalidConfigError.
        """
        load_dotenv()
        config = cls()

        config.database_url = os.getenv("TRACKER_DATABASE_URL", config.database_url)
        config.legacy_path = os.getenv("TRACKER_LEGACY_PATH", config.legacy_path)
        config.log_level = os.getenv("TRACKER_LOG_LEVEL", config.log_level).upper()
        config.log_format = os.getenv("TRACKER_LOG_FORMAT", config.log_format).lower()
        config.gnews_api_key = os.getenv("GNEWS_API_KEY", "")

        if os.getenv("TRACKER_LEGACY_MAX_BYTES"):
            config.legacy_max_bytes = _read_int("TRACKER_LEGACY_MAX_BYTES")
        if os.getenv("TRACKER_FETCH_INTERVAL_MINUTES"):
            config.fetch_interval_minutes = _read_int("TRACKER_FETCH_INTERVAL_MINUTES")
        if os.getenv("TRACKER_INTER_ENTITY_DELAY"):
            config.inter_entity_delay_seconds = _read_float("TRACKER_INTER_ENTITY_DELAY")
        if os.getenv("TRACKER_HISTORY_WINDOW_DAYS"):
            config.history_window_days = _read_int("TRACKER_HISTORY_WINDOW_DAYS")

        provider = config.provider
        raw_kind = os.getenv("TRACKER_PROVIDER")
        if raw_kind:
            try:
                provider.provider = ProviderKind(raw_kind.strip().lower())
            except ValueError:
                raise InvalidConfigError(
                    "TRACKER_PROVIDER", raw_kind,
                    f"expected one of {[k.value for k in ProviderKind]}",
                )
        provider.gemini_api_key = os.getenv("GEMINI_API_KEY", "")
        provider.gemini_model = os.getenv("GEMINI_MODEL", provider.gemini_model)
        provider.ollama_url = os.getenv("OLLAMA_URL", provider.ollama_url)
        provider.ollama_model = os.getenv("OLLAMA_MODEL", provider.ollama_model)
        provider.huggingface_api_key = os.getenv("HUGGINGFACE_API_KEY", "")
        provider.openrouter_api_key = os.getenv("OPENROUTER_API_KEY", "")

        return config

    def validate(self) -> list[str]:
        """Return a list of configuration problems (empty when valid)."""
        problems: list[str] = []

        if self.fetch_interval_minutes < 1:
            problems.append("fetch_interval_minutes must be >= 1")
        if self.inter_entity_delay_seconds < 0:
            problems.append("inter_entity_delay_seconds must be >= 0")
        if self.history_window_days < 1:
            problems.append("history_window_days must be >= 1")
        if self.legacy_max_bytes < 1024:
            problems.append("legacy_max_bytes must be >= 1024")
        if self.log_format not in ("json", "text"):
            problems.append("log_format must be 'json' or 'text'")

        kind = self.provider.provider
        if kind == ProviderKind.GEMINI and not self.provider.gemini_api_key:
            problems.append("GEMINI_API_KEY is not set")
        elif kind == ProviderKind.HUGGINGFACE and not self.provider.huggingface_api_key:
            problems.append("HUGGINGFACE_API_KEY is not set")
        elif kind == ProviderKind.OPENROUTER and not self.provider.openrouter_api_key:
            problems.append("OPENROUTER_API_KEY is not set")
        elif kind == ProviderKind.OLLAMA and not self.provider.ollama_url:
            problems.append("OLLAMA_URL is not set")

        return problems

    def to_dict(self) -> dict:
        """Convert to dictionary with secrets masked."""
        provider = self.provider.to_dict()
        for key in ("gemini_api_key", "huggingface_api_key", "openrouter_api_key"):
            provider[key] = "***" if provider[key] else ""
        return {
            "database_url": self.database_url,
            "legacy_path": self.legacy_path,
            "legacy_max_bytes": self.legacy_max_bytes,
            "log_level": self.log_level,
            "log_format": self.log_format,
            "fetch_interval_minutes": self.fetch_interval_minutes,
            "inter_entity_delay_seconds": self.inter_entity_delay_seconds,
            "history_window_days": self.history_window_days,
            "gnews_api_key": "***" if self.gnews_api_key else "",
            "provider": provider,
        }


def _read_int(key: str) -> int:
    raw = os.getenv(key, "")
    try:
        return int(raw)
    except ValueError:
        raise InvalidConfigError(key, raw, "expected an integer")


def _read_float(key: str) -> float:
    raw = os.getenv(key, "")
    try:
        return float(raw)
    except ValueError:
        raise InvalidConfigError(key, raw, "expected a number")


# =============================================================
# GLOBAL CONFIG INSTANCE
# =============================================================


_default_config: Optional[TrackerConfig] = None


def get_config() -> TrackerConfig:
    """Get the process configuration, loading it from the environment once."""
    global _default_config
    if _default_config is None:
        _default_config = TrackerConfig.from_env()
    return _default_config


def set_config(config: TrackerConfig) -> None:
    """Override the process configuration (tests, embedding)."""
    global _default_config
    _default_config = config
