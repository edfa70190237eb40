from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Any, Optional

from dotenv import load_dotenv

from .ledger import DEFAULT_SAVE_DEBOUNCE_SECONDS
from .logging import get_logger

FAILOVER_THRESHOLD_DEFAULT = 95
GLOBAL_CACHE_DIR = os.path.expanduser("~/.youtube_scripts_cache")
DEFAULT_DATA_FILE = os.path.join(GLOBAL_CACHE_DIR, "quota-tracking.json")

logger = get_logger(__name__)


def normalize_failover_threshold(value: Any) -> int:
    """Round half up and clamp a configured failover threshold to 1-100."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid failover threshold %r, using %d", value, FAILOVER_THRESHOLD_DEFAULT)
        return FAILOVER_THRESHOLD_DEFAULT
    if math.isnan(number):
        logger.warning("Invalid failover threshold %r, using %d", value, FAILOVER_THRESHOLD_DEFAULT)
        return FAILOVER_THRESHOLD_DEFAULT
    if math.isinf(number):
        return 100 if number > 0 else 1
    return max(1, min(100, math.floor(number + 0.5)))


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


@dataclass
class FailoverSettings:
    """Failover switches read at the start of every attempt; hosts may change them at runtime."""

    enabled: bool = False
    threshold: Any = FAILOVER_THRESHOLD_DEFAULT

    @property
    def effective_threshold(self) -> int:
        return normalize_failover_threshold(self.threshold)


@dataclass
class QuotaConfig:
    data_file: str = DEFAULT_DATA_FILE
    save_debounce_seconds: float = DEFAULT_SAVE_DEBOUNCE_SECONDS
    failover: FailoverSettings = field(default_factory=FailoverSettings)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "QuotaConfig":
        """Build configuration from the environment, loading a .env file first."""
        load_dotenv(dotenv_path)
        return cls(
            data_file=os.path.expanduser(os.getenv("YT_QUOTA_DATA_FILE", DEFAULT_DATA_FILE)),
            save_debounce_seconds=max(0.0, _env_float("YT_QUOTA_SAVE_DEBOUNCE", DEFAULT_SAVE_DEBOUNCE_SECONDS)),
            failover=FailoverSettings(
                enabled=_env_flag("YT_AUTOMATIC_FAILOVER", False),
                threshold=os.getenv("YT_FAILOVER_THRESHOLD", str(FAILOVER_THRESHOLD_DEFAULT)),
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
