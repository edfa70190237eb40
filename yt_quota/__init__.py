"""Quota tracking, polling delays and automatic failover for YouTube OAuth applications."""

from .config import FailoverSettings, QuotaConfig, normalize_failover_threshold
from .delay import calculate_delay, format_delay
from .errors import ProbeError, QuotaLimitError, is_quota_exceeded_error, parse_api_error
from .failover import FailoverOrchestrator, rank_candidates
from .ledger import QuotaLedger, next_reset_time
from .logging import get_logger, setup_logging
from .models import (
    ActivationCause,
    Application,
    FailoverCandidate,
    FailoverCompletedEvent,
    QuotaSettings,
    QuotaUsage,
    ThresholdCrossedEvent,
)
from .service import QuotaSystem
from .store import QuotaStore
from .thresholds import ThresholdNotifier
from .youtube import LiveBroadcastProbe, RefreshTokenCredentialProvider

__all__ = [
    "ActivationCause",
    "Application",
    "FailoverCandidate",
    "FailoverCompletedEvent",
    "FailoverOrchestrator",
    "FailoverSettings",
    "LiveBroadcastProbe",
    "ProbeError",
    "QuotaConfig",
    "QuotaLedger",
    "QuotaLimitError",
    "QuotaSettings",
    "QuotaStore",
    "QuotaSystem",
    "QuotaUsage",
    "RefreshTokenCredentialProvider",
    "ThresholdCrossedEvent",
    "ThresholdNotifier",
    "calculate_delay",
    "format_delay",
    "get_logger",
    "is_quota_exceeded_error",
    "next_reset_time",
    "normalize_failover_threshold",
    "parse_api_error",
    "rank_candidates",
    "setup_logging",
]
