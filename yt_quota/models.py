from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

# YouTube API quota costs
STREAM_LIST_QUOTA_COST = 5
LIVE_BROADCASTS_LIST_QUOTA_COST = 1
LIVE_CHAT_MESSAGES_INSERT_QUOTA_COST = 20
DEFAULT_DAILY_QUOTA = 10000

THRESHOLD_CROSSED_EVENT = "quota-threshold-crossed"
FAILOVER_COMPLETED_EVENT = "quota-failover"


class ActivationCause(Enum):
    """Why an application became the active one."""

    USER_SELECTED = "user-selected"
    AUTOMATIC_QUOTA_FAILOVER = "automatic-quota-failover"


@dataclass
class QuotaUsage:
    """Consumption of one application since its last reset. Times are epoch milliseconds."""

    quota_units_used: int
    quota_reset_time: int
    last_updated: int

    @classmethod
    def load(cls, content: dict) -> "QuotaUsage":
        units = int(content["quotaUnitsUsed"])
        if units < 0:
            raise ValueError(f"quotaUnitsUsed must be >= 0, got {units}")
        return cls(
            quota_units_used=units,
            quota_reset_time=int(content["quotaResetTime"]),
            last_updated=int(content["lastUpdated"]),
        )

    def dump(self) -> dict:
        return {
            "quotaUnitsUsed": self.quota_units_used,
            "quotaResetTime": self.quota_reset_time,
            "lastUpdated": self.last_updated,
        }

    def copy(self) -> "QuotaUsage":
        return QuotaUsage(self.quota_units_used, self.quota_reset_time, self.last_updated)


@dataclass(frozen=True)
class QuotaSettings:
    """Per-application budget settings supplied by the host."""

    daily_quota: int = DEFAULT_DAILY_QUOTA
    max_stream_hours: float = 8
    override_polling_delay: bool = False
    custom_polling_delay_seconds: int = 0


@dataclass(frozen=True)
class Application:
    """A credentialed YouTube OAuth application."""

    id: str
    name: str
    quota_settings: QuotaSettings = field(default_factory=QuotaSettings)
    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""


@dataclass(frozen=True)
class FailoverCandidate:
    application: Application
    usage_percent: int
    usage: Optional[QuotaUsage]

    @property
    def quota_units_used(self) -> int:
        return self.usage.quota_units_used if self.usage is not None else 0


@dataclass(frozen=True)
class ThresholdCrossedEvent:
    application_id: str
    application_name: str
    quota_consumed: int
    quota_limit: int
    threshold: int

    name = THRESHOLD_CROSSED_EVENT

    def dump(self) -> Dict[str, Any]:
        return {
            "applicationId": self.application_id,
            "applicationName": self.application_name,
            "quotaConsumed": self.quota_consumed,
            "quotaLimit": self.quota_limit,
            "threshold": self.threshold,
        }


@dataclass(frozen=True)
class FailoverCompletedEvent:
    previous_application_id: str
    application_id: str
    application_name: str
    quota_consumed: int
    quota_limit: int
    threshold: int

    name = FAILOVER_COMPLETED_EVENT

    def dump(self) -> Dict[str, Any]:
        return {
            "previousApplicationId": self.previous_application_id,
            "applicationId": self.application_id,
            "applicationName": self.application_name,
            "quotaConsumed": self.quota_consumed,
            "quotaLimit": self.quota_limit,
            "threshold": self.threshold,
        }


def usage_percent(units_used: int, daily_quota: int) -> int:
    """Floor percentage of `daily_quota` consumed. Callers guarantee daily_quota > 0."""
    return (max(0, units_used) * 100) // daily_quota
