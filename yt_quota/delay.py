from __future__ import annotations

import math
from typing import Optional

from .logging import get_logger
from .models import STREAM_LIST_QUOTA_COST, QuotaSettings

# Share of the daily quota spent on polling; the rest is left for other calls.
QUOTA_TARGET_FRACTION = 0.8

# Below two calls per day the denominator of the delay formula drops under 1
# and small budget changes swing the delay wildly.
MIN_CALLS_PER_DAY = 2

logger = get_logger(__name__)


def calculate_delay(
    settings: QuotaSettings,
    cost_per_call: int = STREAM_LIST_QUOTA_COST,
    min_call_seconds: float = 0.0,
    target_fraction: float = QUOTA_TARGET_FRACTION,
) -> Optional[int]:
    """Seconds to wait between poll calls so polling stays within the quota budget.

    Each call costs `cost_per_call` units and takes at least
    `min_call_seconds` of wall-clock time. The wait is chosen so that polling
    for `max_stream_hours` a day spends `target_fraction` of `daily_quota`.

    Returns None when the settings cannot produce a delay.
    """
    if settings.override_polling_delay:
        logger.info("Using custom polling delay: %ss", settings.custom_polling_delay_seconds)
        return max(0, int(settings.custom_polling_delay_seconds))

    if not settings.daily_quota or settings.daily_quota <= 0:
        logger.error("Invalid dailyQuota setting %r. Must be > 0", settings.daily_quota)
        return None

    if not settings.max_stream_hours or settings.max_stream_hours <= 0:
        logger.error("Invalid maxStreamHours setting %r. Must be > 0", settings.max_stream_hours)
        return None

    quota_budget = settings.daily_quota * target_fraction
    calls_per_day = quota_budget / cost_per_call
    if calls_per_day < MIN_CALLS_PER_DAY:
        logger.error(
            "dailyQuota %d allows only %.2f calls per day at %d units each; cannot compute a polling delay",
            settings.daily_quota,
            calls_per_day,
            cost_per_call,
        )
        return None

    stream_seconds = settings.max_stream_hours * 3600
    delay_seconds = (stream_seconds - calls_per_day * min_call_seconds) / (calls_per_day - 1)

    logger.debug(
        "Quota calculation: daily_quota=%d max_stream_hours=%s budget=%.0f calls_per_day=%.2f "
        "min_call_seconds=%s delay=%.3fs",
        settings.daily_quota,
        settings.max_stream_hours,
        quota_budget,
        calls_per_day,
        min_call_seconds,
        delay_seconds,
    )

    return max(0, math.floor(delay_seconds + 0.5))


def format_delay(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"

    minutes, remaining_seconds = divmod(seconds, 60)
    if remaining_seconds == 0:
        return f"{minutes}m"
    return f"{minutes}m {remaining_seconds}s"
