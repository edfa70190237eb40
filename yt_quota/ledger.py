from __future__ import annotations

import asyncio
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfo

from .errors import QuotaLimitError
from .logging import get_logger
from .models import QuotaUsage
from .store import QuotaStore
from .thresholds import ThresholdNotifier

QUOTA_RESET_ZONE = ZoneInfo("America/Los_Angeles")
DEFAULT_SAVE_DEBOUNCE_SECONDS = 5.0

Clock = Callable[[], datetime]

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def next_reset_time(now: datetime) -> datetime:
    """Next midnight in Pacific time strictly after `now`.

    The day is advanced on the local calendar and midnight is localized
    afterwards, so the interval is 23 or 25 hours across DST changes.
    """
    local = now.astimezone(QUOTA_RESET_ZONE)
    tomorrow = local.date() + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=QUOTA_RESET_ZONE)


class QuotaLedger:
    """Authoritative per-application record of consumed quota units.

    Records reset lazily: every read and write first checks whether the
    application's reset time has passed. Writes to disk are debounced on the
    running event loop; `flush()` writes synchronously for shutdown paths.
    """

    def __init__(
        self,
        store: QuotaStore,
        notifier: Optional[ThresholdNotifier] = None,
        clock: Clock = utc_now,
        debounce_seconds: float = DEFAULT_SAVE_DEBOUNCE_SECONDS,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.debounce_seconds = debounce_seconds
        self._records: Dict[str, QuotaUsage] = {}
        self._dirty = False
        self._save_handle: Optional[asyncio.TimerHandle] = None

    @property
    def has_pending_save(self) -> bool:
        return self._dirty

    def load(self) -> None:
        self._records = self.store.load()
        self._dirty = False

    def _touch(self, application_id: str) -> Optional[QuotaUsage]:
        """Return the record for `application_id`, resetting it first if its reset time has passed."""
        usage = self._records.get(application_id)
        if usage is None:
            return None

        now = self.clock()
        now_ms = to_epoch_ms(now)
        if now_ms >= usage.quota_reset_time:
            logger.info(
                "Resetting quota for application %s (%d units used before reset)",
                application_id,
                usage.quota_units_used,
            )
            usage.quota_units_used = 0
            usage.quota_reset_time = to_epoch_ms(next_reset_time(now))
            usage.last_updated = now_ms
            self._schedule_save()
        return usage

    def record_usage(self, application_id: str, units: int, action: str = "") -> QuotaUsage:
        """Add `units` to the application's consumption and notify threshold crossings."""
        usage = self._touch(application_id)
        now = self.clock()
        if usage is None:
            usage = QuotaUsage(
                quota_units_used=0,
                quota_reset_time=to_epoch_ms(next_reset_time(now)),
                last_updated=to_epoch_ms(now),
            )
            self._records[application_id] = usage

        if units < 0:
            logger.warning("Negative quota cost %d for application %s, usage is clamped at zero", units, application_id)

        old_units = usage.quota_units_used
        usage.quota_units_used = max(0, old_units + units)
        usage.last_updated = to_epoch_ms(now)
        logger.debug(
            "Recorded %d quota units for application %s%s (total=%d)",
            units,
            application_id,
            f" ({action})" if action else "",
            usage.quota_units_used,
        )
        self._schedule_save()

        if self.notifier is not None:
            self.notifier.notify(application_id, old_units, usage.quota_units_used)
        return usage

    def get_usage(self, application_id: str) -> Optional[QuotaUsage]:
        return self._touch(application_id)

    def units_used(self, application_id: str) -> int:
        usage = self._touch(application_id)
        return usage.quota_units_used if usage is not None else 0

    def remaining_capacity(self, application_id: str, daily_quota: int) -> int:
        return max(0, daily_quota - self.units_used(application_id))

    def has_capacity(self, application_id: str, cost: int, daily_quota: int) -> bool:
        remaining = self.remaining_capacity(application_id, daily_quota)
        if remaining < cost:
            logger.warning(
                "Quota exhausted for application %s: need %d, remaining %d of %d",
                application_id,
                cost,
                remaining,
                daily_quota,
            )
            return False
        return True

    def ensure_capacity(self, application_id: str, cost: int, daily_quota: int) -> None:
        if not self.has_capacity(application_id, cost, daily_quota):
            raise QuotaLimitError(
                f"Quota exceeded for {application_id}: used {self.units_used(application_id)}, "
                f"request {cost}, limit {daily_quota}"
            )

    def snapshot(self) -> Dict[str, QuotaUsage]:
        return {app_id: self._touch(app_id).copy() for app_id in list(self._records)}

    def _schedule_save(self) -> None:
        self._dirty = True
        if self._save_handle is not None:
            self._save_handle.cancel()
            self._save_handle = None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop to debounce on.
            self._write()
            return
        self._save_handle = loop.call_later(self.debounce_seconds, self._write)

    def _write(self) -> None:
        self._save_handle = None
        if not self._dirty:
            return
        try:
            self.store.save(self._records)
        except OSError as exc:
            logger.error("Failed to save quota tracking file %s: %s", self.store.path, exc)
            return
        self._dirty = False

    def flush(self) -> None:
        """Cancel any pending debounced save and write unsaved changes now."""
        if self._save_handle is not None:
            self._save_handle.cancel()
            self._save_handle = None
        self._write()
