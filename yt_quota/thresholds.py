from __future__ import annotations

from typing import Callable, List, Optional

from .host import EventEmitter
from .logging import get_logger
from .models import Application, ThresholdCrossedEvent, usage_percent

ThresholdListener = Callable[[ThresholdCrossedEvent], None]
ApplicationLookup = Callable[[str], Optional[Application]]

logger = get_logger(__name__)


class ThresholdNotifier:
    """Turns ledger deltas into one event per whole percentage point crossed."""

    def __init__(self, lookup: ApplicationLookup, emit: Optional[EventEmitter] = None):
        self.lookup = lookup
        self.emit = emit
        self._listeners: List[ThresholdListener] = []

    def subscribe(self, listener: ThresholdListener) -> None:
        self._listeners.append(listener)

    def notify(self, application_id: str, old_units: int, new_units: int) -> List[ThresholdCrossedEvent]:
        application = self.lookup(application_id)
        if application is None:
            logger.debug("Unknown application %s, skipping threshold check", application_id)
            return []

        daily_quota = application.quota_settings.daily_quota
        if not daily_quota or daily_quota <= 0:
            return []

        old_level = usage_percent(old_units, daily_quota)
        new_level = usage_percent(new_units, daily_quota)
        if new_level <= old_level:
            return []

        events = [
            ThresholdCrossedEvent(
                application_id=application_id,
                application_name=application.name,
                quota_consumed=new_units,
                quota_limit=daily_quota,
                threshold=threshold,
            )
            for threshold in range(max(1, old_level + 1), min(100, new_level) + 1)
        ]
        for event in events:
            self._dispatch(event)
        return events

    def _dispatch(self, event: ThresholdCrossedEvent) -> None:
        logger.debug(
            "Quota threshold %d%% crossed for application %s (%d/%d)",
            event.threshold,
            event.application_id,
            event.quota_consumed,
            event.quota_limit,
        )
        if self.emit is not None:
            try:
                self.emit(event.name, event.dump())
            except Exception:
                logger.exception("Event emitter failed for %s", event.name)

        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Threshold listener failed for application %s", event.application_id)
