from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional, Set

from .config import FailoverSettings
from .host import ApplicationHost, ApplicationProbe, CredentialProvider, EventEmitter
from .ledger import QuotaLedger
from .logging import get_logger
from .models import (
    ActivationCause,
    Application,
    FailoverCandidate,
    FailoverCompletedEvent,
    ThresholdCrossedEvent,
    usage_percent,
)

logger = get_logger(__name__)


def _rank_key(candidate: FailoverCandidate):
    app = candidate.application
    return (
        candidate.usage_percent,
        -app.quota_settings.daily_quota,
        app.name.lower(),
        app.id,
    )


def rank_candidates(
    applications: Iterable[Application],
    ledger: QuotaLedger,
    current_application_id: Optional[str],
    threshold: int,
) -> List[FailoverCandidate]:
    """Applications eligible to take over, best first.

    Ordered by lowest usage percentage, then largest daily quota, then
    case-insensitive name, then id, so identical input always ranks the same.
    """
    threshold = max(1, min(100, threshold))
    candidates: List[FailoverCandidate] = []

    for app in applications:
        if app.id == current_application_id:
            continue

        daily_quota = app.quota_settings.daily_quota
        if not daily_quota or daily_quota <= 0:
            logger.debug("Skipping application %s (%s): dailyQuota is 0 or less", app.name, app.id)
            continue

        usage = ledger.get_usage(app.id)
        percent = usage_percent(usage.quota_units_used, daily_quota) if usage is not None else 0
        if percent >= threshold:
            logger.debug("Skipping application %s (%s): %d%% used, threshold %d%%", app.name, app.id, percent, threshold)
            continue

        candidates.append(FailoverCandidate(application=app, usage_percent=percent, usage=usage))

    candidates.sort(key=_rank_key)
    return candidates


class FailoverOrchestrator:
    """Switches traffic to another application when the active one nears its quota.

    At most one attempt runs at a time; requests that arrive during an
    attempt are dropped. A failed attempt never deactivates the current
    application.
    """

    def __init__(
        self,
        ledger: QuotaLedger,
        host: ApplicationHost,
        credentials: CredentialProvider,
        probe: ApplicationProbe,
        settings: FailoverSettings,
        emit: Optional[EventEmitter] = None,
    ):
        self.ledger = ledger
        self.host = host
        self.credentials = credentials
        self.probe = probe
        self.settings = settings
        self.emit = emit
        self._in_progress = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    def on_threshold_crossed(self, event: ThresholdCrossedEvent) -> None:
        """Start a failover when the active application crosses the failover threshold."""
        if not self.settings.enabled:
            return
        if event.threshold != self.settings.effective_threshold:
            return
        if event.application_id != self.host.get_active_application_id():
            return
        self.trigger(event.application_id)

    def trigger(self, current_application_id: str) -> Optional[asyncio.Task]:
        """Run `attempt_failover` in the background; the caller never waits on it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, cannot start failover from %s", current_application_id)
            return None

        task = loop.create_task(self.attempt_failover(current_application_id))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Automatic quota failover was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Automatic quota failover failed: %s", exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait for background failover attempts to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def attempt_failover(self, current_application_id: str) -> Optional[FailoverCompletedEvent]:
        if self._in_progress:
            logger.debug("Failover already in progress, disregarding request from %s", current_application_id)
            return None

        if not self.settings.enabled:
            logger.debug("Automatic failover is disabled, skipping")
            return None

        self._in_progress = True
        try:
            return await self._run(current_application_id)
        finally:
            self._in_progress = False

    async def _run(self, current_application_id: str) -> Optional[FailoverCompletedEvent]:
        logger.info("Attempting automatic quota failover from application %s", current_application_id)

        threshold = self.settings.effective_threshold
        candidates = rank_candidates(self.host.get_applications(), self.ledger, current_application_id, threshold)
        if not candidates:
            logger.info("No eligible application for failover (all others at or above %d%%), keeping %s", threshold, current_application_id)
            return None

        for candidate in candidates:
            app = candidate.application
            logger.info("Testing application %s (%s) with %d%% usage", app.name, app.id, candidate.usage_percent)

            try:
                access_token = await self.credentials.get_access_token(app.id)
                if not access_token:
                    logger.warning("Failed to get access token for application %s", app.name)
                    continue
                await self.probe(app, access_token)

                logger.info("Probe succeeded for application %s, activating", app.name)
                connected = self.host.is_connected()
                await self.host.activate_application(app.id, ActivationCause.AUTOMATIC_QUOTA_FAILOVER)
                if connected:
                    await self.host.switch_polling_application(app.id)
            except Exception as exc:
                logger.warning("Failed to fail over to application %s: %s", app.name, exc)
                continue

            logger.info("Automatic quota failover successful: switched from %s to %s", current_application_id, app.id)
            event = FailoverCompletedEvent(
                previous_application_id=current_application_id,
                application_id=app.id,
                application_name=app.name,
                quota_consumed=candidate.quota_units_used,
                quota_limit=app.quota_settings.daily_quota,
                threshold=threshold,
            )
            if self.emit is not None:
                try:
                    self.emit(event.name, event.dump())
                except Exception:
                    logger.exception("Event emitter failed for %s", event.name)
            return event

        logger.warning("Automatic quota failover failed: no eligible application passed its probe")
        return None
