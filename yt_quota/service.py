from __future__ import annotations

from typing import Optional

from .config import QuotaConfig
from .delay import calculate_delay, format_delay
from .failover import FailoverOrchestrator
from .host import ApplicationHost, ApplicationProbe, CredentialProvider, EventEmitter
from .ledger import Clock, QuotaLedger, utc_now
from .logging import get_logger, setup_logging
from .models import STREAM_LIST_QUOTA_COST, FailoverCompletedEvent, QuotaUsage
from .store import QuotaStore
from .thresholds import ThresholdNotifier
from .youtube import LiveBroadcastProbe, RefreshTokenCredentialProvider

logger = get_logger(__name__)


class QuotaSystem:
    """Quota ledger, threshold notifier and failover orchestrator owned by one host integration.

    Use as `async with QuotaSystem.build(...) as quota:` so pending failover
    attempts are awaited and the ledger is flushed on every exit path.
    """

    def __init__(self, ledger: QuotaLedger, notifier: ThresholdNotifier, orchestrator: FailoverOrchestrator):
        self.ledger = ledger
        self.notifier = notifier
        self.orchestrator = orchestrator

    @classmethod
    def build(
        cls,
        config: QuotaConfig,
        host: ApplicationHost,
        credentials: Optional[CredentialProvider] = None,
        probe: Optional[ApplicationProbe] = None,
        emit: Optional[EventEmitter] = None,
        clock: Clock = utc_now,
    ) -> "QuotaSystem":
        """Wire the subsystem for `host`.

        Without explicit collaborators, access tokens come from each
        application's refresh token and candidates are checked with a
        liveBroadcasts.list call charged to the candidate.
        """
        setup_logging(config.log_level)
        notifier = ThresholdNotifier(host.get_application, emit)
        ledger = QuotaLedger(
            QuotaStore(config.data_file),
            notifier=notifier,
            clock=clock,
            debounce_seconds=config.save_debounce_seconds,
        )
        if credentials is None:
            credentials = RefreshTokenCredentialProvider(host.get_application)
        if probe is None:
            probe = LiveBroadcastProbe(ledger)
        orchestrator = FailoverOrchestrator(ledger, host, credentials, probe, config.failover, emit)
        notifier.subscribe(orchestrator.on_threshold_crossed)
        ledger.load()
        logger.info(
            "Quota tracking initialized (file=%s, automatic failover=%s, threshold=%d%%)",
            config.data_file,
            config.failover.enabled,
            config.failover.effective_threshold,
        )
        return cls(ledger, notifier, orchestrator)

    def record_usage(self, application_id: str, units: int, action: str = "") -> QuotaUsage:
        return self.ledger.record_usage(application_id, units, action)

    def polling_delay(self, application_id: str, min_call_seconds: float = 0.0) -> Optional[int]:
        """Polling delay in seconds for an application's settings, None when it cannot be computed."""
        app = self.orchestrator.host.get_application(application_id)
        if app is None:
            logger.error("Unknown application %s, cannot compute polling delay", application_id)
            return None

        delay = calculate_delay(app.quota_settings, STREAM_LIST_QUOTA_COST, min_call_seconds)
        if delay is not None:
            logger.info("Polling delay for application %s: %s", app.name, format_delay(delay))
        return delay

    async def attempt_failover(self, current_application_id: str) -> Optional[FailoverCompletedEvent]:
        return await self.orchestrator.attempt_failover(current_application_id)

    async def aclose(self) -> None:
        await self.orchestrator.drain()
        self.ledger.flush()

    async def __aenter__(self) -> "QuotaSystem":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
