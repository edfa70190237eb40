"""YouTube Data API implementations of the credential and probe capabilities."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from .errors import ProbeError, parse_api_error
from .ledger import QuotaLedger
from .logging import get_logger
from .models import LIVE_BROADCASTS_LIST_QUOTA_COST, Application

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"
OAUTH_TOKEN_URI = "https://oauth2.googleapis.com/token"
OAUTH_SCOPES = ["https://www.googleapis.com/auth/youtube.force-ssl"]
DEFAULT_TIMEOUT_SECONDS = 30
TOKEN_EXPIRY_BUFFER = timedelta(minutes=5)

logger = get_logger(__name__)


@dataclass
class _CachedToken:
    access_token: str
    expires_at: datetime


class RefreshTokenCredentialProvider:
    """Mint access tokens from each application's stored refresh token."""

    def __init__(self, lookup: Callable[[str], Optional[Application]], session: Optional[requests.Session] = None):
        self.lookup = lookup
        self.session = session or requests.Session()
        self._tokens: Dict[str, _CachedToken] = {}

    def get_cached_token(self, application_id: str) -> Optional[str]:
        cached = self._tokens.get(application_id)
        if cached is None:
            return None
        if datetime.now(timezone.utc) < cached.expires_at:
            return cached.access_token
        del self._tokens[application_id]
        return None

    async def get_access_token(self, application_id: str) -> Optional[str]:
        cached = self.get_cached_token(application_id)
        if cached:
            return cached

        app = self.lookup(application_id)
        if app is None or not app.refresh_token:
            logger.warning("Application %s has no refresh token", application_id)
            return None

        try:
            creds = await asyncio.to_thread(self._refresh, app)
        except GoogleAuthError as exc:
            logger.warning("Failed to refresh access token for application %s: %s", app.name, exc)
            return None

        # google-auth reports expiry as naive UTC
        expiry = creds.expiry.replace(tzinfo=timezone.utc) if creds.expiry else datetime.now(timezone.utc) + timedelta(hours=1)
        self._tokens[application_id] = _CachedToken(creds.token, expiry - TOKEN_EXPIRY_BUFFER)
        return creds.token

    def _refresh(self, app: Application) -> Credentials:
        creds = Credentials(
            token=None,
            refresh_token=app.refresh_token,
            token_uri=OAUTH_TOKEN_URI,
            client_id=app.client_id,
            client_secret=app.client_secret,
            scopes=OAUTH_SCOPES,
        )
        creds.refresh(Request(self.session))
        return creds


class LiveBroadcastProbe:
    """Check an application by listing active broadcasts (1 quota unit).

    Every call the API answers is charged to the probed application in the
    ledger, rejected ones included. Requests that never reach the API are
    not charged.
    """

    def __init__(self, ledger: QuotaLedger, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.ledger = ledger
        self.session = session or requests.Session()
        self.timeout = timeout

    async def __call__(self, application: Application, access_token: str) -> None:
        try:
            await asyncio.to_thread(self._list_active_broadcasts, access_token)
        except requests.exceptions.HTTPError as exc:
            self._charge(application)
            message, reason = parse_api_error(exc.response)
            raise ProbeError(f"liveBroadcasts.list failed: {message} (reason={reason})", reason) from exc
        except requests.exceptions.RequestException as exc:
            raise ProbeError(f"liveBroadcasts.list failed: {exc}") from exc
        self._charge(application)

    def _charge(self, application: Application) -> None:
        self.ledger.record_usage(application.id, LIVE_BROADCASTS_LIST_QUOTA_COST, "liveBroadcasts.list")

    def _list_active_broadcasts(self, access_token: str) -> Dict[str, Any]:
        params = {"part": "id,snippet", "broadcastStatus": "active", "maxResults": 10}
        headers = {"Authorization": f"Bearer {access_token}"}
        response = self.session.get(
            f"{YOUTUBE_API_BASE}/liveBroadcasts",
            params=params,
            headers=headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()
