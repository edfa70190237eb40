"""Tests for the refresh-token credential provider and the live broadcast probe."""

import json
import logging
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests
from google.auth.exceptions import RefreshError

from conftest import make_app
from yt_quota.errors import ProbeError, is_quota_exceeded_error
from yt_quota.ledger import QuotaLedger
from yt_quota.models import Application, QuotaSettings
from yt_quota.store import QuotaStore
from yt_quota.youtube import YOUTUBE_API_BASE, LiveBroadcastProbe, RefreshTokenCredentialProvider


@pytest.fixture
def ledger(tmp_path, clock):
    ledger = QuotaLedger(QuotaStore(tmp_path / "quota.json"), clock=clock, debounce_seconds=60)
    ledger.load()
    return ledger


def error_response(status_code, reason):
    response = requests.Response()
    response.status_code = status_code
    response.reason = "Forbidden"
    response._content = json.dumps(
        {"error": {"code": status_code, "message": "The request cannot be completed", "errors": [{"reason": reason}]}}
    ).encode("utf-8")
    return response


def fake_credentials(token, expires_in):
    # google-auth hands back naive UTC expiry
    expiry = datetime.now(timezone.utc).replace(tzinfo=None) + expires_in
    return SimpleNamespace(token=token, expiry=expiry)


class TestLiveBroadcastProbe:
    async def test_success_charges_one_unit(self, ledger):
        session = MagicMock()
        session.get.return_value.json.return_value = {"items": []}
        probe = LiveBroadcastProbe(ledger, session=session)

        await probe(make_app("backup"), "access-token")

        assert ledger.units_used("backup") == 1
        args, kwargs = session.get.call_args
        assert args[0] == f"{YOUTUBE_API_BASE}/liveBroadcasts"
        assert kwargs["params"]["broadcastStatus"] == "active"
        assert kwargs["headers"] == {"Authorization": "Bearer access-token"}

    async def test_rejected_call_is_charged(self, ledger):
        session = MagicMock()
        session.get.return_value = error_response(403, "quotaExceeded")
        probe = LiveBroadcastProbe(ledger, session=session)

        with pytest.raises(ProbeError) as excinfo:
            await probe(make_app("backup"), "access-token")

        assert excinfo.value.reason == "quotaExceeded"
        assert is_quota_exceeded_error(excinfo.value)
        assert ledger.units_used("backup") == 1

    async def test_unreachable_api_is_not_charged(self, ledger):
        session = MagicMock()
        session.get.side_effect = requests.exceptions.ConnectionError("connection refused")
        probe = LiveBroadcastProbe(ledger, session=session)

        with pytest.raises(ProbeError) as excinfo:
            await probe(make_app("backup"), "access-token")

        assert excinfo.value.reason == "unknown"
        assert "connection refused" in str(excinfo.value)
        assert ledger.units_used("backup") == 0


def app_with_token(app_id="app1", refresh_token="refresh-123"):
    return Application(
        id=app_id,
        name="Primary",
        quota_settings=QuotaSettings(),
        client_id="client",
        client_secret="secret",
        refresh_token=refresh_token,
    )


class TestRefreshTokenCredentialProvider:
    async def test_refreshes_and_caches(self):
        app = app_with_token()
        provider = RefreshTokenCredentialProvider({app.id: app}.get, session=MagicMock())

        with patch.object(provider, "_refresh", return_value=fake_credentials("fresh", timedelta(hours=1))) as refresh:
            assert await provider.get_access_token("app1") == "fresh"
            assert await provider.get_access_token("app1") == "fresh"

        refresh.assert_called_once_with(app)
        assert provider.get_cached_token("app1") == "fresh"

    async def test_token_near_expiry_is_refreshed(self):
        app = app_with_token()
        provider = RefreshTokenCredentialProvider({app.id: app}.get, session=MagicMock())

        with patch.object(provider, "_refresh", return_value=fake_credentials("short", timedelta(minutes=2))) as refresh:
            await provider.get_access_token("app1")
            await provider.get_access_token("app1")

        assert refresh.call_count == 2
        assert provider.get_cached_token("app1") is None

    async def test_missing_refresh_token(self, caplog):
        app = app_with_token(refresh_token="")
        provider = RefreshTokenCredentialProvider({app.id: app}.get, session=MagicMock())

        with patch.object(provider, "_refresh") as refresh, caplog.at_level(logging.WARNING):
            assert await provider.get_access_token("app1") is None

        refresh.assert_not_called()
        assert "has no refresh token" in caplog.text

    async def test_unknown_application(self):
        provider = RefreshTokenCredentialProvider({}.get, session=MagicMock())
        assert await provider.get_access_token("ghost") is None

    async def test_refresh_error_returns_none(self, caplog):
        app = app_with_token()
        provider = RefreshTokenCredentialProvider({app.id: app}.get, session=MagicMock())

        with patch.object(provider, "_refresh", side_effect=RefreshError("invalid_grant")), caplog.at_level(logging.WARNING):
            assert await provider.get_access_token("app1") is None

        assert "Failed to refresh access token" in caplog.text
        assert provider.get_cached_token("app1") is None
