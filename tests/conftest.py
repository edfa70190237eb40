"""Pytest configuration and fixtures for yt_quota tests.

`async def` tests run through asyncio.run via the pytest_pyfunc_call hook
below, so no async plugin is needed.
"""

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from yt_quota.logging import PACKAGE_LOGGER
from yt_quota.models import ActivationCause, Application, QuotaSettings


def pytest_pyfunc_call(pyfuncitem: pytest.Item):
    """Run coroutine test functions with asyncio.run."""
    test_func = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_func):
        kwargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
        asyncio.run(test_func(**kwargs))
        return True
    return None


class FakeClock:
    """Settable clock returning aware datetimes."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeHost:
    """In-memory ApplicationHost recording activations and polling switches."""

    def __init__(self, applications: List[Application], active_id: Optional[str] = None, connected: bool = True):
        self.applications: Dict[str, Application] = {app.id: app for app in applications}
        self.active_id = active_id
        self.connected = connected
        self.activations: List[tuple] = []
        self.polling_switches: List[str] = []
        self.get_applications_calls = 0

    def get_applications(self) -> List[Application]:
        self.get_applications_calls += 1
        return list(self.applications.values())

    def get_application(self, application_id: str) -> Optional[Application]:
        return self.applications.get(application_id)

    def get_active_application_id(self) -> Optional[str]:
        return self.active_id

    def is_connected(self) -> bool:
        return self.connected

    async def activate_application(self, application_id: str, cause: ActivationCause) -> None:
        self.activations.append((application_id, cause))
        self.active_id = application_id

    async def switch_polling_application(self, application_id: str) -> None:
        self.polling_switches.append(application_id)


class FakeCredentials:
    def __init__(self, tokens: Optional[Dict[str, Optional[str]]] = None):
        self.tokens = tokens or {}
        self.requested: List[str] = []

    async def get_access_token(self, application_id: str) -> Optional[str]:
        self.requested.append(application_id)
        return self.tokens.get(application_id, f"token-{application_id}")


class EventRecorder:
    def __init__(self):
        self.events: List[tuple] = []

    def __call__(self, name: str, payload: dict) -> None:
        self.events.append((name, payload))

    def named(self, name: str) -> List[dict]:
        return [payload for event_name, payload in self.events if event_name == name]


def make_app(app_id: str, name: Optional[str] = None, daily_quota: int = 10000, **settings) -> Application:
    return Application(
        id=app_id,
        name=name or app_id.title(),
        quota_settings=QuotaSettings(daily_quota=daily_quota, **settings),
    )


@pytest.fixture
def clock():
    # 2024-06-15 14:00 PDT
    return FakeClock(datetime(2024, 6, 15, 21, 0, tzinfo=timezone.utc))


@pytest.fixture
def events():
    return EventRecorder()


@pytest.fixture
def package_logger():
    """The `yt_quota` logger, with its level restored after the test."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    level = logger.level
    yield logger
    logger.setLevel(level)
