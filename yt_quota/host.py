"""Capabilities the host integration injects into the quota subsystem."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from .models import ActivationCause, Application

EventEmitter = Callable[[str, Dict[str, Any]], None]

# Raises when the application cannot serve requests right now.
ApplicationProbe = Callable[[Application, str], Awaitable[None]]


class ApplicationHost(Protocol):
    def get_applications(self) -> List[Application]:
        ...

    def get_application(self, application_id: str) -> Optional[Application]:
        ...

    def get_active_application_id(self) -> Optional[str]:
        ...

    def is_connected(self) -> bool:
        ...

    async def activate_application(self, application_id: str, cause: ActivationCause) -> None:
        ...

    async def switch_polling_application(self, application_id: str) -> None:
        ...


class CredentialProvider(Protocol):
    async def get_access_token(self, application_id: str) -> Optional[str]:
        ...
