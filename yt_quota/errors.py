from __future__ import annotations

from typing import Optional, Tuple

import requests
from requests import Response

QUOTA_ERROR_REASONS = ("quotaExceeded", "rateLimitExceeded")


class QuotaLimitError(RuntimeError):
    """Raised when a planned call would exceed an application's remaining quota."""


class ProbeError(RuntimeError):
    """Raised by a probe when a candidate application cannot serve requests right now."""

    def __init__(self, message: str, reason: str = "unknown"):
        super().__init__(message)
        self.reason = reason


def parse_api_error(resp: Optional[Response]) -> Tuple[str, str]:
    """Extract message and reason from a YouTube API error response."""
    if resp is None:
        return ("Unknown response", "unknown")
    try:
        payload = resp.json()
        message = payload.get("error", {}).get("message", str(resp.text))
        errors = payload.get("error", {}).get("errors", [])
        reason = errors[0].get("reason") if errors else payload.get("error", {}).get("status", "unknown")
        return message, reason or "unknown"
    except (ValueError, AttributeError):
        return (f"HTTP {resp.status_code} {resp.reason}", "unknown")


def is_quota_exceeded_error(error: Optional[BaseException]) -> bool:
    """Return True when an API failure means the application ran out of quota.

    YouTube answers 403 with reason `quotaExceeded` once the daily budget is
    spent and `rateLimitExceeded` when calls come in too fast. Errors that
    only carry a message are matched on its wording.
    """
    if error is None:
        return False

    if isinstance(error, ProbeError) and error.reason in QUOTA_ERROR_REASONS:
        return True

    if isinstance(error, requests.exceptions.HTTPError) and error.response is not None:
        if error.response.status_code == 403:
            _, reason = parse_api_error(error.response)
            if reason in QUOTA_ERROR_REASONS:
                return True

    message = str(error).lower()
    return "quota" in message and "exceed" in message
