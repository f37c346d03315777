"""Security event logging for the auth audit trail.

Events go to the dedicated "security" logger so deployments can route
them to their own handler/file.
"""

import logging
from enum import Enum
from typing import Any

_logger = logging.getLogger("security")


class SecurityEvent(Enum):
    """Auth security event types."""

    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    RATE_LIMITED = "rate_limited"
    SESSION_CREATED = "session_created"
    SESSION_EXPIRED = "session_expired"
    SESSION_REVOKED = "session_revoked"
    UPSTREAM_TOKEN_REJECTED = "upstream_token_rejected"


_WARNING_EVENTS = {
    SecurityEvent.LOGIN_FAILED,
    SecurityEvent.RATE_LIMITED,
    SecurityEvent.UPSTREAM_TOKEN_REJECTED,
}


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or _logger

    def log(
        self,
        event: SecurityEvent,
        username: str | None = None,
        user_id: int | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log a security event. Never includes secrets."""
        fields = {
            "username": username,
            "user_id": user_id,
            "ip": ip_address,
            "user_agent": user_agent,
        }
        fields.update(details or {})
        rendered = " ".join(f"{k}={v}" for k, v in fields.items() if v is not None)

        level = logging.WARNING if event in _WARNING_EVENTS else logging.INFO
        self._logger.log(level, f"{event.value} {rendered}".strip())
