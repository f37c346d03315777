"""Dashboard session lifecycle.

A session binds an opaque dashboard token (cookie) to the Syndata bearer
token and the normalized user. Sessions live in Valkey with a TTL that
slides on activity but never outlives the upstream token.
"""

import secrets
from datetime import timedelta

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.types import Session, User
from auth.exceptions import SessionExpiredError
from utils.timezone import now_utc, parse_iso


class SessionManager:
    """Session token lifecycle management.

    Sessions are stored in Valkey with TTL matching session expiry.
    Supports automatic session extension on activity.
    """

    KEY_PREFIX = "session:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config

    def _key(self, token: str) -> str:
        """Generate Valkey key for session token."""
        return f"{self.KEY_PREFIX}{token}"

    def create_session(
        self,
        user: User,
        upstream_token: str,
        upstream_expires_in: int | None = None,
    ) -> Session:
        """Create new session for user.

        Args:
            user: Normalized Syndata user
            upstream_token: Bearer token to attach to Syndata requests
            upstream_expires_in: Upstream token lifetime in seconds, if Syndata told us
        """
        token = secrets.token_urlsafe(32)
        now = now_utc()
        upstream_expires_at = (
            now + timedelta(seconds=upstream_expires_in) if upstream_expires_in else None
        )

        session = Session(
            token=token,
            upstream_token=upstream_token,
            user=user,
            created_at=now,
            expires_at=self._expiry(now, upstream_expires_at),
            last_activity_at=now,
            upstream_expires_at=upstream_expires_at,
        )
        self._store(session)
        return session

    def validate_session(self, token: str) -> Session:
        """Validate session token and return session.

        Raises SessionExpiredError if token invalid or expired.
        Extends the session on every successful validation.
        """
        data = self._valkey.get_json(self._key(token))

        if data is None:
            raise SessionExpiredError("Session not found or expired")

        upstream_expires_at = data.get("upstream_expires_at")
        session = Session(
            token=token,
            upstream_token=data["upstream_token"],
            user=User.model_validate(data["user"]),
            created_at=parse_iso(data["created_at"]),
            expires_at=parse_iso(data["expires_at"]),
            last_activity_at=parse_iso(data["last_activity_at"]),
            upstream_expires_at=parse_iso(upstream_expires_at) if upstream_expires_at else None,
        )

        now = now_utc()

        # Valkey TTL should already have evicted it
        if now > session.expires_at:
            self._valkey.delete(self._key(token))
            raise SessionExpiredError("Session expired")

        return self._extend_session(session)

    def revoke_session(self, token: str) -> None:
        """Revoke session (logout, or Syndata rejected the upstream token).

        Safe to call with nonexistent token.
        """
        self._valkey.delete(self._key(token))

    def _extend_session(self, session: Session) -> Session:
        """Extend session expiry and update last_activity_at."""
        now = now_utc()
        updated = session.model_copy(update={
            "expires_at": self._expiry(now, session.upstream_expires_at),
            "last_activity_at": now,
        })
        self._store(updated)
        return updated

    def _expiry(self, now, upstream_expires_at):
        expires_at = now + timedelta(hours=self._config.session_expiry_hours)
        if upstream_expires_at is not None:
            expires_at = min(expires_at, upstream_expires_at)
        return expires_at

    def _store(self, session: Session) -> None:
        ttl = int((session.expires_at - now_utc()).total_seconds())
        self._valkey.set_json(
            self._key(session.token),
            {
                "upstream_token": session.upstream_token,
                "user": session.user.model_dump(mode="json"),
                "created_at": session.created_at.isoformat(),
                "expires_at": session.expires_at.isoformat(),
                "last_activity_at": session.last_activity_at.isoformat(),
                "upstream_expires_at": (
                    session.upstream_expires_at.isoformat() if session.upstream_expires_at else None
                ),
            },
            expire_seconds=max(ttl, 1),
        )
