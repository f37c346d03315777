"""Rate limiting for login attempts.

Uses Valkey with sliding window TTL - each attempt resets the expiry.
Hammering the login form extends the lockout instead of waiting it out.
"""

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError


class RateLimiter:
    """Per-username login rate limiting using Valkey."""

    KEY_PREFIX = "ratelimit:login:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config
        self._window_seconds = config.rate_limit_window_minutes * 60

    def _key(self, username: str) -> str:
        """Generate rate limit key for a username (trimmed, lowercase)."""
        return f"{self.KEY_PREFIX}{username.strip().lower()}"

    def check_rate_limit(self, username: str) -> None:
        """Check rate limit and increment counter.

        Raises:
            RateLimitedError: If rate limit exceeded.
        """
        key = self._key(username)

        count = self._valkey.incr(key)

        # Reset TTL on every attempt (sliding window)
        self._valkey.expire(key, self._window_seconds)

        if count > self._config.rate_limit_attempts:
            ttl = self._valkey.ttl(key)
            retry_after = max(ttl, 1)
            raise RateLimitedError(retry_after_seconds=retry_after)

    def reset_rate_limit(self, username: str) -> None:
        """Reset rate limit after successful login."""
        self._valkey.delete(self._key(username))
