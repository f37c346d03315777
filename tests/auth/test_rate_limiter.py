"""Tests for RateLimiter - login attempt throttling."""

import pytest

from auth.rate_limiter import RateLimiter
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError


@pytest.fixture
def config():
    """Test config with low attempts for faster tests."""
    return AuthConfig(
        rate_limit_attempts=3,
        rate_limit_window_minutes=5,  # Minimum allowed
    )


@pytest.fixture
def rate_limiter(valkey, config):
    """RateLimiter with test config."""
    return RateLimiter(valkey, config)


class TestCheckRateLimit:
    """Test rate limit checking and incrementing."""

    def test_first_attempt_passes(self, rate_limiter):
        """First attempt does not raise."""
        rate_limiter.check_rate_limit("joao")

    def test_within_limit_passes(self, rate_limiter, config):
        """Attempts within limit pass."""
        for _ in range(config.rate_limit_attempts):
            rate_limiter.check_rate_limit("ana")

    def test_exceeds_limit_raises(self, rate_limiter, config):
        """Exceeding limit raises RateLimitedError."""
        for _ in range(config.rate_limit_attempts):
            rate_limiter.check_rate_limit("marcos")

        with pytest.raises(RateLimitedError):
            rate_limiter.check_rate_limit("marcos")

    def test_error_includes_retry_after(self, rate_limiter, config):
        """RateLimitedError carries a positive retry_after_seconds within the window."""
        for _ in range(config.rate_limit_attempts):
            rate_limiter.check_rate_limit("carlos")

        with pytest.raises(RateLimitedError) as exc_info:
            rate_limiter.check_rate_limit("carlos")

        assert 0 < exc_info.value.retry_after_seconds <= config.rate_limit_window_minutes * 60

    def test_username_is_case_and_space_insensitive(self, rate_limiter, config):
        """' JOAO ' and 'joao' share one counter."""
        for _ in range(config.rate_limit_attempts):
            rate_limiter.check_rate_limit(" JOAO ")

        with pytest.raises(RateLimitedError):
            rate_limiter.check_rate_limit("joao")

    def test_users_are_independent(self, rate_limiter, config):
        """One user's lockout doesn't affect another."""
        for _ in range(config.rate_limit_attempts):
            rate_limiter.check_rate_limit("blocked")

        rate_limiter.check_rate_limit("someone-else")


class TestReset:
    """Reset after a successful login."""

    def test_reset_clears_counter(self, rate_limiter, config):
        """After reset the full allowance is back."""
        for _ in range(config.rate_limit_attempts):
            rate_limiter.check_rate_limit("ana")

        rate_limiter.reset_rate_limit("ana")

        for _ in range(config.rate_limit_attempts):
            rate_limiter.check_rate_limit("ana")
