"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (minutes for short durations,
    hours for longer ones) to make configuration intuitive.
    """

    # Session settings
    session_expiry_hours: int = Field(
        default=12,
        description="Dashboard session lifetime in hours (capped by the Syndata token lifetime)",
        ge=1,
        le=720,
    )
    session_cookie_name: str = Field(
        default="session_token",
        description="Cookie carrying the dashboard session token",
    )
    cookie_secure: bool = Field(
        default=True,
        description="Send the session cookie over HTTPS only",
    )

    # Rate limiting
    rate_limit_attempts: int = Field(
        default=5,
        description="Max login attempts per username per window",
        ge=1,
        le=20,
    )
    rate_limit_window_minutes: int = Field(
        default=15,
        description="Rate limit window duration",
        ge=5,
        le=60,
    )
