"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    InvalidCredentialsError,
    RateLimitedError,
    SessionExpiredError,
    RoleNotPermittedError,
)
from auth.types import (
    Role,
    User,
    Session,
    LoginRequest,
    UpstreamLogin,
    AuthenticatedUser,
)
from auth.config import AuthConfig
