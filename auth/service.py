"""Authentication service - orchestrates the Syndata login flow."""

import logging

from auth.config import AuthConfig
from auth.session import SessionManager
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.types import AuthenticatedUser, LoginRequest, Session, User
from auth.exceptions import InvalidCredentialsError, RateLimitedError, SessionExpiredError
from clients.syndata_client import (
    SyndataClient, SyndataError, SyndataRejectedError, SyndataUnauthorizedError,
)
from core.normalize import login_from_api, user_from_api
from core.services.funcionario_service import FuncionarioService

logger = logging.getLogger(__name__)


class AuthService:
    """Orchestrates dashboard authentication against Syndata.

    Handles:
    - Login (credentials forwarded to Syndata, per-username rate limit)
    - User hydration (/auth/me, staff lists for name and role)
    - Session management
    - Logout
    """

    def __init__(
        self,
        config: AuthConfig,
        syndata: SyndataClient,
        session_manager: SessionManager,
        rate_limiter: RateLimiter,
        security_logger: SecurityLogger | None = None,
    ):
        self._config = config
        self._syndata = syndata
        self._session_manager = session_manager
        self._rate_limiter = rate_limiter
        self._security_logger = security_logger or SecurityLogger()

    def login(
        self,
        credentials: LoginRequest,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuthenticatedUser:
        """Log in with Syndata credentials and open a dashboard session.

        Flow:
        1. Check per-username rate limit
        2. POST /auth/login (no bearer token)
        3. Resolve the user from the login answer, else GET /auth/me
        4. Fill placeholder name / missing role from the staff lists
        5. Create session, reset rate limit

        Raises:
            RateLimitedError: Too many attempts for this username.
            InvalidCredentialsError: Syndata refused the credentials.
            SyndataUnavailableError: Syndata could not be reached.
        """
        username = credentials.usuario.strip()
        try:
            self._rate_limiter.check_rate_limit(username)
        except RateLimitedError:
            self._security_logger.log(SecurityEvent.RATE_LIMITED, username=username, ip_address=ip_address)
            raise

        try:
            answer = self._syndata.post(
                "/auth/login",
                json_body={"usuario": username, "senha": credentials.senha},
                authenticated=False,
            )
        except (SyndataUnauthorizedError, SyndataRejectedError) as e:
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                username=username,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": str(e)},
            )
            raise InvalidCredentialsError("Invalid username or password") from e

        try:
            upstream = login_from_api(answer)
        except ValueError as e:
            raise InvalidCredentialsError(str(e)) from e

        user = upstream.user or self._fetch_me(upstream.token)
        user = self._hydrate(user, upstream.token)

        session = self._session_manager.create_session(
            user,
            upstream_token=upstream.token,
            upstream_expires_in=upstream.expires_in_seconds,
        )
        self._rate_limiter.reset_rate_limit(username)

        self._security_logger.log(
            SecurityEvent.LOGIN_SUCCEEDED,
            username=username,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"role": user.role.value if user.role else None},
        )
        return AuthenticatedUser(user=user, session=session)

    def _fetch_me(self, upstream_token: str) -> User:
        raw = self._syndata.get("/auth/me", token=upstream_token)
        if isinstance(raw, dict) and isinstance(raw.get("user"), dict):
            raw = raw["user"]
        try:
            return user_from_api(raw)
        except (TypeError, ValueError) as e:
            raise InvalidCredentialsError("Syndata did not identify the user") from e

    def _hydrate(self, user: User, upstream_token: str) -> User:
        """Fill name/role from the staff lists; failures keep the user as-is."""
        # No session exists yet, so bind the fresh token explicitly
        staff = FuncionarioService(SyndataClient(self._syndata.config, token_provider=lambda: upstream_token))
        try:
            return staff.hydrate_user(user)
        except SyndataError as e:
            logger.warning(f"Could not hydrate user {user.id} from staff lists: {e}")
            return user

    def logout(self, session_token: str, ip_address: str | None = None) -> None:
        """Revoke session (logout).

        Safe to call with invalid token.
        """
        try:
            user_id = self._session_manager.validate_session(session_token).user.id
        except SessionExpiredError:
            user_id = None

        self._session_manager.revoke_session(session_token)
        self._security_logger.log(SecurityEvent.SESSION_REVOKED, user_id=user_id, ip_address=ip_address)

    def validate_session(self, token: str) -> Session:
        """Validate session token.

        Raises:
            SessionExpiredError: If session invalid or expired.
        """
        return self._session_manager.validate_session(token)

