"""Security middleware for FastAPI - session validation and session context."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.session import SessionManager
from auth.exceptions import SessionExpiredError
from api.base import error_response, ErrorCodes
from utils.session_context import set_current_session, clear_current_session


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the dashboard session and sets session context.

    For protected routes:
    1. Extracts the session token from the cookie (or an Authorization: Bearer header)
    2. Validates it via SessionManager (sliding expiry)
    3. Sets the session in request.state and in session context, so
       SyndataClient attaches the upstream token to every call
    4. Clears context after the request completes

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = [
        "/auth/login",
        "/auth/logout",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, session_manager: SessionManager, cookie_name: str = "session_token"):
        super().__init__(app)
        self._session_manager = session_manager
        self._cookie_name = cookie_name

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path + "/"):
                return True
        return False

    def _extract_token(self, request: Request) -> str | None:
        token = request.cookies.get(self._cookie_name)
        if token:
            return token
        header = request.headers.get("Authorization", "")
        if header.lower().startswith("bearer "):
            return header[7:].strip() or None
        return None

    def _unauthorized(self, request: Request, code: str, message: str) -> JSONResponse:
        response = JSONResponse(
            status_code=401,
            content=error_response(
                code, message, request_id=getattr(request.state, "request_id", None),
            ).model_dump(mode="json"),
        )
        if code == ErrorCodes.SESSION_EXPIRED:
            response.delete_cookie(key=self._cookie_name)
        return response

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        if self._is_public_path(request.url.path):
            return await call_next(request)

        session_token = self._extract_token(request)
        if not session_token:
            return self._unauthorized(request, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        try:
            session = self._session_manager.validate_session(session_token)
        except SessionExpiredError:
            return self._unauthorized(request, ErrorCodes.SESSION_EXPIRED, "Session has expired")

        set_current_session(session)
        request.state.session = session
        request.state.user = session.user

        try:
            return await call_next(request)
        finally:
            # Always clear context
            clear_current_session()
