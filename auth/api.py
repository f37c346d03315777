"""HTTP routes for authentication."""

import ipaddress

from fastapi import APIRouter, Request, Response

from api.base import success_response
from auth.config import AuthConfig
from auth.roles import visible_views
from auth.service import AuthService
from auth.types import LoginRequest, User


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _user_payload(user: User) -> dict:
    return {
        **user.model_dump(mode="json"),
        "views": [v.value for v in visible_views(user)],
    }


def create_auth_router(auth_service: AuthService, config: AuthConfig) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(tags=["auth"])

    @router.post("/login")
    def login(request: Request, response: Response, body: LoginRequest):
        """Log in with Syndata credentials.

        Sets the session cookie on success. Failures (bad credentials,
        rate limit, Syndata down) are mapped by the global error handlers.
        """
        result = auth_service.login(
            body,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        session = result.session

        response.set_cookie(
            key=config.session_cookie_name,
            value=session.token,
            httponly=True,
            secure=config.cookie_secure,
            samesite="lax",
            max_age=int((session.expires_at - session.created_at).total_seconds()),
        )

        return success_response({
            "user": _user_payload(result.user),
            "expires_at": session.expires_at.isoformat(),
        }).model_dump(mode="json")

    @router.post("/logout")
    def logout(request: Request, response: Response):
        """Logout - revoke session and clear cookie."""
        session_token = request.cookies.get(config.session_cookie_name)

        if session_token:
            auth_service.logout(
                session_token=session_token,
                ip_address=_get_client_ip(request),
            )

        response.delete_cookie(key=config.session_cookie_name)
        return success_response({"message": "Logged out successfully"}).model_dump(mode="json")

    @router.get("/me")
    def get_current_user(request: Request):
        """Current user and the views offered to them.

        Requires authentication (middleware sets the session).
        """
        session = request.state.session
        return success_response({
            "user": _user_payload(session.user),
            "expires_at": session.expires_at.isoformat(),
        }).model_dump(mode="json")

    return router
