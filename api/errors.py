"""Global exception handlers for FastAPI.

Every failure is turned into the unified envelope; nothing is retried.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import (
    InvalidCredentialsError, RateLimitedError, RoleNotPermittedError, SessionExpiredError,
)
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.session import SessionManager
from clients.syndata_client import (
    SyndataRejectedError, SyndataUnauthorizedError, SyndataUnavailableError,
)
from core.lifecycle import InvalidTransitionError
from core.services.encaixe_service import EncaixeConversionError
from utils.busy import OperationInProgressError

logger = logging.getLogger(__name__)


def _json(request: Request, status_code: int, code: str, message: str, details: dict | None = None, **kwargs):
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, details, request_id=request_id).model_dump(mode="json"),
        **kwargs,
    )


def register_error_handlers(
    app: FastAPI,
    session_manager: SessionManager | None = None,
    cookie_name: str = "session_token",
    security_logger: SecurityLogger | None = None,
) -> None:
    """Register global exception handlers on the app.

    Args:
        app: FastAPI app
        session_manager: Used to revoke the dashboard session when Syndata
            rejects its upstream token
        cookie_name: Session cookie cleared alongside
        security_logger: Records upstream token rejections
    """
    security_logger = security_logger or SecurityLogger()

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if "not found" in message.lower():
            return _json(request, 404, ErrorCodes.NOT_FOUND, message)
        return _json(request, 400, ErrorCodes.INVALID_REQUEST, message)

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
        return _json(
            request, 400, ErrorCodes.INVALID_STATUS_TRANSITION, str(exc),
            {"current": exc.current.value, "target": exc.target.value},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(RoleNotPermittedError)
    async def role_handler(request: Request, exc: RoleNotPermittedError):
        return _json(request, 403, ErrorCodes.ROLE_NOT_PERMITTED, str(exc))

    @app.exception_handler(OperationInProgressError)
    async def busy_handler(request: Request, exc: OperationInProgressError):
        return _json(request, 409, ErrorCodes.OPERATION_IN_PROGRESS, str(exc))

    @app.exception_handler(InvalidCredentialsError)
    async def credentials_handler(request: Request, exc: InvalidCredentialsError):
        return _json(request, 401, ErrorCodes.INVALID_CREDENTIALS, str(exc))

    @app.exception_handler(RateLimitedError)
    async def rate_limited_handler(request: Request, exc: RateLimitedError):
        return _json(
            request, 429, ErrorCodes.RATE_LIMITED,
            f"Too many attempts. Please wait {exc.retry_after_seconds} seconds.",
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    @app.exception_handler(SessionExpiredError)
    async def session_expired_handler(request: Request, exc: SessionExpiredError):
        response = _json(request, 401, ErrorCodes.SESSION_EXPIRED, str(exc))
        response.delete_cookie(key=cookie_name)
        return response

    @app.exception_handler(SyndataUnauthorizedError)
    def upstream_unauthorized_handler(request: Request, exc: SyndataUnauthorizedError):
        # Syndata no longer accepts the token: the dashboard session is dead too
        session = getattr(request.state, "session", None)
        if session is not None and session_manager is not None:
            session_manager.revoke_session(session.token)
            security_logger.log(SecurityEvent.UPSTREAM_TOKEN_REJECTED, user_id=session.user.id)

        response = _json(request, 401, ErrorCodes.SESSION_EXPIRED, "Session expired. Please log in again.")
        response.delete_cookie(key=cookie_name)
        return response

    @app.exception_handler(SyndataRejectedError)
    async def upstream_rejected_handler(request: Request, exc: SyndataRejectedError):
        code = ErrorCodes.NOT_FOUND if exc.status_code == 404 else ErrorCodes.BACKEND_REJECTED
        return _json(request, exc.status_code, code, exc.message)

    @app.exception_handler(SyndataUnavailableError)
    async def upstream_unavailable_handler(request: Request, exc: SyndataUnavailableError):
        return _json(
            request, 503, ErrorCodes.SERVICE_UNAVAILABLE,
            "Syndata is unavailable right now. Please try again.",
        )

    @app.exception_handler(EncaixeConversionError)
    async def conversion_handler(request: Request, exc: EncaixeConversionError):
        return _json(
            request, 502, ErrorCodes.CONVERSION_INCOMPLETE, str(exc),
            {"encaixe_chave": exc.encaixe_chave, "agendamento_chave": exc.agendamento_chave},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
