"""Tests for api/errors.py - exception to envelope mapping."""

import logging
from unittest.mock import Mock

import pytest
from fastapi import FastAPI, Request
from starlette.testclient import TestClient

from api.errors import register_error_handlers
from auth.exceptions import (
    InvalidCredentialsError, RateLimitedError, RoleNotPermittedError, SessionExpiredError,
)
from auth.session import SessionManager
from clients.syndata_client import (
    SyndataNotFoundError, SyndataRejectedError, SyndataUnauthorizedError, SyndataUnavailableError,
)
from core.lifecycle import InvalidTransitionError
from core.models import AppointmentStatus
from core.services.encaixe_service import EncaixeConversionError
from utils.busy import OperationInProgressError


@pytest.fixture
def session_manager():
    return Mock(spec=SessionManager)


@pytest.fixture
def app(session_manager, session_factory, secretary):
    """App whose single route raises whatever the test asks for."""
    app = FastAPI()
    register_error_handlers(app, session_manager=session_manager)

    errors = {
        "value": lambda: ValueError("Data inválida"),
        "missing": lambda: ValueError("Encaixe 40 not found"),
        "transition": lambda: InvalidTransitionError(
            101, AppointmentStatus.SCHEDULED, AppointmentStatus.ON_SITE,
        ),
        "role": lambda: RoleNotPermittedError("Not yours"),
        "busy": lambda: OperationInProgressError(("agendamento", 101)),
        "credentials": lambda: InvalidCredentialsError("Usuário ou senha inválidos"),
        "throttled": lambda: RateLimitedError(120),
        "expired": lambda: SessionExpiredError("Session has expired"),
        "upstream_401": lambda: SyndataUnauthorizedError("401"),
        "upstream_404": lambda: SyndataNotFoundError("Registro não encontrado"),
        "upstream_409": lambda: SyndataRejectedError(409, "Horário ocupado"),
        "upstream_down": lambda: SyndataUnavailableError("timeout"),
        "conversion": lambda: EncaixeConversionError(40, 900),
        "bug": lambda: RuntimeError("boom"),
    }

    @app.get("/raise/{kind}")
    async def raise_error(request: Request, kind: str, with_session: bool = False):
        if with_session:
            request.state.session = session_factory(secretary)
        raise errors[kind]()

    return app


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


def _error(response):
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    return body["error"]


class TestDomainErrors:
    """Local validation and lifecycle failures."""

    def test_value_error_is_400(self, client):
        response = client.get("/raise/value")

        assert response.status_code == 400
        assert _error(response) == {"code": "INVALID_REQUEST", "message": "Data inválida", "details": None}

    def test_not_found_message_is_404(self, client):
        response = client.get("/raise/missing")

        assert response.status_code == 404
        assert _error(response)["code"] == "NOT_FOUND"

    def test_invalid_transition_has_details(self, client):
        response = client.get("/raise/transition")

        assert response.status_code == 400
        error = _error(response)
        assert error["code"] == "INVALID_STATUS_TRANSITION"
        assert error["details"] == {"current": "scheduled", "target": "on_site"}

    def test_role_is_403(self, client):
        response = client.get("/raise/role")

        assert response.status_code == 403
        assert _error(response)["code"] == "ROLE_NOT_PERMITTED"

    def test_busy_is_409(self, client):
        response = client.get("/raise/busy")

        assert response.status_code == 409
        assert _error(response)["code"] == "OPERATION_IN_PROGRESS"

    def test_conversion_incomplete(self, client):
        response = client.get("/raise/conversion")

        assert response.status_code == 502
        error = _error(response)
        assert error["code"] == "CONVERSION_INCOMPLETE"
        assert error["details"] == {"encaixe_chave": 40, "agendamento_chave": 900}
        assert "Agendamento 900 was created" in error["message"]


class TestAuthErrors:
    """Credential, throttle and session failures."""

    def test_invalid_credentials(self, client):
        response = client.get("/raise/credentials")

        assert response.status_code == 401
        assert _error(response)["message"] == "Usuário ou senha inválidos"

    def test_rate_limited_sets_retry_after(self, client):
        response = client.get("/raise/throttled")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "120"
        assert "120 seconds" in _error(response)["message"]

    def test_session_expired_clears_cookie(self, client):
        response = client.get("/raise/expired")

        assert response.status_code == 401
        assert _error(response)["code"] == "SESSION_EXPIRED"
        assert "session_token=" in response.headers["set-cookie"]


class TestUpstreamErrors:
    """Syndata failures."""

    def test_rejected_token_revokes_session(self, client, session_manager, caplog):
        with caplog.at_level(logging.WARNING, logger="security"):
            response = client.get("/raise/upstream_401", params={"with_session": True})

        assert response.status_code == 401
        assert _error(response)["code"] == "SESSION_EXPIRED"
        session_manager.revoke_session.assert_called_once_with("dash-token")
        assert "upstream_token_rejected" in caplog.text

    def test_rejected_token_without_session(self, client, session_manager):
        response = client.get("/raise/upstream_401")

        assert response.status_code == 401
        session_manager.revoke_session.assert_not_called()

    def test_upstream_404(self, client):
        response = client.get("/raise/upstream_404")

        assert response.status_code == 404
        assert _error(response) == {"code": "NOT_FOUND", "message": "Registro não encontrado", "details": None}

    def test_upstream_rejection_verbatim(self, client):
        response = client.get("/raise/upstream_409")

        assert response.status_code == 409
        assert _error(response) == {"code": "BACKEND_REJECTED", "message": "Horário ocupado", "details": None}

    def test_upstream_unavailable(self, client):
        response = client.get("/raise/upstream_down")

        assert response.status_code == 503
        assert _error(response)["code"] == "SERVICE_UNAVAILABLE"


class TestUnhandled:

    def test_internal_error_hides_details(self, client, caplog):
        response = client.get("/raise/bug")

        assert response.status_code == 500
        assert _error(response)["message"] == "An internal error occurred"
        assert "boom" not in response.text
        assert "Unhandled exception" in caplog.text
