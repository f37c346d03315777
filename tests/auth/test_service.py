"""Tests for AuthService - Syndata login flow."""

import json
import logging

import pytest

from auth.config import AuthConfig
from auth.exceptions import InvalidCredentialsError, RateLimitedError, SessionExpiredError
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.session import SessionManager
from auth.types import LoginRequest, Role
from clients.syndata_client import SyndataUnavailableError


@pytest.fixture
def config():
    return AuthConfig(rate_limit_attempts=3, rate_limit_window_minutes=5)


@pytest.fixture
def session_manager(valkey, config):
    return SessionManager(valkey, config)


@pytest.fixture
def auth_service(config, syndata, session_manager, valkey):
    return AuthService(config, syndata, session_manager, RateLimiter(valkey, config), SecurityLogger())


def _credentials(usuario="joao", senha="segredo"):
    return LoginRequest(usuario=usuario, senha=senha)


class TestLogin:
    """Login against Syndata."""

    def test_login_with_user_in_answer(self, auth_service, mocked, api_url):
        """Syndata returns token and user; no extra lookups."""
        mocked.post(api_url("auth/login"), json={
            "access_token": "tok-1",
            "expires_in": 3600,
            "user": {"id": 7, "nome": "João Pereira", "tipoUsuario": "tecnico"},
        })

        result = auth_service.login(_credentials(), ip_address="10.0.0.1")

        assert result.user.id == 7
        assert result.user.role == Role.TECNICO
        assert result.session.upstream_token == "tok-1"
        assert result.session.upstream_expires_at is not None
        assert len(mocked.calls) == 1

        request = mocked.calls[0].request
        assert "Authorization" not in request.headers
        assert json.loads(request.body) == {"usuario": "joao", "senha": "segredo"}

    def test_login_fetches_me_and_hydrates(self, auth_service, mocked, api_url):
        """Token-only answer: /auth/me then staff lists fill the placeholder name."""
        mocked.post(api_url("auth/login"), json={"token": "tok-2"})
        mocked.get(api_url("auth/me"), json={"user": {"id": 3, "name": "Usuário 3", "role": "secretaria"}})
        mocked.get(api_url("funcionarios/tecnicos"), json=[])
        mocked.get(api_url("funcionarios/secretarias"), json=[{"codigo": 3, "nome": "Ana Souza"}])

        result = auth_service.login(_credentials("ana"))

        assert result.user.name == "Ana Souza"
        assert result.user.role == Role.SECRETARIA
        for call in mocked.calls[1:]:
            assert call.request.headers["Authorization"] == "Bearer tok-2"

    def test_hydration_failure_keeps_user(self, auth_service, mocked, api_url, caplog):
        mocked.post(api_url("auth/login"), json={"token": "tok-3", "user": {"id": 7, "name": ""}})
        mocked.get(api_url("funcionarios/tecnicos"), status=503)

        result = auth_service.login(_credentials())

        assert result.user.id == 7
        assert result.user.role is None
        assert "Could not hydrate user 7" in caplog.text

    def test_session_is_stored(self, auth_service, session_manager, mocked, api_url):
        mocked.post(api_url("auth/login"), json={
            "token": "tok-4", "user": {"id": 7, "nome": "João", "role": "tecnico"},
        })

        result = auth_service.login(_credentials())

        assert session_manager.validate_session(result.session.token).user.id == 7

    @pytest.mark.parametrize("status", [400, 401, 403])
    def test_rejected_credentials(self, auth_service, mocked, api_url, status):
        mocked.post(api_url("auth/login"), status=status, json={"message": "Usuário ou senha inválidos"})

        with pytest.raises(InvalidCredentialsError, match="Invalid username or password"):
            auth_service.login(_credentials())

    def test_answer_without_token(self, auth_service, mocked, api_url):
        mocked.post(api_url("auth/login"), json={"ok": True})

        with pytest.raises(InvalidCredentialsError):
            auth_service.login(_credentials())

    def test_syndata_down_propagates(self, auth_service, mocked, api_url):
        mocked.post(api_url("auth/login"), status=502)

        with pytest.raises(SyndataUnavailableError):
            auth_service.login(_credentials())

    def test_rate_limited_before_syndata(self, auth_service, mocked, api_url, config, caplog):
        mocked.post(api_url("auth/login"), status=401)
        for _ in range(config.rate_limit_attempts):
            with pytest.raises(InvalidCredentialsError):
                auth_service.login(_credentials())

        with caplog.at_level(logging.WARNING, logger="security"):
            with pytest.raises(RateLimitedError):
                auth_service.login(_credentials())

        assert len(mocked.calls) == config.rate_limit_attempts
        assert "rate_limited username=joao" in caplog.text

    def test_success_resets_rate_limit(self, auth_service, mocked, api_url, config):
        mocked.post(api_url("auth/login"), status=401)
        with pytest.raises(InvalidCredentialsError):
            auth_service.login(_credentials())

        mocked.replace("POST", api_url("auth/login"), json={"token": "t", "user": {"id": 7, "nome": "João", "role": "tecnico"}})
        auth_service.login(_credentials())

        for _ in range(config.rate_limit_attempts):
            auth_service._rate_limiter.check_rate_limit("joao")


class TestLogout:
    """Logout."""

    def test_logout_revokes(self, auth_service, session_manager, technician):
        session = session_manager.create_session(technician, "tok")

        auth_service.logout(session.token)

        with pytest.raises(SessionExpiredError):
            auth_service.validate_session(session.token)

    def test_logout_unknown_token_is_safe(self, auth_service):
        auth_service.logout("nope")
