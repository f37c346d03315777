"""API test fixtures: authenticated TestClient over real services, Syndata mocked."""

from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.security_middleware import AuthMiddleware
from auth.session import SessionManager
from main import build_services


# =============================================================================
# SERVICES DICT
# =============================================================================


@pytest.fixture
def services(syndata):
    return build_services(syndata)


# =============================================================================
# AUTH FIXTURES
# =============================================================================


@pytest.fixture
def mock_session_manager(session_factory, secretary):
    """Every token resolves to a secretary session unless a test swaps the user."""
    mock = Mock(spec=SessionManager)
    mock.validate_session.return_value = session_factory(secretary)
    return mock


@pytest.fixture
def login_as(mock_session_manager, session_factory):
    """Switch the user behind the session cookie."""
    def _login(user):
        mock_session_manager.validate_session.return_value = session_factory(user)
        return user
    return _login


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(mock_session_manager, services):
    """FastAPI app with auth middleware, error handlers, and data/actions routes."""
    from api.data import create_data_router
    from api.actions import create_actions_router

    app = FastAPI()
    app.add_middleware(AuthMiddleware, session_manager=mock_session_manager)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app, session_manager=mock_session_manager)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    return app


@pytest.fixture
def client(app):
    """Authenticated test client."""
    c = TestClient(app, raise_server_exceptions=False)
    c.cookies.set("session_token", "dash-token")
    return c


@pytest.fixture
def unauthed_client(app):
    """Unauthenticated test client (no session cookie)."""
    return TestClient(app, raise_server_exceptions=False)
