"""
Application entry point.

    uvicorn main:create_app --factory

Configuration comes from the environment (see SyndataConfig.from_env and
ValkeyClient.from_env); missing required settings fail at startup.
"""

import logging
import os

from fastapi import FastAPI

from api.actions import create_actions_router
from api.base import success_response
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager
from clients.syndata_client import SyndataClient, SyndataConfig
from clients.valkey_client import ValkeyClient
from core.services.agendamento_service import AgendamentoService
from core.services.cliente_service import ClienteService
from core.services.encaixe_service import EncaixeService
from core.services.funcionario_service import FuncionarioService
from utils.busy import BusyGuard

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_services(syndata: SyndataClient, busy: BusyGuard | None = None) -> dict:
    """Domain services keyed the way the routers look them up."""
    busy = busy or BusyGuard()
    return {
        "agendamento": AgendamentoService(syndata, busy),
        "encaixe": EncaixeService(syndata, busy),
        "funcionario": FuncionarioService(syndata),
        "cliente": ClienteService(syndata),
    }


def create_app(
    syndata_config: SyndataConfig | None = None,
    valkey: ValkeyClient | None = None,
    auth_config: AuthConfig | None = None,
) -> FastAPI:
    """
    Wire clients, services, middleware and routers.

    Args:
        syndata_config: Defaults to SyndataConfig.from_env()
        valkey: Defaults to ValkeyClient.from_env()
        auth_config: Defaults to AuthConfig()
    """
    syndata_config = syndata_config or SyndataConfig.from_env()
    valkey = valkey or ValkeyClient.from_env()
    auth_config = auth_config or AuthConfig()

    syndata = SyndataClient(syndata_config)
    security_logger = SecurityLogger()
    session_manager = SessionManager(valkey, auth_config)
    auth_service = AuthService(
        auth_config,
        syndata,
        session_manager,
        RateLimiter(valkey, auth_config),
        security_logger,
    )
    services = build_services(syndata)

    app = FastAPI(title="Agenda Syndata")

    # Last added runs first: request id is assigned before auth
    app.add_middleware(
        AuthMiddleware,
        session_manager=session_manager,
        cookie_name=auth_config.session_cookie_name,
    )
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(
        app,
        session_manager=session_manager,
        cookie_name=auth_config.session_cookie_name,
        security_logger=security_logger,
    )

    app.include_router(create_auth_router(auth_service, auth_config), prefix="/auth")
    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    @app.get("/health")
    def health():
        return success_response({"valkey": valkey.ping()}).model_dump(mode="json")

    logger.info(f"Agenda app ready (Syndata at {syndata_config.base_url})")
    return app


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    uvicorn.run(create_app(), host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
