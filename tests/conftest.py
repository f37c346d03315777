"""Shared test fixtures for the agenda test suite."""

import time as _time
from datetime import timedelta
from pathlib import Path

import pytest
import responses
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=False)

from auth.types import Role, Session, User
from clients.syndata_client import SyndataClient, SyndataConfig
from utils.session_context import clear_current_session, session_context
from utils.timezone import now_utc


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

BASE_URL = "https://syndata.test/api"

SECRETARY = User(id=3, name="Ana Souza", role=Role.SECRETARIA, login="ana")
MANAGER = User(id=4, name="Carlos Lima", role=Role.GERENTE, login="carlos")
TECHNICIAN = User(id=7, name="João Pereira", role=Role.TECNICO, login="joao")
OTHER_TECHNICIAN = User(id=12, name="Marcos Dias", role=Role.TECNICO, login="marcos")


def make_session(user: User, token: str = "dash-token", upstream_token: str = "upstream-token") -> Session:
    now = now_utc()
    return Session(
        token=token,
        upstream_token=upstream_token,
        user=user,
        created_at=now,
        expires_at=now + timedelta(hours=12),
        last_activity_at=now,
    )


# =============================================================================
# SESSION CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_session_context():
    """Ensure clean session context before and after each test."""
    clear_current_session()
    yield
    clear_current_session()


@pytest.fixture
def as_secretary():
    with session_context(make_session(SECRETARY)):
        yield SECRETARY


@pytest.fixture
def as_manager():
    with session_context(make_session(MANAGER)):
        yield MANAGER


@pytest.fixture
def as_technician():
    with session_context(make_session(TECHNICIAN)):
        yield TECHNICIAN


@pytest.fixture
def as_other_technician():
    with session_context(make_session(OTHER_TECHNICIAN)):
        yield OTHER_TECHNICIAN


# =============================================================================
# SYNDATA FIXTURES
# =============================================================================


@pytest.fixture
def syndata_config() -> SyndataConfig:
    return SyndataConfig(base_url=BASE_URL, timeout_seconds=5, require_closing_note=True)


@pytest.fixture
def syndata(syndata_config) -> SyndataClient:
    return SyndataClient(syndata_config)


@pytest.fixture
def mocked():
    """Intercept every requests call; unmatched calls raise ConnectionError."""
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def url(path: str) -> str:
    return f"{BASE_URL}/{path.lstrip('/')}"


def agendamento_row(**overrides) -> dict:
    """A /agendamentos/detalhes row as Syndata sends it."""
    row = {
        "chave": 101,
        "codigoCliente": 500,
        "nomeCliente": "Padaria Central",
        "codigoResponsavel": 7,
        "tecnicoNome": "João Pereira",
        "titulo": "Manutenção de Equipamentos",
        "statusAg": "AB",
        "dataHoraInicial": "2024-03-10T14:00:00",
        "dataHoraFinal": "2024-03-10T15:00:00",
        "dataHoraAbertura": "2024-03-01T09:30:00",
        "agendaAbertura": "Impressora fiscal travando",
    }
    row.update(overrides)
    return row


def encaixe_row(**overrides) -> dict:
    row = {
        "chave": 40,
        "status": "A",
        "codigoCliente": 500,
        "nomeCliente": "Padaria Central",
        "foneCliente": "11 99999-0000",
        "tipoSolicitacao": "M",
        "tipoUrgencia": "M",
        "dataHoraAbertura": "2024-03-08T10:00:00",
        "observacao": "Balança sem comunicação",
    }
    row.update(overrides)
    return row


# =============================================================================
# VALKEY FIXTURES
# =============================================================================


class FakeRedis:
    """In-memory stand-in for the handful of redis-py calls ValkeyClient makes."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, float] = {}

    def _alive(self, key):
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= _time.monotonic():
            self.data.pop(key, None)
            self.expiry.pop(key, None)
        return key in self.data

    def ping(self):
        return True

    def get(self, key):
        return self.data.get(key) if self._alive(key) else None

    def set(self, key, value):
        self.data[key] = str(value)
        self.expiry.pop(key, None)
        return True

    def setex(self, key, seconds, value):
        self.data[key] = str(value)
        self.expiry[key] = _time.monotonic() + seconds
        return True

    def delete(self, key):
        existed = self._alive(key)
        self.data.pop(key, None)
        self.expiry.pop(key, None)
        return 1 if existed else 0

    def ttl(self, key):
        if not self._alive(key):
            return -2
        deadline = self.expiry.get(key)
        if deadline is None:
            return -1
        return max(int(deadline - _time.monotonic()), 0)

    def expire(self, key, seconds):
        if not self._alive(key):
            return False
        self.expiry[key] = _time.monotonic() + seconds
        return True

    def incr(self, key):
        value = int(self.get(key) or 0) + 1
        self.data[key] = str(value)
        return value

    def keys(self, pattern="*"):
        prefix = pattern.rstrip("*")
        return [k for k in list(self.data) if self._alive(k) and k.startswith(prefix)]

    def close(self):
        pass


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def valkey(monkeypatch, fake_redis):
    """ValkeyClient backed by FakeRedis."""
    import clients.valkey_client as valkey_module
    from clients.valkey_client import ValkeyClient

    monkeypatch.setattr(valkey_module.redis, "from_url", lambda url, **kwargs: fake_redis)
    client = ValkeyClient("redis://fake:6379/0", namespace="test")
    yield client
    client.close()


# =============================================================================
# FACTORY FIXTURES
# =============================================================================


@pytest.fixture
def secretary() -> User:
    return SECRETARY


@pytest.fixture
def manager() -> User:
    return MANAGER


@pytest.fixture
def technician() -> User:
    return TECHNICIAN


@pytest.fixture
def other_technician() -> User:
    return OTHER_TECHNICIAN


@pytest.fixture
def session_factory():
    """make_session(user, token=..., upstream_token=...)."""
    return make_session


@pytest.fixture
def api_url():
    """Absolute Syndata URL for a path."""
    return url


@pytest.fixture
def ag_row():
    """agendamento_row(**overrides)."""
    return agendamento_row


@pytest.fixture
def enc_row():
    """encaixe_row(**overrides)."""
    return encaixe_row
