"""Tests for ClienteService."""

import pytest

from core.services.cliente_service import ClienteService


@pytest.fixture
def service(syndata):
    return ClienteService(syndata)


class TestSearch:
    """Autocomplete."""

    def test_query_forwarded(self, service, mocked, api_url, as_secretary):
        mocked.get(api_url("clientes"), json=[{"id": 500, "nome": "Padaria Central"}])

        result = service.search("  padaria ")

        assert result[0].nome == "Padaria Central"
        assert "q=padaria" in mocked.calls[0].request.url

    def test_blank_query_not_sent(self, service, mocked, api_url, as_secretary):
        mocked.get(api_url("clientes"), json=[])

        assert service.search("") == []
        assert "q=" not in mocked.calls[0].request.url

    def test_limit(self, service, mocked, api_url, as_secretary):
        mocked.get(api_url("clientes"), json=[{"id": i, "nome": f"Cliente {i}"} for i in range(1, 6)])

        assert len(service.search(limit=2)) == 2


class TestGet:
    """Single client."""

    def test_get(self, service, mocked, api_url, as_secretary):
        mocked.get(api_url("clientes/500"), json={"codigo": "500", "nome": "Padaria Central", "cidade": "Campinas"})

        cliente = service.get(500)

        assert cliente.id == 500
        assert cliente.endereco_completo == "Campinas"

    def test_not_found(self, service, mocked, api_url, as_secretary):
        mocked.get(api_url("clientes/9"), status=404)

        with pytest.raises(ValueError, match="Cliente 9 not found"):
            service.get(9)
