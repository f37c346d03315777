"""Client lookup and autocomplete. Clients are managed by Syndata."""

import logging

from clients.syndata_client import SyndataClient, SyndataNotFoundError
from core.models import Cliente
from core.normalize import cliente_from_api, clientes_from_api

logger = logging.getLogger(__name__)


class ClienteService:
    """Read-only access to /clientes."""

    def __init__(self, syndata: SyndataClient):
        self.syndata = syndata

    def search(self, query: str | None = None, limit: int = 50) -> list[Cliente]:
        """
        Clients matching query (server-side search on name/document).

        Args:
            query: Free text; blank lists everything Syndata returns
            limit: Max results
        """
        query = (query or "").strip()
        rows = self.syndata.get("/clientes", params={"q": query or None})
        return clientes_from_api(rows or [])[:limit]

    def get(self, cliente_id: int) -> Cliente:
        """
        Raises:
            ValueError: If the client does not exist
        """
        try:
            raw = self.syndata.get(f"/clientes/{cliente_id}")
        except SyndataNotFoundError:
            raise ValueError(f"Cliente {cliente_id} not found")
        if not isinstance(raw, dict):
            raise ValueError(f"Cliente {cliente_id} not found")
        return cliente_from_api(raw)
