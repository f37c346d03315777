# Infrastructure clients
from clients.syndata_client import (
    SyndataClient,
    SyndataConfig,
    SyndataError,
    SyndataUnauthorizedError,
    SyndataRejectedError,
    SyndataNotFoundError,
    SyndataUnavailableError,
)
from clients.valkey_client import ValkeyClient
