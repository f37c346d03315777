"""HTTP interface: response envelope, error mapping, data and action routers."""

from api.base import (
    APIError,
    APIMeta,
    APIResponse,
    success_response,
    error_response,
    ErrorCodes,
)
