"""
Syndata REST API client.

Every read and write of the dashboard goes through here. The client attaches
the bearer token of the current session, enforces a fixed timeout and turns
HTTP failures into the typed errors below. It never retries.
"""

import logging
import os
from typing import Any, Callable

import requests
from pydantic import BaseModel, Field

from utils.session_context import get_current_session

logger = logging.getLogger(__name__)


class SyndataError(Exception):
    """Base class for failed Syndata requests."""


class SyndataUnauthorizedError(SyndataError):
    """Syndata answered 401. The upstream token is no longer valid."""


class SyndataRejectedError(SyndataError):
    """Syndata refused the request (4xx). Message is meant for the user verbatim."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class SyndataNotFoundError(SyndataRejectedError):
    """Syndata answered 404."""

    def __init__(self, message: str):
        super().__init__(404, message)


class SyndataUnavailableError(SyndataError):
    """Network failure, timeout or 5xx. The user should try again."""


class SyndataConfig(BaseModel):
    """Connection and behavior settings for the Syndata backend."""

    base_url: str = Field(..., min_length=1, description="API root, e.g. https://host:9090/api")
    timeout_seconds: float = Field(default=15.0, gt=0, le=120)
    require_closing_note: bool = Field(
        default=True,
        description="Technicians must write a closing note to complete a visit",
    )
    codigo_grupo: int = Field(default=52, description="Group code stamped on new appointments")
    cod_loja: int = Field(default=1, description="Store code stamped on new appointments")

    @classmethod
    def from_env(cls) -> "SyndataConfig":
        """
        Build config from environment variables. Fails fast on missing base URL.

        Raises:
            ValueError: If SYNDATA_BASE_URL is not set
        """
        base_url = os.getenv("SYNDATA_BASE_URL")
        if not base_url:
            raise ValueError("SYNDATA_BASE_URL environment variable is required")

        values: dict[str, Any] = {"base_url": base_url}
        if os.getenv("SYNDATA_TIMEOUT_SECONDS"):
            values["timeout_seconds"] = float(os.environ["SYNDATA_TIMEOUT_SECONDS"])
        if os.getenv("SYNDATA_REQUIRE_CLOSING_NOTE"):
            values["require_closing_note"] = os.environ["SYNDATA_REQUIRE_CLOSING_NOTE"].lower() in ("1", "true", "yes")
        return cls(**values)


def _current_upstream_token() -> str:
    return get_current_session().upstream_token


def _unwrap(payload: Any) -> Any:
    """Strip the optional {res_data: ...} / {data: ...} envelope, scalars included."""
    if isinstance(payload, dict):
        for key in ("res_data", "data"):
            inner = payload.get(key)
            if inner is not None:
                return inner
    return payload


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("message", "error", "mensagem"):
            if body.get(key):
                return str(body[key])
    text = (response.text or "").strip()
    return text or f"HTTP {response.status_code}"


class SyndataClient:
    """
    Thin JSON client over the Syndata REST API.

    Usage:
        client = SyndataClient(SyndataConfig(base_url="https://syndata/api"))
        with session_context(session):
            rows = client.get("/agendamentos", params={"ini": "2024-03-10"})
    """

    def __init__(
        self,
        config: SyndataConfig,
        token_provider: Callable[[], str] | None = None,
    ):
        """
        Initialize with backend settings.

        Args:
            config: Base URL and timeout
            token_provider: Returns the bearer token for authenticated calls.
                Defaults to the token of the session in context.
        """
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._token_provider = token_provider or _current_upstream_token

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json_body: Any = None,
        token: str | None = None,
        authenticated: bool = True,
    ) -> Any:
        """
        Send one request and return the decoded (unwrapped) JSON body.

        Args:
            method: HTTP verb
            path: Path relative to the API root
            params: Query string parameters (None values are dropped)
            json_body: JSON body
            token: Explicit bearer token, overriding the token provider
            authenticated: Attach a bearer token at all

        Returns:
            Decoded body, None for empty responses

        Raises:
            SyndataUnauthorizedError: On 401
            SyndataNotFoundError: On 404
            SyndataRejectedError: On other 4xx
            SyndataUnavailableError: On network failure, timeout or 5xx
        """
        headers = {"Accept": "application/json"}
        if authenticated:
            bearer = token or self._token_provider()
            headers["Authorization"] = f"Bearer {bearer}"

        if params:
            params = {k: v for k, v in params.items() if v is not None}

        url = self._url(path)
        try:
            response = requests.request(
                method,
                url,
                params=params or None,
                json=json_body,
                headers=headers,
                timeout=self.config.timeout_seconds,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Syndata {method} {path} timed out: {e}")
            raise SyndataUnavailableError("Syndata did not answer in time")
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Syndata {method} {path} connection failed: {e}")
            raise SyndataUnavailableError(f"Connection failed: {e}")

        status = response.status_code
        if status == 401:
            logger.warning(f"Syndata {method} {path} answered 401")
            raise SyndataUnauthorizedError("Syndata session is no longer valid")
        if status == 404:
            raise SyndataNotFoundError(_error_message(response))
        if 400 <= status < 500:
            message = _error_message(response)
            logger.info(f"Syndata {method} {path} rejected ({status}): {message}")
            raise SyndataRejectedError(status, message)
        if status >= 500:
            message = _error_message(response)
            logger.error(f"Syndata {method} {path} failed ({status}): {message}")
            raise SyndataUnavailableError(f"Syndata error: {message}")

        if not response.content:
            return None
        try:
            return _unwrap(response.json())
        except ValueError:
            logger.error(f"Syndata {method} {path} returned invalid JSON: {response.text[:200]}")
            raise SyndataUnavailableError("Invalid response from Syndata")

    def get(self, path: str, params: dict | None = None, **kwargs) -> Any:
        return self.request("GET", path, params=params, **kwargs)

    def post(self, path: str, json_body: Any = None, params: dict | None = None, **kwargs) -> Any:
        return self.request("POST", path, params=params, json_body=json_body, **kwargs)

    def put(self, path: str, json_body: Any = None, params: dict | None = None, **kwargs) -> Any:
        return self.request("PUT", path, params=params, json_body=json_body, **kwargs)

    def delete(self, path: str, **kwargs) -> Any:
        return self.request("DELETE", path, **kwargs)
