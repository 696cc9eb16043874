"""Foreman REST API v2 client.

Architecture Overview:
---------------------
The resolver only needs two calls from the remote directory: a scoped search
that returns matching records and a fetch by identifier. `DirectoryClient`
is that narrow contract; `ForemanClient` implements it over httpx.

- Async HTTP communication via httpx, lazily created connection pool
- HTTP basic authentication on every request
- API v2 selected through the Accept header
- No retries: a failed call surfaces immediately to the caller

Response handling:
-----------------
- GET /api/<collection>?search=...  -> {"results": [...], "total": ...}
  (legacy servers answer with a bare list)
- GET /api/<collection>/<id>        -> record
- 401 -> ForemanAuthenticationError, 404 -> ResourceNotFoundError,
  other error statuses and transport errors -> ForemanAPIError
"""

import time
from typing import Any, Protocol

import httpx
import structlog
from pydantic import ValidationError

from ..config import ForemanConfig
from ..constants import API_PREFIX, FOREMAN_HEADERS, SEARCH_PER_PAGE
from ..observability.metrics import get_global_collector
from ..utils.exceptions import ForemanAPIError, ForemanAuthenticationError, ResourceNotFoundError
from .endpoints import ForemanEndpoints
from .response_models import ErrorResponse, SearchResponse

logger = structlog.get_logger(__name__)


class DirectoryClient(Protocol):
    """The remote lookups the resolver cache depends on."""

    async def search(self, kind: str, predicate: str) -> list[dict[str, Any]]:
        """Return records matching an exact-match search predicate, [] when none."""
        ...

    async def fetch_by_id(self, kind: str, entity_id: Any) -> dict[str, Any]:
        """Return one record; raise ResourceNotFoundError if it does not exist."""
        ...


def escape_search_value(value: Any) -> str:
    """
    Escape a value for use inside a double-quoted search term.

    Args:
        value: Raw value

    Returns:
        Value with backslashes and double quotes escaped
    """
    return str(value).replace("\\", "\\\\").replace('"', '\\"')


def build_search(**terms: Any) -> str:
    """
    Build an exact-match scoped search predicate.

    Example:
        build_search(name="RedHat", major="7") -> 'name="RedHat" and major="7"'
    """
    return " and ".join(f'{field}="{escape_search_value(value)}"' for field, value in terms.items())


class ForemanClient:
    """
    Foreman REST API v2 client.

    Features:
    - Basic authentication with static credentials
    - Connection pooling via httpx.AsyncClient
    - Structured error extraction from Foreman error bodies
    """

    def __init__(self, config: ForemanConfig) -> None:
        """
        Initialize client.

        Args:
            config: Foreman connection configuration
        """
        self.config = config
        self.base_url = f"{config.base_url.rstrip('/')}/{API_PREFIX}"
        self._client: httpx.AsyncClient | None = None
        self.collector = get_global_collector()

    async def __aenter__(self) -> "ForemanClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client, created on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                auth=httpx.BasicAuth(self.config.username, self.config.password),
                headers=FOREMAN_HEADERS,
                verify=self.config.verify_ssl,
                timeout=self.config.timeout,
                limits=httpx.Limits(
                    max_connections=self.config.max_connections,
                    max_keepalive_connections=self.config.max_keepalive,
                ),
            )
        return self._client

    async def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make an authenticated request to the Foreman API.

        Args:
            method: HTTP method
            endpoint: API endpoint relative to /api
            params: Query parameters
            json: JSON body

        Returns:
            Parsed JSON response, None for 204

        Raises:
            ForemanAuthenticationError: For 401 Unauthorized
            ResourceNotFoundError: For 404 Not Found
            ForemanAPIError: For other error statuses and transport failures
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        self.collector.backend.increment("foreman_api_requests_total", tags={"method": method})
        start_time = time.perf_counter()

        try:
            response = await self.client.request(method, url, params=params, json=json)
        except httpx.HTTPError as e:
            logger.error("Foreman request failed", method=method, endpoint=endpoint, error=str(e))
            raise ForemanAPIError(f"HTTP request failed: {e}") from e

        self.collector.record_latency("foreman_api", (time.perf_counter() - start_time) * 1000)

        if response.is_error:
            message = self._error_message(response)
            if response.status_code == 401:
                raise ForemanAuthenticationError(message)
            if response.status_code == 404:
                raise ResourceNotFoundError(f"Resource ({endpoint})", message)
            raise ForemanAPIError(
                f"API Error {response.status_code}: {message}", status_code=response.status_code
            )

        if response.status_code == 204:
            return None
        return response.json()

    def _error_message(self, response: httpx.Response) -> str:
        """Extract a readable message from an error response."""
        message = response.text
        if response.headers.get("content-type", "").startswith("application/json"):
            try:
                data = response.json()
            except ValueError:
                return message
            if isinstance(data, dict):
                try:
                    message = ErrorResponse.model_validate(data).get_full_message()
                except ValidationError:
                    message = str(data.get("message") or data.get("detail") or message)
        return message

    async def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Helper for GET requests."""
        return await self.request("GET", endpoint, params=params)

    async def search(self, kind: str, predicate: str) -> list[dict[str, Any]]:
        """
        Search a collection with a scoped search predicate.

        Args:
            kind: Entity kind (e.g., "organization")
            predicate: Search expression, e.g. 'name="Library"'

        Returns:
            Matching records, [] when nothing matches
        """
        endpoint = ForemanEndpoints.COLLECTION.format(
            collection=ForemanEndpoints.collection_for(kind)
        )
        data = await self.get(endpoint, params={"search": predicate, "per_page": SEARCH_PER_PAGE})
        logger.debug("Foreman search", kind=kind, search=predicate)

        if isinstance(data, list):
            return data
        if not isinstance(data, dict):
            raise ForemanAPIError(f"Unexpected search response for {kind}: {type(data).__name__}")
        try:
            return SearchResponse.model_validate(data).results
        except ValidationError as e:
            raise ForemanAPIError(f"Malformed search response for {kind}: {e}") from e

    async def fetch_by_id(self, kind: str, entity_id: Any) -> dict[str, Any]:
        """
        Fetch a single record by identifier.

        Args:
            kind: Entity kind
            entity_id: Remote identifier

        Returns:
            The record

        Raises:
            ResourceNotFoundError: If the identifier does not exist
        """
        endpoint = ForemanEndpoints.ENTITY_BY_ID.format(
            collection=ForemanEndpoints.collection_for(kind), entity_id=entity_id
        )
        try:
            data = await self.get(endpoint)
        except ResourceNotFoundError as e:
            raise ResourceNotFoundError(kind, entity_id) from e

        if not isinstance(data, dict):
            raise ForemanAPIError(f"Unexpected show response for {kind} {entity_id}")
        return data
