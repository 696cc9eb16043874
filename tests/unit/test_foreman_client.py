"""Unit tests for the Foreman API client."""

import httpx
import pytest
import respx
from httpx import Response

from hammer_csv.foreman.client import ForemanClient, build_search, escape_search_value
from hammer_csv.foreman.endpoints import ForemanEndpoints
from hammer_csv.utils.exceptions import (
    ForemanAPIError,
    ForemanAuthenticationError,
    ResourceNotFoundError,
)

API_URL = "https://foreman.example.com/api"


@pytest.fixture
async def client(foreman_config):
    client = ForemanClient(foreman_config)
    yield client
    await client.close()


class TestSearchHelpers:
    """Test search predicate helpers."""

    def test_escape_search_value(self):
        assert escape_search_value('a "b" \\c') == 'a \\"b\\" \\\\c'
        assert escape_search_value(7) == "7"

    def test_build_search(self):
        assert build_search(name="RedHat", major="7") == 'name="RedHat" and major="7"'

    def test_collection_for_unknown_kind(self):
        with pytest.raises(ValueError, match="Unknown entity kind: host"):
            ForemanEndpoints.collection_for("host")


class TestForemanClient:
    """Test ForemanClient requests and error mapping."""

    def test_base_url(self, foreman_config):
        foreman_config.base_url = "https://foreman.example.com/"
        assert ForemanClient(foreman_config).base_url == API_URL

    async def test_search_returns_results(self, client):
        """Test search reads the results list of a paginated response."""
        with respx.mock(base_url=API_URL) as respx_mock:
            route = respx_mock.get("/organizations").mock(
                return_value=Response(
                    200,
                    json={
                        "total": 2,
                        "subtotal": 1,
                        "page": 1,
                        "per_page": 999999,
                        "search": 'name="Library"',
                        "results": [{"id": 7, "name": "Library"}],
                    },
                )
            )

            records = await client.search("organization", 'name="Library"')

        assert records == [{"id": 7, "name": "Library"}]
        request = route.calls.last.request
        assert request.url.params["search"] == 'name="Library"'
        assert request.url.params["per_page"] == "999999"
        assert request.headers["Accept"] == "version=2,application/json"
        assert request.headers["Authorization"].startswith("Basic ")

    async def test_search_legacy_list_body(self, client):
        """Test servers answering with a bare list of wrapped records."""
        body = [{"domain": {"id": 3, "name": "example.com"}}]
        with respx.mock(base_url=API_URL) as respx_mock:
            respx_mock.get("/domains").mock(return_value=Response(200, json=body))

            assert await client.search("domain", 'name="example.com"') == body

    async def test_search_no_match(self, client):
        with respx.mock(base_url=API_URL) as respx_mock:
            respx_mock.get("/ptables").mock(return_value=Response(200, json={"results": []}))

            assert await client.search("ptable", 'name="missing"') == []

    async def test_search_unexpected_body(self, client):
        with respx.mock(base_url=API_URL) as respx_mock:
            respx_mock.get("/domains").mock(return_value=Response(200, json="nope"))

            with pytest.raises(ForemanAPIError, match="Unexpected search response"):
                await client.search("domain", "")

    async def test_fetch_by_id(self, client):
        with respx.mock(base_url=API_URL) as respx_mock:
            respx_mock.get("/operatingsystems/4").mock(
                return_value=Response(
                    200, json={"id": 4, "name": "RedHat", "major": "7", "minor": "2"}
                )
            )

            record = await client.fetch_by_id("operatingsystem", 4)

        assert record["major"] == "7"

    async def test_fetch_by_id_not_found(self, client):
        """Test a 404 names the entity kind and identifier."""
        with respx.mock(base_url=API_URL) as respx_mock:
            respx_mock.get("/domains/99").mock(
                return_value=Response(
                    404,
                    json={"error": {"message": "Resource domain not found by id '99'"}},
                )
            )

            with pytest.raises(ResourceNotFoundError) as excinfo:
                await client.fetch_by_id("domain", 99)

        assert excinfo.value.resource_type == "domain"
        assert excinfo.value.identifier == 99

    async def test_authentication_failure(self, client):
        with respx.mock(base_url=API_URL) as respx_mock:
            respx_mock.get("/organizations").mock(
                return_value=Response(
                    401, json={"error": {"message": "Unable to authenticate user admin"}}
                )
            )

            with pytest.raises(ForemanAuthenticationError, match="Unable to authenticate"):
                await client.search("organization", "")

    async def test_server_error_message(self, client):
        """Test error bodies are flattened into the exception message."""
        with respx.mock(base_url=API_URL) as respx_mock:
            route = respx_mock.get("/environments").mock(
                return_value=Response(
                    500,
                    json={
                        "error": {
                            "message": "Internal error",
                            "full_messages": ["Database is down"],
                        }
                    },
                )
            )

            with pytest.raises(ForemanAPIError) as excinfo:
                await client.search("environment", "")

        assert excinfo.value.status_code == 500
        assert str(excinfo.value) == "API Error 500: Internal error (Database is down)"
        assert route.call_count == 1

    async def test_plain_text_error(self, client):
        with respx.mock(base_url=API_URL) as respx_mock:
            respx_mock.get("/architectures").mock(
                return_value=Response(502, text="Bad Gateway")
            )

            with pytest.raises(ForemanAPIError, match="API Error 502: Bad Gateway"):
                await client.search("architecture", "")

    async def test_transport_error(self, client):
        """Test connection failures are wrapped and not retried."""
        with respx.mock(base_url=API_URL) as respx_mock:
            route = respx_mock.get("/domains").mock(
                side_effect=httpx.ConnectError("Connection refused")
            )

            with pytest.raises(ForemanAPIError, match="HTTP request failed"):
                await client.search("domain", "")

        assert route.call_count == 1

    async def test_close_resets_client(self, foreman_config):
        async with ForemanClient(foreman_config) as client:
            assert client.client is client.client
        assert client._client is None
