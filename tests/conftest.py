"""Pytest configuration and shared fixtures.

Fixtures are organized by category:
- Mock fixtures: Pre-configured mock Foreman directory
- Data fixtures: Sample records and CSV files
- Infrastructure fixtures: Quiet logging, metrics reset
"""

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from hammer_csv.config import CsvConfig, ForemanConfig
from hammer_csv.foreman.client import ForemanClient
from hammer_csv.observability import configure_logging, metrics
from hammer_csv.utils.exceptions import ResourceNotFoundError

# =============================================================================
# Data Fixtures
# =============================================================================

RECORDS: dict[str, list[dict[str, Any]]] = {
    "organization": [
        {"id": 7, "name": "Library"},
        {"id": 8, "name": "Engineering"},
    ],
    "environment": [{"id": 1, "name": "production"}],
    "domain": [{"id": 3, "name": "example.com"}],
    "architecture": [{"id": 1, "name": "x86_64"}],
    "operatingsystem": [
        {"id": 4, "name": "RedHat", "major": "7", "minor": "2"},
        {"id": 5, "name": "CentOS", "major": 6, "minor": None},
    ],
    "ptable": [{"id": 11, "name": "Kickstart default"}],
}


def _matches(record: dict[str, Any], predicate: str) -> bool:
    terms = [term for term in predicate.split(" and ") if term]
    for term in terms:
        field, _, value = term.partition("=")
        value = value.strip('"')
        actual = record.get(field)
        if ("" if actual is None else str(actual)) != value:
            return False
    return True


@pytest.fixture
def foreman_records() -> dict[str, list[dict[str, Any]]]:
    """Records served by the fake directory, by entity kind."""
    return {kind: [dict(r) for r in records] for kind, records in RECORDS.items()}


@pytest.fixture
def tmp_csv(tmp_path: Path):
    """Write CSV text to a temporary file and return its path."""

    def _write(content: str, name: str = "input.csv") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


# =============================================================================
# Mock Client Fixtures
# =============================================================================


@pytest.fixture
def mock_client() -> AsyncMock:
    """Create a bare mock Foreman client.

    Example:
        def test_something(mock_client):
            mock_client.search.return_value = [{"id": 7, "name": "Library"}]
    """
    client = AsyncMock(spec=ForemanClient)
    client.search.return_value = []
    return client


@pytest.fixture
def directory(foreman_records) -> AsyncMock:
    """Mock Foreman client backed by foreman_records.

    search() understands the 'field="value" and ...' predicates the
    resolvers build and yields to the event loop before answering, so
    concurrent callers really interleave.
    """
    client = AsyncMock(spec=ForemanClient)

    async def search(kind: str, predicate: str) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        return [r for r in foreman_records.get(kind, []) if _matches(r, predicate)]

    async def fetch_by_id(kind: str, entity_id: Any) -> dict[str, Any]:
        await asyncio.sleep(0)
        for record in foreman_records.get(kind, []):
            if record["id"] == entity_id:
                return record
        raise ResourceNotFoundError(kind, entity_id)

    client.search.side_effect = search
    client.fetch_by_id.side_effect = fetch_by_id
    return client


@pytest.fixture
def foreman_config() -> ForemanConfig:
    return ForemanConfig(
        base_url="https://foreman.example.com",
        username="admin",
        password="changeme",
    )


@pytest.fixture
def csv_config(foreman_config) -> CsvConfig:
    return CsvConfig(foreman=foreman_config)


# =============================================================================
# Infrastructure Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def quiet_logging():
    """Route logs to stderr at WARNING so stdout only carries CSV output."""
    configure_logging(level="WARNING")


@pytest.fixture(autouse=True)
def reset_global_collector():
    """Give every test its own process-wide metrics collector."""
    metrics._GLOBAL_COLLECTOR = None
    yield
    metrics._GLOBAL_COLLECTOR = None
