"""Foreman API access."""

from .client import DirectoryClient, ForemanClient, build_search, escape_search_value
from .endpoints import ForemanEndpoints
from .response_models import EntityRecord, OperatingSystemRecord, unwrap_record

__all__ = [
    "DirectoryClient",
    "ForemanClient",
    "ForemanEndpoints",
    "EntityRecord",
    "OperatingSystemRecord",
    "build_search",
    "escape_search_value",
    "unwrap_record",
]
