"""Core components of hammer-csv.

This package contains the resolver caches, the composite name codec,
the parallel row dispatcher and CSV reading and writing.
"""

from .csv_io import get_lines, read_rows, write_rows
from .dispatcher import (
    DispatchResult,
    DispatchState,
    RowDispatcher,
    chunk_bounds,
    dispatch_rows,
    is_comment_row,
)
from .naming import compose, decompose, namify
from .resolver import (
    CacheStats,
    EntityResolver,
    OperatingSystemResolver,
    PartitionTableResolver,
    ResolverRegistry,
)

__all__ = [
    "CacheStats",
    "DispatchResult",
    "DispatchState",
    "EntityResolver",
    "OperatingSystemResolver",
    "PartitionTableResolver",
    "ResolverRegistry",
    "RowDispatcher",
    "chunk_bounds",
    "compose",
    "decompose",
    "dispatch_rows",
    "get_lines",
    "is_comment_row",
    "namify",
    "read_rows",
    "write_rows",
]
