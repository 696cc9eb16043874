"""Utility functions and exceptions."""

from .exceptions import (
    CSVValidationError,
    CsvImporterError,
    DispatchError,
    DispatcherConfigError,
    ForemanAPIError,
    ForemanAuthenticationError,
    MalformedCompositeNameError,
    ResourceNotFoundError,
    RowFailure,
    UsageError,
    ValidationError,
)

__all__ = [
    "CsvImporterError",
    "ValidationError",
    "CSVValidationError",
    "MalformedCompositeNameError",
    "ResourceNotFoundError",
    "ForemanAPIError",
    "ForemanAuthenticationError",
    "DispatcherConfigError",
    "DispatchError",
    "RowFailure",
    "UsageError",
]
