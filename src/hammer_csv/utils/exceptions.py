"""Custom exceptions for hammer-csv.

Exception Hierarchy:
-------------------
CsvImporterError (base)
├── ValidationError
│   ├── CSVValidationError            # Malformed CSV, missing header
│   └── MalformedCompositeNameError   # "BASE[ MAJOR[.MINOR]]" parse failure
├── ResourceNotFoundError             # Search returned nothing / GET 404
├── ForemanAPIError (base for API errors)
│   └── ForemanAuthenticationError    # HTTP 401 Unauthorized
├── DispatcherConfigError             # thread_count < 1
├── DispatchError                     # One or more rows failed during dispatch
└── UsageError                        # Invalid command-line option combination

Usage Guidelines:
----------------
1. The resolver never recovers from a miss that stays a miss:
   ResourceNotFoundError and ForemanAPIError propagate to the row callback.

2. The dispatcher records every row failure and raises a single
   DispatchError after all workers have joined.

3. Include context in exceptions:
   - Entity kind and identifier for lookup errors
   - Row index and row content for dispatch failures
   - Original exception when wrapping errors
"""

from dataclasses import dataclass
from typing import Any


class CsvImporterError(Exception):
    """Base exception for all hammer-csv errors."""

    pass


class ValidationError(CsvImporterError):
    """Raised when caller input fails validation."""

    def __init__(
        self,
        message: str,
        line_number: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """
        Initialize ValidationError.

        Args:
            message: Error message.
            line_number: Optional line number where error occurred.
            original_error: Optional original exception that caused this error.
        """
        super().__init__(message)
        self.line_number = line_number
        self.original_error = original_error


class CSVValidationError(ValidationError):
    """Raised when a CSV file cannot be read as header-driven rows."""

    def __str__(self) -> str:
        if self.line_number:
            return f"Line {self.line_number}: {self.args[0]}"
        return str(self.args[0]) if self.args else "CSV validation error"


class MalformedCompositeNameError(ValidationError):
    """Raised when a composite display name does not match BASE[ MAJOR[.MINOR]]."""

    def __init__(self, value: str, reason: str) -> None:
        super().__init__(f"Malformed composite name {value!r}: {reason}")
        self.value = value
        self.reason = reason


class ResourceNotFoundError(CsvImporterError):
    """Raised when a remote entity cannot be found."""

    def __init__(self, resource_type: str, identifier: Any) -> None:
        """
        Initialize ResourceNotFoundError.

        Args:
            resource_type: Entity kind that wasn't found.
            identifier: Name, search predicate or id used for the lookup.
        """
        super().__init__(f"{resource_type} not found: {identifier}")
        self.resource_type = resource_type
        self.identifier = identifier


class ForemanAPIError(CsvImporterError):
    """Base exception for Foreman API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """
        Initialize ForemanAPIError.

        Args:
            message: Error message.
            status_code: Optional HTTP status code.
        """
        super().__init__(message)
        self.status_code = status_code


class ForemanAuthenticationError(ForemanAPIError):
    """Raised when Foreman rejects the configured credentials."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, status_code=401)


class DispatcherConfigError(CsvImporterError):
    """Raised when the row dispatcher is configured with an invalid worker count."""

    def __init__(self, thread_count: Any) -> None:
        super().__init__(f"thread_count must be an integer >= 1, got {thread_count!r}")
        self.thread_count = thread_count


@dataclass
class RowFailure:
    """
    A single row whose callback raised during dispatch.

    Attributes:
        index: Position of the row in the dispatched sequence
        row: The row content passed to the callback
        error: The exception raised by the callback
    """

    index: int
    row: Any
    error: BaseException

    @property
    def kind(self) -> str:
        """Failure kind, the exception class name."""
        return type(self.error).__name__

    def __str__(self) -> str:
        return f"row {self.index} ({self.kind}): {self.error} -- {self.row!r}"


class DispatchError(CsvImporterError):
    """
    Raised after all dispatch workers joined when at least one row failed.

    Carries every recorded failure so no worker error is lost.
    """

    def __init__(self, failures: list[RowFailure], result: Any = None) -> None:
        """
        Initialize DispatchError.

        Args:
            failures: Recorded row failures, ordered by row index.
            result: The DispatchResult of the run.
        """
        self.failures = sorted(failures, key=lambda f: f.index)
        self.result = result
        first = self.failures[0] if self.failures else None
        message = f"{len(self.failures)} row(s) failed during dispatch"
        if first is not None:
            message += f"; first: {first}"
        super().__init__(message)


class UsageError(CsvImporterError):
    """Raised when command options are missing or contradictory."""

    pass
