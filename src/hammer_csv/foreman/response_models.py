"""Pydantic models for Foreman API responses.

Only the fields that name/id resolution needs are declared; everything else
is kept through extra="allow".

Usage:
    record = EntityRecord.model_validate(unwrap_record("domain", raw))
    record.id, record.name
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


def unwrap_record(kind: str, record: dict[str, Any]) -> dict[str, Any]:
    """
    Normalize a record to its bare attribute dictionary.

    Foreman v2 returns bare records ({"id": 7, "name": "Library"}); older
    servers wrap each record under its kind ({"organization": {...}}).

    Args:
        kind: Entity kind used as the wrapper key
        record: Raw record from a search or show response

    Returns:
        The bare attribute dictionary
    """
    inner = record.get(kind)
    if isinstance(inner, dict):
        return inner
    return record


class EntityRecord(BaseModel):
    """A remote entity as seen by the resolver."""

    id: int | str = Field(..., description="Opaque remote identifier")
    name: str = Field(..., description="Canonical name")

    model_config = {"extra": "allow"}


class OperatingSystemRecord(EntityRecord):
    """Operating system record; major and minor are versions kept as strings."""

    major: str = ""
    minor: str = ""

    @field_validator("major", "minor", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)


class SearchResponse(BaseModel):
    """Paginated index response: GET /api/<collection>?search=..."""

    results: list[dict[str, Any]] = Field(default_factory=list)
    total: int | None = None
    subtotal: int | None = None
    page: int | None = None
    per_page: int | None = None
    search: str | None = None

    model_config = {"extra": "allow"}


class ErrorResponse(BaseModel):
    """Foreman error body: {"error": {"message": ..., "full_messages": [...]}}."""

    error: dict[str, Any] | str

    model_config = {"extra": "allow"}

    def get_full_message(self) -> str:
        """Flatten the error body into one line."""
        if isinstance(self.error, str):
            return self.error
        message = str(self.error.get("message", ""))
        full_messages = self.error.get("full_messages") or []
        extra = [str(m) for m in full_messages if str(m) != message]
        if extra:
            message = f"{message} ({'; '.join(extra)})" if message else "; ".join(extra)
        return message or str(self.error)
