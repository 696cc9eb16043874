"""CSV commands."""

from .base import CommandOptions, CsvCommand, ResolveCommand, coerce_id

__all__ = ["CommandOptions", "CsvCommand", "ResolveCommand", "coerce_id"]
