"""hammer-csv - Bulk Foreman import and export through CSV."""

from .cli import app
from .config import CsvConfig

__version__ = "0.1.0"
__all__ = ["app", "CsvConfig"]
