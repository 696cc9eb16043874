"""CSV row source and sink.

Rows are header-driven: the first non-blank line names the columns and every
later line becomes a dict keyed by those names. Comment rows (first field
starting with '#') are returned like any other row so that row indexes match
the file; the dispatcher is what drops them.
"""

import csv
import sys
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import structlog

from ..utils.exceptions import CSVValidationError

logger = structlog.get_logger(__name__)


def get_lines(csv_path: str | Path) -> list[str]:
    """
    Read a file as raw lines, trailing newlines removed.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")
    with open(path, encoding="utf-8-sig") as f:
        return f.read().splitlines()


def read_rows(csv_path: str | Path) -> list[dict[str, str]]:
    """
    Read a CSV file into one dict per data row.

    Args:
        csv_path: Path to CSV file

    Returns:
        Rows in file order, values whitespace-stripped; blank lines dropped

    Raises:
        FileNotFoundError: If the file doesn't exist
        CSVValidationError: If the file has no header line
    """
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")

    rows: list[dict[str, str]] = []
    headers: list[str] | None = None

    with open(path, encoding="utf-8-sig", newline="") as f:
        reader = csv.reader(f)
        for row_list in reader:
            if not row_list or all(not cell.strip() for cell in row_list):
                continue

            if headers is None:
                headers = [h.strip() for h in row_list]
                continue

            if len(row_list) != len(headers):
                logger.warning(
                    "Column count mismatch",
                    line=reader.line_num,
                    expected=len(headers),
                    actual=len(row_list),
                )

            padded = [cell.strip() for cell in row_list[: len(headers)]]
            padded.extend([""] * (len(headers) - len(padded)))
            rows.append(dict(zip(headers, padded, strict=True)))

    if headers is None:
        raise CSVValidationError(f"CSV file has no header: {path}")

    logger.info("CSV read", csv_path=str(path), rows=len(rows))
    return rows


def write_rows(
    rows: Iterable[Mapping[str, Any]],
    header: Sequence[str],
    csv_path: str | Path | None = None,
) -> None:
    """
    Write rows as CSV with a header line.

    Args:
        rows: Rows to write; keys outside the header are ignored
        header: Column names, in output order
        csv_path: Output file, or None for stdout
    """
    if csv_path is None:
        _write(sys.stdout, rows, header)
        return

    path = Path(csv_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        _write(f, rows, header)
    logger.info("CSV written", csv_path=str(path))


def _write(stream: Any, rows: Iterable[Mapping[str, Any]], header: Sequence[str]) -> None:
    writer = csv.DictWriter(stream, fieldnames=list(header), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
