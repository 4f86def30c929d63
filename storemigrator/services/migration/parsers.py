"""File parsing functions for CSV, XLSX and XLS uploads.

Every parser returns ``(headers, rows)`` where rows are dicts keyed by the
stripped header text, in file order, with fully empty rows removed.
"""

import csv
import io
from pathlib import Path
from typing import Any

import xlrd
from openpyxl import load_workbook

from .constants import ALLOWED_EXTENSIONS


class SpreadsheetError(ValueError):
    """The upload cannot be read as a spreadsheet."""


def _cell_to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _build_rows(
    raw_headers: list[Any],
    row_iter,
) -> tuple[list[str], list[dict[str, Any]]]:
    # Keep the column index of every non-blank header
    columns = [
        (idx, str(h).strip())
        for idx, h in enumerate(raw_headers)
        if h is not None and str(h).strip()
    ]
    if not columns:
        raise SpreadsheetError("Spreadsheet has no valid headers")

    headers = [h for _, h in columns]
    rows: list[dict[str, Any]] = []
    for row_values in row_iter:
        row_dict = {
            header: _cell_to_str(row_values[idx]) if idx < len(row_values) else ""
            for idx, header in columns
        }
        if any(v for v in row_dict.values()):
            rows.append(row_dict)
    return headers, rows


def parse_csv(file_content: bytes) -> tuple[list[str], list[dict[str, Any]]]:
    """Parse CSV file content into headers and rows.

    Tries UTF-8 (with or without BOM) first, falls back to Latin-1.

    Raises:
        SpreadsheetError: If the CSV is empty or has no headers.
    """
    text = None
    for encoding in ("utf-8-sig", "latin-1"):
        try:
            text = file_content.decode(encoding)
            break
        except UnicodeDecodeError:
            continue
    if not text or not text.strip():
        raise SpreadsheetError("CSV file has no headers")

    try:
        reader = csv.reader(io.StringIO(text, newline=""))
        raw_headers = next(reader)
        return _build_rows(raw_headers, reader)
    except StopIteration:
        raise SpreadsheetError("CSV file has no headers")
    except csv.Error as e:
        raise SpreadsheetError(f"Malformed CSV: {e}") from e


def parse_xlsx(file_content: bytes) -> tuple[list[str], list[dict[str, Any]]]:
    """Parse XLSX file content into headers and rows (first sheet only).

    Uses openpyxl read_only mode and iterates rows lazily.

    Raises:
        SpreadsheetError: If the workbook is unreadable, empty or has no headers.
    """
    try:
        wb = load_workbook(filename=io.BytesIO(file_content), read_only=True, data_only=True)
    except Exception as e:
        raise SpreadsheetError(f"Unreadable XLSX file: {e}") from e

    try:
        ws = wb.worksheets[0] if wb.worksheets else None
        if ws is None:
            raise SpreadsheetError("XLSX file has no worksheets")

        row_iter = ws.iter_rows(values_only=True)
        try:
            raw_headers = next(row_iter)
        except StopIteration:
            raise SpreadsheetError("XLSX file is empty")

        return _build_rows(list(raw_headers), row_iter)
    finally:
        wb.close()


def parse_xls(file_content: bytes) -> tuple[list[str], list[dict[str, Any]]]:
    """Parse a legacy XLS workbook (first sheet only).

    Raises:
        SpreadsheetError: If the workbook is unreadable or empty.
    """
    try:
        book = xlrd.open_workbook(file_contents=file_content)
    except xlrd.XLRDError as e:
        raise SpreadsheetError(f"Unreadable XLS file: {e}") from e

    if book.nsheets == 0:
        raise SpreadsheetError("XLS file has no worksheets")
    sheet = book.sheet_by_index(0)
    if sheet.nrows == 0:
        raise SpreadsheetError("XLS file is empty")

    data_rows = (sheet.row_values(i) for i in range(1, sheet.nrows))
    return _build_rows(sheet.row_values(0), data_rows)


def get_file_extension(filename: str | None) -> str:
    """Lowercase extension without the dot, or an empty string."""
    if not filename:
        return ""
    return Path(filename).suffix.lower().lstrip(".")


def load_sheet_rows(
    file_content: bytes,
    filename: str,
) -> tuple[list[str], list[dict[str, Any]]]:
    """Parse an upload by its file extension.

    Raises:
        SpreadsheetError: For unsupported extensions or unreadable content.
    """
    ext = get_file_extension(filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise SpreadsheetError(f"Unsupported file type '.{ext}'. Allowed: .xlsx, .xls, .csv")
    if ext == "csv":
        return parse_csv(file_content)
    if ext == "xls":
        return parse_xls(file_content)
    return parse_xlsx(file_content)
