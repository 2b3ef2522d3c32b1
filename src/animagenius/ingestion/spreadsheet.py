"""Spreadsheet extraction with column-type inference and statistics."""

import csv
import math
import zipfile
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time
from io import BytesIO, StringIO
from typing import Any

import openpyxl
import xlrd
from openpyxl.utils.exceptions import InvalidFileException

from animagenius.domain.enums import ColumnType
from animagenius.ingestion.base import (
    ExtractionError,
    ExtractionResult,
    Extractor,
    NoReadableTextError,
)

Cell = str | int | float

# Share of non-empty cells that must parse for a column to take a type
TYPE_THRESHOLD = (4, 5)
SAMPLE_SIZE = 3

DATE_FORMATS = (
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%d-%b-%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%m/%d/%y",
)


def _normalize_cell(value: Any) -> Cell:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, float):
        if not math.isfinite(value):
            return str(value)
        return int(value) if value.is_integer() else value
    if isinstance(value, int):
        return value
    return str(value)


def _is_empty(value: Cell) -> bool:
    return isinstance(value, str) and not value.strip()


def as_number(value: Cell) -> float | None:
    """Parse a cell as a finite number, or None."""
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(value.strip())
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def is_date(value: Cell) -> bool:
    if not isinstance(value, str):
        return False
    text = value.strip()
    try:
        datetime.fromisoformat(text)
        return True
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            datetime.strptime(text, fmt)
            return True
        except ValueError:
            continue
    return False


def _meets_threshold(matches: int, total: int) -> bool:
    numerator, denominator = TYPE_THRESHOLD
    return matches * denominator >= total * numerator


def classify_column(values: Iterable[Cell]) -> ColumnType:
    """Infer the type of a column from its cells.

    Empty cells are ignored. At least 80% of the remaining cells must parse
    as finite numbers for ``numeric``, else as dates for ``date``.
    """
    cells = [v for v in values if not _is_empty(v)]
    if not cells:
        return ColumnType.EMPTY
    if _meets_threshold(sum(as_number(v) is not None for v in cells), len(cells)):
        return ColumnType.NUMERIC
    if _meets_threshold(sum(is_date(v) for v in cells), len(cells)):
        return ColumnType.DATE
    return ColumnType.TEXT


def column_statistics(values: Iterable[Cell], column_type: ColumnType) -> dict[str, Any]:
    cells = [v for v in values if not _is_empty(v)]
    stats: dict[str, Any] = {
        "count": len(cells),
        "unique": len(set(cells)),
        "sample": cells[:SAMPLE_SIZE],
    }
    if column_type == ColumnType.NUMERIC:
        numbers = [n for n in (as_number(v) for v in cells) if n is not None]
        stats["numeric"] = {
            "min": min(numbers),
            "max": max(numbers),
            "avg": sum(numbers) / len(numbers),
        }
    return stats


def normalize_headers(raw: Sequence[Cell], width: int) -> list[str]:
    """Blank headers become ``column_N``; duplicates get a numeric suffix."""
    headers: list[str] = []
    seen: dict[str, int] = {}
    for index in range(width):
        name = str(raw[index]).strip() if index < len(raw) else ""
        name = name or f"column_{index + 1}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        seen.setdefault(name, 1)
        headers.append(name)
    return headers


def _row_width(row: Sequence[Cell]) -> int:
    for index in range(len(row), 0, -1):
        if not _is_empty(row[index - 1]):
            return index
    return 0


def _trim(rows: list[list[Cell]]) -> list[list[Cell]]:
    while rows and all(_is_empty(v) for v in rows[-1]):
        rows.pop()
    return rows


def _to_csv(rows: Iterable[Sequence[Cell]]) -> str:
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue().strip()


def _read_csv(data: bytes) -> dict[str, list[list[Cell]]]:
    text = data.decode("utf-8-sig", errors="replace")
    rows = [[_normalize_cell(v) for v in row] for row in csv.reader(StringIO(text))]
    return {"Sheet1": rows}


def _read_xlsx(data: bytes) -> dict[str, list[list[Cell]]]:
    try:
        workbook = openpyxl.load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise ExtractionError(f"Could not open workbook: {e}") from e
    try:
        return {
            sheet.title: [
                [_normalize_cell(v) for v in row] for row in sheet.iter_rows(values_only=True)
            ]
            for sheet in workbook.worksheets
        }
    finally:
        workbook.close()


def _read_xls(data: bytes) -> dict[str, list[list[Cell]]]:
    try:
        workbook = xlrd.open_workbook(file_contents=data)
    except xlrd.XLRDError as e:
        raise ExtractionError(f"Could not open workbook: {e}") from e
    sheets = {}
    for sheet in workbook.sheets():
        rows = []
        for index in range(sheet.nrows):
            row = []
            for cell in sheet.row(index):
                if cell.ctype == xlrd.XL_CELL_DATE:
                    row.append(
                        _normalize_cell(xlrd.xldate.xldate_as_datetime(cell.value, workbook.datemode))
                    )
                else:
                    row.append(_normalize_cell(cell.value))
            rows.append(row)
        sheets[sheet.name] = rows
    return sheets


READERS = {"csv": _read_csv, "xlsx": _read_xlsx, "xls": _read_xls}


class SpreadsheetExtractor(Extractor):
    """Extracts rows, CSV text, column types and statistics per sheet."""

    extensions = ("xlsx", "xls", "csv")

    def extract(self, data: bytes, mime_type: str, extension: str) -> ExtractionResult:
        raw_sheets = READERS[extension](data)

        sheets: dict[str, Any] = {}
        column_types: dict[str, dict[str, str]] = {}
        statistics: dict[str, dict[str, Any]] = {}
        content_parts = []

        for name, raw_rows in raw_sheets.items():
            rows = _trim(raw_rows)
            if not rows:
                continue
            width = max(_row_width(row) for row in rows)
            headers = normalize_headers(rows[0], width)
            body = [(list(row) + [""] * width)[:width] for row in rows[1:]]
            csv_text = _to_csv([headers, *body])

            sheets[name] = {
                "headers": headers,
                "rows": body,
                "row_count": len(rows),
                "column_count": width,
                "csv": csv_text,
            }
            column_types[name] = {}
            statistics[name] = {}
            for index, header in enumerate(headers):
                column = [row[index] for row in body]
                column_type = classify_column(column)
                column_types[name][header] = column_type.value
                statistics[name][header] = column_statistics(column, column_type)

            content_parts.append(f"--- Sheet: {name} ---\n{csv_text}")

        if not sheets:
            raise NoReadableTextError("Spreadsheet has no cells")

        summary = {"sheet_count": len(sheets), "sheet_names": list(sheets)}
        return ExtractionResult(
            success=True,
            content="\n\n".join(content_parts),
            metadata=summary,
            extracted_data={
                "sheets": sheets,
                "summary": summary,
                "insights": {"column_types": column_types, "statistics": statistics},
            },
        )
