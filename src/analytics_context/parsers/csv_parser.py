from __future__ import annotations

from typing import Iterator

from ..inference import infer_type, majority_type
from ..logging import get_logger
from ..models import ColumnInfo, DataRow, DataSchema, ParsedData
from .base import (
    DEFAULT_MAX_ROWS,
    PROGRESS_EVERY,
    SAMPLE_SIZE_FOR_TYPE_INFERENCE,
    FileParser,
    ParseEvent,
    ParseFailure,
    ParseProgress,
    ParseSuccess,
    non_blank_lines,
)

logger = get_logger(__name__)

COMMON_DELIMITERS: tuple[str, ...] = (",", ";", "\t", "|")


class CsvParser(FileParser):
    """
    Delimited text with a header row.

    - Delimiter auto-detected from the header (comma, semicolon, tab, pipe)
    - Quoted fields, with "" as an escaped quote
    - Column types inferred from the first 10 data rows
    """

    def parse(self, content: str, max_rows: int = DEFAULT_MAX_ROWS) -> Iterator[ParseEvent]:
        try:
            if not content.strip():
                yield ParseFailure("File is empty")
                return

            lines = non_blank_lines(content)
            if not lines:
                yield ParseFailure("No data lines found")
                return

            yield ParseProgress(0, len(lines), "Detecting delimiter...")

            header_line = lines[0]
            delimiter = detect_delimiter(header_line)
            headers = split_fields(header_line, delimiter)
            if not headers:
                yield ParseFailure("Could not parse header row")
                return

            logger.debug("csv_delimiter_detected", delimiter=delimiter, columns=len(headers))

            yield ParseProgress(0, len(lines) - 1, "Parsing rows...")

            data_lines = lines[1:]
            total_rows = len(data_lines)
            rows_to_parse = min(max_rows, total_rows)
            rows: list[DataRow] = []

            for index, line in enumerate(data_lines[:rows_to_parse]):
                values = split_fields(line, delimiter)
                row_values = {
                    header: values[i] if i < len(values) else None
                    for i, header in enumerate(headers)
                }
                rows.append(DataRow(values=row_values))

                if (index + 1) % PROGRESS_EVERY == 0:
                    yield ParseProgress(index + 1, total_rows)

            columns = _infer_columns(headers, rows[:SAMPLE_SIZE_FOR_TYPE_INFERENCE])
            data = ParsedData(
                schema=DataSchema(columns=tuple(columns)),
                rows=tuple(rows),
                total_row_count=total_rows,
            )
            logger.debug("csv_parsed", rows=len(rows), total_rows=total_rows)
            yield ParseSuccess(data)
        except Exception as e:  # noqa: BLE001
            yield ParseFailure(f"Failed to parse CSV: {e}", e)

    def count_rows(self, content: str) -> int:
        """Data lines excluding the header; 0 when there is no data line."""
        return max(len(non_blank_lines(content)) - 1, 0)


def detect_delimiter(header_line: str) -> str:
    """Most frequent candidate delimiter in the header, ',' if none occur."""
    best = ","
    best_count = 0
    for delim in COMMON_DELIMITERS:
        count = header_line.count(delim)
        if count > best_count:
            best, best_count = delim, count
    return best


def split_fields(line: str, delimiter: str) -> list[str]:
    """Quote-aware split. Fields are trimmed after unquoting."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    n = len(line)

    while i < n:
        ch = line[i]
        if ch == '"' and not in_quotes:
            in_quotes = True
        elif ch == '"' and in_quotes:
            if i + 1 < n and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = False
        elif ch == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1

    fields.append("".join(current).strip())
    return fields


def _infer_columns(headers: list[str], sample_rows: list[DataRow]) -> list[ColumnInfo]:
    columns: list[ColumnInfo] = []
    for header in headers:
        sample_values = [
            v for v in (row.get(header) for row in sample_rows) if v is not None and v.strip()
        ]
        col_type = majority_type(infer_type(v) for v in sample_values)
        nullable = any(not (row.get(header) or "").strip() for row in sample_rows)
        columns.append(ColumnInfo(name=header, type=col_type, nullable=nullable))
    return columns
