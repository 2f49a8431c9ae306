from __future__ import annotations

import re
from enum import Enum
from typing import Iterator, Optional

from ..inference import infer_type, majority_type
from ..logging import get_logger
from ..models import ColumnInfo, ColumnType, DataRow, DataSchema, ParsedData
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

# 2024-01-15 10:30:00 INFO [Main] Application started
STANDARD_LOG_PATTERN = re.compile(
    r"(\d{4}-\d{2}-\d{2}[T ]?\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?)"
    r"\s+(\w+)\s+(?:\[([^\]]+)\]|(\S+))\s+(.*)"
)

# 127.0.0.1 - - [15/Jan/2024:10:30:00 +0000] "GET /path HTTP/1.1" 200 1234 "-" "curl/8.0"
APACHE_LOG_PATTERN = re.compile(
    r'(\S+)\s+(\S+)\s+(\S+)\s+\[([^\]]+)\]\s+"([^"]+)"\s+(\d+)\s+(\d+)'
    r'(?:\s+"([^"]*)")?(?:\s+"([^"]*)")?'
)

# [INFO] Server starting  |  WARN: Low memory
SIMPLE_LOG_PATTERN = re.compile(r"(?:\[(\w+)\]|(\w+):)\s+(.*)")

# timestamp=2024-01-15T10:30:00Z level=INFO message="User logged in"
KEY_VALUE_PATTERN = re.compile(r'(\w+)=(?:"([^"]*)"|(\S+))')

RAW_COLUMN = "line"
FORMAT_SAMPLE_SIZE = 10


class LogFormat(str, Enum):
    STANDARD = "standard"
    APACHE = "apache"
    SIMPLE = "simple"
    KEY_VALUE = "key_value"
    RAW = "raw"


class LogParser(FileParser):
    """
    Line-oriented logs.

    The format is picked from the first 10 lines; a line that does not
    match the chosen format is kept as a single `line` value.
    """

    def parse(self, content: str, max_rows: int = DEFAULT_MAX_ROWS) -> Iterator[ParseEvent]:
        try:
            if not content.strip():
                yield ParseFailure("File is empty")
                return

            lines = non_blank_lines(content)
            if not lines:
                yield ParseFailure("No log lines found")
                return

            yield ParseProgress(0, len(lines), "Detecting log format...")

            log_format = detect_format(lines[:FORMAT_SAMPLE_SIZE])
            logger.debug("log_format_detected", format=log_format.value)

            yield ParseProgress(0, len(lines), f"Parsing with {log_format.name} format...")

            total_rows = len(lines)
            rows_to_parse = min(max_rows, total_rows)
            rows: list[DataRow] = []
            all_keys: set[str] = set()

            for index, line in enumerate(lines[:rows_to_parse]):
                parsed = parse_line(line, log_format)
                if parsed:
                    rows.append(DataRow(values=parsed))
                    all_keys.update(parsed.keys())

                if (index + 1) % PROGRESS_EVERY == 0:
                    yield ParseProgress(index + 1, total_rows)

            if not rows:
                yield ParseFailure("Could not parse any log lines")
                return

            sample_rows = rows[:SAMPLE_SIZE_FOR_TYPE_INFERENCE]
            columns = []
            for key in sorted(all_keys):
                sample_values = [v for v in (r.get(key) for r in sample_rows) if v is not None]
                columns.append(ColumnInfo(name=key, type=infer_log_column_type(key, sample_values), nullable=True))

            data = ParsedData(
                schema=DataSchema(columns=tuple(columns)),
                rows=tuple(rows),
                total_row_count=total_rows,
            )
            yield ParseSuccess(data)
        except Exception as e:  # noqa: BLE001
            yield ParseFailure(f"Failed to parse log file: {e}", e)

    def count_rows(self, content: str) -> int:
        return len(non_blank_lines(content))


def detect_format(sample_lines: list[str]) -> LogFormat:
    """Format with the most full-line matches, if it beats a third of the sample."""
    matches = {
        LogFormat.STANDARD: sum(1 for line in sample_lines if STANDARD_LOG_PATTERN.fullmatch(line)),
        LogFormat.APACHE: sum(1 for line in sample_lines if APACHE_LOG_PATTERN.fullmatch(line)),
        LogFormat.SIMPLE: sum(1 for line in sample_lines if SIMPLE_LOG_PATTERN.fullmatch(line)),
        LogFormat.KEY_VALUE: sum(1 for line in sample_lines if len(KEY_VALUE_PATTERN.findall(line)) >= 2),
    }
    best = max(matches, key=lambda f: matches[f])
    if matches[best] > len(sample_lines) // 3:
        return best
    return LogFormat.RAW


def parse_line(line: str, log_format: LogFormat) -> dict[str, Optional[str]]:
    if log_format is LogFormat.STANDARD:
        return _parse_standard(line)
    if log_format is LogFormat.APACHE:
        return _parse_apache(line)
    if log_format is LogFormat.SIMPLE:
        return _parse_simple(line)
    if log_format is LogFormat.KEY_VALUE:
        return _parse_key_value(line)
    return {RAW_COLUMN: line}


def _parse_standard(line: str) -> dict[str, Optional[str]]:
    m = STANDARD_LOG_PATTERN.fullmatch(line)
    if m is None:
        return {RAW_COLUMN: line}
    return {
        "timestamp": m.group(1),
        "level": m.group(2).upper(),
        "source": m.group(3) if m.group(3) is not None else m.group(4),
        "message": m.group(5),
    }


def _absent_if_dash(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip() or value == "-":
        return None
    return value


def _parse_apache(line: str) -> dict[str, Optional[str]]:
    m = APACHE_LOG_PATTERN.fullmatch(line)
    if m is None:
        return {RAW_COLUMN: line}
    fields: dict[str, Optional[str]] = {
        "ip": m.group(1),
        "identity": _absent_if_dash(m.group(2)),
        "user": _absent_if_dash(m.group(3)),
        "timestamp": m.group(4),
        "request": m.group(5),
        "status": m.group(6),
        "size": m.group(7),
        "referer": _absent_if_dash(m.group(8)),
        "user_agent": _absent_if_dash(m.group(9)),
    }
    return {k: v for k, v in fields.items() if v is not None}


def _parse_simple(line: str) -> dict[str, Optional[str]]:
    m = SIMPLE_LOG_PATTERN.fullmatch(line)
    if m is None:
        return {RAW_COLUMN: line}
    level = m.group(1) or m.group(2)
    return {"level": level.upper(), "message": m.group(3)}


def _parse_key_value(line: str) -> dict[str, Optional[str]]:
    result: dict[str, Optional[str]] = {}
    for m in KEY_VALUE_PATTERN.finditer(line):
        result[m.group(1)] = m.group(2) or m.group(3) or ""
    if not result:
        return {RAW_COLUMN: line}
    return result


def infer_log_column_type(key: str, sample_values: list[str]) -> ColumnType:
    """Key-name hints win over value-based inference."""
    lower = key.lower()
    if "time" in lower or "date" in lower:
        return ColumnType.TIMESTAMP
    if lower == "level":
        return ColumnType.STRING
    if lower in ("status", "code"):
        return ColumnType.INTEGER
    if lower in ("size", "bytes", "count"):
        return ColumnType.INTEGER
    return majority_type(infer_type(v) for v in sample_values)
