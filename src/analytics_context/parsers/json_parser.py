from __future__ import annotations

import json
from typing import Any, Iterator, Optional

from ..inference import INT64_MAX, INT64_MIN, infer_type, majority_type
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

NESTED_SEPARATOR = "."


class _NumberLiteral(str):
    """A JSON number kept as its source text."""


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Unsupported JSON constant: {name}")


def _loads(text: str) -> Any:
    return json.loads(
        text,
        parse_int=_NumberLiteral,
        parse_float=_NumberLiteral,
        parse_constant=_reject_constant,
    )


class JsonParser(FileParser):
    """
    JSON array of objects, or JSON Lines.

    Nested objects are flattened into dotted keys; arrays are kept as
    compact JSON text in a single column.
    """

    def parse(self, content: str, max_rows: int = DEFAULT_MAX_ROWS) -> Iterator[ParseEvent]:
        try:
            if not content.strip():
                yield ParseFailure("File is empty")
                return

            yield ParseProgress(0, None, "Detecting JSON format...")

            objects = _parse_objects(content)
            if not objects:
                yield ParseFailure("No JSON objects found")
                return

            total_rows = len(objects)
            rows_to_parse = min(max_rows, total_rows)

            yield ParseProgress(0, total_rows, "Building schema...")
            columns = _build_schema(objects[:SAMPLE_SIZE_FOR_TYPE_INFERENCE])

            yield ParseProgress(0, total_rows, "Parsing rows...")
            rows: list[DataRow] = []
            for index, obj in enumerate(objects[:rows_to_parse]):
                rows.append(DataRow(values=flatten_object(obj)))
                if (index + 1) % PROGRESS_EVERY == 0:
                    yield ParseProgress(index + 1, total_rows)

            data = ParsedData(
                schema=DataSchema(columns=tuple(columns)),
                rows=tuple(rows),
                total_row_count=total_rows,
            )
            logger.debug("json_parsed", rows=len(rows), total_rows=total_rows, columns=len(columns))
            yield ParseSuccess(data)
        except Exception as e:  # noqa: BLE001
            yield ParseFailure(f"Failed to parse JSON: {e}", e)

    def count_rows(self, content: str) -> int:
        try:
            return len(_parse_objects(content))
        except Exception:  # noqa: BLE001
            return 0


def _parse_objects(content: str) -> list[dict[str, Any]]:
    trimmed = content.strip()

    if trimmed.startswith("["):
        try:
            parsed = _loads(trimmed)
        except ValueError:
            return []
        if not isinstance(parsed, list):
            return []
        return [item for item in parsed if isinstance(item, dict)]

    objects: list[dict[str, Any]] = []
    skipped = 0
    for line in non_blank_lines(trimmed):
        try:
            parsed = _loads(line)
        except ValueError:
            skipped += 1
            continue
        if isinstance(parsed, dict):
            objects.append(parsed)
    if skipped:
        logger.debug("jsonl_lines_skipped", skipped=skipped)
    return objects


def flatten_object(obj: dict[str, Any], prefix: str = "") -> dict[str, Optional[str]]:
    result: dict[str, Optional[str]] = {}
    for key, value in obj.items():
        full_key = f"{prefix}{NESTED_SEPARATOR}{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_object(value, full_key))
        elif isinstance(value, list):
            result[full_key] = to_json_text(value)
        elif value is None:
            result[full_key] = None
        elif isinstance(value, bool):
            result[full_key] = "true" if value else "false"
        else:
            # strings and number literals both keep their text
            result[full_key] = str(value)
    return result


def to_json_text(value: Any) -> str:
    """Compact JSON text that preserves number literals as written."""
    if isinstance(value, _NumberLiteral):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, list):
        return "[" + ",".join(to_json_text(v) for v in value) + "]"
    if isinstance(value, dict):
        items = (json.dumps(str(k), ensure_ascii=False) + ":" + to_json_text(v) for k, v in value.items())
        return "{" + ",".join(items) + "}"
    return json.dumps(value)


def _build_schema(sample_objects: list[dict[str, Any]]) -> list[ColumnInfo]:
    key_types: dict[str, list[ColumnType]] = {}
    nullable_keys: set[str] = set()

    for obj in sample_objects:
        for key, value in flatten_object(obj).items():
            key_types.setdefault(key, []).append(infer_json_value_type(value))
            if value is None:
                nullable_keys.add(key)

    return [
        ColumnInfo(name=key, type=majority_type(key_types[key]), nullable=key in nullable_keys)
        for key in sorted(key_types)
    ]


def infer_json_value_type(value: Optional[str]) -> ColumnType:
    """Reparse a flattened value as a JSON primitive, falling back to infer_type."""
    if value is None:
        return ColumnType.UNKNOWN
    try:
        element = json.loads(value, parse_constant=_reject_constant)
    except ValueError:
        return infer_type(value)

    if isinstance(element, (dict, list)):
        return ColumnType.STRING
    if isinstance(element, bool):
        return ColumnType.BOOLEAN
    if isinstance(element, int) and INT64_MIN <= element <= INT64_MAX:
        return ColumnType.INTEGER
    if isinstance(element, (int, float)):
        return ColumnType.DECIMAL
    return infer_type(value)
