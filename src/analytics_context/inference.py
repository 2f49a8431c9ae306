from __future__ import annotations

import math
import re
from collections import Counter
from typing import Iterable, Optional

from .models import ColumnType

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_INTEGER_RE = re.compile(r"[+-]?\d+")
_DECIMAL_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_TIMESTAMP_PATTERNS = (
    re.compile(r"\d{4}-\d{2}-\d{2}"),  # 2024-01-15
    re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}"),  # 2024-01-15T10:30:00
    re.compile(r"\d{2}/\d{2}/\d{4}"),  # 01/15/2024
    re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}"),  # 2024-01-15 10:30:00
)


def infer_type(value: Optional[str]) -> ColumnType:
    """
    Classify a raw string token.

    Order matters: "0"/"1" are integers not booleans, and dates are
    checked only after numbers so "2024-01-15" never reads as a decimal.
    """
    if value is None:
        return ColumnType.UNKNOWN
    trimmed = value.strip()
    if not trimmed:
        return ColumnType.UNKNOWN

    if trimmed.lower() in ("true", "false"):
        return ColumnType.BOOLEAN
    if is_int64(trimmed):
        return ColumnType.INTEGER
    if is_finite_decimal(trimmed):
        return ColumnType.DECIMAL
    if is_timestamp(trimmed):
        return ColumnType.TIMESTAMP
    return ColumnType.STRING


def is_int64(text: str) -> bool:
    if _INTEGER_RE.fullmatch(text) is None:
        return False
    # int() refuses very long digit strings; nothing past 19 digits fits anyway
    if len(text.lstrip("+-").lstrip("0")) > 19:
        return False
    return INT64_MIN <= int(text) <= INT64_MAX


def is_finite_decimal(text: str) -> bool:
    if _DECIMAL_RE.fullmatch(text) is None:
        return False
    return math.isfinite(float(text))


def is_timestamp(text: str) -> bool:
    return any(p.fullmatch(text) is not None for p in _TIMESTAMP_PATTERNS)


def majority_type(types: Iterable[ColumnType], default: ColumnType = ColumnType.STRING) -> ColumnType:
    """Most frequent type; ties go to the type seen first."""
    counts = Counter(types)
    if not counts:
        return default
    return counts.most_common(1)[0][0]
