from __future__ import annotations

from collections import Counter
from typing import Optional

import pandas as pd

from .logging import get_logger
from .models import (
    CategoricalColumnStats,
    ColumnType,
    DataStatistics,
    NumericColumnStats,
    ParsedData,
    TextColumnStats,
)

logger = get_logger(__name__)

# A text column with at most this many distinct values is categorical.
CATEGORICAL_THRESHOLD = 20
TOP_VALUES_LIMIT = 10


class StatisticsCalculator:
    """Per-column statistics over the loaded rows. Columns are independent."""

    def calculate(self, data: ParsedData) -> DataStatistics:
        column_stats = []
        for column in data.schema.columns:
            values = [row.get(column.name) for row in data.rows]
            column_stats.append(self._column_stats(column.name, column.type, values))

        logger.debug("statistics_calculated", columns=len(column_stats), rows=len(data.rows))
        return DataStatistics(total_rows=data.total_row_count, column_stats=tuple(column_stats))

    def _column_stats(self, name: str, col_type: ColumnType, values: list[Optional[str]]):
        non_null = [v for v in values if v is not None and v.strip()]
        null_count = len(values) - len(non_null)

        if col_type in (ColumnType.INTEGER, ColumnType.DECIMAL):
            return _numeric_stats(name, col_type, non_null, null_count)
        if col_type is ColumnType.BOOLEAN:
            return _categorical_stats(name, col_type, non_null, null_count)

        # STRING / TIMESTAMP / UNKNOWN: both conditions matter, keep the OR.
        unique_count = len(set(non_null))
        if unique_count <= CATEGORICAL_THRESHOLD or unique_count <= len(non_null) // 2:
            return _categorical_stats(name, col_type, non_null, null_count)
        return _text_stats(name, col_type, non_null, null_count)


def _numeric_stats(name: str, col_type: ColumnType, values: list[str], null_count: int):
    # float64 before aggregating: int64 sums wrap around on overflow
    numbers = pd.to_numeric(pd.Series(values, dtype="object"), errors="coerce").astype("float64").dropna()

    if numbers.empty:
        # Mis-inferred column: nothing parses, describe it as text.
        return _text_stats(name, col_type, values, null_count)

    return NumericColumnStats(
        name=name,
        type=col_type,
        non_null_count=len(values),
        null_count=null_count,
        min=float(numbers.min()),
        max=float(numbers.max()),
        avg=float(numbers.mean()),
        sum=float(numbers.sum()),
    )


def _categorical_stats(name: str, col_type: ColumnType, values: list[str], null_count: int):
    counts = Counter(values)
    # most_common is a stable sort: equal counts keep first-seen order.
    top_values = tuple(counts.most_common(TOP_VALUES_LIMIT))
    return CategoricalColumnStats(
        name=name,
        type=col_type,
        non_null_count=len(values),
        null_count=null_count,
        unique_count=len(counts),
        top_values=top_values,
    )


def _text_stats(name: str, col_type: ColumnType, values: list[str], null_count: int):
    lengths = [len(v) for v in values]
    return TextColumnStats(
        name=name,
        type=col_type,
        non_null_count=len(values),
        null_count=null_count,
        avg_length=sum(lengths) / len(lengths) if lengths else 0.0,
        min_length=min(lengths) if lengths else 0,
        max_length=max(lengths) if lengths else 0,
    )
