from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from . import token_budget


class ColumnType(str, Enum):
    """
    Semantic column types.

    Inference precedence (see inference.infer_type):
    boolean > integer > decimal > timestamp pattern > string.
    """
    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ColumnInfo(_Frozen):
    name: str
    type: ColumnType
    nullable: bool = True


class DataSchema(_Frozen):
    """
    Ordered column descriptors. Column order drives table rendering.
    """
    columns: tuple[ColumnInfo, ...] = ()

    @property
    def column_count(self) -> int:
        return len(self.columns)

    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def to_schema_string(self) -> str:
        return ", ".join(f"{c.name}: {c.type.display_name}" for c in self.columns)


class DataRow(_Frozen):
    """
    A single record: column name -> optional string value.

    An absent key and a None value both read as missing via get();
    an empty string is a present (but blank) value.
    """
    values: dict[str, Optional[str]] = Field(default_factory=dict)

    def get(self, column: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(column, default)

    def __getitem__(self, column: str) -> Optional[str]:
        return self.values[column]

    def __contains__(self, column: object) -> bool:
        return column in self.values

    def keys(self) -> list[str]:
        return list(self.values.keys())

    def to_value_list(self, columns: list[str]) -> list[Optional[str]]:
        return [self.values.get(c) for c in columns]


class ParsedData(_Frozen):
    """
    Result of one file import.

    rows is bounded by the preview cap; total_row_count is the true count
    in the source and may exceed len(rows).
    """
    schema_: DataSchema = Field(alias="schema")
    rows: tuple[DataRow, ...] = ()
    total_row_count: int = 0

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @model_validator(mode="after")
    def _check_counts(self) -> "ParsedData":
        if len(self.rows) > self.total_row_count:
            raise ValueError(
                f"rows ({len(self.rows)}) cannot exceed total_row_count ({self.total_row_count})"
            )
        return self

    @property
    def schema(self) -> DataSchema:  # type: ignore[override]
        return self.schema_

    @computed_field  # type: ignore[misc]
    @property
    def is_sampled(self) -> bool:
        return len(self.rows) < self.total_row_count

    @property
    def loaded_row_count(self) -> int:
        return len(self.rows)

    def to_frame(self) -> pd.DataFrame:
        """Loaded rows as a DataFrame, columns in schema order."""
        names = self.schema_.column_names()
        return pd.DataFrame([r.to_value_list(names) for r in self.rows], columns=names)


# ---- Column statistics (tagged union on `kind`) ----

class _ColumnStatsBase(_Frozen):
    name: str
    type: ColumnType
    non_null_count: int
    null_count: int


class NumericColumnStats(_ColumnStatsBase):
    kind: Literal["numeric"] = "numeric"
    min: float
    max: float
    avg: float
    sum: float


class CategoricalColumnStats(_ColumnStatsBase):
    """top_values: (value, count) pairs, count descending, first-seen order on ties."""
    kind: Literal["categorical"] = "categorical"
    unique_count: int
    top_values: tuple[tuple[str, int], ...] = ()


class TextColumnStats(_ColumnStatsBase):
    kind: Literal["text"] = "text"
    avg_length: float
    min_length: int
    max_length: int


ColumnStatistics = Annotated[
    Union[NumericColumnStats, CategoricalColumnStats, TextColumnStats],
    Field(discriminator="kind"),
]


class DataStatistics(_Frozen):
    total_rows: int
    column_stats: tuple[ColumnStatistics, ...] = ()

    def to_summary_string(self) -> str:
        lines: list[str] = [
            f"Total rows: {self.total_rows}",
            f"Columns ({len(self.column_stats)}):",
        ]
        for col in self.column_stats:
            lines.append(f"  {col.name} ({col.type.display_name}):")
            lines.append(f"    - Non-null: {col.non_null_count}/{self.total_rows}")
            lines.extend(_column_summary_lines(col))
        return "\n".join(lines) + "\n"


def _column_summary_lines(col: Any) -> list[str]:
    if isinstance(col, NumericColumnStats):
        return [
            f"    - Min: {col.min}",
            f"    - Max: {col.max}",
            f"    - Avg: {col.avg:.2f}",
        ]
    if isinstance(col, CategoricalColumnStats):
        out = [f"    - Unique values: {col.unique_count}"]
        if col.top_values:
            top = ", ".join(f"{v}({c})" for v, c in col.top_values[:5])
            out.append(f"    - Top values: {top}")
        return out
    if isinstance(col, TextColumnStats):
        return [f"    - Avg length: {col.avg_length:.1f}"]
    raise TypeError(f"Unsupported column statistics variant: {type(col).__name__}")


class SamplingStrategy(str, Enum):
    """
    How much raw data is exposed to the model, keyed by total row count.

    - FULL_DATA:   < 500 rows, include everything (up to the sample cap)
    - STATISTICAL: < 5000 rows, stratified sample
    - AGGREGATED:  otherwise, statistics plus a minimal sample
    """
    FULL_DATA = "FULL_DATA"
    STATISTICAL = "STATISTICAL"
    AGGREGATED = "AGGREGATED"

    @classmethod
    def for_row_count(cls, count: int) -> "SamplingStrategy":
        if count < 500:
            return cls.FULL_DATA
        if count < 5000:
            return cls.STATISTICAL
        return cls.AGGREGATED


class AnalyticsContext(_Frozen):
    """
    Prompt-ready context for one (data, statistics) pair.

    Rebuilt whenever the data or statistics change, never mutated.
    """
    system_prompt: str
    schema_description: str
    statistics_summary: str
    data_sample: str
    estimated_tokens: int

    TOTAL_TOKEN_BUDGET: ClassVar[int] = token_budget.TOTAL_TOKENS
    SYSTEM_PROMPT_BUDGET: ClassVar[int] = token_budget.SYSTEM_PROMPT_TOKENS
    SCHEMA_BUDGET: ClassVar[int] = token_budget.SCHEMA_TOKENS
    STATISTICS_BUDGET: ClassVar[int] = token_budget.STATISTICS_TOKENS
    DATA_SAMPLE_BUDGET: ClassVar[int] = token_budget.DATA_SAMPLE_TOKENS
    QUESTION_BUDGET: ClassVar[int] = token_budget.QUESTION_TOKENS
    BUFFER: ClassVar[int] = token_budget.BUFFER_TOKENS

    def to_prompt_context(self) -> str:
        return (
            "## Data Schema\n"
            f"{self.schema_description}\n"
            "\n"
            "## Statistics\n"
            f"{self.statistics_summary}\n"
            "\n"
            "## Data Sample\n"
            f"{self.data_sample}\n"
        )


class FileType(str, Enum):
    CSV = "csv"
    JSON = "json"
    LOG = "log"

    @property
    def extensions(self) -> tuple[str, ...]:
        return _EXTENSIONS[self]

    @property
    def mime_types(self) -> tuple[str, ...]:
        return _MIME_TYPES[self]

    @classmethod
    def from_extension(cls, extension: str) -> Optional["FileType"]:
        ext = extension.lower().lstrip(".")
        for ft in cls:
            if ext in ft.extensions:
                return ft
        return None

    @classmethod
    def from_file_name(cls, file_name: str) -> Optional["FileType"]:
        if "." not in file_name:
            return None
        return cls.from_extension(file_name.rsplit(".", 1)[1])

    @classmethod
    def from_mime_type(cls, mime_type: str) -> Optional["FileType"]:
        m = mime_type.split(";", 1)[0].strip().lower()
        for ft in cls:
            if m in ft.mime_types:
                return ft
        return None


_EXTENSIONS: dict[FileType, tuple[str, ...]] = {
    FileType.CSV: ("csv", "tsv"),
    FileType.JSON: ("json", "jsonl", "ndjson"),
    FileType.LOG: ("log", "txt"),
}

_MIME_TYPES: dict[FileType, tuple[str, ...]] = {
    FileType.CSV: ("text/csv", "text/comma-separated-values", "application/csv"),
    FileType.JSON: ("application/json", "text/json", "application/x-ndjson"),
    FileType.LOG: ("text/plain", "text/x-log", "application/octet-stream"),
}


class DataFile(_Frozen):
    """
    Metadata for an imported file.

    path is None when content was handed over in memory.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    path: Optional[str] = None
    type: FileType
    size_bytes: int = 0
    loaded_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
