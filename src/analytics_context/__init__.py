"""Data ingestion and LLM context assembly for CSV, JSON and log files."""

from __future__ import annotations

from .context_builder import ContextBuilder
from .models import (
    AnalyticsContext,
    ColumnInfo,
    ColumnType,
    DataFile,
    DataRow,
    DataSchema,
    DataStatistics,
    FileType,
    ParsedData,
    SamplingStrategy,
)
from .parsers import ParseError, get_parser
from .sampling import DataSampler
from .service import AnalysisError, AnalyticsService
from .statistics import StatisticsCalculator
from .token_budget import TokenBudgetManager

__version__ = "0.1.0"

__all__ = [
    "AnalysisError",
    "AnalyticsContext",
    "AnalyticsService",
    "ColumnInfo",
    "ColumnType",
    "ContextBuilder",
    "DataFile",
    "DataRow",
    "DataSampler",
    "DataSchema",
    "DataStatistics",
    "FileType",
    "ParseError",
    "ParsedData",
    "SamplingStrategy",
    "StatisticsCalculator",
    "TokenBudgetManager",
    "get_parser",
]
