"""Format parsers.

Each parser turns in-memory text into ParsedData through a generator of
ParseProgress events ending in ParseSuccess or ParseFailure.
"""

from .base import (
    FileParser,
    ParseError,
    ParseEvent,
    ParseFailure,
    ParseProgress,
    ParseSuccess,
    collect_parsed_data,
)
from .csv_parser import CsvParser
from .json_parser import JsonParser
from .log_parser import LogFormat, LogParser
from .registry import get_parser

__all__ = [
    "CsvParser",
    "FileParser",
    "JsonParser",
    "LogFormat",
    "LogParser",
    "ParseError",
    "ParseEvent",
    "ParseFailure",
    "ParseProgress",
    "ParseSuccess",
    "collect_parsed_data",
    "get_parser",
]
