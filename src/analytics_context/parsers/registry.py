from __future__ import annotations

from typing import Dict, Type

from ..models import FileType
from .base import FileParser
from .csv_parser import CsvParser
from .json_parser import JsonParser
from .log_parser import LogParser


_REGISTRY: Dict[FileType, Type[FileParser]] = {
    FileType.CSV: CsvParser,
    FileType.JSON: JsonParser,
    FileType.LOG: LogParser,
}


def get_parser(file_type: FileType) -> FileParser:
    return _REGISTRY[file_type]()
