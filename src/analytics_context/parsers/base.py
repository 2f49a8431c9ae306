from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Union

from ..models import ParsedData

DEFAULT_MAX_ROWS = 1000
PROGRESS_EVERY = 100
SAMPLE_SIZE_FOR_TYPE_INFERENCE = 10

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class ParseProgress:
    parsed_rows: int
    total_rows: Optional[int]
    message: Optional[str] = None


@dataclass(frozen=True)
class ParseSuccess:
    data: ParsedData


@dataclass(frozen=True)
class ParseFailure:
    message: str
    cause: Optional[BaseException] = None


ParseEvent = Union[ParseProgress, ParseSuccess, ParseFailure]


class ParseError(Exception):
    """Raised by collect_parsed_data when a parse ends in ParseFailure."""


class FileParser:
    """Turns in-memory file content into ParsedData.

    parse() is a generator: progress events first, then exactly one
    ParseSuccess or ParseFailure. Consumers may stop iterating at any
    point to cancel; parsers hold no state between calls.
    """

    def parse(self, content: str, max_rows: int = DEFAULT_MAX_ROWS) -> Iterator[ParseEvent]:  # pragma: no cover - interface
        raise NotImplementedError

    def count_rows(self, content: str) -> int:  # pragma: no cover - interface
        raise NotImplementedError


def split_lines(content: str) -> list[str]:
    return _LINE_BREAK_RE.split(content)


def non_blank_lines(content: str) -> list[str]:
    return [line for line in split_lines(content) if line.strip()]


def collect_parsed_data(
    events: Iterable[ParseEvent],
    on_progress: Optional[Callable[[ParseProgress], None]] = None,
) -> ParsedData:
    """Drain a parse generator and return its data, or raise ParseError."""
    for event in events:
        if isinstance(event, ParseProgress):
            if on_progress is not None:
                on_progress(event)
        elif isinstance(event, ParseSuccess):
            return event.data
        elif isinstance(event, ParseFailure):
            raise ParseError(event.message) from event.cause
    raise ParseError("Parser finished without a result")
