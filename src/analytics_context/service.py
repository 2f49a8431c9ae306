from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Union

from .config import Settings, load_settings
from .context_builder import ContextBuilder
from .llm import CompletionBackend
from .logging import get_logger
from .models import AnalyticsContext, DataFile, DataStatistics, FileType, ParsedData
from .parsers import ParseFailure, ParseProgress, ParseSuccess, get_parser
from .statistics import StatisticsCalculator
from .utils import read_text

logger = get_logger(__name__)

ANSWER_TEMPERATURE = 0.3
ANSWER_MAX_TOKENS = 1024


class AnalysisError(Exception):
    """Statistics or LLM failure surfaced to the caller as a typed error."""


class ImportStage(str, Enum):
    READING = "reading"
    PARSING = "parsing"
    VALIDATING = "validating"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ImportProgress:
    stage: ImportStage
    progress: float  # 0.0 .. 1.0
    message: Optional[str] = None


@dataclass(frozen=True)
class ImportSuccess:
    data_file: DataFile
    parsed_data: ParsedData


@dataclass(frozen=True)
class ImportFailure:
    message: str
    cause: Optional[BaseException] = None


ImportEvent = Union[ImportProgress, ImportSuccess, ImportFailure]


class AnalyticsService:
    """
    Caller-facing entry point: import -> statistics -> context -> ask.

    Import is a generator of ImportEvents ending in ImportSuccess or
    ImportFailure; it never raises. compute_statistics and ask raise
    AnalysisError.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        context_builder: Optional[ContextBuilder] = None,
        statistics_calculator: Optional[StatisticsCalculator] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.context_builder = context_builder or ContextBuilder(max_sample_size=self.settings.sample_size)
        self.statistics_calculator = statistics_calculator or StatisticsCalculator()

    def import_file(
        self,
        path: Path,
        file_type: Optional[FileType] = None,
        max_rows: Optional[int] = None,
        mime_type: Optional[str] = None,
    ) -> Iterator[ImportEvent]:
        yield ImportProgress(ImportStage.READING, 0.1, "Reading file...")

        resolved = file_type or _detect_type(path.name, mime_type)
        if resolved is None:
            yield ImportFailure(f"Unsupported file type: {path.name}")
            return

        try:
            size = path.stat().st_size
            if size > self.settings.max_file_bytes:
                yield ImportFailure(_too_large_message(self.settings.max_file_bytes))
                return
            content = read_text(path)
        except OSError as e:
            logger.warning("import_read_failed", path=str(path), error=str(e))
            yield ImportFailure(f"Could not read file: {e}", e)
            return

        for event in self.import_content(path.name, content, resolved, max_rows=max_rows, path=path):
            # Reading was already reported above.
            if isinstance(event, ImportProgress) and event.stage is ImportStage.READING:
                continue
            yield event

    def import_content(
        self,
        name: str,
        content: str,
        file_type: Optional[FileType] = None,
        max_rows: Optional[int] = None,
        path: Optional[Path] = None,
        mime_type: Optional[str] = None,
    ) -> Iterator[ImportEvent]:
        yield ImportProgress(ImportStage.READING, 0.1, "Reading content...")

        resolved = file_type or _detect_type(name, mime_type)
        if resolved is None:
            yield ImportFailure(f"Unsupported file type: {name}")
            return

        if len(content) > self.settings.max_file_bytes:
            yield ImportFailure(_too_large_message(self.settings.max_file_bytes))
            return

        yield ImportProgress(ImportStage.PARSING, 0.3, "Parsing data...")

        parser = get_parser(resolved)
        for event in parser.parse(content, max_rows or self.settings.max_rows):
            if isinstance(event, ParseProgress):
                total = event.total_rows or event.parsed_rows
                fraction = event.parsed_rows / total if total else 0.0
                yield ImportProgress(ImportStage.PARSING, 0.3 + fraction * 0.5, event.message)
            elif isinstance(event, ParseSuccess):
                yield ImportProgress(ImportStage.VALIDATING, 0.9, "Validating data...")
                data_file = DataFile(
                    name=name,
                    path=str(path) if path is not None else None,
                    type=resolved,
                    size_bytes=len(content.encode("utf-8")),
                )
                logger.info(
                    "import_complete",
                    file=name,
                    type=resolved.value,
                    rows=event.data.loaded_row_count,
                    total_rows=event.data.total_row_count,
                )
                yield ImportProgress(ImportStage.COMPLETE, 1.0, "Done")
                yield ImportSuccess(data_file, event.data)
                return
            elif isinstance(event, ParseFailure):
                logger.warning("import_failed", file=name, error=event.message)
                yield ImportFailure(event.message, event.cause)
                return

        yield ImportFailure("Parser finished without a result")

    def compute_statistics(self, data: ParsedData) -> DataStatistics:
        try:
            return self.statistics_calculator.calculate(data)
        except Exception as e:  # noqa: BLE001
            logger.error("statistics_failed", error=str(e))
            raise AnalysisError(f"Failed to compute statistics: {e}") from e

    def build_context(self, data: ParsedData, statistics: Optional[DataStatistics] = None) -> AnalyticsContext:
        return self.context_builder.build_context(data, statistics)

    def build_prompt(self, context: AnalyticsContext, question: str) -> str:
        return self.context_builder.build_full_prompt(context, question)

    def ask(self, question: str, context: AnalyticsContext, backend: CompletionBackend) -> Iterator[str]:
        """Stream the model's answer. The system prompt travels separately from the prompt."""
        prompt = self.build_prompt(context, question)
        try:
            yield from backend.stream(
                context.system_prompt,
                prompt,
                temperature=ANSWER_TEMPERATURE,
                max_tokens=ANSWER_MAX_TOKENS,
            )
        except Exception as e:  # noqa: BLE001
            logger.error("llm_failed", error=str(e))
            raise AnalysisError(f"LLM request failed: {e}") from e


def _detect_type(name: str, mime_type: Optional[str]) -> Optional[FileType]:
    """Extension first; a declared content type is the fallback."""
    resolved = FileType.from_file_name(name)
    if resolved is None and mime_type:
        resolved = FileType.from_mime_type(mime_type)
    return resolved


def _too_large_message(max_bytes: int) -> str:
    return f"File is too large (max {max_bytes / (1024 * 1024):g} MB)"
