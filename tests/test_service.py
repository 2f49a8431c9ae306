from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from analytics_context.config import Settings
from analytics_context.models import FileType
from analytics_context.service import (
    AnalysisError,
    AnalyticsService,
    ImportFailure,
    ImportProgress,
    ImportStage,
    ImportSuccess,
)

FIXTURES = Path(__file__).parent / "fixtures"


class _RecordingBackend:
    def __init__(self, chunks: list[str]) -> None:
        self.chunks = chunks
        self.calls: list[dict] = []

    def stream(self, system_prompt: str, prompt: str, *, temperature: float, max_tokens: int) -> Iterator[str]:
        self.calls.append(
            {"system_prompt": system_prompt, "prompt": prompt, "temperature": temperature, "max_tokens": max_tokens}
        )
        yield from self.chunks


class _FailingBackend:
    def stream(self, system_prompt: str, prompt: str, *, temperature: float, max_tokens: int) -> Iterator[str]:
        yield "partial"
        raise RuntimeError("connection reset")


def _service(**overrides) -> AnalyticsService:
    return AnalyticsService(settings=Settings(**overrides))


def _success(events: list) -> ImportSuccess:
    assert isinstance(events[-1], ImportSuccess), events[-1]
    return events[-1]


def test_import_content_event_sequence() -> None:
    events = list(_service().import_content("sales.csv", (FIXTURES / "sales.csv").read_text(encoding="utf-8")))

    progress = [e for e in events if isinstance(e, ImportProgress)]
    assert progress[0].stage is ImportStage.READING
    assert progress[-2].stage is ImportStage.VALIDATING and progress[-2].progress == 0.9
    assert progress[-1].stage is ImportStage.COMPLETE and progress[-1].progress == 1.0
    fractions = [p.progress for p in progress]
    assert fractions == sorted(fractions)
    assert all(0.3 <= p.progress <= 0.8 for p in progress if p.stage is ImportStage.PARSING)

    result = _success(events)
    assert result.data_file.type is FileType.CSV
    assert result.data_file.name == "sales.csv"
    assert result.data_file.path is None
    assert result.parsed_data.total_row_count == 6


def test_explicit_type_overrides_name() -> None:
    events = list(_service().import_content("events.txt", '{"a": 1}\n{"a": 2}\n', FileType.JSON))
    assert _success(events).parsed_data.schema.column_names() == ["a"]


def test_unsupported_type_fails() -> None:
    events = list(_service().import_content("book.xlsx", "a,b\n1,2\n"))
    assert isinstance(events[-1], ImportFailure)
    assert "Unsupported file type" in events[-1].message


def test_content_over_size_cap_fails() -> None:
    events = list(_service(max_file_bytes=10).import_content("a.csv", "a,b\n1,2\n3,4\n"))
    assert isinstance(events[-1], ImportFailure)
    assert "too large" in events[-1].message


def test_parse_failure_is_reported() -> None:
    events = list(_service().import_content("empty.json", "   "))
    assert isinstance(events[-1], ImportFailure)
    assert events[-1].message == "File is empty"
    assert not any(isinstance(e, ImportSuccess) for e in events)


def test_max_rows_from_settings() -> None:
    content = "n\n" + "\n".join(str(i) for i in range(5))
    data = _success(list(_service(max_rows=2).import_content("n.csv", content))).parsed_data
    assert data.loaded_row_count == 2
    assert data.total_row_count == 5


def test_import_file(tmp_path: Path) -> None:
    path = tmp_path / "app.log"
    path.write_text((FIXTURES / "app.log").read_text(encoding="utf-8"), encoding="utf-8")

    events = list(_service().import_file(path))

    reading = [e for e in events if isinstance(e, ImportProgress) and e.stage is ImportStage.READING]
    assert len(reading) == 1
    result = _success(events)
    assert result.data_file.type is FileType.LOG
    assert result.data_file.path == str(path)
    assert result.data_file.size_bytes == path.stat().st_size


def test_import_file_strips_utf8_bom(tmp_path: Path) -> None:
    path = tmp_path / "bom.csv"
    path.write_bytes(b"\xef\xbb\xbfid,name\n1,a\n")
    data = _success(list(_service().import_file(path))).parsed_data
    assert data.schema.column_names() == ["id", "name"]


def test_import_missing_file(tmp_path: Path) -> None:
    events = list(_service().import_file(tmp_path / "nope.csv"))
    assert isinstance(events[-1], ImportFailure)
    assert "Could not read file" in events[-1].message


def test_import_file_over_size_cap(tmp_path: Path) -> None:
    path = tmp_path / "big.csv"
    path.write_text("a\n" + "1\n" * 50, encoding="utf-8")
    events = list(_service(max_file_bytes=20).import_file(path))
    assert isinstance(events[-1], ImportFailure)


def test_compute_statistics_wraps_errors() -> None:
    class _Broken:
        def calculate(self, data):
            raise RuntimeError("boom")

    service = AnalyticsService(settings=Settings(), statistics_calculator=_Broken())
    data = _success(list(service.import_content("a.csv", "a\n1\n"))).parsed_data

    with pytest.raises(AnalysisError, match="boom"):
        service.compute_statistics(data)


def test_ask_streams_backend_output() -> None:
    service = _service()
    data = _success(list(service.import_content("sales.csv", (FIXTURES / "sales.csv").read_text(encoding="utf-8")))).parsed_data
    ctx = service.build_context(data, service.compute_statistics(data))
    backend = _RecordingBackend(["Widget ", "sold ", "most."])

    answer = "".join(service.ask("Which product sold most?", ctx, backend))

    assert answer == "Widget sold most."
    call = backend.calls[0]
    assert call["system_prompt"] == ctx.system_prompt
    assert call["prompt"] == service.build_prompt(ctx, "Which product sold most?")
    assert call["temperature"] == 0.3
    assert call["max_tokens"] == 1024


def test_ask_wraps_backend_errors() -> None:
    service = _service()
    data = _success(list(service.import_content("a.csv", "a\n1\n"))).parsed_data
    ctx = service.build_context(data)

    stream = service.ask("q", ctx, _FailingBackend())
    assert next(stream) == "partial"
    with pytest.raises(AnalysisError, match="connection reset"):
        next(stream)


def test_declared_content_type_used_when_extension_unknown() -> None:
    events = list(_service().import_content("upload", "a,b\n1,2\n", mime_type="text/csv; charset=utf-8"))
    result = _success(events)
    assert result.data_file.type is FileType.CSV


def test_extension_wins_over_declared_content_type() -> None:
    events = list(_service().import_content("events.jsonl", '{"a": 1}\n', mime_type="application/octet-stream"))
    assert _success(events).data_file.type is FileType.JSON


def test_unknown_content_type_still_fails() -> None:
    events = list(_service().import_content("upload", "x", mime_type="image/png"))
    assert isinstance(events[-1], ImportFailure)


def test_import_file_with_declared_content_type(tmp_path: Path) -> None:
    path = tmp_path / "export"
    path.write_text('[{"k": "v"}]', encoding="utf-8")
    result = _success(list(_service().import_file(path, mime_type="application/json")))
    assert result.data_file.type is FileType.JSON
