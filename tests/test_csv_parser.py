from __future__ import annotations

from pathlib import Path

import pytest

from analytics_context.models import ColumnType
from analytics_context.parsers import CsvParser, ParseError, ParseFailure, ParseProgress, collect_parsed_data
from analytics_context.parsers.csv_parser import detect_delimiter, split_fields

FIXTURES = Path(__file__).parent / "fixtures"


def _parse(content: str, max_rows: int = 1000):
    return collect_parsed_data(CsvParser().parse(content, max_rows))


def test_sales_fixture_schema_and_rows() -> None:
    data = _parse((FIXTURES / "sales.csv").read_text(encoding="utf-8"))

    types = {c.name: c.type for c in data.schema.columns}
    assert data.schema.column_names() == [
        "order_id", "region", "product", "units", "unit_price", "order_date", "shipped",
    ]
    assert types["order_id"] is ColumnType.INTEGER
    assert types["region"] is ColumnType.STRING
    assert types["units"] is ColumnType.INTEGER
    assert types["unit_price"] is ColumnType.DECIMAL
    assert types["order_date"] is ColumnType.TIMESTAMP
    assert types["shipped"] is ColumnType.BOOLEAN

    nullable = {c.name: c.nullable for c in data.schema.columns}
    assert nullable["units"] is True
    assert nullable["order_id"] is False

    assert data.total_row_count == 6
    assert data.loaded_row_count == 6
    assert data.is_sampled is False
    assert data.rows[3]["product"] == "Gizmo, Deluxe"
    assert data.rows[2]["units"] == ""


def test_semicolon_delimiter_detected() -> None:
    data = _parse("a;b;c\n1;2;3\n")
    assert data.schema.column_names() == ["a", "b", "c"]
    assert data.rows[0].values == {"a": "1", "b": "2", "c": "3"}


def test_detect_delimiter() -> None:
    assert detect_delimiter("a\tb\tc") == "\t"
    assert detect_delimiter("a|b") == "|"
    assert detect_delimiter("single") == ","
    # equal counts keep the earlier candidate
    assert detect_delimiter("a,b;c") == ","


def test_split_fields_handles_quotes() -> None:
    assert split_fields('"Smith, John",42,"say ""hi"""', ",") == ["Smith, John", "42", 'say "hi"']
    assert split_fields(" a , b ", ",") == ["a", "b"]
    assert split_fields("a,,", ",") == ["a", "", ""]


def test_short_rows_fill_missing_columns_with_none() -> None:
    data = _parse("a,b,c\n1\n1,2,3,4\n")
    assert data.rows[0].values == {"a": "1", "b": None, "c": None}
    assert data.rows[1].values == {"a": "1", "b": "2", "c": "3"}


def test_crlf_line_endings() -> None:
    data = _parse("a,b\r\n1,2\r\n3,4\r\n")
    assert data.total_row_count == 2
    assert data.rows[1]["b"] == "4"


def test_max_rows_caps_loaded_rows_only() -> None:
    content = "n\n" + "\n".join(str(i) for i in range(5))
    data = _parse(content, max_rows=2)
    assert data.loaded_row_count == 2
    assert data.total_row_count == 5
    assert data.is_sampled is True


def test_header_only_has_no_rows() -> None:
    data = _parse("a,b\n")
    assert data.total_row_count == 0
    assert data.rows == ()
    assert data.schema.column_names() == ["a", "b"]


@pytest.mark.parametrize("content", ["", "   \n\n"])
def test_empty_content_fails(content: str) -> None:
    events = list(CsvParser().parse(content))
    assert isinstance(events[-1], ParseFailure)
    assert events[-1].message == "File is empty"
    with pytest.raises(ParseError, match="File is empty"):
        _parse(content)


def test_progress_reported_every_hundred_rows() -> None:
    content = "n\n" + "\n".join(str(i) for i in range(250))
    events = list(CsvParser().parse(content))

    progress = [e for e in events if isinstance(e, ParseProgress)]
    assert progress[0].message == "Detecting delimiter..."
    assert progress[1].message == "Parsing rows..."
    assert [e.parsed_rows for e in progress[2:]] == [100, 200]
    assert all(e.total_rows == 250 for e in progress[2:])


def test_count_rows() -> None:
    parser = CsvParser()
    assert parser.count_rows("a,b\n1,2\n\n3,4\n") == 2
    assert parser.count_rows("a,b\n") == 0
    assert parser.count_rows("") == 0


def test_overlong_number_does_not_fail_parse() -> None:
    data = _parse("n\n" + "1" * 5000 + "\n")
    assert data.schema.columns[0].type is ColumnType.STRING
    assert data.total_row_count == 1
