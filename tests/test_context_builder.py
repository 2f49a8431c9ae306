from __future__ import annotations

from pathlib import Path

from analytics_context.context_builder import ANALYTICS_SYSTEM_PROMPT, ContextBuilder
from analytics_context.models import ColumnInfo, ColumnType, DataRow, DataSchema, ParsedData
from analytics_context.parsers import CsvParser, collect_parsed_data
from analytics_context.statistics import StatisticsCalculator
from analytics_context.token_budget import TokenBudgetManager

FIXTURES = Path(__file__).parent / "fixtures"


def _csv(content: str) -> ParsedData:
    return collect_parsed_data(CsvParser().parse(content))


def _wide(loaded: int, total: int) -> ParsedData:
    names = [f"column_{i}" for i in range(6)]
    return ParsedData(
        schema=DataSchema(columns=tuple(ColumnInfo(name=n, type=ColumnType.STRING) for n in names)),
        rows=tuple(DataRow(values={n: f"value-{r}-{n}" for n in names}) for r in range(loaded)),
        total_row_count=total,
    )


def test_small_csv_context() -> None:
    data = _csv("name,age,city\nAlice,30,NYC\nBob,25,\n")
    stats = StatisticsCalculator().calculate(data)

    ctx = ContextBuilder().build_context(data, stats)

    assert ctx.system_prompt == ANALYTICS_SYSTEM_PROMPT
    assert ctx.schema_description == (
        "Columns (3):\n"
        "- name: String\n"
        "- age: Integer\n"
        "- city: String, nullable\n"
    )
    assert ctx.statistics_summary.startswith("Total rows: 2\nSampling: FULL_DATA\n\nTotal rows: 2\n")
    assert ctx.data_sample == (
        "name | age | city\n"
        "---- | --- | ----\n"
        "Alice | 30 | NYC\n"
        "Bob | 25 | \n"
    )


def test_estimated_tokens_counts_blocks_plus_fixed_allowances() -> None:
    data = _csv((FIXTURES / "sales.csv").read_text(encoding="utf-8"))
    ctx = ContextBuilder().build_context(data, StatisticsCalculator().calculate(data))

    budget = TokenBudgetManager()
    expected = (
        budget.estimate_tokens(ctx.schema_description)
        + budget.estimate_tokens(ctx.statistics_summary)
        + budget.estimate_tokens(ctx.data_sample)
        + 200
        + 100
    )
    assert ctx.estimated_tokens == expected


def test_without_statistics() -> None:
    ctx = ContextBuilder().build_context(_csv("a\n1\n"))
    assert ctx.statistics_summary == "Total rows: 1\nSampling: FULL_DATA\n"


def test_no_rows_placeholder() -> None:
    ctx = ContextBuilder().build_context(_csv("a,b\n"))
    assert ctx.data_sample == "No data available"


def test_long_cells_and_headers_are_shortened() -> None:
    header = "a_really_long_column_name"
    data = _csv(f"{header}\n{'x' * 80}\n")

    lines = ContextBuilder().build_context(data).data_sample.splitlines()

    assert lines[1] == "-" * 15
    assert lines[2] == "x" * 47 + "..."


def test_statistical_preamble() -> None:
    ctx = ContextBuilder().build_context(_wide(1000, 1000))
    assert ctx.data_sample.startswith("(Sampled 100 rows from dataset)\n\ncolumn_0 | column_1")


def test_aggregated_preamble() -> None:
    ctx = ContextBuilder().build_context(_wide(1000, 10_000))
    assert ctx.data_sample.startswith("(Data too large for full sample, showing 20 representative rows)\n\n")


def test_blocks_stay_within_budget() -> None:
    wide = ParsedData(
        schema=DataSchema(columns=tuple(ColumnInfo(name=f"field_number_{i}", type=ColumnType.STRING) for i in range(40))),
        rows=tuple(DataRow(values={f"field_number_{i}": "z" * 40 for i in range(40)}) for _ in range(200)),
        total_row_count=200,
    )
    ctx = ContextBuilder().build_context(wide, StatisticsCalculator().calculate(wide))

    assert len(ctx.schema_description) <= 400
    assert ctx.schema_description.endswith("...")
    assert len(ctx.statistics_summary) <= 1200
    assert len(ctx.data_sample) <= 8000
    assert ctx.data_sample.endswith("...")


def test_build_is_deterministic() -> None:
    data = _wide(1000, 1000)
    assert ContextBuilder().build_context(data) == ContextBuilder().build_context(data)


def test_full_prompt_layout() -> None:
    ctx = ContextBuilder().build_context(_csv("a\n1\n"))

    prompt = ContextBuilder().build_full_prompt(ctx, "What is the max of a?")

    assert prompt == (
        "=== DATA CONTEXT ===\n"
        "\n"
        "## Data Schema\n"
        "Columns (1):\n"
        "- a: Integer\n"
        "\n"
        "\n"
        "## Statistics\n"
        "Total rows: 1\n"
        "Sampling: FULL_DATA\n"
        "\n"
        "\n"
        "## Data Sample\n"
        "a\n"
        "-\n"
        "1\n"
        "\n"
        "\n"
        "=== USER QUESTION ===\n"
        "\n"
        "What is the max of a?\n"
    )
    assert ANALYTICS_SYSTEM_PROMPT not in prompt
