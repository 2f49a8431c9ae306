from __future__ import annotations

from typing import Optional

from . import token_budget
from .logging import get_logger
from .models import AnalyticsContext, DataRow, DataSchema, DataStatistics, ParsedData, SamplingStrategy
from .sampling import STATISTICAL_SAMPLE_SIZE, DataSampler
from .token_budget import TokenBudgetManager

logger = get_logger(__name__)

ANALYTICS_SYSTEM_PROMPT = (
    "You are a data analyst assistant.\n"
    "Analyze data and answer questions based ONLY on the provided context.\n"
    "Be concise and use specific numbers from the data.\n"
    "If you cannot answer a question from the provided data, say so clearly.\n"
    "Format numbers appropriately and highlight key insights."
)

MAX_CELL_CHARS = 50
MAX_SEPARATOR_CHARS = 15
NO_DATA_PLACEHOLDER = "No data available"


class ContextBuilder:
    """Assembles schema, statistics and a data sample within the token budget."""

    def __init__(
        self,
        token_budget_manager: Optional[TokenBudgetManager] = None,
        data_sampler: Optional[DataSampler] = None,
        max_sample_size: int = STATISTICAL_SAMPLE_SIZE,
    ) -> None:
        self.budget = token_budget_manager or TokenBudgetManager()
        self.sampler = data_sampler or DataSampler()
        self.max_sample_size = max_sample_size

    def build_context(self, data: ParsedData, statistics: Optional[DataStatistics] = None) -> AnalyticsContext:
        strategy = SamplingStrategy.for_row_count(data.total_row_count)

        schema_block = self.budget.truncate_to_tokens(
            _schema_description(data.schema), token_budget.SCHEMA_TOKENS
        )
        stats_block = self.budget.truncate_to_tokens(
            _statistics_summary(statistics, data.total_row_count, strategy), token_budget.STATISTICS_TOKENS
        )
        sampled_rows = self.sampler.sample(data, self.max_sample_size)
        sample_block = self.budget.truncate_to_tokens(
            _data_sample(data.schema, sampled_rows, strategy), token_budget.DATA_SAMPLE_TOKENS
        )

        # Fixed allowances for system prompt and question; measured size for the rest.
        estimated = (
            self.budget.estimate_tokens(schema_block)
            + self.budget.estimate_tokens(stats_block)
            + self.budget.estimate_tokens(sample_block)
            + token_budget.SYSTEM_PROMPT_TOKENS
            + token_budget.QUESTION_TOKENS
        )

        logger.debug(
            "context_built",
            strategy=strategy.value,
            sampled_rows=len(sampled_rows),
            estimated_tokens=estimated,
        )
        return AnalyticsContext(
            system_prompt=ANALYTICS_SYSTEM_PROMPT,
            schema_description=schema_block,
            statistics_summary=stats_block,
            data_sample=sample_block,
            estimated_tokens=estimated,
        )

    def build_full_prompt(self, context: AnalyticsContext, question: str) -> str:
        """
        Data context plus the user question.

        The system prompt is not part of this text; it goes to the model
        through its own system/instruction channel.
        """
        return (
            "=== DATA CONTEXT ===\n"
            "\n"
            f"{context.to_prompt_context()}"
            "\n"
            "=== USER QUESTION ===\n"
            "\n"
            f"{question}\n"
        )


def _schema_description(schema: DataSchema) -> str:
    lines = [f"Columns ({schema.column_count}):"]
    for col in schema.columns:
        nullable = ", nullable" if col.nullable else ""
        lines.append(f"- {col.name}: {col.type.display_name}{nullable}")
    return "\n".join(lines) + "\n"


def _statistics_summary(
    statistics: Optional[DataStatistics],
    total_rows: int,
    strategy: SamplingStrategy,
) -> str:
    text = f"Total rows: {total_rows}\nSampling: {strategy.value}\n"
    if statistics is not None:
        text += "\n" + statistics.to_summary_string()
    return text


def _data_sample(schema: DataSchema, rows: list[DataRow], strategy: SamplingStrategy) -> str:
    if not rows:
        return NO_DATA_PLACEHOLDER

    lines: list[str] = []
    if strategy is SamplingStrategy.AGGREGATED:
        lines.append(f"(Data too large for full sample, showing {len(rows)} representative rows)")
        lines.append("")
    elif strategy is SamplingStrategy.STATISTICAL:
        lines.append(f"(Sampled {len(rows)} rows from dataset)")
        lines.append("")

    names = schema.column_names()
    lines.append(" | ".join(names))
    lines.append(" | ".join("-" * min(len(n), MAX_SEPARATOR_CHARS) for n in names))
    for row in rows:
        lines.append(" | ".join(_cell(row.get(n)) for n in names))
    return "\n".join(lines) + "\n"


def _cell(value: Optional[str]) -> str:
    text = value or ""
    if len(text) > MAX_CELL_CHARS:
        return text[: MAX_CELL_CHARS - 3] + "..."
    return text
