"""Token budget allocation for the analytics context.

Total budget: ~3000 tokens
- System prompt: 200
- Schema: 100
- Statistics: 300
- Data sample: 2000
- Question: 100
- Buffer: 300

Token counts are estimated with a fixed 4 characters per token.
"""

from __future__ import annotations

CHARS_PER_TOKEN = 4.0
ELLIPSIS = "..."

TOTAL_TOKENS = 3000
SYSTEM_PROMPT_TOKENS = 200
SCHEMA_TOKENS = 100
STATISTICS_TOKENS = 300
DATA_SAMPLE_TOKENS = 2000
QUESTION_TOKENS = 100
BUFFER_TOKENS = 300


class TokenBudgetManager:
    """Pure conversions between token budgets and character limits."""

    def estimate_tokens(self, text: str) -> int:
        return int(len(text) / CHARS_PER_TOKEN)

    def char_limit(self, max_tokens: int) -> int:
        return int(max_tokens * CHARS_PER_TOKEN)

    def schema_char_limit(self) -> int:
        return self.char_limit(SCHEMA_TOKENS)

    def statistics_char_limit(self) -> int:
        return self.char_limit(STATISTICS_TOKENS)

    def data_sample_char_limit(self) -> int:
        return self.char_limit(DATA_SAMPLE_TOKENS)

    def truncate_to_tokens(self, text: str, max_tokens: int) -> str:
        """
        Cut text to the character limit of max_tokens.

        Over-long text keeps its first (limit - 3) characters followed by "...".
        The result never exceeds the limit, so applying this twice with the
        same budget returns the same string.
        """
        max_chars = self.char_limit(max_tokens)
        if len(text) <= max_chars:
            return text
        if max_chars < len(ELLIPSIS):
            return ELLIPSIS[: max(max_chars, 0)]
        return text[: max_chars - len(ELLIPSIS)] + ELLIPSIS

    def calculate_remaining_tokens(
        self,
        schema_tokens: int,
        statistics_tokens: int,
        data_sample_tokens: int,
        question_tokens: int,
    ) -> int:
        used = SYSTEM_PROMPT_TOKENS + schema_tokens + statistics_tokens + data_sample_tokens + question_tokens
        return TOTAL_TOKENS - used - BUFFER_TOKENS

    def fits_within_budget(self, total_tokens: int) -> bool:
        return total_tokens <= TOTAL_TOKENS

    def calculate_max_rows(self, avg_row_characters: int, available_tokens: int) -> int:
        """How many rows of the given average width fit in available_tokens."""
        if avg_row_characters <= 0:
            return 0
        return self.char_limit(available_tokens) // avg_row_characters
