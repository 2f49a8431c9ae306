from __future__ import annotations

from typing import Sequence

import numpy as np

from .models import DataRow, ParsedData, SamplingStrategy

FULL_DATA_THRESHOLD = 500
STATISTICAL_THRESHOLD = 5000
STATISTICAL_SAMPLE_SIZE = 100
AGGREGATED_SAMPLE_SIZE = 20
SAMPLE_SEED = 42


class DataSampler:
    """Picks a bounded, representative subset of the loaded rows.

    The random source is rebuilt from `seed` on every call, so identical
    input always yields an identical sample.
    """

    def __init__(self, seed: int = SAMPLE_SEED) -> None:
        self.seed = seed

    def sample(self, data: ParsedData, max_sample_size: int = STATISTICAL_SAMPLE_SIZE) -> list[DataRow]:
        max_sample_size = max(max_sample_size, 0)
        strategy = self.determine_strategy(data.total_row_count)

        if strategy is SamplingStrategy.FULL_DATA:
            return list(data.rows[:max_sample_size])
        if strategy is SamplingStrategy.STATISTICAL:
            return self._stratified_sample(data.rows, max_sample_size)
        return self._stratified_sample(data.rows, min(AGGREGATED_SAMPLE_SIZE, max_sample_size))

    def determine_strategy(self, row_count: int) -> SamplingStrategy:
        return SamplingStrategy.for_row_count(row_count)

    def _stratified_sample(self, rows: Sequence[DataRow], sample_size: int) -> list[DataRow]:
        """
        Head (20%) + random middle (60%) + tail (20%).

        Head rows carry context-defining values, tail rows reflect recency,
        the middle is drawn without replacement from rows strictly between.
        """
        if len(rows) <= sample_size:
            return list(rows)

        head_count = sample_size // 5
        tail_count = sample_size // 5
        middle_count = sample_size - head_count - tail_count

        middle_start = head_count
        middle_end = len(rows) - tail_count
        if middle_end <= middle_start:
            return list(rows)

        rng = np.random.default_rng(self.seed)
        picks = rng.choice(middle_end - middle_start, size=min(middle_count, middle_end - middle_start), replace=False)
        middle = [rows[middle_start + int(i)] for i in sorted(picks)]

        return list(rows[:head_count]) + middle + list(rows[middle_end:])
