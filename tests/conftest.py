"""Shared fixtures: synthetic institution tables and small cross-validation settings."""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import polars as pl
import pytest

from adoptkit.config import CrossValidationConfig

_STATES: list[str] = ["CA", "NY", "TX", "MA", "OH", "WA", "FL", "IL"]
_DEGREES: list[str] = ["1", "2", "3", "4"]


def _with_gaps(values: list, generator: np.random.Generator, share: float) -> list:
    """Replace roughly `share` of `values` with None."""
    mask = generator.random(len(values)) < share
    return [None if is_missing else value for value, is_missing in zip(values, mask, strict=True)]


@pytest.fixture
def make_institutions() -> Callable[..., pl.DataFrame]:
    """Factory for deduplicated institution tables with realistic gaps.

    Returns:
        Callable[..., pl.DataFrame]: `make(row_count, seed=0)` returning the six
            modelling columns with about 5-10% missing cells per column.
    """

    def make(row_count: int, seed: int = 0) -> pl.DataFrame:
        generator = np.random.default_rng(seed)
        return pl.DataFrame(
            {
                "Institution": [f"Institution {i}" for i in range(row_count)],
                "State": _with_gaps(generator.choice(_STATES, row_count).tolist(), generator, 0.05),
                "AdmissionRate": _with_gaps(generator.uniform(0.05, 1.0, row_count).tolist(), generator, 0.1),
                "Degrees": _with_gaps(generator.choice(_DEGREES, row_count).tolist(), generator, 0.05),
                "TotalTuition": _with_gaps(generator.uniform(5000, 50000, row_count).tolist(), generator, 0.1),
                "AdditionalFees": _with_gaps(generator.uniform(3000, 40000, row_count).tolist(), generator, 0.1),
            },
            schema={
                "Institution": pl.String,
                "State": pl.String,
                "AdmissionRate": pl.Float64,
                "Degrees": pl.String,
                "TotalTuition": pl.Float64,
                "AdditionalFees": pl.Float64,
            },
        )

    return make


@pytest.fixture
def fast_cv() -> CrossValidationConfig:
    """A cheap cross-validation setup for unit tests.

    Returns:
        CrossValidationConfig: 3 folds, 2 repeats, 4 candidates, small leaves.
    """
    return CrossValidationConfig(folds=3, repeats=2, tune_length=4, min_samples_split=4, min_samples_leaf=2)
