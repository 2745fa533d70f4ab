"""Reproducible sampling: synthetic adoption labels and train/test splits.

Every operation takes an explicit seed and builds its own
`numpy.random.Generator` on a PCG64 bit generator, so results never depend on
global random state or on the order in which services run. PCG64 output is
identical across platforms for a given seed.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np
import polars as pl
from loguru import logger

from adoptkit.config import SplitStrategy
from adoptkit.exceptions import ConfigurationError, InvalidInputError

# ---------------------------------------------------------------------------
# Public interface -- Label synthesis
# ---------------------------------------------------------------------------


def synthesize_labels(total_count: int, positive_count: int, seed: int) -> np.ndarray:
    """Build a random 0/1 label vector with an exact number of positives.

    The vector starts as `total_count - positive_count` zeros followed by
    `positive_count` ones and is shuffled in place with
    `Generator.shuffle`, a Fisher-Yates shuffle driven by `PCG64(seed)`.

    Args:
        total_count (int): Length of the label vector.
        positive_count (int): Exact number of ones.
        seed (int): Non-negative seed for the permutation.

    Returns:
        np.ndarray: An int8 array of length `total_count`.

    Raises:
        ConfigurationError: If a count or the seed is negative, or
            `positive_count` exceeds `total_count`.

    Examples:
        >>> labels = synthesize_labels(10, 3, seed=1)
        >>> int(labels.sum()), len(labels)
        (3, 10)
    """
    if total_count < 0:
        raise ConfigurationError(f"total_count must be non-negative, got {total_count}")
    if not 0 <= positive_count <= total_count:
        raise ConfigurationError(f"positive_count must be between 0 and {total_count}, got {positive_count}")
    _validate_seed(seed)

    labels = np.zeros(total_count, dtype=np.int8)
    labels[total_count - positive_count :] = 1
    _make_generator(seed).shuffle(labels)
    return labels


def attach_labels(features: pl.DataFrame, labels: np.ndarray, label_column: str) -> pl.DataFrame:
    """Join a label vector positionally onto a feature table.

    Args:
        features (pl.DataFrame): The encoded feature table.
        labels (np.ndarray): One label per row.
        label_column (str): Name of the new label column.

    Returns:
        pl.DataFrame: A copy of `features` with an Int8 label column appended.

    Raises:
        InvalidInputError: If the lengths differ or the column already exists.
    """
    if len(labels) != features.height:
        msg = f"Label vector has {len(labels)} entries but the feature table has {features.height} rows"
        raise InvalidInputError(msg)
    if label_column in features.columns:
        raise InvalidInputError(f"Column '{label_column}' already exists in the feature table", column=label_column)
    return features.with_columns(pl.Series(label_column, labels, dtype=pl.Int8))


# ---------------------------------------------------------------------------
# Public interface -- Train/test split
# ---------------------------------------------------------------------------


class DatasetSplit(NamedTuple):
    """A train/test pair drawn from one labeled dataset.

    Attributes:
        train (pl.DataFrame): Training rows.
        test (pl.DataFrame): Test rows.
        train_indices (np.ndarray): Source row index of each training row.
        test_indices (np.ndarray): Source row index of each test row.
    """

    train: pl.DataFrame
    test: pl.DataFrame
    train_indices: np.ndarray
    test_indices: np.ndarray


def split_dataset(
    dataset: pl.DataFrame,
    train_size: int,
    test_size: int,
    seed: int,
    *,
    strategy: SplitStrategy = "resample",
) -> DatasetSplit:
    """Draw a reproducible train set and test set from a labeled dataset.

    With `strategy="resample"` both sets are uniform draws *with replacement*
    from the row indices `0..N-1`, training indices first and test indices
    second from the same generator. The sets may overlap and may repeat rows;
    this reproduces the published analysis.

    With `strategy="partition"` one permutation of the row indices is drawn
    and the first `train_size` and the next `test_size` positions are used, so
    the sets are disjoint and duplicate-free.

    Args:
        dataset (pl.DataFrame): The labeled dataset.
        train_size (int): Absolute number of training rows.
        test_size (int): Absolute number of test rows.
        seed (int): Non-negative seed for the draws.
        strategy (SplitStrategy): `"resample"` or `"partition"`.

    Returns:
        DatasetSplit: The two sets and the source indices they were drawn from.

    Raises:
        ConfigurationError: If a size or the seed is negative, rows are
            requested from an empty dataset, or a partition asks for more rows
            than exist.
    """
    if train_size < 0 or test_size < 0:
        raise ConfigurationError(f"Split sizes must be non-negative, got train={train_size}, test={test_size}")
    _validate_seed(seed)
    row_count = dataset.height
    if row_count == 0 and (train_size > 0 or test_size > 0):
        raise ConfigurationError("Cannot draw rows from an empty dataset")

    generator = _make_generator(seed)
    if strategy == "resample":
        train_indices = generator.integers(0, row_count, size=train_size) if train_size else _empty_indices()
        test_indices = generator.integers(0, row_count, size=test_size) if test_size else _empty_indices()
    elif strategy == "partition":
        if train_size + test_size > row_count:
            raise ConfigurationError(
                f"A partition needs train_size + test_size <= {row_count}, got {train_size} + {test_size}"
            )
        permutation = generator.permutation(row_count)
        train_indices = permutation[:train_size]
        test_indices = permutation[train_size : train_size + test_size]
    else:
        raise ConfigurationError(f"Unknown split strategy: {strategy!r}")

    logger.debug(
        "Dataset split",
        strategy=strategy,
        train_rows=len(train_indices),
        test_rows=len(test_indices),
        overlap=len(np.intersect1d(train_indices, test_indices)),
    )
    return DatasetSplit(
        train=dataset[train_indices],
        test=dataset[test_indices],
        train_indices=train_indices,
        test_indices=test_indices,
    )


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _make_generator(seed: int) -> np.random.Generator:
    return np.random.Generator(np.random.PCG64(seed))


def _empty_indices() -> np.ndarray:
    return np.empty(0, dtype=np.int64)


def _validate_seed(seed: int) -> None:
    if seed < 0:
        raise ConfigurationError(f"seed must be non-negative, got {seed}")
