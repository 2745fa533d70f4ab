"""Tests for sampling: label synthesis, label attachment, and train/test splits."""

from __future__ import annotations

import numpy as np
import polars as pl
import pytest
from pytest_check import check

from adoptkit.exceptions import ConfigurationError, InvalidInputError
from adoptkit.sampling import attach_labels, split_dataset, synthesize_labels


def _make_dataset(row_count: int) -> pl.DataFrame:
    return pl.DataFrame({"row_id": list(range(row_count)), "Adoption": [i % 2 for i in range(row_count)]})


class TestSynthesizeLabels:
    """Tests for `synthesize_labels`."""

    @pytest.mark.parametrize(("positive_count", "seed"), [(555, 1), (1042, 2), (1594, 3)])
    def test_exact_positive_count(self, positive_count: int, seed: int) -> None:
        """The vector has exactly the requested number of ones."""
        # Act
        labels = synthesize_labels(6676, positive_count, seed)

        # Assert
        with check:
            assert labels.shape == (6676,)
        with check:
            assert int(labels.sum()) == positive_count
        with check:
            assert set(np.unique(labels).tolist()) <= {0, 1}

    def test_same_seed_same_labels(self) -> None:
        """Equal inputs give identical vectors."""
        # Act
        first = synthesize_labels(1000, 120, 7)
        second = synthesize_labels(1000, 120, 7)

        # Assert
        assert np.array_equal(first, second)

    def test_different_seeds_differ(self) -> None:
        """Different seeds give different permutations."""
        # Act
        first = synthesize_labels(1000, 120, 1)
        second = synthesize_labels(1000, 120, 2)

        # Assert
        assert not np.array_equal(first, second)

    def test_labels_are_shuffled(self) -> None:
        """The ones are not left in a contiguous block at the end."""
        # Act
        labels = synthesize_labels(1000, 100, 1)

        # Assert
        assert labels[:900].sum() > 0

    @pytest.mark.parametrize(("positive_count", "expected_sum"), [(0, 0), (25, 25)])
    def test_degenerate_counts(self, positive_count: int, expected_sum: int) -> None:
        """No positives or all positives are allowed."""
        # Act
        labels = synthesize_labels(25, positive_count, 1)

        # Assert
        assert int(labels.sum()) == expected_sum

    def test_zero_length(self) -> None:
        """A zero-length vector is allowed."""
        # Act
        labels = synthesize_labels(0, 0, 1)

        # Assert
        assert labels.size == 0

    @pytest.mark.parametrize(
        ("total_count", "positive_count", "seed"),
        [(10, 11, 1), (10, -1, 1), (-1, 0, 1), (10, 3, -5)],
    )
    def test_invalid_arguments_raise(self, total_count: int, positive_count: int, seed: int) -> None:
        """Counts out of range and negative seeds are configuration errors."""
        # Act / Assert
        with pytest.raises(ConfigurationError):
            synthesize_labels(total_count, positive_count, seed)


class TestAttachLabels:
    """Tests for `attach_labels`."""

    def test_appends_int8_column(self) -> None:
        """Labels are joined positionally as an Int8 column."""
        # Arrange
        features = pl.DataFrame({"State": [1, 2, 3]})
        labels = np.array([0, 1, 0], dtype=np.int8)

        # Act
        dataset = attach_labels(features, labels, "Adoption")

        # Assert
        with check:
            assert dataset.columns == ["State", "Adoption"]
        with check:
            assert dataset["Adoption"].dtype == pl.Int8
        with check:
            assert dataset["Adoption"].to_list() == [0, 1, 0]
        with check:
            assert features.columns == ["State"], "The feature table must not be modified"

    def test_length_mismatch_raises(self) -> None:
        """A label vector of the wrong length is rejected."""
        # Arrange
        features = pl.DataFrame({"State": [1, 2, 3]})

        # Act / Assert
        with pytest.raises(InvalidInputError, match="2 entries"):
            attach_labels(features, np.array([0, 1]), "Adoption")

    def test_existing_column_raises(self) -> None:
        """The label column may not overwrite a feature."""
        # Arrange
        features = pl.DataFrame({"Adoption": [1, 2]})

        # Act / Assert
        with pytest.raises(InvalidInputError):
            attach_labels(features, np.array([0, 1]), "Adoption")


class TestSplitDatasetResample:
    """Tests for `split_dataset` with the default with-replacement strategy."""

    def test_sizes_and_columns(self) -> None:
        """Each set has exactly the requested number of rows and all columns."""
        # Arrange
        dataset = _make_dataset(6676)

        # Act
        split = split_dataset(dataset, 5007, 1669, seed=935)

        # Assert
        with check:
            assert split.train.height == 5007
        with check:
            assert split.test.height == 1669
        with check:
            assert split.train.columns == dataset.columns
        with check:
            assert split.test.columns == dataset.columns

    def test_indices_in_range_and_rows_match(self) -> None:
        """Drawn rows are the source rows at the reported indices."""
        # Arrange
        dataset = _make_dataset(200)

        # Act
        split = split_dataset(dataset, 150, 50, seed=935)

        # Assert
        with check:
            assert split.train_indices.min() >= 0
        with check:
            assert split.train_indices.max() < 200
        with check:
            assert split.train["row_id"].to_list() == split.train_indices.tolist()
        with check:
            assert split.test["row_id"].to_list() == split.test_indices.tolist()

    def test_draws_with_replacement(self) -> None:
        """A draw as large as the dataset repeats some rows."""
        # Arrange
        dataset = _make_dataset(500)

        # Act
        split = split_dataset(dataset, 500, 0, seed=935)

        # Assert
        assert len(np.unique(split.train_indices)) < 500

    def test_same_seed_same_split(self) -> None:
        """Equal inputs give identical splits."""
        # Arrange
        dataset = _make_dataset(300)

        # Act
        first = split_dataset(dataset, 200, 100, seed=935)
        second = split_dataset(dataset, 200, 100, seed=935)

        # Assert
        with check:
            assert np.array_equal(first.train_indices, second.train_indices)
        with check:
            assert np.array_equal(first.test_indices, second.test_indices)

    def test_zero_train_size(self) -> None:
        """A zero-row training set is allowed."""
        # Arrange
        dataset = _make_dataset(20)

        # Act
        split = split_dataset(dataset, 0, 5, seed=1)

        # Assert
        with check:
            assert split.train.height == 0
        with check:
            assert split.test.height == 5

    def test_empty_dataset_with_zero_sizes(self) -> None:
        """Nothing requested from nothing is fine."""
        # Arrange
        dataset = _make_dataset(0)

        # Act
        split = split_dataset(dataset, 0, 0, seed=1)

        # Assert
        assert split.train.height == split.test.height == 0

    def test_empty_dataset_raises(self) -> None:
        """Rows cannot be drawn from an empty dataset."""
        # Arrange
        dataset = _make_dataset(0)

        # Act / Assert
        with pytest.raises(ConfigurationError, match="empty"):
            split_dataset(dataset, 1, 0, seed=1)

    @pytest.mark.parametrize(("train_size", "test_size", "seed"), [(-1, 5, 1), (5, -1, 1), (5, 5, -1)])
    def test_negative_arguments_raise(self, train_size: int, test_size: int, seed: int) -> None:
        """Negative sizes and seeds are configuration errors."""
        # Arrange
        dataset = _make_dataset(20)

        # Act / Assert
        with pytest.raises(ConfigurationError):
            split_dataset(dataset, train_size, test_size, seed)


class TestSplitDatasetPartition:
    """Tests for `split_dataset` with the disjoint partition strategy."""

    def test_sets_are_disjoint_and_duplicate_free(self) -> None:
        """Partitioned sets never share or repeat a row."""
        # Arrange
        dataset = _make_dataset(300)

        # Act
        split = split_dataset(dataset, 200, 100, seed=935, strategy="partition")

        # Assert
        train_ids = split.train_indices.tolist()
        test_ids = split.test_indices.tolist()
        with check:
            assert len(set(train_ids)) == 200
        with check:
            assert len(set(test_ids)) == 100
        with check:
            assert set(train_ids).isdisjoint(test_ids)

    def test_oversized_partition_raises(self) -> None:
        """A partition cannot ask for more rows than exist."""
        # Arrange
        dataset = _make_dataset(10)

        # Act / Assert
        with pytest.raises(ConfigurationError, match="partition"):
            split_dataset(dataset, 8, 5, seed=1, strategy="partition")

    def test_unknown_strategy_raises(self) -> None:
        """Only the two documented strategies are accepted."""
        # Arrange
        dataset = _make_dataset(10)

        # Act / Assert
        with pytest.raises(ConfigurationError, match="Unknown split strategy"):
            split_dataset(dataset, 5, 5, seed=1, strategy="bootstrap")  # type: ignore[arg-type]
