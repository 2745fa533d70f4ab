"""Custom exceptions for the adoption modelling pipeline.

Every error raised by adoptkit subclasses `AdoptkitError`, so callers can catch
that single type to handle any pipeline failure:

- InvalidInputError: Malformed, unencodable, or fully-missing input data.
  - ColumnsNotFoundError: Requested columns do not exist in a DataFrame.
  - DuplicateColumnsError: Duplicate column names were provided.
- TrainingError: Degenerate label distribution or non-finite features.
- EvaluationError: Model feature schema does not match the evaluation data.
- ConfigurationError: Invalid split sizes, seeds, or cross-validation parameters.

`InvalidInputError` and `ConfigurationError` also subclass `ValueError` because
both describe a bad argument value.
"""

from __future__ import annotations


class AdoptkitError(Exception):
    """Base exception for all adoptkit errors."""


class InvalidInputError(AdoptkitError, ValueError):
    """Raised when input data is malformed, unencodable, or entirely missing.

    Attributes:
        column (str | None): The offending column, when the error concerns one.
    """

    column: str | None

    def __init__(self, message: str, column: str | None = None) -> None:
        """Initialize InvalidInputError.

        Args:
            message (str): Description of the input problem.
            column (str | None): The offending column, if any.
        """
        super().__init__(message)
        self.column = column


class ColumnsNotFoundError(InvalidInputError):
    """Raised when requested columns do not exist in a DataFrame.

    Attributes:
        missing_columns (list[str]): Column names that were not found.
        available_columns (list[str]): Column names present in the DataFrame.

    Examples:
        >>> err = ColumnsNotFoundError(
        ...     missing_columns=["ADM_RATE"],
        ...     available_columns=["INSTNM", "STABBR"],
        ... )
        >>> err.missing_columns
        ['ADM_RATE']
    """

    missing_columns: list[str]
    available_columns: list[str]

    def __init__(
        self,
        missing_columns: list[str],
        available_columns: list[str],
    ) -> None:
        """Initialize ColumnsNotFoundError.

        Args:
            missing_columns (list[str]): Column names not found in the DataFrame.
            available_columns (list[str]): Column names present in the DataFrame.
        """
        super().__init__(f"Columns not found in DataFrame: {sorted(missing_columns)}")
        self.missing_columns = missing_columns
        self.available_columns = available_columns


class DuplicateColumnsError(InvalidInputError):
    """Raised when duplicate column names are provided.

    Attributes:
        columns (list[str]): The column list that contains duplicates.
        duplicate_columns (list[str]): Each duplicated name, listed once.

    Examples:
        >>> err = DuplicateColumnsError(columns=["State", "State", "Degrees"])
        >>> err.duplicate_columns
        ['State']
    """

    columns: list[str]
    duplicate_columns: list[str]

    def __init__(self, columns: list[str]) -> None:
        """Initialize DuplicateColumnsError.

        Args:
            columns (list[str]): The column list containing duplicates.
        """
        super().__init__("Duplicate column names are not allowed")
        self.columns = columns
        seen: set[str] = set()
        self.duplicate_columns = []
        for col in columns:
            if col in seen and col not in self.duplicate_columns:
                self.duplicate_columns.append(col)
            seen.add(col)


class TrainingError(AdoptkitError):
    """Raised when a decision tree cannot be trained on the supplied data.

    Attributes:
        label_counts (dict[int, int]): Count of each label value in the
            training set. Empty when the failure is unrelated to labels.
    """

    label_counts: dict[int, int]

    def __init__(self, message: str, label_counts: dict[int, int] | None = None) -> None:
        """Initialize TrainingError.

        Args:
            message (str): Description of the training failure.
            label_counts (dict[int, int] | None): Observed label counts.
        """
        super().__init__(message)
        self.label_counts = label_counts or {}

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Representation including message and label counts.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, label_counts={self.label_counts!r})"


class EvaluationError(AdoptkitError):
    """Raised when a trained model cannot be applied to an evaluation set.

    Attributes:
        missing_columns (list[str]): Model features or label columns absent
            from the evaluation data.
    """

    missing_columns: list[str]

    def __init__(self, message: str, missing_columns: list[str] | None = None) -> None:
        """Initialize EvaluationError.

        Args:
            message (str): Description of the evaluation failure.
            missing_columns (list[str] | None): Columns the model expected but
                did not find.
        """
        super().__init__(message)
        self.missing_columns = missing_columns or []


class ConfigurationError(AdoptkitError, ValueError):
    """Raised for invalid split sizes, seeds, or cross-validation parameters."""
