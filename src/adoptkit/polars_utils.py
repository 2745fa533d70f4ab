"""Utility functions for working with Polars DataFrames."""

from __future__ import annotations

from collections.abc import Sequence

import polars as pl

from adoptkit.exceptions import ColumnsNotFoundError, DuplicateColumnsError


def to_markdown_table(df: pl.DataFrame, num_rows: int | None = None) -> str:
    """Render a Polars DataFrame as a markdown table string.

    This temporarily modifies global ``pl.Config`` state and is therefore not
    thread-safe.

    Args:
        df (pl.DataFrame): The DataFrame to render.
        num_rows (int | None): Maximum number of rows to display. Defaults to
            all rows.

    Returns:
        str: Markdown-formatted table string.

    Examples:
        >>> df = pl.DataFrame({"a": [1, 2], "b": [3, 4]})
        >>> print(to_markdown_table(df))
        | a | b |
        |---|---|
        | 1 | 3 |
        | 2 | 4 |
    """
    if num_rows is not None and num_rows < 1:
        raise ValueError(f"num_rows must be at least 1, got {num_rows}")

    with pl.Config(
        tbl_formatting="MARKDOWN",
        tbl_hide_column_data_types=True,
        tbl_hide_column_names=False,
        tbl_hide_dataframe_shape=True,
        tbl_rows=num_rows if num_rows is not None else max(df.height, 1),
        tbl_cols=df.width,
        fmt_str_lengths=120,
    ):
        return str(df)


def validate_columns(columns: Sequence[str], df_columns: Sequence[str]) -> None:
    """Validate that columns exist in a DataFrame and contain no duplicates.

    Args:
        columns (Sequence[str]): Column names to validate.
        df_columns (Sequence[str]): Column names present in the DataFrame.

    Raises:
        DuplicateColumnsError: If `columns` contains duplicates.
        ColumnsNotFoundError: If any column does not exist in the DataFrame.
    """
    if len(columns) != len(set(columns)):
        raise DuplicateColumnsError(columns=list(columns))
    missing = missing_columns(columns, df_columns)
    if missing:
        raise ColumnsNotFoundError(missing_columns=missing, available_columns=list(df_columns))


def missing_columns(columns: Sequence[str], df_columns: Sequence[str]) -> list[str]:
    """Return the entries of `columns` absent from `df_columns`, in order.

    Args:
        columns (Sequence[str]): Column names to look up.
        df_columns (Sequence[str]): Column names present in the DataFrame.

    Returns:
        list[str]: Missing column names; empty when all are present.
    """
    present = set(df_columns)
    return [col for col in columns if col not in present]


def non_numeric_columns(df: pl.DataFrame, columns: Sequence[str]) -> list[str]:
    """Return the entries of `columns` whose dtype cannot be read as numbers, in order.

    All-null columns (dtype `Null`) count as numeric; they surface later as
    missing values.

    Args:
        df (pl.DataFrame): DataFrame containing `columns`.
        columns (Sequence[str]): Column names to check.

    Returns:
        list[str]: Non-numeric column names; empty when all are numeric.

    Examples:
        >>> df = pl.DataFrame({"a": [1, 2], "b": ["x", "y"]})
        >>> non_numeric_columns(df, ["a", "b"])
        ['b']
    """
    schema = df.schema
    return [col for col in columns if not (schema[col].is_numeric() or schema[col] == pl.Null)]
