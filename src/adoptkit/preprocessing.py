"""Feature preparation: ordinal encoding of categorical columns and mean imputation of numeric columns."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import numpy as np
import polars as pl
from loguru import logger
from sklearn.preprocessing import OrdinalEncoder

from adoptkit.exceptions import InvalidInputError
from adoptkit.logging import STAGE_LEVEL
from adoptkit.polars_utils import validate_columns

MISSING_CATEGORY_LABEL: str = "NA"

# ---------------------------------------------------------------------------
# Public interface -- Categorical encoding
# ---------------------------------------------------------------------------


def derive_category_order(series: pl.Series) -> list[str]:
    """Return the distinct non-null values of `series` in first-occurrence order.

    Values are compared as strings so that a column read as integers (e.g.
    degree codes) is ordered the same way as its text form.

    Args:
        series (pl.Series): The categorical column.

    Returns:
        list[str]: Distinct values, first occurrence first.

    Examples:
        >>> derive_category_order(pl.Series(["NY", None, "CA", "NY"]))
        ['NY', 'CA']
    """
    return series.cast(pl.String).drop_nulls().unique(maintain_order=True).to_list()


def encode_categorical(
    series: pl.Series,
    order: Sequence[str] | None = None,
) -> tuple[pl.Series, dict[int, str]]:
    """Ordinal-encode a categorical column into 1-based integer codes.

    Each value gets its 1-based position in `order`. Missing values form their
    own category, coded `len(order) + 1`, so the codes are always the contiguous
    range `1..K` where K counts the missing bucket only when nulls are present.
    When `order` is omitted it is derived from the column in first-occurrence
    order; the code values matter because the tree splits on them as numbers.

    Args:
        series (pl.Series): The column to encode. Values are compared as strings.
        order (Sequence[str] | None): Explicit category order. Defaults to the
            first-occurrence order of the column.

    Returns:
        tuple[pl.Series, dict[int, str]]: An Int64 series of codes named like
            the input, and a `{code: label}` mapping (the missing bucket is
            labelled `"NA"`).

    Raises:
        InvalidInputError: If `order` has duplicates or the column holds a
            value that `order` does not list.

    Examples:
        >>> codes, mapping = encode_categorical(pl.Series("State", ["NY", None, "CA", "NY"]))
        >>> codes.to_list()
        [1, 3, 2, 1]
        >>> mapping
        {1: 'NY', 2: 'CA', 3: 'NA'}
    """
    text = series.cast(pl.String)
    categories = derive_category_order(text) if order is None else [str(value) for value in order]
    if len(set(categories)) != len(categories):
        raise InvalidInputError(f"Category order for '{series.name}' contains duplicates", column=series.name)

    has_missing = text.null_count() > 0
    mapping = _make_category_mapping(categories, has_missing=has_missing)
    if text.len() == 0:
        return pl.Series(series.name, [], dtype=pl.Int64), mapping

    missing_code = len(categories)
    if not categories:
        # Only reachable when every value is null: everything lands in the missing bucket.
        if text.null_count() != text.len():
            msg = f"Column '{series.name}' has values but the category order is empty"
            raise InvalidInputError(msg, column=series.name)
        return pl.Series(series.name, np.ones(text.len(), dtype=np.int64)), mapping

    # NaN must be the last listed category for the encoder to treat it as missing.
    ordinal_encoder = OrdinalEncoder(
        categories=[np.array([*categories, np.nan], dtype=object)],
        handle_unknown="error",
        encoded_missing_value=missing_code,
        dtype=np.float64,
    )
    raw_column = np.array([np.nan if value is None else value for value in text.to_list()], dtype=object).reshape(-1, 1)
    try:
        encoded_column = ordinal_encoder.fit_transform(raw_column).ravel()
    except ValueError as exc:
        raise InvalidInputError(f"Cannot encode column '{series.name}': {exc}", column=series.name) from exc

    codes = encoded_column.astype(np.int64) + 1
    return pl.Series(series.name, codes, dtype=pl.Int64), mapping


# ---------------------------------------------------------------------------
# Public interface -- Mean imputation
# ---------------------------------------------------------------------------


def impute_mean(df: pl.DataFrame, columns: Sequence[str] | None = None) -> pl.DataFrame:
    """Replace missing numeric cells with the mean of their column's observed values.

    Floating-point `NaN` counts as missing. Each mean is computed once over the
    full column before any cell is filled. Columns without missing cells are
    returned untouched, so applying this twice equals applying it once.
    Integer columns that need filling are widened to Float64.

    Args:
        df (pl.DataFrame): The table to impute.
        columns (Sequence[str] | None): Columns to impute. Defaults to every
            numeric column.

    Returns:
        pl.DataFrame: A new DataFrame with the selected columns completed.

    Raises:
        InvalidInputError: If a selected column is non-numeric or contains no
            observed value while having missing cells.
    """
    if columns is None:
        columns = [name for name, dtype in df.schema.items() if dtype.is_numeric() or dtype == pl.Null]
    else:
        validate_columns(columns, df.columns)

    replacements: list[pl.Series] = []
    for col_name in columns:
        imputed = _impute_series(df[col_name])
        if imputed is not None:
            replacements.append(imputed)

    return df.with_columns(replacements) if replacements else df


# ---------------------------------------------------------------------------
# Public interface -- Feature table assembly
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeatureTable:
    """An encoded, fully imputed institution table ready for labelling.

    Attributes:
        frame (pl.DataFrame): Same rows as the input with categorical columns
            replaced by integer codes and numeric gaps filled.
        category_mappings (dict[str, dict[int, str]]): Per encoded column,
            the `{code: label}` mapping used to decode tree splits.
    """

    frame: pl.DataFrame
    category_mappings: dict[str, dict[int, str]] = field(default_factory=dict)

    @property
    def height(self) -> int:
        """Number of rows in the table."""
        return self.frame.height


def build_feature_table(
    df: pl.DataFrame,
    categorical_columns: Sequence[str],
    *,
    category_orders: Mapping[str, Sequence[str]] | None = None,
) -> FeatureTable:
    """Encode categorical columns, then mean-impute every numeric column.

    Args:
        df (pl.DataFrame): The deduplicated institution table.
        categorical_columns (Sequence[str]): Columns to ordinal-encode.
        category_orders (Mapping[str, Sequence[str]] | None): Explicit orders
            for some or all categorical columns; others use first occurrence.

    Returns:
        FeatureTable: The encoded and imputed table with category mappings.

    Raises:
        ColumnsNotFoundError: If a categorical column is missing.
        InvalidInputError: If encoding or imputation fails.
    """
    validate_columns(categorical_columns, df.columns)
    orders = category_orders or {}

    logger.log(STAGE_LEVEL, "Encoding categorical columns", columns=list(categorical_columns))
    encoded_columns: list[pl.Series] = []
    category_mappings: dict[str, dict[int, str]] = {}
    for col_name in categorical_columns:
        codes, mapping = encode_categorical(df[col_name], orders.get(col_name))
        encoded_columns.append(codes)
        category_mappings[col_name] = mapping
        logger.debug("Column encoded", column=col_name, categories=len(mapping))
    encoded = df.with_columns(encoded_columns) if encoded_columns else df

    logger.log(STAGE_LEVEL, "Imputing numeric columns")
    imputed = impute_mean(encoded)
    logger.info("Feature table built", rows=imputed.height, columns=imputed.width)
    return FeatureTable(frame=imputed, category_mappings=category_mappings)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _make_category_mapping(categories: Sequence[str], *, has_missing: bool) -> dict[int, str]:
    """Build a 1-based `{code: label}` mapping, with the missing bucket last.

    Args:
        categories (Sequence[str]): Ordered category labels.
        has_missing (bool): Whether the column has a missing bucket.

    Returns:
        dict[int, str]: Mapping of integer code to label.
    """
    mapping = {code: label for code, label in enumerate(categories, start=1)}
    if has_missing:
        mapping[len(categories) + 1] = MISSING_CATEGORY_LABEL
    return mapping


def _impute_series(series: pl.Series) -> pl.Series | None:
    """Return `series` with gaps filled by its mean, or `None` if it has no gaps.

    Args:
        series (pl.Series): A numeric column.

    Returns:
        pl.Series | None: The imputed Float64 column, or `None` when no cell
            is missing.

    Raises:
        InvalidInputError: If the column is not numeric or is entirely missing.
    """
    if series.dtype == pl.Null:
        if series.len() == 0:
            return None
        msg = f"Column '{series.name}' is entirely missing; its mean is undefined"
        raise InvalidInputError(msg, column=series.name)
    if not series.dtype.is_numeric():
        raise InvalidInputError(f"Column '{series.name}' is not numeric ({series.dtype})", column=series.name)

    if series.dtype.is_float():
        series = series.fill_nan(None)
    missing_count = series.null_count()
    if missing_count == 0:
        return None
    if missing_count == series.len():
        msg = f"Column '{series.name}' is entirely missing; its mean is undefined"
        raise InvalidInputError(msg, column=series.name)

    column_mean = series.mean()
    logger.debug("Column imputed", column=series.name, missing=missing_count, mean=column_mean)
    return series.cast(pl.Float64).fill_null(column_mean)
