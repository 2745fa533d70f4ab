"""Loading the institution table: CSV read, column projection, type casting, and deduplication."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Final

import polars as pl
from loguru import logger

from adoptkit.exceptions import InvalidInputError
from adoptkit.logging import STAGE_LEVEL
from adoptkit.polars_utils import validate_columns

NULL_MARKERS: Final[list[str]] = ["", "NA", "NULL"]

# College Scorecard source column -> modelling column.
SCORECARD_COLUMNS: Final[dict[str, str]] = {
    "INSTNM": "Institution",
    "STABBR": "State",
    "ADM_RATE": "AdmissionRate",
    "SCH_DEG": "Degrees",
    "TUITIONFEE_OUT": "TotalTuition",
    "INEXPFTE": "AdditionalFees",
}

NUMERIC_COLUMNS: Final[tuple[str, ...]] = ("AdmissionRate", "TotalTuition", "AdditionalFees")


def load_institutions(
    path: Path | str,
    *,
    column_map: Mapping[str, str] = SCORECARD_COLUMNS,
) -> pl.DataFrame:
    """Read an institution CSV and return the six modelling columns without duplicate rows.

    Every source column is read as text, then the numeric columns are parsed
    leniently so that markers such as `PrivacySuppressed` become null. Text
    columns keep their surrounding whitespace, so rows that differ only in
    padded names stay distinct; numeric cells are trimmed before parsing, so
    `" 0.5"` and `"0.50"` are the same value. Duplicates are dropped after
    parsing.

    Args:
        path (Path | str): Path to the delimited file with a header row.
        column_map (Mapping[str, str]): Source column name to modelling
            column name. Defaults to the College Scorecard names.

    Returns:
        pl.DataFrame: Columns `Institution`, `State`, `AdmissionRate`,
            `Degrees`, `TotalTuition`, `AdditionalFees`, unique rows in
            first-occurrence order.

    Raises:
        FileNotFoundError: If `path` does not exist.
        ColumnsNotFoundError: If a mapped source column is absent.
        InvalidInputError: If the projected table violates value ranges.
    """
    logger.log(STAGE_LEVEL, "Loading institutions", path=str(path))
    raw = pl.read_csv(path, null_values=NULL_MARKERS, infer_schema=False)
    validate_columns(list(column_map), raw.columns)

    projected = raw.select([pl.col(source).alias(target) for source, target in column_map.items()])
    casts = [
        pl.col(name).str.strip_chars().cast(pl.Float64, strict=False)
        for name in NUMERIC_COLUMNS
        if name in projected.columns
    ]
    typed = projected.with_columns(casts)
    deduplicated = typed.unique(maintain_order=True)
    logger.info("Institutions loaded", rows=raw.height, unique_rows=deduplicated.height)

    validate_institutions(deduplicated)
    return deduplicated


def validate_institutions(df: pl.DataFrame) -> None:
    """Check the value ranges of an institution table.

    Args:
        df (pl.DataFrame): A projected institution table.

    Raises:
        InvalidInputError: If an admission rate lies outside `[0, 1]` or a
            tuition or fee amount is negative.
    """
    if "AdmissionRate" in df.columns:
        out_of_range = df.filter((pl.col("AdmissionRate") < 0) | (pl.col("AdmissionRate") > 1)).height
        if out_of_range:
            raise InvalidInputError(f"{out_of_range} admission rates lie outside [0, 1]", column="AdmissionRate")
    for name in ("TotalTuition", "AdditionalFees"):
        if name in df.columns:
            negative = df.filter(pl.col(name) < 0).height
            if negative:
                raise InvalidInputError(f"{negative} values of '{name}' are negative", column=name)
