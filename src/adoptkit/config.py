"""Pipeline configuration: service definitions, cross-validation settings, and environment-driven settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings

from adoptkit.exceptions import ConfigurationError

type SplitStrategy = Literal["resample", "partition"]

type SplitCriterion = Literal["entropy", "gini", "log_loss"]

DEFAULT_FEATURES: tuple[str, ...] = ("State", "AdmissionRate", "Degrees", "TotalTuition", "AdditionalFees")
DEFAULT_CATEGORICAL_COLUMNS: tuple[str, ...] = ("State", "Degrees")
DEFAULT_LABEL_COLUMN: str = "Adoption"
MAX_SEED: int = 2**32 - 1  # Largest random_state scikit-learn accepts


class CrossValidationConfig(BaseModel):
    """Repeated k-fold cross-validation and tree-growth settings for the complexity sweep.

    The growth controls mirror the classic recursive-partitioning defaults: a
    node needs 20 rows to be split, a leaf keeps at least 7 rows, and depth is
    capped at 30.

    Attributes:
        folds (int): Number of folds per repeat.
        repeats (int): Number of times the k-fold partition is redrawn.
        tune_length (int): Number of cost-complexity candidates to sweep.
        criterion (SplitCriterion): Node impurity measure.
        min_samples_split (int): Minimum rows required to split a node.
        min_samples_leaf (int): Minimum rows kept in a leaf.
        max_depth (int): Maximum tree depth.
    """

    model_config = ConfigDict(frozen=True)

    folds: int = Field(default=10, ge=2, description="Number of folds per repeat.")
    repeats: int = Field(default=3, ge=1, description="Number of repeats of the k-fold partition.")
    tune_length: int = Field(default=10, ge=1, description="Number of complexity candidates to evaluate.")
    criterion: SplitCriterion = Field(default="entropy", description="Node impurity measure.")
    min_samples_split: int = Field(default=20, ge=2, description="Minimum rows required to split a node.")
    min_samples_leaf: int = Field(default=7, ge=1, description="Minimum rows kept in a leaf.")
    max_depth: int = Field(default=30, ge=1, description="Maximum tree depth.")


class ServiceConfig(BaseModel):
    """One modelled service: its synthetic label prevalence and the seeds of its pipeline run.

    Attributes:
        name (str): Display name, e.g. `"GitHub"`.
        positive_count (int): Exact number of adopting institutions.
        label_seed (int): Seed for the label permutation.
        split_seed (int): Seed for the train/test draw.
        train_seed (int): Seed for fold assignment and tree fitting.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Display name of the service.")
    positive_count: int = Field(ge=0, description="Exact number of positive labels to synthesize.")
    label_seed: int = Field(ge=0, description="Seed for the label permutation.")
    split_seed: int = Field(default=935, ge=0, description="Seed for the train/test draw.")
    train_seed: int = Field(
        default=3333, ge=0, le=MAX_SEED, description="Seed for cross-validation and tree fitting."
    )


def _default_services() -> list[ServiceConfig]:
    return [
        ServiceConfig(name="GitHub", positive_count=555, label_seed=1),
        ServiceConfig(name="Google Drive", positive_count=1042, label_seed=2),
        ServiceConfig(name="Outlook", positive_count=1594, label_seed=3),
    ]


class AdoptkitSettings(
    BaseSettings,
    env_prefix="ADOPTKIT_",
    env_nested_delimiter="__",
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
):
    """Settings for a full adoption-modelling run.

    Values are read from keyword arguments, then `ADOPTKIT_*` environment
    variables, then a `.env` file. Nested fields use `__`, e.g.
    `ADOPTKIT_CV__FOLDS=5`.

    Attributes:
        features (list[str]): Ordered feature columns fed to the tree.
        categorical_columns (list[str]): Columns ordinal-encoded before imputation.
        label_column (str): Name of the synthesized label column.
        train_size (int): Rows drawn for each training set.
        test_size (int): Rows drawn for each test set.
        split_strategy (SplitStrategy): `"resample"` draws both sets with
            replacement; `"partition"` draws disjoint sets.
        expected_row_count (int | None): When set, the feature table must have
            exactly this many rows.
        positive_class (Literal[0, 1]): Class treated as positive in evaluation.
        cv (CrossValidationConfig): Cross-validation settings.
        services (list[ServiceConfig]): Services to model, in run order.
    """

    features: list[str] = Field(default_factory=lambda: list(DEFAULT_FEATURES), min_length=1)
    categorical_columns: list[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORICAL_COLUMNS))
    label_column: str = Field(default=DEFAULT_LABEL_COLUMN, min_length=1)
    train_size: int = Field(default=5007, ge=0)
    test_size: int = Field(default=1669, ge=0)
    split_strategy: SplitStrategy = "resample"
    expected_row_count: int | None = Field(default=None, ge=0)
    positive_class: Literal[0, 1] = 1
    cv: CrossValidationConfig = Field(default_factory=CrossValidationConfig)
    services: list[ServiceConfig] = Field(default_factory=_default_services, min_length=1)

    @model_validator(mode="after")
    def _validate_columns(self) -> AdoptkitSettings:
        """Validate that column roles are consistent.

        Returns:
            AdoptkitSettings: The validated settings.

        Raises:
            ValueError: If features repeat, the label is also a feature, or
                service names repeat.
        """
        if len(set(self.features)) != len(self.features):
            raise ValueError(f"features must be unique, got {self.features}")
        if self.label_column in self.features:
            raise ValueError(f"label_column '{self.label_column}' cannot also be a feature")
        names = [service.name for service in self.services]
        if len(set(names)) != len(names):
            raise ValueError(f"service names must be unique, got {names}")
        return self


def load_settings(env_file: Path | str | None = ".env", **overrides: Any) -> AdoptkitSettings:
    """Build settings from overrides, environment, and an optional `.env` file.

    Args:
        env_file (Path | str | None): Dotenv file to read; `None` skips it.
        **overrides (Any): Field values taking precedence over the environment.

    Returns:
        AdoptkitSettings: The validated settings.

    Raises:
        ConfigurationError: If any value fails validation.
    """
    try:
        return AdoptkitSettings(_env_file=env_file, **overrides)  # type: ignore[call-arg]
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid adoptkit settings: {exc}") from exc
