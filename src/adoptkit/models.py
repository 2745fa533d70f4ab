"""Pydantic result models: confusion results, sweep scores, tree rules, and per-service outcomes."""

from __future__ import annotations

import math
import operator
from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator, model_validator

# ---------------------------------------------------------------------------
# Public type aliases
# ---------------------------------------------------------------------------

type PredicateOp = Literal["<=", ">", "in"]

type BinaryLabel = Literal[0, 1]

# ---------------------------------------------------------------------------
# Evaluation models
# ---------------------------------------------------------------------------


class ConfusionResult(BaseModel):
    """A 2x2 confusion matrix with the statistics derived from it.

    `matrix[p][a]` counts test rows predicted as class `p` whose true class is
    `a`. Ratios whose denominator is zero are `None` rather than `0.0` so that a
    test set without one of the classes is visible in the report.

    Attributes:
        positive_class (BinaryLabel): Class treated as positive.
        matrix (list[list[int]]): Counts indexed `[predicted][actual]`.
        total (int): Number of evaluated rows; equals the sum of `matrix`.
        accuracy (float | None): `(TP + TN) / total`.
        accuracy_lower (float | None): Lower bound of the exact 95% accuracy interval.
        accuracy_upper (float | None): Upper bound of the exact 95% accuracy interval.
        accuracy_p_value (float | None): One-sided binomial p-value of accuracy
            exceeding the no-information rate.
        sensitivity (float | None): `TP / (TP + FN)`.
        specificity (float | None): `TN / (TN + FP)`.
        pos_pred_value (float | None): `TP / (TP + FP)`.
        neg_pred_value (float | None): `TN / (TN + FN)`.
        prevalence (float | None): `(TP + FN) / total`.
        detection_rate (float | None): `TP / total`.
        detection_prevalence (float | None): `(TP + FP) / total`.
        balanced_accuracy (float | None): Mean of sensitivity and specificity.
        no_information_rate (float | None): Share of the most frequent true class.
        kappa (float | None): Cohen's kappa agreement statistic.
        mcnemar_p_value (float | None): McNemar's test p-value on the
            disagreement cells.

    Examples:
        >>> result = ConfusionResult(
        ...     positive_class=1,
        ...     matrix=[[50, 5], [2, 3]],
        ...     total=60,
        ...     accuracy=53 / 60,
        ... )
        >>> result.true_positive, result.false_negative
        (3, 5)
    """

    model_config = ConfigDict(frozen=True)

    positive_class: BinaryLabel = Field(description="Class treated as positive.")
    matrix: list[list[int]] = Field(description="Counts indexed [predicted][actual] over classes 0 and 1.")
    total: int = Field(ge=0, description="Number of evaluated rows.")
    accuracy: float | None = Field(default=None, ge=0.0, le=1.0)
    accuracy_lower: float | None = Field(default=None, ge=0.0, le=1.0)
    accuracy_upper: float | None = Field(default=None, ge=0.0, le=1.0)
    accuracy_p_value: float | None = Field(default=None, ge=0.0, le=1.0)
    sensitivity: float | None = Field(default=None, ge=0.0, le=1.0)
    specificity: float | None = Field(default=None, ge=0.0, le=1.0)
    pos_pred_value: float | None = Field(default=None, ge=0.0, le=1.0)
    neg_pred_value: float | None = Field(default=None, ge=0.0, le=1.0)
    prevalence: float | None = Field(default=None, ge=0.0, le=1.0)
    detection_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    detection_prevalence: float | None = Field(default=None, ge=0.0, le=1.0)
    balanced_accuracy: float | None = Field(default=None, ge=0.0, le=1.0)
    no_information_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    kappa: float | None = Field(default=None, ge=-1.0, le=1.0)
    mcnemar_p_value: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("matrix", mode="after")
    @classmethod
    def _validate_matrix_shape(cls, value: list[list[int]]) -> list[list[int]]:
        """Validate that the matrix is 2x2 with non-negative counts.

        Args:
            value (list[list[int]]): The matrix to validate.

        Returns:
            list[list[int]]: The validated matrix, unchanged.

        Raises:
            ValueError: If the matrix is not 2x2 or contains negative counts.
        """
        if len(value) != 2 or any(len(row) != 2 for row in value):
            raise ValueError(f"matrix must be 2x2, got {value}")
        if any(count < 0 for row in value for count in row):
            raise ValueError(f"matrix counts must be non-negative, got {value}")
        return value

    @model_validator(mode="after")
    def _validate_total_matches_matrix(self) -> ConfusionResult:
        """Validate that the four cells sum to `total`.

        Returns:
            ConfusionResult: The validated model instance.

        Raises:
            ValueError: If the cell sum differs from `total`.
        """
        cell_sum = sum(sum(row) for row in self.matrix)
        if cell_sum != self.total:
            raise ValueError(f"matrix cells sum to {cell_sum}, expected total={self.total}")
        return self

    @property
    def negative_class(self) -> BinaryLabel:
        """The class opposite to `positive_class`."""
        return 1 - self.positive_class  # type: ignore[return-value]

    @property
    def true_positive(self) -> int:
        """Rows predicted positive whose true class is positive."""
        return self.matrix[self.positive_class][self.positive_class]

    @property
    def false_positive(self) -> int:
        """Rows predicted positive whose true class is negative."""
        return self.matrix[self.positive_class][self.negative_class]

    @property
    def true_negative(self) -> int:
        """Rows predicted negative whose true class is negative."""
        return self.matrix[self.negative_class][self.negative_class]

    @property
    def false_negative(self) -> int:
        """Rows predicted negative whose true class is positive."""
        return self.matrix[self.negative_class][self.positive_class]

    def metrics(self) -> dict[str, float | None]:
        """Return the derived statistics keyed by field name.

        Returns:
            dict[str, float | None]: Every scalar statistic, in report order.
        """
        return self.model_dump(exclude={"positive_class", "matrix", "total"})


class CandidateScore(BaseModel):
    """Cross-validated accuracy of one cost-complexity candidate.

    Attributes:
        complexity (float): The cost-complexity pruning value.
        mean_accuracy (float): Mean accuracy over all folds and repeats.
        std_accuracy (float): Standard deviation of fold accuracies.
        rank (int): 1 for the best candidate; ties share a rank.
    """

    model_config = ConfigDict(frozen=True)

    complexity: float = Field(ge=0.0, description="Cost-complexity pruning value.")
    mean_accuracy: float = Field(ge=0.0, le=1.0, description="Mean cross-validated accuracy.")
    std_accuracy: float = Field(ge=0.0, description="Standard deviation of fold accuracies.")
    rank: int = Field(ge=1, description="Rank by mean accuracy; ties share a rank.")


# ---------------------------------------------------------------------------
# Tree rule models
# ---------------------------------------------------------------------------


class Predicate(BaseModel):
    """A single split condition on one feature along a root-to-leaf path.

    Numeric and ordinal splits read `AdmissionRate <= 0.6321`; encoded
    categorical splits can be decoded into membership tests such as
    `State in {CA, NY}`.

    Attributes:
        variable (str): Feature column the condition applies to.
        operator (PredicateOp): `"<="` or `">"` for thresholds, `"in"` for
            membership in a set of category labels.
        value (float | frozenset[str]): Threshold, or the set of category labels.

    Examples:
        >>> p = Predicate(variable="AdmissionRate", operator="<=", value=0.5)
        >>> str(p)
        'AdmissionRate <= 0.5'
        >>> p.eval(0.25)
        True
    """

    model_config = ConfigDict(frozen=True)

    variable: str = Field(description="Feature column the condition applies to.")
    operator: PredicateOp = Field(description="Threshold operator or 'in' for category membership.")
    value: float | frozenset[str] = Field(description="Threshold, or set of category labels for 'in'.")

    @model_validator(mode="after")
    def _validate_operator_value_compatibility(self) -> Predicate:
        """Validate that the operator and value type are compatible.

        Returns:
            Predicate: The validated model instance.

        Raises:
            ValueError: If `"in"` is used with a scalar or a threshold operator
                with a set.
        """
        try:
            _validate_operator_threshold_types(self.operator, self.value)
        except TypeError as exc:
            raise ValueError(str(exc)) from exc
        return self

    def __str__(self) -> str:
        """Return the predicate as `"<variable> <operator> <value>"`.

        Returns:
            str: Human-readable predicate, e.g. `"State in {CA, NY}"`.
        """
        if self.operator == "in":
            sorted_values = ", ".join(sorted(self.value))  # type: ignore[arg-type]
            return f"{self.variable} in {{{sorted_values}}}"
        return f"{self.variable} {self.operator} {self.value:.6g}"

    def eval(self, x: float | str) -> bool:
        """Evaluate this predicate against a feature value.

        Args:
            x (float | str): The feature value (a category label for `"in"`).

        Returns:
            bool: `True` if the predicate holds for `x`.
        """
        return _apply_operator(self.operator, x, self.value)


class ClassificationRule(BaseModel):
    """The path from the tree root to one leaf and the class predicted there.

    Attributes:
        predicates (list[Predicate]): Conditions along the path. Empty for a
            tree that never split.
        prediction (BinaryLabel): Predicted class at the leaf.
        samples (int): Training rows that reached the leaf.
        confidence (float): Share of those rows in the predicted class.
    """

    model_config = ConfigDict(frozen=True)

    predicates: list[Predicate] = Field(description="Predicates along the path from root to this leaf.")
    prediction: BinaryLabel = Field(description="Predicted class at this leaf.")
    samples: int = Field(ge=1, description="Training rows that reached this leaf.")
    confidence: float = Field(ge=0.0, le=1.0, description="Share of leaf rows in the predicted class.")

    def __str__(self) -> str:
        """Return the rule as `"IF <p1> AND <p2> THEN Adoption = <class>"`.

        Returns:
            str: Human-readable rule.
        """
        condition = " AND ".join(str(predicate) for predicate in self.predicates) or "TRUE"
        return f"IF {condition} THEN {self.prediction} (n={self.samples}, confidence={self.confidence:.2f})"


# ---------------------------------------------------------------------------
# Pipeline outcome models
# ---------------------------------------------------------------------------


class ServiceResult(BaseModel):
    """Outcome of a successful pipeline run for one service.

    Attributes:
        service (str): Service name.
        positive_count (int): Synthesized positive labels in the full table.
        train_rows (int): Rows in the training set.
        test_rows (int): Rows in the test set.
        complexity (float): Selected cost-complexity value.
        cv_results (list[CandidateScore]): The full sweep, simplest first.
        feature_importance (dict[str, float]): Non-zero importances summing to 1.
        rules (list[ClassificationRule]): One rule per leaf of the final tree.
        confusion (ConfusionResult): Held-out evaluation.
    """

    model_config = ConfigDict(frozen=True)

    service: str
    positive_count: int = Field(ge=0)
    train_rows: int = Field(ge=0)
    test_rows: int = Field(ge=0)
    complexity: float = Field(ge=0.0)
    cv_results: list[CandidateScore]
    feature_importance: dict[str, float]
    rules: list[ClassificationRule]
    confusion: ConfusionResult

    @field_validator("feature_importance", mode="after")
    @classmethod
    def _validate_feature_importance_sums_to_one(cls, value: dict[str, float]) -> dict[str, float]:
        """Validate that importances sum to 1.0, or are empty for an unsplit tree.

        Args:
            value (dict[str, float]): The feature importance mapping.

        Returns:
            dict[str, float]: The validated mapping, unchanged.

        Raises:
            ValueError: If a non-empty mapping does not sum to 1.0.
        """
        total = sum(value.values())
        if value and not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(f"feature_importance scores must sum to 1.0, got {total:.8f}")
        return value

    @model_validator(mode="after")
    def _validate_test_rows_match_confusion(self) -> ServiceResult:
        """Validate that the confusion matrix covers every test row.

        Returns:
            ServiceResult: The validated model instance.

        Raises:
            ValueError: If `confusion.total` differs from `test_rows`.
        """
        if self.confusion.total != self.test_rows:
            raise ValueError(f"confusion total ({self.confusion.total}) must equal test_rows ({self.test_rows})")
        return self


class ServiceFailure(BaseModel):
    """Outcome of a service pipeline that aborted.

    Attributes:
        service (str): Service name.
        error_type (str): Exception class name, e.g. `"TrainingError"`.
        message (str): Human-readable error description.
        details (dict[str, JsonValue]): Structured context from the exception.

    Examples:
        >>> failure = ServiceFailure(
        ...     service="GitHub",
        ...     error_type="TrainingError",
        ...     message="Training set has a single label class",
        ...     details={"label_counts": {"0": 5007}},
        ... )
    """

    model_config = ConfigDict(frozen=True)

    service: str
    error_type: str = Field(min_length=1)
    message: str = Field(min_length=1)
    details: dict[str, JsonValue] = Field(default_factory=dict)


type ServiceOutcome = ServiceResult | ServiceFailure

# ---------------------------------------------------------------------------
# Private helpers -- Predicate operator evaluation
# ---------------------------------------------------------------------------

_SCALAR_OPS: dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    "<=": operator.le,
}


def _apply_operator(op: PredicateOp, x: float | str, threshold: float | frozenset[str]) -> bool:
    """Apply a predicate operator between a feature value and a threshold.

    Args:
        op (PredicateOp): The operator to apply.
        x (float | str): The feature value.
        threshold (float | frozenset[str]): Threshold or label set.

    Returns:
        bool: Result of the comparison.

    Raises:
        ValueError: If `op` is not a recognized operator.
    """
    _validate_operator_threshold_types(op, threshold)
    if op in _SCALAR_OPS:
        return _SCALAR_OPS[op](x, threshold)
    if op == "in" and isinstance(threshold, frozenset):
        return x in threshold
    raise ValueError(f"Unexpected operator: {op!r}")


def _validate_operator_threshold_types(op: PredicateOp, threshold: float | frozenset[str]) -> None:
    """Raise TypeError when operator and threshold types are incompatible.

    Args:
        op (PredicateOp): The operator to validate.
        threshold (float | frozenset[str]): The threshold to validate.

    Raises:
        TypeError: If a threshold operator gets a set or `"in"` gets a scalar.
    """
    if op in _SCALAR_OPS and isinstance(threshold, frozenset):
        raise TypeError(f"Threshold operator '{op}' cannot compare against a set")
    if op == "in" and not isinstance(threshold, frozenset):
        raise TypeError("Membership operator 'in' requires a set of labels")
