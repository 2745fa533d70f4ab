"""Held-out evaluation of a trained tree: confusion matrix and derived statistics."""

from __future__ import annotations

import numpy as np
import polars as pl
from loguru import logger
from scipy.stats import binomtest, chi2
from sklearn.metrics import confusion_matrix

from adoptkit.exceptions import EvaluationError
from adoptkit.logging import STAGE_LEVEL
from adoptkit.models import BinaryLabel, ConfusionResult
from adoptkit.training import TrainedTreeModel

_CLASSES: list[int] = [0, 1]
_CONFIDENCE_LEVEL: float = 0.95


def evaluate(
    model: TrainedTreeModel,
    test_set: pl.DataFrame,
    label_column: str | None = None,
    *,
    positive_class: BinaryLabel = 1,
) -> ConfusionResult:
    """Predict every test row and compare the predictions with the true labels.

    Args:
        model (TrainedTreeModel): The trained tree.
        test_set (pl.DataFrame): Held-out rows with features and labels.
        label_column (str | None): True label column. Defaults to the
            model's label column.
        positive_class (BinaryLabel): Class treated as positive for the
            class-specific statistics.

    Returns:
        ConfusionResult: Counts indexed `[predicted][actual]` and statistics.

    Raises:
        EvaluationError: If a model feature or the label column is missing
            from `test_set`, features are non-finite, or labels are not 0/1.
    """
    label_column = label_column or model.label_column
    if label_column not in test_set.columns:
        raise EvaluationError(f"Label column '{label_column}' not found in test set", missing_columns=[label_column])

    logger.log(STAGE_LEVEL, "Evaluating decision tree", rows=test_set.height)
    predictions = model.predict(test_set)
    actual = _actual_labels(test_set[label_column])

    if actual.size == 0:
        matrix = np.zeros((2, 2), dtype=np.int64)
    else:
        matrix = confusion_matrix(actual, predictions, labels=_CLASSES)
    # sklearn indexes [actual][predicted]; reports read [predicted][actual].
    result = build_confusion_result(matrix.T.tolist(), positive_class=positive_class)
    logger.info("Evaluation complete", rows=result.total, accuracy=result.accuracy, kappa=result.kappa)
    return result


def build_confusion_result(matrix: list[list[int]], *, positive_class: BinaryLabel = 1) -> ConfusionResult:
    """Derive every confusion-matrix statistic from a `[predicted][actual]` table.

    A ratio whose denominator is zero is reported as `None`. Accuracy gets an
    exact (Clopper-Pearson) interval and a one-sided binomial test against the
    no-information rate. McNemar's test uses the continuity-corrected
    chi-squared statistic on the discordant cells.

    Args:
        matrix (list[list[int]]): 2x2 counts indexed `[predicted][actual]`.
        positive_class (BinaryLabel): Class treated as positive.

    Returns:
        ConfusionResult: The matrix with its statistics.

    Examples:
        >>> result = build_confusion_result([[40, 10], [5, 45]])
        >>> result.accuracy, result.sensitivity, result.specificity
        (0.85, 0.8181818181818182, 0.8888888888888888)
    """
    negative_class = 1 - positive_class
    tp = matrix[positive_class][positive_class]
    fp = matrix[positive_class][negative_class]
    tn = matrix[negative_class][negative_class]
    fn = matrix[negative_class][positive_class]
    total = tp + fp + tn + fn

    sensitivity = _ratio(tp, tp + fn)
    specificity = _ratio(tn, tn + fp)
    accuracy = _ratio(tp + tn, total)
    balanced_accuracy = (sensitivity + specificity) / 2 if sensitivity is not None and specificity is not None else None
    no_information_rate = _ratio(max(tp + fn, tn + fp), total)
    accuracy_lower, accuracy_upper = _accuracy_interval(tp + tn, total)

    return ConfusionResult(
        positive_class=positive_class,
        matrix=[list(map(int, row)) for row in matrix],
        total=total,
        accuracy=accuracy,
        accuracy_lower=accuracy_lower,
        accuracy_upper=accuracy_upper,
        accuracy_p_value=_accuracy_p_value(tp + tn, total, no_information_rate),
        sensitivity=sensitivity,
        specificity=specificity,
        pos_pred_value=_ratio(tp, tp + fp),
        neg_pred_value=_ratio(tn, tn + fn),
        prevalence=_ratio(tp + fn, total),
        detection_rate=_ratio(tp, total),
        detection_prevalence=_ratio(tp + fp, total),
        balanced_accuracy=balanced_accuracy,
        no_information_rate=no_information_rate,
        kappa=_cohen_kappa(tp=tp, fp=fp, tn=tn, fn=fn),
        mcnemar_p_value=_mcnemar_p_value(fp, fn),
    )


def _actual_labels(series: pl.Series) -> np.ndarray:
    """Validate and return the true labels of a test set.

    Args:
        series (pl.Series): The label column.

    Returns:
        np.ndarray: Labels as int64.

    Raises:
        EvaluationError: If labels are missing or not 0/1.
    """
    if series.null_count() > 0:
        raise EvaluationError(f"Label column '{series.name}' contains null values")
    actual = series.to_numpy().astype(np.int64)
    unexpected = sorted(set(np.unique(actual).tolist()) - set(_CLASSES))
    if unexpected:
        raise EvaluationError(f"Labels must be 0 or 1, found {unexpected}")
    return actual


def _ratio(numerator: int, denominator: int) -> float | None:
    return numerator / denominator if denominator > 0 else None


def _cohen_kappa(*, tp: int, fp: int, tn: int, fn: int) -> float | None:
    """Cohen's kappa, or `None` when chance agreement is total or there are no rows.

    Args:
        tp (int): True positives.
        fp (int): False positives.
        tn (int): True negatives.
        fn (int): False negatives.

    Returns:
        float | None: Kappa in `[-1, 1]`.
    """
    total = tp + fp + tn + fn
    if total == 0:
        return None
    observed = (tp + tn) / total
    expected = ((tp + fp) * (tp + fn) + (tn + fn) * (tn + fp)) / total**2
    if expected == 1.0:
        return None
    return (observed - expected) / (1 - expected)


def _accuracy_interval(correct: int, total: int) -> tuple[float | None, float | None]:
    """Exact binomial confidence interval of accuracy.

    Args:
        correct (int): Correctly classified rows.
        total (int): Evaluated rows.

    Returns:
        tuple[float | None, float | None]: `(lower, upper)`, both `None` when
            there are no rows.
    """
    if total == 0:
        return None, None
    interval = binomtest(correct, total).proportion_ci(confidence_level=_CONFIDENCE_LEVEL, method="exact")
    return float(interval.low), float(interval.high)


def _accuracy_p_value(correct: int, total: int, no_information_rate: float | None) -> float | None:
    if total == 0 or no_information_rate is None:
        return None
    return float(binomtest(correct, total, p=no_information_rate, alternative="greater").pvalue)


def _mcnemar_p_value(fp: int, fn: int) -> float | None:
    """McNemar's test of symmetric disagreement, with continuity correction.

    Args:
        fp (int): False positives.
        fn (int): False negatives.

    Returns:
        float | None: The p-value, or `None` when there are no disagreements.
    """
    discordant = fp + fn
    if discordant == 0:
        return None
    statistic = (abs(fp - fn) - 1) ** 2 / discordant
    return float(chi2.sf(statistic, df=1))
