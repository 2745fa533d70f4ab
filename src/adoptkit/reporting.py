"""Plain-text rendering of pipeline outcomes."""

from __future__ import annotations

from collections.abc import Sequence

import polars as pl

from adoptkit.models import ConfusionResult, ServiceFailure, ServiceOutcome, ServiceResult
from adoptkit.polars_utils import to_markdown_table

_METRIC_LABELS: dict[str, str] = {
    "accuracy": "Accuracy",
    "accuracy_lower": "95% CI Lower",
    "accuracy_upper": "95% CI Upper",
    "no_information_rate": "No Information Rate",
    "accuracy_p_value": "P-Value [Acc > NIR]",
    "kappa": "Kappa",
    "mcnemar_p_value": "Mcnemar's Test P-Value",
    "sensitivity": "Sensitivity",
    "specificity": "Specificity",
    "pos_pred_value": "Pos Pred Value",
    "neg_pred_value": "Neg Pred Value",
    "prevalence": "Prevalence",
    "detection_rate": "Detection Rate",
    "detection_prevalence": "Detection Prevalence",
    "balanced_accuracy": "Balanced Accuracy",
}


def render_confusion_result(result: ConfusionResult) -> str:
    """Render a confusion matrix table followed by its statistics.

    Args:
        result (ConfusionResult): The evaluation to render.

    Returns:
        str: Markdown table of predicted (rows) against reference (columns),
            then one `label: value` line per statistic; undefined statistics
            read `undefined`.
    """
    table = pl.DataFrame({
        "Prediction": ["0", "1"],
        "Reference 0": [result.matrix[0][0], result.matrix[1][0]],
        "Reference 1": [result.matrix[0][1], result.matrix[1][1]],
    })
    metrics = result.metrics()
    lines = [to_markdown_table(table), "", f"Positive class: {result.positive_class}"]
    lines += [
        f"{label}: {_format_metric(metrics[key], p_value=key.endswith('p_value'))}"
        for key, label in _METRIC_LABELS.items()
    ]
    return "\n".join(lines)


def render_service_result(result: ServiceResult) -> str:
    """Render one service's sweep, selected tree, rules, and evaluation.

    Args:
        result (ServiceResult): The outcome to render.

    Returns:
        str: Multi-section text report.
    """
    sweep = pl.DataFrame({
        "complexity": [score.complexity for score in result.cv_results],
        "accuracy": [round(score.mean_accuracy, 4) for score in result.cv_results],
        "accuracy_sd": [round(score.std_accuracy, 4) for score in result.cv_results],
        "rank": [score.rank for score in result.cv_results],
    })
    importance = ", ".join(f"{name}={score:.4f}" for name, score in result.feature_importance.items()) or "none"
    sections = [
        f"== {result.service} ==",
        f"Positive labels: {result.positive_count} | train rows: {result.train_rows} | test rows: {result.test_rows}",
        "",
        "Complexity sweep (repeated cross-validation):",
        to_markdown_table(sweep),
        f"Selected complexity: {result.complexity:.6g}",
        f"Feature importance: {importance}",
        "",
        "Tree rules:",
        *(f"  {rule}" for rule in result.rules),
        "",
        "Confusion matrix (held-out test set):",
        render_confusion_result(result.confusion),
    ]
    return "\n".join(sections)


def render_service_failure(failure: ServiceFailure) -> str:
    """Render a failed service pipeline.

    Args:
        failure (ServiceFailure): The failure to render.

    Returns:
        str: Header, error type and message, and details when present.
    """
    lines = [f"== {failure.service} ==", f"FAILED ({failure.error_type}): {failure.message}"]
    if failure.details:
        lines.append(f"Details: {failure.details}")
    return "\n".join(lines)


def render_run(outcomes: Sequence[ServiceOutcome]) -> str:
    """Render every service outcome, separated by blank lines.

    Args:
        outcomes (Sequence[ServiceOutcome]): Outcomes in run order.

    Returns:
        str: The full report.
    """
    blocks = [
        render_service_result(outcome) if isinstance(outcome, ServiceResult) else render_service_failure(outcome)
        for outcome in outcomes
    ]
    return "\n\n".join(blocks)


def _format_metric(value: float | None, *, p_value: bool = False) -> str:
    if value is None:
        return "undefined"
    # p-values can be far below 1e-4
    return f"{value:.4g}" if p_value else f"{value:.4f}"
