"""Pipeline orchestration: one parameterized service pipeline, run once per configured service."""

from __future__ import annotations

import polars as pl
from loguru import logger
from pydantic import JsonValue

from adoptkit.config import AdoptkitSettings, ServiceConfig
from adoptkit.evaluation import evaluate
from adoptkit.exceptions import AdoptkitError, ColumnsNotFoundError, EvaluationError, InvalidInputError, TrainingError
from adoptkit.logging import STAGE_LEVEL
from adoptkit.models import ServiceFailure, ServiceOutcome, ServiceResult
from adoptkit.polars_utils import non_numeric_columns, validate_columns
from adoptkit.preprocessing import FeatureTable, build_feature_table
from adoptkit.sampling import attach_labels, split_dataset, synthesize_labels
from adoptkit.training import train_tree


def prepare_features(institutions: pl.DataFrame, settings: AdoptkitSettings) -> FeatureTable:
    """Encode and impute the institution table once for all services.

    Args:
        institutions (pl.DataFrame): The deduplicated institution table.
        settings (AdoptkitSettings): Run settings.

    Returns:
        FeatureTable: The shared base feature table.

    Raises:
        ColumnsNotFoundError: If a feature or categorical column is missing.
        InvalidInputError: If encoding or imputation fails, a feature is
            not numeric after encoding, or the row count differs from
            `settings.expected_row_count`.
    """
    validate_columns(settings.features, institutions.columns)
    feature_table = build_feature_table(institutions, settings.categorical_columns)
    non_numeric = non_numeric_columns(feature_table.frame, settings.features)
    if non_numeric:
        raise InvalidInputError(
            f"Feature columns must be numeric or listed in categorical_columns, got {non_numeric}",
            column=non_numeric[0],
        )
    expected = settings.expected_row_count
    if expected is not None and feature_table.height != expected:
        raise InvalidInputError(f"Expected {expected} institutions after deduplication, found {feature_table.height}")
    return feature_table


def run_service_pipeline(
    feature_table: FeatureTable,
    service: ServiceConfig,
    settings: AdoptkitSettings,
) -> ServiceResult:
    """Synthesize labels, split, train, and evaluate for one service.

    The feature table is never mutated; each call works on its own labeled
    copy and its own seeded generators, so services are independent of one
    another and of run order.

    Args:
        feature_table (FeatureTable): The shared base feature table.
        service (ServiceConfig): Prevalence and seeds of this service.
        settings (AdoptkitSettings): Run settings.

    Returns:
        ServiceResult: The trained tree's summary and held-out evaluation.

    Raises:
        AdoptkitError: Any stage failure; the caller decides whether other
            services continue.
    """
    with logger.contextualize(service=service.name):
        logger.log(STAGE_LEVEL, "Synthesizing labels", positives=service.positive_count)
        labels = synthesize_labels(feature_table.height, service.positive_count, service.label_seed)
        dataset = attach_labels(feature_table.frame, labels, settings.label_column)

        logger.log(STAGE_LEVEL, "Splitting dataset", strategy=settings.split_strategy)
        split = split_dataset(
            dataset,
            settings.train_size,
            settings.test_size,
            service.split_seed,
            strategy=settings.split_strategy,
        )

        model = train_tree(split.train, settings.features, settings.label_column, settings.cv, seed=service.train_seed)
        confusion = evaluate(model, split.test, settings.label_column, positive_class=settings.positive_class)

    return ServiceResult(
        service=service.name,
        positive_count=service.positive_count,
        train_rows=split.train.height,
        test_rows=split.test.height,
        complexity=model.complexity,
        cv_results=list(model.cv_results),
        feature_importance=model.feature_importance(),
        rules=model.rules(feature_table.category_mappings),
        confusion=confusion,
    )


def run_services(feature_table: FeatureTable, settings: AdoptkitSettings) -> list[ServiceOutcome]:
    """Run every configured service pipeline, isolating failures.

    A service whose pipeline raises an `AdoptkitError` yields a
    `ServiceFailure`; the remaining services still run.

    Args:
        feature_table (FeatureTable): The shared base feature table.
        settings (AdoptkitSettings): Run settings.

    Returns:
        list[ServiceOutcome]: One outcome per service, in configured order.
    """
    outcomes: list[ServiceOutcome] = []
    for service in settings.services:
        try:
            outcomes.append(run_service_pipeline(feature_table, service, settings))
        except AdoptkitError as exc:
            failure = service_failure(service.name, exc)
            logger.warning(
                "Service pipeline failed",
                service=service.name,
                error_type=failure.error_type,
                message=failure.message,
            )
            outcomes.append(failure)
    return outcomes


def run_pipeline(institutions: pl.DataFrame, settings: AdoptkitSettings) -> list[ServiceOutcome]:
    """Prepare the feature table and run every service pipeline.

    Args:
        institutions (pl.DataFrame): The deduplicated institution table.
        settings (AdoptkitSettings): Run settings.

    Returns:
        list[ServiceOutcome]: One outcome per service, in configured order.

    Raises:
        AdoptkitError: If the shared feature preparation fails.
    """
    feature_table = prepare_features(institutions, settings)
    return run_services(feature_table, settings)


def service_failure(service: str, error: AdoptkitError) -> ServiceFailure:
    """Convert a pipeline exception into a structured failure record.

    Args:
        service (str): Service name.
        error (AdoptkitError): The exception that aborted the pipeline.

    Returns:
        ServiceFailure: Error type, message, and exception-specific details.
    """
    details: dict[str, JsonValue] = {}
    if isinstance(error, TrainingError) and error.label_counts:
        details["label_counts"] = {str(label): count for label, count in error.label_counts.items()}
    if isinstance(error, (EvaluationError, ColumnsNotFoundError)) and error.missing_columns:
        details["missing_columns"] = list(error.missing_columns)
    if isinstance(error, InvalidInputError) and error.column is not None:
        details["column"] = error.column
    return ServiceFailure(
        service=service,
        error_type=type(error).__name__,
        message=str(error) or type(error).__name__,
        details=details,
    )
