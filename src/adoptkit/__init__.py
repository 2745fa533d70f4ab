"""adoptkit: decision-tree models of cloud-service adoption in higher education."""

from loguru import logger

from adoptkit.config import AdoptkitSettings, CrossValidationConfig, ServiceConfig, load_settings
from adoptkit.evaluation import evaluate
from adoptkit.exceptions import (
    AdoptkitError,
    ConfigurationError,
    EvaluationError,
    InvalidInputError,
    TrainingError,
)
from adoptkit.loading import load_institutions
from adoptkit.logging import PACKAGE_NAME, enable_logging
from adoptkit.models import ConfusionResult, ServiceFailure, ServiceResult
from adoptkit.pipeline import run_pipeline, run_service_pipeline
from adoptkit.preprocessing import build_feature_table, encode_categorical, impute_mean
from adoptkit.sampling import split_dataset, synthesize_labels
from adoptkit.training import TrainedTreeModel, train_tree

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the adoptkit package by default

__all__ = [
    "AdoptkitError",
    "AdoptkitSettings",
    "ConfigurationError",
    "ConfusionResult",
    "CrossValidationConfig",
    "EvaluationError",
    "InvalidInputError",
    "ServiceConfig",
    "ServiceFailure",
    "ServiceResult",
    "TrainedTreeModel",
    "TrainingError",
    "build_feature_table",
    "enable_logging",
    "encode_categorical",
    "evaluate",
    "impute_mean",
    "load_institutions",
    "load_settings",
    "run_pipeline",
    "run_service_pipeline",
    "split_dataset",
    "synthesize_labels",
    "train_tree",
]
