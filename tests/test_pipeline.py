"""Tests for pipeline orchestration: feature preparation, per-service runs, and failure isolation."""

from __future__ import annotations

from collections.abc import Callable

import polars as pl
import pytest
from pytest_check import check

from adoptkit.config import AdoptkitSettings, CrossValidationConfig, ServiceConfig
from adoptkit.exceptions import (
    ColumnsNotFoundError,
    ConfigurationError,
    EvaluationError,
    InvalidInputError,
    TrainingError,
)
from adoptkit.models import ServiceFailure, ServiceResult
from adoptkit.pipeline import prepare_features, run_pipeline, run_service_pipeline, service_failure


def _small_settings(fast_cv: CrossValidationConfig, services: list[ServiceConfig]) -> AdoptkitSettings:
    return AdoptkitSettings(
        _env_file=None,  # type: ignore[call-arg]
        train_size=300,
        test_size=100,
        cv=fast_cv,
        services=services,
    )


class TestPrepareFeatures:
    """Tests for `prepare_features`."""

    def test_builds_shared_table(
        self,
        make_institutions: Callable[..., pl.DataFrame],
        fast_cv: CrossValidationConfig,
    ) -> None:
        """The shared table is encoded, complete, and keeps every row."""
        # Arrange
        settings = _small_settings(fast_cv, [ServiceConfig(name="GitHub", positive_count=50, label_seed=1)])

        # Act
        feature_table = prepare_features(make_institutions(400), settings)

        # Assert
        with check:
            assert feature_table.height == 400
        with check:
            assert feature_table.frame.select(settings.features).null_count().sum_horizontal().item() == 0

    def test_row_count_mismatch_raises(
        self,
        make_institutions: Callable[..., pl.DataFrame],
        fast_cv: CrossValidationConfig,
    ) -> None:
        """A table of unexpected size stops the run before any service."""
        # Arrange
        settings = _small_settings(fast_cv, [ServiceConfig(name="GitHub", positive_count=50, label_seed=1)])
        settings = settings.model_copy(update={"expected_row_count": 6676})

        # Act / Assert
        with pytest.raises(InvalidInputError, match="6676"):
            prepare_features(make_institutions(400), settings)

    def test_missing_feature_column_raises(
        self,
        make_institutions: Callable[..., pl.DataFrame],
        fast_cv: CrossValidationConfig,
    ) -> None:
        """A feature absent from the institution table is reported."""
        # Arrange
        settings = _small_settings(fast_cv, [ServiceConfig(name="GitHub", positive_count=50, label_seed=1)])

        # Act / Assert
        with pytest.raises(ColumnsNotFoundError):
            prepare_features(make_institutions(100).drop("AdditionalFees"), settings)

    def test_text_feature_outside_categorical_columns_raises(
        self,
        make_institutions: Callable[..., pl.DataFrame],
        fast_cv: CrossValidationConfig,
    ) -> None:
        """A text feature that is not ordinal-encoded cannot reach the tree."""
        # Arrange
        settings = _small_settings(fast_cv, [ServiceConfig(name="GitHub", positive_count=50, label_seed=1)])
        settings = settings.model_copy(update={"features": ["Institution", "AdmissionRate"]})

        # Act / Assert
        with pytest.raises(InvalidInputError, match="Institution") as exc_info:
            prepare_features(make_institutions(100), settings)
        assert exc_info.value.column == "Institution"


class TestRunServicePipeline:
    """Tests for `run_service_pipeline`."""

    def test_result_shape(
        self,
        make_institutions: Callable[..., pl.DataFrame],
        fast_cv: CrossValidationConfig,
    ) -> None:
        """A successful run reports the split sizes and a confusion matrix over the test set."""
        # Arrange
        service = ServiceConfig(name="GitHub", positive_count=60, label_seed=1)
        settings = _small_settings(fast_cv, [service])
        feature_table = prepare_features(make_institutions(400), settings)

        # Act
        result = run_service_pipeline(feature_table, service, settings)

        # Assert
        with check:
            assert result.service == "GitHub"
        with check:
            assert result.positive_count == 60
        with check:
            assert (result.train_rows, result.test_rows) == (300, 100)
        with check:
            assert result.confusion.total == 100
        with check:
            assert len(result.rules) >= 1

    def test_does_not_mutate_feature_table(
        self,
        make_institutions: Callable[..., pl.DataFrame],
        fast_cv: CrossValidationConfig,
    ) -> None:
        """The shared table never gains a label column."""
        # Arrange
        service = ServiceConfig(name="GitHub", positive_count=60, label_seed=1)
        settings = _small_settings(fast_cv, [service])
        feature_table = prepare_features(make_institutions(400), settings)
        snapshot = feature_table.frame.clone()

        # Act
        run_service_pipeline(feature_table, service, settings)

        # Assert
        assert feature_table.frame.equals(snapshot)

    def test_single_class_training_set_raises(
        self,
        make_institutions: Callable[..., pl.DataFrame],
        fast_cv: CrossValidationConfig,
    ) -> None:
        """A service with no adopters cannot be trained."""
        # Arrange
        service = ServiceConfig(name="Nobody", positive_count=0, label_seed=1)
        settings = _small_settings(fast_cv, [service])
        feature_table = prepare_features(make_institutions(400), settings)

        # Act / Assert
        with pytest.raises(TrainingError):
            run_service_pipeline(feature_table, service, settings)


class TestRunPipeline:
    """Tests for `run_pipeline`: one outcome per service, in order, with failures isolated."""

    def test_one_failure_does_not_stop_other_services(
        self,
        make_institutions: Callable[..., pl.DataFrame],
        fast_cv: CrossValidationConfig,
    ) -> None:
        """A failing service yields a failure record; the services around it still succeed."""
        # Arrange
        services = [
            ServiceConfig(name="GitHub", positive_count=40, label_seed=1),
            ServiceConfig(name="Nobody", positive_count=0, label_seed=2),
            ServiceConfig(name="Outlook", positive_count=120, label_seed=3),
        ]
        settings = _small_settings(fast_cv, services)

        # Act
        outcomes = run_pipeline(make_institutions(400), settings)

        # Assert
        with check:
            assert [outcome.service for outcome in outcomes] == ["GitHub", "Nobody", "Outlook"]
        with check:
            assert isinstance(outcomes[0], ServiceResult)
        with check:
            assert isinstance(outcomes[1], ServiceFailure)
        with check:
            assert isinstance(outcomes[2], ServiceResult)
        failure = outcomes[1]
        if isinstance(failure, ServiceFailure):
            with check:
                assert failure.error_type == "TrainingError"
            with check:
                assert failure.details["label_counts"] == {"0": 300}

    def test_impossible_prevalence_is_isolated(
        self,
        make_institutions: Callable[..., pl.DataFrame],
        fast_cv: CrossValidationConfig,
    ) -> None:
        """More positives than institutions fails that service only."""
        # Arrange
        services = [
            ServiceConfig(name="Too many", positive_count=10_000, label_seed=1),
            ServiceConfig(name="GitHub", positive_count=40, label_seed=1),
        ]
        settings = _small_settings(fast_cv, services)

        # Act
        outcomes = run_pipeline(make_institutions(400), settings)

        # Assert
        with check:
            assert isinstance(outcomes[0], ServiceFailure)
        with check:
            assert outcomes[0].error_type == "ConfigurationError"
        with check:
            assert isinstance(outcomes[1], ServiceResult)

    def test_folds_larger_than_every_class_are_isolated(
        self,
        make_institutions: Callable[..., pl.DataFrame],
    ) -> None:
        """A training set too small for stratified folds fails its service without aborting the run."""
        # Arrange
        services = [
            ServiceConfig(name="Thin", positive_count=200, label_seed=1),
            ServiceConfig(name="Other", positive_count=180, label_seed=2),
        ]
        settings = AdoptkitSettings(
            _env_file=None,  # type: ignore[call-arg]
            train_size=10,
            test_size=10,
            cv=CrossValidationConfig(folds=10, repeats=1, tune_length=2),
            services=services,
        )

        # Act
        outcomes = run_pipeline(make_institutions(400), settings)

        # Assert
        with check:
            assert [outcome.service for outcome in outcomes] == ["Thin", "Other"]
        with check:
            assert all(isinstance(outcome, ServiceFailure) for outcome in outcomes)
        error_types = [getattr(outcome, "error_type", None) for outcome in outcomes]
        with check:
            assert set(error_types) <= {"ConfigurationError", "TrainingError"}

    def test_results_do_not_depend_on_run_order(
        self,
        make_institutions: Callable[..., pl.DataFrame],
        fast_cv: CrossValidationConfig,
    ) -> None:
        """A service gives the same result alone as after other services."""
        # Arrange
        institutions = make_institutions(400)
        github = ServiceConfig(name="GitHub", positive_count=60, label_seed=1)
        outlook = ServiceConfig(name="Outlook", positive_count=120, label_seed=3)

        # Act
        alone = run_pipeline(institutions, _small_settings(fast_cv, [github]))
        after_other = run_pipeline(institutions, _small_settings(fast_cv, [outlook, github]))

        # Assert
        assert alone[0] == after_other[1]

    def test_reference_scenario(self, make_institutions: Callable[..., pl.DataFrame]) -> None:
        """The reference run: 6676 institutions, 555 adopters, 5007/1669 split, 10x3 cross-validation."""
        # Arrange
        settings = AdoptkitSettings(
            _env_file=None,  # type: ignore[call-arg]
            expected_row_count=6676,
            services=[ServiceConfig(name="GitHub", positive_count=555, label_seed=1)],
        )

        # Act
        outcomes = run_pipeline(make_institutions(6676), settings)

        # Assert
        result = outcomes[0]
        assert isinstance(result, ServiceResult)
        with check:
            assert (result.train_rows, result.test_rows) == (5007, 1669)
        with check:
            assert sum(sum(row) for row in result.confusion.matrix) == 1669
        with check:
            assert result.confusion.accuracy is not None
        with check:
            assert 0.0 <= result.confusion.accuracy <= 1.0
        with check:
            assert len(result.cv_results) <= 10


class TestServiceFailure:
    """Tests for `service_failure`: structured failure records from pipeline exceptions."""

    def test_training_error_details(self) -> None:
        """Label counts are carried with string keys."""
        # Act
        failure = service_failure("GitHub", TrainingError("single class", label_counts={0: 5007}))

        # Assert
        with check:
            assert failure.error_type == "TrainingError"
        with check:
            assert failure.message == "single class"
        with check:
            assert failure.details == {"label_counts": {"0": 5007}}

    def test_missing_columns_details(self) -> None:
        """Missing columns are carried for evaluation errors."""
        # Act
        failure = service_failure("GitHub", EvaluationError("missing", missing_columns=["State"]))

        # Assert
        assert failure.details == {"missing_columns": ["State"]}

    def test_columns_not_found_details(self) -> None:
        """Missing columns are carried for lookup errors."""
        # Act
        failure = service_failure("GitHub", ColumnsNotFoundError(["State"], ["Degrees"]))

        # Assert
        assert failure.details["missing_columns"] == ["State"]

    def test_plain_error_has_no_details(self) -> None:
        """Errors without structured context yield empty details."""
        # Act
        failure = service_failure("GitHub", ConfigurationError("bad seed"))

        # Assert
        with check:
            assert failure.error_type == "ConfigurationError"
        with check:
            assert failure.details == {}
