"""Tests for configuration: defaults, environment overrides, and validation."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError
from pytest_check import check

from adoptkit.config import AdoptkitSettings, CrossValidationConfig, ServiceConfig, load_settings
from adoptkit.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run every test without ADOPTKIT_* variables and outside any project `.env`."""
    for name in [name for name in os.environ if name.startswith("ADOPTKIT_")]:
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    """Tests for the default settings of a full run."""

    def test_reference_run_defaults(self) -> None:
        """Defaults reproduce the reference analysis."""
        # Act
        settings = load_settings()

        # Assert
        with check:
            assert settings.features == ["State", "AdmissionRate", "Degrees", "TotalTuition", "AdditionalFees"]
        with check:
            assert settings.categorical_columns == ["State", "Degrees"]
        with check:
            assert settings.label_column == "Adoption"
        with check:
            assert (settings.train_size, settings.test_size) == (5007, 1669)
        with check:
            assert settings.split_strategy == "resample"
        with check:
            assert settings.positive_class == 1

    def test_default_services(self) -> None:
        """Three services with their prevalences and distinct label seeds."""
        # Act
        services = load_settings().services

        # Assert
        with check:
            assert [(s.name, s.positive_count) for s in services] == [
                ("GitHub", 555),
                ("Google Drive", 1042),
                ("Outlook", 1594),
            ]
        with check:
            assert len({s.label_seed for s in services}) == 3
        with check:
            assert all(s.split_seed == 935 and s.train_seed == 3333 for s in services)

    def test_cross_validation_defaults(self) -> None:
        """Ten folds, three repeats, ten candidates, entropy splits."""
        # Act
        cv = CrossValidationConfig()

        # Assert
        with check:
            assert (cv.folds, cv.repeats, cv.tune_length) == (10, 3, 10)
        with check:
            assert cv.criterion == "entropy"
        with check:
            assert (cv.min_samples_split, cv.min_samples_leaf, cv.max_depth) == (20, 7, 30)


class TestOverrides:
    """Tests for keyword, environment, and dotenv overrides."""

    def test_keyword_override(self) -> None:
        """Keyword arguments take precedence."""
        # Act
        settings = load_settings(train_size=100, split_strategy="partition")

        # Assert
        with check:
            assert settings.train_size == 100
        with check:
            assert settings.split_strategy == "partition"

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """ADOPTKIT_* variables are read, including nested ones."""
        # Arrange
        monkeypatch.setenv("ADOPTKIT_TEST_SIZE", "500")
        monkeypatch.setenv("ADOPTKIT_CV__FOLDS", "5")

        # Act
        settings = load_settings()

        # Assert
        with check:
            assert settings.test_size == 500
        with check:
            assert settings.cv.folds == 5
        with check:
            assert settings.cv.repeats == 3

    def test_dotenv_file(self, tmp_path: Path) -> None:
        """A dotenv file is read when given."""
        # Arrange
        env_file = tmp_path / "run.env"
        env_file.write_text("ADOPTKIT_TRAIN_SIZE=42\n", encoding="utf-8")

        # Act
        settings = load_settings(env_file=env_file)

        # Assert
        assert settings.train_size == 42


class TestValidation:
    """Tests for settings validation."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"train_size": -1},
            {"features": ["State", "State"]},
            {"label_column": "State"},
            {"split_strategy": "bootstrap"},
            {"positive_class": 2},
            {"services": []},
            {
                "services": [
                    ServiceConfig(name="GitHub", positive_count=1, label_seed=1),
                    ServiceConfig(name="GitHub", positive_count=2, label_seed=2),
                ]
            },
        ],
    )
    def test_invalid_settings_raise_configuration_error(self, overrides: dict) -> None:
        """Invalid values surface as ConfigurationError."""
        # Act / Assert
        with pytest.raises(ConfigurationError):
            load_settings(env_file=None, **overrides)

    def test_cross_validation_needs_two_folds(self) -> None:
        """A single fold cannot cross-validate."""
        # Act / Assert
        with pytest.raises(ValidationError):
            CrossValidationConfig(folds=1)

    def test_service_seeds_are_non_negative(self) -> None:
        """Service seeds must be non-negative."""
        # Act / Assert
        with pytest.raises(ValidationError):
            ServiceConfig(name="GitHub", positive_count=1, label_seed=-1)

    def test_train_seed_fits_random_state_range(self) -> None:
        """Training seeds above 2**32 - 1 are rejected up front."""
        # Act / Assert
        with pytest.raises(ValidationError, match="train_seed"):
            ServiceConfig(name="GitHub", positive_count=1, label_seed=1, train_seed=2**32)

    def test_settings_are_a_pydantic_settings_model(self) -> None:
        """Direct construction validates too."""
        # Act / Assert
        with pytest.raises(ValidationError):
            AdoptkitSettings(_env_file=None, test_size=-5)  # type: ignore[call-arg]
