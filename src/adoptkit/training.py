"""Decision tree training: cost-complexity sweep under repeated k-fold cross-validation."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import polars as pl
from loguru import logger
from sklearn.model_selection import GridSearchCV, RepeatedStratifiedKFold
from sklearn.tree import DecisionTreeClassifier

from adoptkit.config import MAX_SEED, CrossValidationConfig
from adoptkit.exceptions import ConfigurationError, EvaluationError, TrainingError
from adoptkit.logging import STAGE_LEVEL
from adoptkit.models import CandidateScore, ClassificationRule, Predicate
from adoptkit.polars_utils import missing_columns, non_numeric_columns, validate_columns

_BINARY_LABELS: frozenset[int] = frozenset({0, 1})
_IMPORTANCE_DECIMAL_PLACES: int = 4

# ---------------------------------------------------------------------------
# Public interface -- Trained model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrainedTreeModel:
    """The best tree found by the complexity sweep, refit on its whole training set.

    Attributes:
        estimator (DecisionTreeClassifier): The fitted tree.
        features (tuple[str, ...]): Feature columns, in the order the tree saw them.
        label_column (str): Label column the tree was trained on.
        complexity (float): Selected cost-complexity pruning value.
        cv_results (tuple[CandidateScore, ...]): Every candidate, simplest first.
        train_rows (int): Number of rows in the training set.
        seed (int): Seed used for fold assignment and fitting.
    """

    estimator: DecisionTreeClassifier
    features: tuple[str, ...]
    label_column: str
    complexity: float
    cv_results: tuple[CandidateScore, ...]
    train_rows: int
    seed: int

    @property
    def depth(self) -> int:
        """Depth of the fitted tree."""
        return int(self.estimator.get_depth())

    @property
    def leaf_count(self) -> int:
        """Number of leaves in the fitted tree."""
        return int(self.estimator.get_n_leaves())

    def predict(self, df: pl.DataFrame) -> np.ndarray:
        """Predict a 0/1 class for every row of `df`.

        Args:
            df (pl.DataFrame): Rows containing at least the model's features.

        Returns:
            np.ndarray: An int8 array of predicted classes.

        Raises:
            EvaluationError: If a feature column is missing, is not numeric,
                or holds non-finite values.
        """
        missing = missing_columns(self.features, df.columns)
        if missing:
            raise EvaluationError(f"Data is missing model feature columns: {missing}", missing_columns=missing)
        non_numeric = non_numeric_columns(df, self.features)
        if non_numeric:
            raise EvaluationError(f"Feature columns must be numeric, got non-numeric columns: {non_numeric}")
        if df.height == 0:
            return np.empty(0, dtype=np.int8)
        feature_matrix = _feature_matrix(df, self.features)
        if not np.isfinite(feature_matrix).all():
            raise EvaluationError("Feature columns contain missing or non-finite values")
        return self.estimator.predict(feature_matrix).astype(np.int8)

    def feature_importance(self) -> dict[str, float]:
        """Return non-zero feature importances renormalized to sum to 1.

        Returns:
            dict[str, float]: Feature name to rounded importance, highest
                first. Empty when the tree never split.
        """
        paired = [
            (name, round(float(importance), _IMPORTANCE_DECIMAL_PLACES))
            for name, importance in zip(self.features, self.estimator.feature_importances_, strict=True)
        ]
        filtered = sorted(
            ((name, importance) for name, importance in paired if importance > 0.0),
            key=lambda item: item[1],
            reverse=True,
        )
        total = sum(importance for _, importance in filtered)
        renormalized = [(name, round(importance / total, _IMPORTANCE_DECIMAL_PLACES)) for name, importance in filtered]
        if renormalized:
            # Absorb rounding drift in the last entry so the scores sum to exactly 1.
            others_sum = sum(importance for _, importance in renormalized[:-1])
            renormalized[-1] = (renormalized[-1][0], round(1.0 - others_sum, _IMPORTANCE_DECIMAL_PLACES))
        return dict(renormalized)

    def rules(self, category_mappings: Mapping[str, Mapping[int, str]] | None = None) -> list[ClassificationRule]:
        """Extract one human-readable rule per leaf.

        Splits on a feature listed in `category_mappings` are decoded from a
        code threshold into `in {labels}` predicates: codes at or below the
        threshold go left, the rest go right.

        Args:
            category_mappings (Mapping[str, Mapping[int, str]] | None):
                `{code: label}` mappings of encoded categorical features.

        Returns:
            list[ClassificationRule]: Rules in left-to-right leaf order.
        """
        rules: list[ClassificationRule] = []
        _walk_tree(
            self.estimator,
            features=self.features,
            category_mappings=category_mappings or {},
            node_id=0,
            path_predicates=[],
            rules=rules,
        )
        return rules


# ---------------------------------------------------------------------------
# Public interface -- Training
# ---------------------------------------------------------------------------


def complexity_candidates(
    feature_matrix: np.ndarray,
    target_array: np.ndarray,
    *,
    cv_config: CrossValidationConfig,
    seed: int,
) -> list[float]:
    """Span the cost-complexity values worth sweeping, simplest tree first.

    A fully grown tree is fitted once to obtain its pruning path. When the
    path has at least `tune_length` distinct values, the largest ones are used
    (the most heavily pruned trees); otherwise `tune_length` evenly spaced
    values between the path's extremes are used.

    Args:
        feature_matrix (np.ndarray): 2-D training features.
        target_array (np.ndarray): 1-D training labels.
        cv_config (CrossValidationConfig): Growth controls and tune length.
        seed (int): Random state for the tree.

    Returns:
        list[float]: Distinct non-negative values in descending order.
    """
    base_tree = _make_tree(cv_config, seed)
    path = base_tree.cost_complexity_pruning_path(feature_matrix, target_array)
    # The path can contain tiny negative values from floating-point cancellation.
    alphas = np.unique(np.clip(path.ccp_alphas, 0.0, None))[::-1]
    if alphas.size >= cv_config.tune_length:
        selected = alphas[: cv_config.tune_length]
    else:
        selected = np.unique(np.linspace(alphas.max(), alphas.min(), cv_config.tune_length))[::-1]
    return [float(alpha) for alpha in selected]


def train_tree(
    train_set: pl.DataFrame,
    features: Sequence[str],
    label_column: str,
    cv_config: CrossValidationConfig,
    *,
    seed: int,
) -> TrainedTreeModel:
    """Select and fit a decision tree by repeated k-fold cross-validation.

    Candidates from `complexity_candidates` are each scored by mean accuracy
    over `cv_config.repeats` stratified `cv_config.folds`-fold partitions. The
    best candidate wins; ties go to the simplest tree. The winner is refit on
    the whole training set. `seed` fixes both fold assignment and the tree's
    own tie-breaking, so equal inputs give equal models.

    Args:
        train_set (pl.DataFrame): Training rows.
        features (Sequence[str]): Ordered feature columns.
        label_column (str): The 0/1 label column.
        cv_config (CrossValidationConfig): Cross-validation and growth settings.
        seed (int): Non-negative seed.

    Returns:
        TrainedTreeModel: The selected, refit tree.

    Raises:
        ColumnsNotFoundError: If a feature or the label column is missing.
        TrainingError: If features are non-numeric or non-finite, labels are
            missing or not binary, fewer than two label classes are present,
            or scikit-learn rejects the data during fitting.
        ConfigurationError: If the seed is outside `[0, MAX_SEED]`, or the
            rows or every label class are fewer than the folds.
    """
    validate_columns([*features, label_column], train_set.columns)
    if not 0 <= seed <= MAX_SEED:
        raise ConfigurationError(f"seed must be between 0 and {MAX_SEED}, got {seed}")
    non_numeric = non_numeric_columns(train_set, features)
    if non_numeric:
        raise TrainingError(f"Feature columns must be numeric, got non-numeric columns: {non_numeric}")

    logger.log(STAGE_LEVEL, "Training decision tree", rows=train_set.height, features=list(features))
    feature_matrix = _feature_matrix(train_set, features)
    if not np.isfinite(feature_matrix).all():
        finite_columns = np.isfinite(feature_matrix).all(axis=0)
        bad_columns = [name for name, is_finite in zip(features, finite_columns, strict=True) if not is_finite]
        raise TrainingError(f"Feature columns contain missing or non-finite values: {bad_columns}")
    target_array = _target_array(train_set[label_column])
    _validate_fold_count(target_array, cv_config)

    try:
        candidates = complexity_candidates(feature_matrix, target_array, cv_config=cv_config, seed=seed)
        logger.debug("Complexity candidates", candidates=candidates)

        search = GridSearchCV(
            estimator=_make_tree(cv_config, seed),
            param_grid={"ccp_alpha": candidates},
            scoring="accuracy",
            cv=RepeatedStratifiedKFold(n_splits=cv_config.folds, n_repeats=cv_config.repeats, random_state=seed),
            refit=True,
            error_score="raise",
        )
        search.fit(feature_matrix, target_array)
    except ValueError as exc:
        raise TrainingError(f"Decision tree fitting failed: {exc}") from exc

    cv_results = tuple(_candidate_scores(search.cv_results_))
    best = cv_results[search.best_index_]
    logger.info(
        "Decision tree selected",
        complexity=best.complexity,
        cv_accuracy=round(best.mean_accuracy, 4),
        depth=search.best_estimator_.get_depth(),
        leaves=search.best_estimator_.get_n_leaves(),
    )
    return TrainedTreeModel(
        estimator=search.best_estimator_,
        features=tuple(features),
        label_column=label_column,
        complexity=best.complexity,
        cv_results=cv_results,
        train_rows=train_set.height,
        seed=seed,
    )


# ---------------------------------------------------------------------------
# Private helpers -- Data preparation
# ---------------------------------------------------------------------------


def _make_tree(cv_config: CrossValidationConfig, seed: int) -> DecisionTreeClassifier:
    return DecisionTreeClassifier(
        criterion=cv_config.criterion,
        min_samples_split=cv_config.min_samples_split,
        min_samples_leaf=cv_config.min_samples_leaf,
        max_depth=cv_config.max_depth,
        random_state=seed,
    )


def _feature_matrix(df: pl.DataFrame, features: Sequence[str]) -> np.ndarray:
    """Convert feature columns to a 2-D float64 array; nulls become NaN.

    Args:
        df (pl.DataFrame): Source rows.
        features (Sequence[str]): Columns to take, in order.

    Returns:
        np.ndarray: Array of shape `(n_rows, n_features)`.
    """
    return df.select([pl.col(name).cast(pl.Float64) for name in features]).to_numpy().astype(np.float64)


def _target_array(series: pl.Series) -> np.ndarray:
    """Validate a label column and return it as an int64 array.

    Args:
        series (pl.Series): The label column.

    Returns:
        np.ndarray: The labels.

    Raises:
        TrainingError: If labels are missing, non-binary, or single-class.
    """
    if series.null_count() > 0:
        raise TrainingError(f"Label column '{series.name}' contains null values")
    target_array = series.to_numpy().astype(np.int64)
    classes, counts = np.unique(target_array, return_counts=True)
    label_counts = {int(label): int(count) for label, count in zip(classes, counts, strict=True)}
    if not set(label_counts) <= _BINARY_LABELS:
        raise TrainingError(f"Labels must be 0 or 1, found {sorted(label_counts)}", label_counts=label_counts)
    if len(label_counts) < 2:
        raise TrainingError(
            f"Training set has a single label class {sorted(label_counts)}; a tree cannot be fit",
            label_counts=label_counts,
        )
    return target_array


def _validate_fold_count(target_array: np.ndarray, cv_config: CrossValidationConfig) -> None:
    """Reject fold counts the data cannot support and warn about thin classes.

    Args:
        target_array (np.ndarray): Training labels.
        cv_config (CrossValidationConfig): Cross-validation settings.

    Raises:
        ConfigurationError: If there are fewer rows than folds, or every
            label class is smaller than the fold count.
    """
    if target_array.size < cv_config.folds:
        raise ConfigurationError(f"Cannot split {target_array.size} training rows into {cv_config.folds} folds")
    class_counts = np.bincount(target_array)
    if int(class_counts.max()) < cv_config.folds:
        label_counts = {label: int(count) for label, count in enumerate(class_counts)}
        raise ConfigurationError(
            f"Every label class is smaller than the fold count {cv_config.folds}: {label_counts}; "
            "stratified folds cannot be drawn"
        )
    minority_count = int(class_counts.min())
    if minority_count < cv_config.folds:
        logger.warning(
            "Minority class is smaller than the fold count; some folds will miss it",
            minority_count=minority_count,
            folds=cv_config.folds,
        )


def _candidate_scores(cv_results: Mapping[str, Any]) -> list[CandidateScore]:
    """Convert `GridSearchCV.cv_results_` into candidate scores, in grid order.

    Args:
        cv_results (Mapping[str, Any]): The fitted search's `cv_results_`.

    Returns:
        list[CandidateScore]: One score per candidate.
    """
    return [
        CandidateScore(
            complexity=float(alpha),
            mean_accuracy=float(mean),
            std_accuracy=float(std),
            rank=int(rank),
        )
        for alpha, mean, std, rank in zip(
            cv_results["param_ccp_alpha"],
            cv_results["mean_test_score"],
            cv_results["std_test_score"],
            cv_results["rank_test_score"],
            strict=True,
        )
    ]


# ---------------------------------------------------------------------------
# Private helpers -- Rule extraction
# ---------------------------------------------------------------------------


def _walk_tree(
    estimator: DecisionTreeClassifier,
    *,
    features: Sequence[str],
    category_mappings: Mapping[str, Mapping[int, str]],
    node_id: int,
    path_predicates: list[Predicate],
    rules: list[ClassificationRule],
) -> None:
    """Recursively walk the fitted tree and append one rule per leaf.

    Args:
        estimator (DecisionTreeClassifier): The fitted tree.
        features (Sequence[str]): Feature names by column index.
        category_mappings (Mapping[str, Mapping[int, str]]): Decoders for
            encoded categorical features.
        node_id (int): Current node index in `estimator.tree_`.
        path_predicates (list[Predicate]): Predicates from the root to `node_id`.
        rules (list[ClassificationRule]): Accumulator, appended in place.
    """
    sklearn_tree = estimator.tree_
    left_child = sklearn_tree.children_left[node_id]
    right_child = sklearn_tree.children_right[node_id]

    if left_child == right_child:  # Both are TREE_LEAF (-1) at leaves
        class_weights = sklearn_tree.value[node_id][0]
        class_index = int(np.argmax(class_weights))
        total_weight = float(class_weights.sum())
        rules.append(
            ClassificationRule(
                predicates=path_predicates,
                prediction=int(estimator.classes_[class_index]),
                samples=int(sklearn_tree.n_node_samples[node_id]),
                confidence=round(float(class_weights[class_index]) / total_weight, 4) if total_weight > 0 else 0.0,
            )
        )
        return

    feature_name = features[sklearn_tree.feature[node_id]]
    threshold = float(sklearn_tree.threshold[node_id])
    mapping = category_mappings.get(feature_name)
    left_predicate, right_predicate = _build_split_predicates(feature_name, threshold, mapping)

    shared_kwargs: dict[str, Any] = {
        "features": features,
        "category_mappings": category_mappings,
        "rules": rules,
    }
    _walk_tree(estimator, **shared_kwargs, node_id=left_child, path_predicates=[*path_predicates, left_predicate])
    _walk_tree(estimator, **shared_kwargs, node_id=right_child, path_predicates=[*path_predicates, right_predicate])


def _build_split_predicates(
    feature_name: str,
    threshold: float,
    category_mapping: Mapping[int, str] | None,
) -> tuple[Predicate, Predicate]:
    """Build the left and right branch predicates of one split.

    Args:
        feature_name (str): The split feature.
        threshold (float): The split threshold on the encoded value.
        category_mapping (Mapping[int, str] | None): `{code: label}` decoder,
            or `None` for numeric features.

    Returns:
        tuple[Predicate, Predicate]: `(left_predicate, right_predicate)`.
    """
    if category_mapping is not None:
        left_labels = frozenset(label for code, label in category_mapping.items() if code <= threshold)
        right_labels = frozenset(label for code, label in category_mapping.items() if code > threshold)
        return (
            Predicate(variable=feature_name, operator="in", value=left_labels),
            Predicate(variable=feature_name, operator="in", value=right_labels),
        )
    return (
        Predicate(variable=feature_name, operator="<=", value=threshold),
        Predicate(variable=feature_name, operator=">", value=threshold),
    )
