import copy

import numpy as np
import pytest
from sklearn.dummy import DummyClassifier

from telco_churn.data import DataLoader, DataPreprocessor
from telco_churn.exceptions import DataIntegrityError, SchemaMismatchError
from telco_churn.features import FeatureEngineer, FeatureSet
from telco_churn.models import ModelEvaluator, ModelTrainer, TrainedModel


class FixedScorer:
    """Estimator stand-in returning preset churn probabilities in row order."""

    classes_ = np.array([0, 1])

    def __init__(self, churn_proba):
        self.churn_proba = np.asarray(churn_proba, dtype=float)

    def predict_proba(self, X):
        return np.column_stack([1 - self.churn_proba, self.churn_proba])


def wrap(estimator, feature_set, family="fixed"):
    return TrainedModel(
        family=family,
        estimator=estimator,
        schema=feature_set.schema,
        n_train=0,
        fitted_at="2026-01-01T00:00:00",
    )


@pytest.fixture
def split(config, raw_factory):
    cleaned = DataPreprocessor(config).clean_data(raw_factory(n=500, seed=8))
    feature_set = FeatureEngineer(config).fit_transform(cleaned)
    return DataLoader(config).get_train_test_split(feature_set)


@pytest.fixture
def small_set(config, raw_factory):
    cleaned = DataPreprocessor(config).clean_data(raw_factory(n=10, seed=2, signal=None))
    feature_set = FeatureEngineer(config).fit_transform(cleaned)
    labels = np.array([1, 1, 1, 1, 0, 0, 0, 0, 0, 0])
    target = feature_set.target.copy()
    target[:] = labels
    return FeatureSet(features=feature_set.features, schema=feature_set.schema, target=target)


def test_confusion_counts_cover_every_row(config, split):
    trainer = ModelTrainer(config)
    evaluator = ModelEvaluator(config)

    for model in trainer.train_all_models(split.train).values():
        report = evaluator.evaluate_model(model, split.test)
        assert report.counts.total == len(split.test)
        assert report.n == len(split.test)
        assert 0.0 <= report.auc <= 1.0


def test_metrics_follow_non_churn_reference_convention(config, small_set):
    # churners: 0.9, 0.8, 0.3, 0.7 -> TP=3, FN=1; non-churners: 0.6 -> FP=1, TN=5
    proba = [0.9, 0.8, 0.3, 0.7, 0.6, 0.2, 0.1, 0.4, 0.05, 0.2]
    report = ModelEvaluator(config).evaluate_model(wrap(FixedScorer(proba), small_set), small_set)

    assert (report.counts.tp, report.counts.fn, report.counts.fp, report.counts.tn) == (3, 1, 1, 5)
    assert report.accuracy == pytest.approx(0.8)
    assert report.sensitivity == pytest.approx(5 / 6)
    assert report.specificity == pytest.approx(3 / 4)
    assert report.balanced_accuracy == pytest.approx((5 / 6 + 3 / 4) / 2)
    assert report.pos_pred_value == pytest.approx(5 / 6)
    assert report.neg_pred_value == pytest.approx(3 / 4)
    assert report.prevalence == pytest.approx(0.6)
    assert report.no_information_rate == pytest.approx(0.6)

    expected_agreement = (4 * 4 + 6 * 6) / 100
    assert report.kappa == pytest.approx((0.8 - expected_agreement) / (1 - expected_agreement))
    # 22 of 24 churner/non-churner pairs are ordered correctly
    assert report.auc == pytest.approx(22 / 24)

    low, high = report.accuracy_ci
    assert low < report.accuracy < high


def test_churn_reference_swaps_sensitivity_and_specificity(config, small_set):
    proba = [0.9, 0.8, 0.3, 0.7, 0.6, 0.2, 0.1, 0.4, 0.05, 0.2]
    model = wrap(FixedScorer(proba), small_set)
    default = ModelEvaluator(config).evaluate_model(model, small_set)

    swapped_config = copy.deepcopy(config)
    swapped_config["evaluation"]["reference_label"] = 1
    swapped = ModelEvaluator(swapped_config).evaluate_model(model, small_set)

    assert swapped.counts == default.counts
    assert swapped.sensitivity == pytest.approx(default.specificity)
    assert swapped.specificity == pytest.approx(default.sensitivity)
    assert swapped.balanced_accuracy == pytest.approx(default.balanced_accuracy)


def test_threshold_is_configurable(config, small_set):
    proba = [0.9, 0.8, 0.3, 0.7, 0.6, 0.2, 0.1, 0.4, 0.05, 0.2]
    model = wrap(FixedScorer(proba), small_set)

    report = ModelEvaluator(config).evaluate_model(model, small_set, threshold=0.25)

    assert report.counts.tp == 4
    assert report.threshold == 0.25


def test_label_independent_scores_give_auc_one_half(config, raw_factory):
    cleaned = DataPreprocessor(config).clean_data(raw_factory(n=600, seed=4, signal=None))
    feature_set = FeatureEngineer(config).fit_transform(cleaned)
    split = DataLoader(config).get_train_test_split(feature_set)
    dummy = DummyClassifier(strategy="prior").fit(split.train.features, split.train.labels)

    report = ModelEvaluator(config).evaluate_model(wrap(dummy, feature_set, "dummy"), split.test)

    assert report.auc == pytest.approx(0.5)


def test_missing_fitted_column_raises_schema_mismatch(config, raw_factory, split):
    model = ModelTrainer(config).train_logistic_regression(split.train)

    narrow_config = copy.deepcopy(config)
    narrow_config["features"]["categorical"].remove("payment_method")
    cleaned = DataPreprocessor(narrow_config).clean_data(raw_factory(n=200, seed=6))
    narrow = FeatureEngineer(narrow_config).fit_transform(cleaned)

    with pytest.raises(SchemaMismatchError):
        ModelEvaluator(config).evaluate_model(model, narrow)


def test_single_class_evaluation_set_is_rejected(config, small_set):
    churners = small_set.subset(small_set.index[small_set.target == 1])
    model = wrap(FixedScorer([0.5] * len(churners)), churners)

    with pytest.raises(DataIntegrityError):
        ModelEvaluator(config).evaluate_model(model, churners)


def test_report_is_flat_mapping_and_comparison_sorted(config, split):
    trainer = ModelTrainer(config)
    evaluator = ModelEvaluator(config)

    reports, comparison = evaluator.evaluate_all_models(trainer.train_all_models(split.train), split.test)

    flat = reports["random_forest"].to_dict()
    for key in ("tp", "fp", "tn", "fn", "accuracy", "sensitivity", "specificity", "kappa", "auc"):
        assert key in flat
    assert set(comparison.index) == set(reports)
    assert comparison["auc"].is_monotonic_decreasing
    assert evaluator.confusion_frame(reports["random_forest"]).to_numpy().sum() == len(split.test)

    roc = evaluator.roc_points(trainer.trained_models["random_forest"], split.test)
    assert list(roc.columns) == ["fpr", "tpr", "threshold"]
    assert roc["fpr"].iloc[-1] == 1.0
