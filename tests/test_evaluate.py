import math

import numpy as np
import pandas as pd
import pytest
from sklearn.dummy import DummyClassifier

from attrition.errors import MalformedInputError
from attrition.evaluate import METRIC_COLUMNS, compute_metrics, confusion_counts, evaluate_models, format_report


def test_confusion_counts():
    y_true = ["Yes", "Yes", "No", "No", "No"]
    y_pred = ["Yes", "No", "Yes", "No", "No"]

    assert confusion_counts(y_true, y_pred, "Yes") == (1, 1, 2, 1)


def test_metrics_values():
    y_true = ["Yes", "Yes", "No", "No", "No"]
    y_pred = ["Yes", "No", "Yes", "No", "No"]

    m = compute_metrics(y_true, y_pred, "Yes")

    assert m.accuracy == pytest.approx(0.6)
    assert m.precision == pytest.approx(0.5)
    assert m.recall == pytest.approx(0.5)
    assert m.specificity == pytest.approx(2 / 3)
    assert m.f1 == pytest.approx(0.5)
    assert m.kappa == pytest.approx(1 / 6)


def test_perfect_predictions():
    y = ["Yes", "No", "No"]
    m = compute_metrics(y, y, "Yes")

    assert (m.accuracy, m.precision, m.recall) == (1.0, 1.0, 1.0)
    assert m.kappa == pytest.approx(1.0)


def test_positive_never_predicted_gives_nan_precision():
    m = compute_metrics(["Yes", "No", "No"], ["No", "No", "No"], "Yes")

    assert math.isnan(m.precision)
    assert m.recall == 0.0
    assert math.isnan(m.f1)
    assert m.accuracy == pytest.approx(2 / 3)


def test_positive_absent_everywhere_gives_nan():
    m = compute_metrics(["No", "No"], ["No", "No"], "Yes")

    assert math.isnan(m.precision)
    assert math.isnan(m.recall)
    assert m.accuracy == 1.0


def test_metrics_stay_in_unit_interval():
    rng = np.random.default_rng(3)
    for _ in range(20):
        y_true = rng.choice(["Yes", "No"], size=30)
        y_pred = rng.choice(["Yes", "No"], size=30)
        m = compute_metrics(y_true, y_pred, "Yes")
        for value in (m.accuracy, m.precision, m.recall, m.specificity, m.f1):
            assert math.isnan(value) or 0.0 <= value <= 1.0


def test_numeric_labels():
    m = compute_metrics(np.array([1, 0, 1]), np.array([1, 0, 0]), 1)

    assert m.precision == 1.0
    assert m.recall == 0.5


def test_mismatched_lengths():
    with pytest.raises(MalformedInputError):
        compute_metrics(["Yes"], ["Yes", "No"], "Yes")


def test_empty_inputs():
    with pytest.raises(MalformedInputError):
        compute_metrics([], [], "Yes")


def test_evaluate_models():
    X = pd.DataFrame({"f": [0, 1, 2, 3]})
    y = pd.Series(["Yes", "No", "No", "Yes"])
    models = {
        "always_no": DummyClassifier(strategy="constant", constant="No").fit(X, y),
        "always_yes": DummyClassifier(strategy="constant", constant="Yes").fit(X, y),
    }

    report = evaluate_models(models, X, y, "Yes")

    assert report["model"].tolist() == ["always_no", "always_yes"]
    assert set(METRIC_COLUMNS) <= set(report.columns)
    assert math.isnan(report.loc[0, "precision"])
    assert report.loc[1, "recall"] == 1.0
    assert "always_yes" in format_report(report)
