import numpy as np
import pandas as pd
import pytest

from attrition.balance import balance_classes, resample_targets
from attrition.errors import MalformedInputError


@pytest.fixture
def skewed():
    rng = np.random.default_rng(0)
    X = pd.DataFrame({
        "f1": rng.normal(size=100),
        "f2": rng.normal(size=100),
        "f3": rng.integers(0, 2, size=100).astype(float),
    })
    y = pd.Series(["Yes"] * 20 + ["No"] * 80, name="Attrition")
    return X, y


def test_resample_targets_classic_example():
    # 237 leavers / 1233 stayers, the IBM HR proportions
    assert resample_targets(237, 1233, 300, 150) == (948, 1066)


def test_resample_targets_majority_capped():
    assert resample_targets(10, 20, 300, 200) == (40, 20)


def test_resample_targets_partial_oversampling():
    assert resample_targets(10, 100, 50, 200) == (15, 10)


@pytest.mark.parametrize("perc_over, perc_under", [(0, 150), (300, 0), (-100, 150)])
def test_resample_targets_invalid(perc_over, perc_under):
    with pytest.raises(ValueError):
        resample_targets(10, 100, perc_over, perc_under)


def test_balance_classes_counts(skewed):
    X, y = skewed

    result = balance_classes(X, y, perc_over=200, perc_under=150, random_state=1)

    assert result.counts_before == {"No": 80, "Yes": 20}
    assert result.counts_after == {"No": 60, "Yes": 60}
    assert len(result.X) == len(result.y) == 120
    assert list(result.X.columns) == ["f1", "f2", "f3"]
    assert result.y.name == "Attrition"


@pytest.mark.parametrize("perc_over, perc_under", [(100, 100), (300, 150), (50, 400), (500, 50)])
def test_balancing_improves_minority_ratio(skewed, perc_over, perc_under):
    X, y = skewed

    result = balance_classes(X, y, perc_over=perc_over, perc_under=perc_under)

    assert result.counts_after["Yes"] >= result.counts_before["Yes"]
    assert result.ratio_after > result.ratio_before


def test_original_minority_rows_are_kept(skewed):
    X, y = skewed

    result = balance_classes(X, y, perc_over=100, perc_under=200)

    minority = X[y == "Yes"].round(10)
    resampled = result.X[result.y == "Yes"].round(10)
    merged = minority.merge(resampled.drop_duplicates(), how="left", indicator=True)
    assert (merged["_merge"] == "both").all()


def test_balance_is_reproducible(skewed):
    X, y = skewed

    a = balance_classes(X, y, random_state=5)
    b = balance_classes(X, y, random_state=5)

    pd.testing.assert_frame_equal(a.X, b.X)
    pd.testing.assert_series_equal(a.y, b.y)


def test_small_minority_reduces_neighbours():
    X = pd.DataFrame({"f": np.arange(12, dtype=float)})
    y = pd.Series(["Yes"] * 3 + ["No"] * 9)

    result = balance_classes(X, y, perc_over=100, perc_under=200)

    assert result.counts_after == {"No": 6, "Yes": 6}


def test_single_class_rejected():
    X = pd.DataFrame({"f": [1.0, 2.0, 3.0]})
    with pytest.raises(MalformedInputError):
        balance_classes(X, pd.Series(["No", "No", "No"]))


def test_one_minority_row_rejected():
    X = pd.DataFrame({"f": [1.0, 2.0, 3.0, 4.0]})
    with pytest.raises(MalformedInputError):
        balance_classes(X, pd.Series(["Yes", "No", "No", "No"]))


def test_non_numeric_features_rejected(skewed):
    X, y = skewed
    X = X.assign(dept="Sales")
    with pytest.raises(MalformedInputError):
        balance_classes(X, y)


def test_length_mismatch_rejected(skewed):
    X, y = skewed
    with pytest.raises(MalformedInputError):
        balance_classes(X, y.iloc[:50])
