import numpy as np
import pandas as pd
import pytest
from sklearn.ensemble import GradientBoostingClassifier, RandomForestClassifier
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC

ROLES = ["Sales Executive", "Research Scientist", "Laboratory Technician", "Manager"]
LEAVER_WORDS = ["overtime", "stress", "burnout", "commute", "underpaid", "exhausted"]
STAYER_WORDS = ["growth", "mentor", "happy", "learning", "promotion", "flexible"]


@pytest.fixture
def employees() -> pd.DataFrame:
    """120 IBM-like rows, 30 leavers, with a constant and an id column."""
    rng = np.random.default_rng(7)
    n = 120
    df = pd.DataFrame({
        "EmployeeNumber": np.arange(1001, 1001 + n),
        "EmployeeCount": 1,
        "StandardHours": 80,
        "Age": rng.integers(20, 60, size=n),
        "MonthlyIncome": rng.integers(2000, 20000, size=n),
        "JobRole": rng.choice(ROLES, size=n),
        "OverTime": rng.choice(["Yes", "No"], size=n),
        "JobSatisfaction": rng.integers(1, 5, size=n),
        "YearsAtCompany": rng.integers(0, 30, size=n),
    })
    risk = (
        (df["OverTime"] == "Yes") * 2.0
        + (5 - df["JobSatisfaction"]) * 0.8
        - df["MonthlyIncome"] / 10000.0
        + rng.normal(0, 0.5, size=n)
    )
    leavers = risk.rank(method="first", ascending=False) <= 30
    df["Attrition"] = np.where(leavers, "Yes", "No")
    return df


@pytest.fixture
def feedback(employees) -> pd.DataFrame:
    rng = np.random.default_rng(11)
    comments = []
    for label in employees["Attrition"]:
        words = LEAVER_WORDS if label == "Yes" else STAYER_WORDS
        picked = rng.choice(words, size=4)
        comments.append(f"Honestly, {' '.join(picked)}! Rated 3/5 in 2023.")
    return pd.DataFrame({"feedback": comments})


@pytest.fixture
def fast_estimators():
    svm = Pipeline(steps=[
        ("scaler", StandardScaler()),
        ("clf", SVC(random_state=0)),
    ])
    return {
        "svm": (svm, {"clf__C": [1.0]}),
        "rf": (RandomForestClassifier(n_estimators=20, random_state=0), {"max_depth": [None, 3]}),
        "gbm": (GradientBoostingClassifier(n_estimators=20, random_state=0), {"max_depth": [2]}),
    }
