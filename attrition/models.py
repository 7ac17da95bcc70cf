import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import joblib
import pandas as pd
from sklearn.base import BaseEstimator, clone
from sklearn.ensemble import GradientBoostingClassifier, RandomForestClassifier, StackingClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import GridSearchCV, StratifiedKFold
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC

from .config import CV_FOLDS, RANDOM_STATE
from .errors import MalformedInputError

logger = logging.getLogger(__name__)

# name -> (estimator, hyperparameter grid)
EstimatorSpec = Dict[str, Tuple[BaseEstimator, Dict[str, list]]]

STACK_NAME = "stack"


def default_estimators(random_state: int = RANDOM_STATE) -> EstimatorSpec:
    """The three base learners and the grids searched for each."""
    svm = Pipeline(steps=[
        ("scaler", StandardScaler()),
        ("clf", SVC(random_state=random_state)),
    ])
    return {
        "svm": (svm, {
            "clf__C": [0.1, 1.0, 10.0],
            "clf__kernel": ["rbf", "linear"],
        }),
        "rf": (RandomForestClassifier(random_state=random_state), {
            "n_estimators": [100, 300],
            "max_depth": [None, 10],
        }),
        "gbm": (GradientBoostingClassifier(random_state=random_state), {
            "n_estimators": [100, 200],
            "learning_rate": [0.05, 0.1],
            "max_depth": [3],
        }),
    }


@dataclass
class TrainedModels:
    models: Dict[str, BaseEstimator] = field(default_factory=dict)
    best_params: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    cv_scores: Dict[str, float] = field(default_factory=dict)
    feature_names: list = field(default_factory=list)

    def __getitem__(self, name: str) -> BaseEstimator:
        return self.models[name]

    def __iter__(self):
        return iter(self.models.items())

    def predict(self, name: str, X: pd.DataFrame):
        return self.models[name].predict(X)

    def summary(self) -> pd.DataFrame:
        rows = []
        for name in self.models:
            rows.append({
                "model": name,
                "cv_accuracy": self.cv_scores.get(name),
                "best_params": self.best_params.get(name, {}),
            })
        return pd.DataFrame(rows)


def _folds_for(y: pd.Series, cv_folds: int) -> int:
    smallest = int(pd.Series(y).value_counts().min())
    folds = min(cv_folds, smallest)
    if folds < 2:
        raise MalformedInputError(
            f"Cross-validation needs at least 2 rows per class, smallest class has {smallest}"
        )
    if folds < cv_folds:
        logger.warning("Reducing CV folds from %d to %d (smallest class has %d rows)", cv_folds, folds, smallest)
    return folds


def train_models(
    X: pd.DataFrame,
    y: pd.Series,
    cv_folds: int = CV_FOLDS,
    random_state: int = RANDOM_STATE,
    estimators: Optional[EstimatorSpec] = None,
) -> TrainedModels:
    """
    Grid-search each base learner, then stack the tuned learners under a
    logistic-regression meta-model fitted on out-of-fold probabilities.
    """
    if len(X) != len(y):
        raise MalformedInputError(f"X has {len(X)} rows but y has {len(y)}")
    if pd.Series(y).nunique() != 2:
        raise MalformedInputError("Training needs exactly two classes in the label")

    estimators = estimators or default_estimators(random_state)
    folds = _folds_for(y, cv_folds)
    cv = StratifiedKFold(n_splits=folds, shuffle=True, random_state=random_state)

    trained = TrainedModels(feature_names=list(X.columns))

    for name, (estimator, grid) in estimators.items():
        search = GridSearchCV(clone(estimator), grid, cv=cv, scoring="accuracy", refit=True)
        search.fit(X, y)
        trained.models[name] = search.best_estimator_
        trained.best_params[name] = search.best_params_
        trained.cv_scores[name] = float(search.best_score_)
        logger.info("%s: cv accuracy %.4f with %s", name, search.best_score_, search.best_params_)

    stack = StackingClassifier(
        estimators=[(name, clone(model)) for name, model in trained.models.items()],
        final_estimator=LogisticRegression(max_iter=1000),
        cv=cv,
        stack_method="auto",
    )
    stack.fit(X, y)
    trained.models[STACK_NAME] = stack
    logger.info("Stacked ensemble fitted over %s", list(estimators))

    return trained


def save_models(models: TrainedModels, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(models, path)
    logger.info("Saved %d models to %s", len(models.models), path)
    return path


def load_models(path: Union[str, Path]) -> TrainedModels:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Model bundle not found at {path}")
    return joblib.load(path)
