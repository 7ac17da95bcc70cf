import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.ensemble import RandomForestClassifier
from sklearn.impute import SimpleImputer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder

from .config import CATEGORICAL_COLUMNS, RANDOM_STATE, TARGET_COLUMN, TOP_N_FEATURES, VARIANCE_THRESHOLD
from .errors import MalformedInputError, MissingColumnError

logger = logging.getLogger(__name__)

# Known identifier / bookkeeping columns of the IBM HR table
ID_COLUMNS = ["EmployeeNumber", "EmployeeCount"]
_ID_NAME = re.compile(r"(?:^id|_id|Id|ID|Number|_number)$")


# -------------------------
# Feature preparation
# -------------------------
def drop_identifier_columns(df: pd.DataFrame, exclude: Iterable[str] = ()) -> pd.DataFrame:
    """Drop known id columns and id-named columns that are unique per row."""
    exclude = set(exclude)
    to_drop = []
    for col in df.columns:
        if col in exclude:
            continue
        if col in ID_COLUMNS:
            to_drop.append(col)
        elif _ID_NAME.search(str(col)) and len(df) > 1 and df[col].nunique(dropna=False) == len(df):
            to_drop.append(col)

    if to_drop:
        logger.info("Dropping identifier columns: %s", to_drop)
    return df.drop(columns=to_drop)


def zero_variance_columns(df: pd.DataFrame, threshold: float = VARIANCE_THRESHOLD) -> List[str]:
    """
    Columns carrying no information: numeric columns with variance <= threshold
    (NaN variance included) and other columns with a single distinct value.
    """
    flagged = []
    numeric = df.select_dtypes(include="number").columns
    for col in df.columns:
        if col in numeric:
            var = df[col].var()
            if pd.isna(var) or var <= threshold:
                flagged.append(col)
        elif df[col].nunique(dropna=False) <= 1:
            flagged.append(col)
    return flagged


def drop_zero_variance(
    df: pd.DataFrame,
    threshold: float = VARIANCE_THRESHOLD,
    exclude: Iterable[str] = (),
) -> pd.DataFrame:
    exclude = set(exclude)
    to_drop = [c for c in zero_variance_columns(df, threshold) if c not in exclude]
    if to_drop:
        logger.info("Dropping zero-variance columns: %s", to_drop)
    return df.drop(columns=to_drop)


def cast_categorical(df: pd.DataFrame, columns: Iterable[str]) -> pd.DataFrame:
    """Cast the named columns, and every remaining string column, to category."""
    columns = list(columns)
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise MissingColumnError(missing, "feature table")

    out = df.copy()
    strings = out.select_dtypes(include=["object", "string", "bool"]).columns.tolist()
    for col in dict.fromkeys(columns + strings):
        out[col] = out[col].astype("category")
    return out


def prepare_features(
    df: pd.DataFrame,
    target: str = TARGET_COLUMN,
    categorical_columns: Iterable[str] = CATEGORICAL_COLUMNS,
    threshold: float = VARIANCE_THRESHOLD,
) -> pd.DataFrame:
    """Identifier removal, zero-variance removal and categorical casting."""
    if target not in df.columns:
        raise MissingColumnError([target], "feature table")

    categorical_columns = list(categorical_columns)
    missing = [c for c in categorical_columns if c not in df.columns]
    if missing:
        raise MissingColumnError(missing, "feature table")

    out = drop_identifier_columns(df, exclude=[target])
    out = drop_zero_variance(out, threshold, exclude=[target])

    features = [c for c in out.columns if c != target]
    if not features:
        raise MalformedInputError("No informative feature column left after preparation")

    kept = [c for c in categorical_columns if c in out.columns]
    labels = out[target]
    out = cast_categorical(out.drop(columns=[target]), kept)
    out[target] = labels.to_numpy()
    return out


# -------------------------
# Encoding
# -------------------------
class FeatureEncoder:
    """
    One-hot encodes categorical columns and passes numeric ones through,
    returning a float DataFrame. Fit on the training split only; unseen
    categories at transform time encode to all zeros.
    """

    def __init__(self):
        self.categorical_: List[str] = []
        self.numeric_: List[str] = []
        self.feature_names_: List[str] = []
        self.source_columns_: List[str] = []
        self._transformer: Optional[ColumnTransformer] = None

    @staticmethod
    def _as_input(X: pd.DataFrame, categorical: List[str]) -> pd.DataFrame:
        X = X.copy()
        for col in categorical:
            X[col] = X[col].astype(object)
        return X

    def fit(self, X: pd.DataFrame) -> "FeatureEncoder":
        self.numeric_ = X.select_dtypes(include="number").columns.tolist()
        self.categorical_ = [c for c in X.columns if c not in self.numeric_]

        categorical_pipeline = Pipeline(steps=[
            ("imputer", SimpleImputer(strategy="most_frequent")),
            ("onehot", OneHotEncoder(handle_unknown="ignore", sparse_output=False)),
        ])
        numeric_pipeline = Pipeline(steps=[
            ("imputer", SimpleImputer(strategy="median")),
        ])

        self._transformer = ColumnTransformer(transformers=[
            ("cat", categorical_pipeline, self.categorical_),
            ("num", numeric_pipeline, self.numeric_),
        ])
        self._transformer.fit(self._as_input(X, self.categorical_))

        names, sources = [], []
        if self.categorical_:
            onehot = self._transformer.named_transformers_["cat"].named_steps["onehot"]
            for col, categories in zip(self.categorical_, onehot.categories_):
                for category in categories:
                    names.append(f"{col}={category}")
                    sources.append(col)
        names.extend(self.numeric_)
        sources.extend(self.numeric_)

        self.feature_names_ = names
        self.source_columns_ = sources
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        if self._transformer is None:
            raise RuntimeError("FeatureEncoder must be fitted before transform")

        missing = [c for c in self.categorical_ + self.numeric_ if c not in X.columns]
        if missing:
            raise MissingColumnError(missing, "feature table")

        values = self._transformer.transform(self._as_input(X, self.categorical_))
        return pd.DataFrame(np.asarray(values, dtype=float), columns=self.feature_names_, index=X.index)

    def fit_transform(self, X: pd.DataFrame) -> pd.DataFrame:
        return self.fit(X).transform(X)


# -------------------------
# Feature selection
# -------------------------
@dataclass
class FeatureRanking:
    importances: pd.Series  # indexed by column, most important first

    def top(self, n: int) -> List[str]:
        return self.importances.index[:n].tolist()


def rank_features(
    df: pd.DataFrame,
    target: str = TARGET_COLUMN,
    random_state: int = RANDOM_STATE,
    n_estimators: int = 200,
) -> FeatureRanking:
    """Random forest importances, summed back onto the original columns."""
    if target not in df.columns:
        raise MissingColumnError([target], "feature table")

    X = df.drop(columns=[target])
    y = df[target].astype(str)
    if y.nunique() < 2:
        raise MalformedInputError("Feature ranking needs both classes in the label column")

    encoder = FeatureEncoder()
    X_enc = encoder.fit_transform(X)

    forest = RandomForestClassifier(n_estimators=n_estimators, random_state=random_state)
    forest.fit(X_enc, y)

    per_dummy = pd.Series(forest.feature_importances_, index=encoder.source_columns_)
    per_column = per_dummy.groupby(level=0).sum().reindex(X.columns, fill_value=0.0)

    # Highest importance first, ties by name
    order = sorted(per_column.index, key=lambda c: (-per_column[c], str(c)))
    return FeatureRanking(importances=per_column.loc[order])


def select_top_features(
    df: pd.DataFrame,
    target: str = TARGET_COLUMN,
    top_n: int = TOP_N_FEATURES,
    random_state: int = RANDOM_STATE,
) -> Tuple[pd.DataFrame, FeatureRanking]:
    """Keep the top_n most important columns plus the target."""
    if top_n < 1:
        raise ValueError(f"top_n must be at least 1, got {top_n}")

    ranking = rank_features(df, target=target, random_state=random_state)
    keep = ranking.top(top_n)
    logger.info("Selected %d of %d features: %s", len(keep), len(ranking.importances), keep)
    return df[keep + [target]].copy(), ranking
