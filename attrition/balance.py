import logging
from dataclasses import dataclass
from typing import Dict, Tuple

import pandas as pd
from imblearn.over_sampling import SMOTE
from imblearn.under_sampling import RandomUnderSampler

from .config import RANDOM_STATE, SMOTE_PERC_OVER, SMOTE_PERC_UNDER
from .errors import MalformedInputError

logger = logging.getLogger(__name__)


@dataclass
class BalanceResult:
    X: pd.DataFrame
    y: pd.Series
    counts_before: Dict[str, int]
    counts_after: Dict[str, int]
    minority_label: str
    majority_label: str

    @property
    def ratio_before(self) -> float:
        return self.counts_before[self.minority_label] / self.counts_before[self.majority_label]

    @property
    def ratio_after(self) -> float:
        return self.counts_after[self.minority_label] / self.counts_after[self.majority_label]


def _minority_majority(y: pd.Series) -> Tuple[str, str, int, int]:
    counts = y.value_counts()
    if len(counts) != 2:
        raise MalformedInputError(
            f"Class balancing needs exactly two classes, got {sorted(counts.index.astype(str))}"
        )
    # Ties: the label sorting first is treated as minority
    ordered = sorted(counts.index, key=lambda label: (counts[label], str(label)))
    minority, majority = ordered
    return minority, majority, int(counts[minority]), int(counts[majority])


def resample_targets(n_min: int, n_maj: int, perc_over: int, perc_under: int) -> Tuple[int, int]:
    """
    Class sizes after resampling, following the perc.over / perc.under recipe:

    - perc_over >= 100: every minority row seeds perc_over // 100 synthetic rows
    - perc_over < 100: perc_over% of the minority rows seed one synthetic row each
    - the majority class is sampled down to perc_under% of the synthetic count,
      never above its current size

    Returns (minority_after, majority_after).
    """
    if perc_over <= 0:
        raise ValueError(f"perc_over must be positive, got {perc_over}")
    if perc_under <= 0:
        raise ValueError(f"perc_under must be positive, got {perc_under}")

    if perc_over < 100:
        synthetic = int(n_min * perc_over / 100)
    else:
        synthetic = (perc_over // 100) * n_min
    if synthetic < 1:
        raise ValueError(f"perc_over={perc_over} creates no synthetic row for {n_min} minority rows")

    majority_after = min(n_maj, int(perc_under / 100 * synthetic))
    if majority_after < 1:
        raise ValueError(f"perc_under={perc_under} leaves no majority row")

    return n_min + synthetic, majority_after


def balance_classes(
    X: pd.DataFrame,
    y: pd.Series,
    perc_over: int = SMOTE_PERC_OVER,
    perc_under: int = SMOTE_PERC_UNDER,
    k_neighbors: int = 5,
    random_state: int = RANDOM_STATE,
) -> BalanceResult:
    """
    SMOTE oversampling of the minority class followed by random undersampling
    of the majority class. X must be numeric (encode first). Apply to the
    training split only.
    """
    if len(X) != len(y):
        raise MalformedInputError(f"X has {len(X)} rows but y has {len(y)}")

    non_numeric = X.columns[[not pd.api.types.is_numeric_dtype(t) for t in X.dtypes]].tolist()
    if non_numeric:
        raise MalformedInputError(f"Class balancing needs numeric features, got {non_numeric}")
    if X.isna().any().any():
        raise MalformedInputError("Class balancing needs features without missing values")

    y = pd.Series(y).reset_index(drop=True)
    X = X.reset_index(drop=True)

    minority, majority, n_min, n_maj = _minority_majority(y)
    if n_min < 2:
        raise MalformedInputError(f"SMOTE needs at least 2 minority rows, got {n_min}")

    minority_after, majority_after = resample_targets(n_min, n_maj, perc_over, perc_under)

    smote = SMOTE(
        sampling_strategy={minority: minority_after},
        k_neighbors=min(k_neighbors, n_min - 1),
        random_state=random_state,
    )
    X_over, y_over = smote.fit_resample(X, y)

    under = RandomUnderSampler(sampling_strategy={majority: majority_after}, random_state=random_state)
    X_res, y_res = under.fit_resample(X_over, y_over)

    X_res = pd.DataFrame(X_res, columns=X.columns)
    y_res = pd.Series(y_res, name=y.name)

    before = {str(k): int(v) for k, v in y.value_counts().items()}
    after = {str(k): int(v) for k, v in y_res.value_counts().items()}
    logger.info("Balanced classes %s -> %s (perc_over=%d, perc_under=%d)", before, after, perc_over, perc_under)

    return BalanceResult(
        X=X_res.reset_index(drop=True),
        y=y_res.reset_index(drop=True),
        counts_before=before,
        counts_after=after,
        minority_label=str(minority),
        majority_label=str(majority),
    )
