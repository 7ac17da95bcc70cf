import logging
import math
from dataclasses import asdict, dataclass
from typing import Iterable, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import confusion_matrix

from .config import POSITIVE_LABEL
from .errors import MalformedInputError

logger = logging.getLogger(__name__)

METRIC_COLUMNS = ["accuracy", "precision", "recall", "specificity", "f1", "kappa"]


@dataclass(frozen=True)
class Metrics:
    accuracy: float
    precision: float
    recall: float
    specificity: float
    f1: float
    kappa: float
    tp: int
    fp: int
    tn: int
    fn: int

    def as_dict(self) -> dict:
        return asdict(self)


def _ratio(num: int, den: int) -> float:
    return num / den if den else float("nan")


def confusion_counts(y_true: Iterable, y_pred: Iterable, positive_label: str = POSITIVE_LABEL) -> Tuple[int, int, int, int]:
    """(tp, fp, tn, fn) with the positive class given explicitly."""
    truth = np.asarray(list(y_true)).astype(str)
    pred = np.asarray(list(y_pred)).astype(str)
    if len(truth) == 0:
        raise MalformedInputError("Cannot evaluate an empty prediction set")
    if len(truth) != len(pred):
        raise MalformedInputError(f"{len(truth)} true labels but {len(pred)} predictions")

    pos = str(positive_label)
    tn, fp, fn, tp = confusion_matrix(truth == pos, pred == pos, labels=[False, True]).ravel()
    return int(tp), int(fp), int(tn), int(fn)


def compute_metrics(y_true: Iterable, y_pred: Iterable, positive_label: str = POSITIVE_LABEL) -> Metrics:
    """
    Confusion-matrix metrics. Precision is NaN when the positive class is never
    predicted, recall is NaN when it never occurs in the truth.
    """
    tp, fp, tn, fn = confusion_counts(y_true, y_pred, positive_label)
    n = tp + fp + tn + fn

    accuracy = (tp + tn) / n
    precision = _ratio(tp, tp + fp)
    recall = _ratio(tp, tp + fn)
    specificity = _ratio(tn, tn + fp)

    if math.isnan(precision) or math.isnan(recall):
        f1 = float("nan")
    elif precision + recall == 0:
        f1 = 0.0
    else:
        f1 = 2 * precision * recall / (precision + recall)

    expected = ((tp + fp) * (tp + fn) + (tn + fn) * (tn + fp)) / (n * n)
    kappa = (accuracy - expected) / (1 - expected) if expected != 1 else float("nan")

    return Metrics(
        accuracy=accuracy,
        precision=precision,
        recall=recall,
        specificity=specificity,
        f1=f1,
        kappa=kappa,
        tp=tp, fp=fp, tn=tn, fn=fn,
    )


def evaluate_models(models, X: pd.DataFrame, y: Iterable, positive_label: str = POSITIVE_LABEL) -> pd.DataFrame:
    """Score every fitted model on held-out data; one row per model."""
    y = list(y)
    pairs = models.items() if isinstance(models, dict) else models
    rows = []
    for name, model in pairs:
        metrics = compute_metrics(y, model.predict(X), positive_label)
        rows.append({"model": name, **metrics.as_dict()})
        logger.info(
            "%s: accuracy=%.4f precision=%.4f recall=%.4f",
            name, metrics.accuracy, metrics.precision, metrics.recall,
        )
    return pd.DataFrame(rows)


def format_report(report: pd.DataFrame) -> str:
    if report is None or report.empty:
        return "(no models evaluated)"
    return report.to_string(index=False, float_format=lambda v: f"{v:.4f}")
