import logging
from pathlib import Path
from typing import IO, Iterable, Optional, Set, Union

import pandas as pd
from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS

from .config import EMPLOYEE_CSV, FEEDBACK_CSV, NEGATIVE_LABEL, POSITIVE_LABEL, TARGET_COLUMN, TEXT_COLUMN
from .errors import MalformedInputError, MissingColumnError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _read_table(source: Union[PathLike, IO], what: str, sep: str = ",") -> pd.DataFrame:
    # uploads arrive as open buffers, everything else as a path
    if isinstance(source, (str, Path)):
        source = Path(source)
        if not source.exists():
            raise FileNotFoundError(f"{what} not found at {source}")
        path = source
    else:
        path = getattr(source, "name", "upload")

    try:
        df = pd.read_csv(source, sep=sep)
    except pd.errors.EmptyDataError as exc:
        raise MalformedInputError(f"{what} at {path} is empty") from exc
    except pd.errors.ParserError as exc:
        raise MalformedInputError(f"{what} at {path} has malformed rows: {exc}") from exc

    if df.empty:
        raise MalformedInputError(f"{what} at {path} has no rows")

    logger.info("Loaded %s: %d rows x %d columns from %s", what, len(df), df.shape[1], path)
    return df


def check_labels(
    labels: pd.Series,
    classes: Iterable[str] = (NEGATIVE_LABEL, POSITIVE_LABEL),
) -> None:
    """Raise if a label is missing or outside the two expected classes."""
    classes = list(classes)
    if labels.isna().any():
        rows = labels.index[labels.isna()].tolist()[:5]
        raise MalformedInputError(f"Missing label in rows {rows}")

    unexpected = sorted(set(labels.astype(str)) - set(classes))
    if unexpected:
        raise MalformedInputError(f"Unexpected label value(s) {unexpected}; expected {classes}")


def load_employees(
    path: Union[PathLike, IO] = EMPLOYEE_CSV,
    target: str = TARGET_COLUMN,
    classes: Iterable[str] = (NEGATIVE_LABEL, POSITIVE_LABEL),
) -> pd.DataFrame:
    """Load the HR employee table and validate its label column."""
    df = _read_table(path, "Employee dataset")

    if target not in df.columns:
        raise MissingColumnError([target], "employee dataset")

    df[target] = df[target].map(lambda v: v if pd.isna(v) else str(v).strip())
    check_labels(df[target], classes)
    return df


def load_feedback(path: Union[PathLike, IO] = FEEDBACK_CSV, text_column: str = TEXT_COLUMN) -> pd.DataFrame:
    """Load free-text feedback. Empty comments become empty strings."""
    df = _read_table(path, "Feedback dataset")

    if text_column not in df.columns:
        raise MissingColumnError([text_column], "feedback dataset")

    df[text_column] = df[text_column].fillna("").astype(str)
    return df


def load_stopwords(path: Optional[PathLike] = None) -> Set[str]:
    """
    Read a stop-word dictionary: one word per line, '#' starts a comment.
    Without a path the scikit-learn English list is used.
    """
    if path is None:
        return set(ENGLISH_STOP_WORDS)

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Stop-word file not found at {path}")

    words = set()
    for line in path.read_text(encoding="utf-8").splitlines():
        word = line.split("#", 1)[0].strip().lower()
        if word:
            words.add(word)

    logger.info("Loaded %d stop-words from %s", len(words), path)
    return words


def join_feedback(
    employees: pd.DataFrame,
    feedback: pd.DataFrame,
    text_column: str = TEXT_COLUMN,
    target: str = TARGET_COLUMN,
) -> pd.DataFrame:
    """Attach the employee label to each feedback row by row order."""
    if text_column not in feedback.columns:
        raise MissingColumnError([text_column], "feedback dataset")
    if target not in employees.columns:
        raise MissingColumnError([target], "employee dataset")
    if len(employees) != len(feedback):
        raise MalformedInputError(
            f"Cannot join by row order: {len(employees)} employees vs {len(feedback)} feedback rows"
        )

    joined = pd.DataFrame({
        text_column: feedback[text_column].fillna("").astype(str).to_numpy(),
        target: employees[target].to_numpy(),
    })
    return joined


def class_distribution(labels: pd.Series) -> pd.Series:
    return pd.Series(labels).value_counts().sort_index()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    df = load_employees()
    print(class_distribution(df[TARGET_COLUMN]))
