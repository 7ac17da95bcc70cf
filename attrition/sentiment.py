import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import pandas as pd

from .config import (
    FEEDBACK_CSV,
    LOG_LEVEL,
    NEGATIVE_LABEL,
    OUT_DIR,
    POSITIVE_LABEL,
    SENTIMENT_THRESHOLD,
    TEXT_COLUMN,
    TEXT_LANGUAGE,
)
from .errors import PipelineError, UnsupportedLanguageError
from .ingest import load_feedback
from .services import score_sentiment, translate

logger = logging.getLogger(__name__)

OUT_FILE = OUT_DIR / "sentiment_scores.csv"

UNSUPPORTED_PREFIX = "unsupported-language"


@dataclass
class SentimentResult:
    text: str
    score: Optional[float] = None
    translated: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def score_feedback(
    texts: Iterable[str],
    language: str = TEXT_LANGUAGE,
    mode: Optional[str] = None,
    translate_to: Optional[str] = None,
) -> List[SentimentResult]:
    """
    Score each comment, translating it first when translate_to is given.
    A failing comment is recorded on its own result and the batch continues.
    """
    results = []
    for i, text in enumerate(texts):
        result = SentimentResult(text=text)
        try:
            scored_text, scored_language = text, language
            if translate_to:
                result.translated = translate(text, language, translate_to, mode=mode)
                scored_text, scored_language = result.translated, translate_to
            result.score = score_sentiment(scored_text, scored_language, mode=mode)
        except UnsupportedLanguageError as exc:
            result.error = f"{UNSUPPORTED_PREFIX}: {exc}"
            logger.warning("Comment %d flagged: %s", i, exc)
        except PipelineError as exc:
            result.error = str(exc)
            logger.warning("Comment %d could not be scored: %s", i, exc)
        results.append(result)

    failed = sum(not r.ok for r in results)
    if failed:
        logger.warning("%d of %d comments could not be scored", failed, len(results))
    return results


def label_from_sentiment(
    scores: Iterable[Optional[float]],
    threshold: float = SENTIMENT_THRESHOLD,
    positive_label: str = POSITIVE_LABEL,
    negative_label: str = NEGATIVE_LABEL,
) -> pd.Series:
    """
    Heuristic attrition label: a score below threshold means the employee is
    predicted to leave (positive_label). Missing scores stay missing.
    """
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be in [0, 1], got {threshold}")

    labels = [
        None if pd.isna(score) else (positive_label if score < threshold else negative_label)
        for score in scores
    ]
    return pd.Series(labels, dtype="object")


def sentiment_frame(results: List[SentimentResult]) -> pd.DataFrame:
    return pd.DataFrame({
        "text": [r.text for r in results],
        "translated": [r.translated for r in results],
        "score": [r.score for r in results],
        "error": [r.error for r in results],
    })


def main(sample_size: int = 200):
    logging.basicConfig(level=LOG_LEVEL)

    df = load_feedback(FEEDBACK_CSV, TEXT_COLUMN)

    # Take a small sample for speed
    sample = df.sample(n=min(sample_size, len(df)), random_state=42).copy()

    results = score_feedback(sample[TEXT_COLUMN].tolist(), language=TEXT_LANGUAGE)
    frame = sentiment_frame(results)
    frame["predicted_attrition"] = label_from_sentiment(frame["score"])

    OUT_DIR.mkdir(parents=True, exist_ok=True)
    frame.to_csv(OUT_FILE, index=False)

    print(f"Saved sentiment results to: {OUT_FILE}")
    print(frame["predicted_attrition"].value_counts(dropna=False))
    print("\nTop 5 rows:")
    print(frame.head())


if __name__ == "__main__":
    main()
