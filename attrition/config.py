import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .errors import ConfigError

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _env_path(name: str, default: Optional[Path]) -> Optional[Path]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    path = Path(raw)
    return path if path.is_absolute() else BASE_DIR / path


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# Inputs
EMPLOYEE_CSV = _env_path("EMPLOYEE_CSV", BASE_DIR / "data" / "raw" / "WA_Fn-UseC_-HR-Employee-Attrition.csv")
FEEDBACK_CSV = _env_path("FEEDBACK_CSV", BASE_DIR / "data" / "raw" / "employee_feedback.csv")
STOPWORDS_FILE = _env_path("STOPWORDS_FILE", None)
OUT_DIR = BASE_DIR / "data" / "processed"

TARGET_COLUMN = os.getenv("TARGET_COLUMN", "Attrition")
POSITIVE_LABEL = os.getenv("POSITIVE_LABEL", "Yes")
NEGATIVE_LABEL = os.getenv("NEGATIVE_LABEL", "No")
TEXT_COLUMN = os.getenv("TEXT_COLUMN", "feedback")
TEXT_LANGUAGE = os.getenv("TEXT_LANGUAGE", "en").strip().lower()

# Integer codes in the IBM HR table that are really nominal / ordinal levels
CATEGORICAL_COLUMNS = _env_list("CATEGORICAL_COLUMNS", [
    "Education", "EnvironmentSatisfaction", "JobInvolvement", "JobLevel",
    "JobSatisfaction", "PerformanceRating", "RelationshipSatisfaction",
    "StockOptionLevel", "WorkLifeBalance",
])

# Feature preparation / selection
VARIANCE_THRESHOLD = _env_float("VARIANCE_THRESHOLD", 0.0)
TOP_N_FEATURES = _env_int("TOP_N_FEATURES", 15)

# Class balancing
SMOTE_PERC_OVER = _env_int("SMOTE_PERC_OVER", 300)
SMOTE_PERC_UNDER = _env_int("SMOTE_PERC_UNDER", 150)

# Training / evaluation
TEST_SIZE = _env_float("TEST_SIZE", 0.3)
CV_FOLDS = _env_int("CV_FOLDS", 5)
RANDOM_STATE = _env_int("RANDOM_STATE", 42)

# Text
TEXT_WEIGHTING = os.getenv("TEXT_WEIGHTING", "tf").strip().lower()
TEXT_SPARSITY = _env_float("TEXT_SPARSITY", 0.99)

# Sentiment labelling: score < threshold => attrition "Yes"
SENTIMENT_THRESHOLD = _env_float("SENTIMENT_THRESHOLD", 0.5)

# Mode: "azure", "groq" or "local"
SERVICE_MODE = os.getenv("SERVICE_MODE", "azure").strip().lower()

# Azure Cognitive Services
AZURE_TEXT_KEY = os.getenv("AZURE_TEXT_KEY", "")
AZURE_TEXT_ENDPOINT = os.getenv("AZURE_TEXT_ENDPOINT", "")
AZURE_TRANSLATOR_KEY = os.getenv("AZURE_TRANSLATOR_KEY", "")
AZURE_TRANSLATOR_REGION = os.getenv("AZURE_TRANSLATOR_REGION", "")
AZURE_TRANSLATOR_ENDPOINT = os.getenv("AZURE_TRANSLATOR_ENDPOINT", "https://api.cognitive.microsofttranslator.com")

# Groq (OpenAI-compatible)
GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")

# Local model (HF)
LOCAL_SENTIMENT_MODEL = os.getenv("LOCAL_SENTIMENT_MODEL", "distilbert-base-uncased-finetuned-sst-2-english")

REQUEST_TIMEOUT = _env_float("REQUEST_TIMEOUT", 10.0)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()


@dataclass
class PipelineConfig:
    """Run parameters. Defaults come from the environment."""

    employee_csv: Path = EMPLOYEE_CSV
    feedback_csv: Optional[Path] = FEEDBACK_CSV
    stopwords_file: Optional[Path] = STOPWORDS_FILE
    target: str = TARGET_COLUMN
    positive_label: str = POSITIVE_LABEL
    negative_label: str = NEGATIVE_LABEL
    text_column: str = TEXT_COLUMN
    text_language: str = TEXT_LANGUAGE
    categorical_columns: List[str] = field(default_factory=lambda: list(CATEGORICAL_COLUMNS))
    variance_threshold: float = VARIANCE_THRESHOLD
    top_n_features: int = TOP_N_FEATURES
    perc_over: int = SMOTE_PERC_OVER
    perc_under: int = SMOTE_PERC_UNDER
    test_size: float = TEST_SIZE
    cv_folds: int = CV_FOLDS
    random_state: int = RANDOM_STATE
    text_weighting: str = TEXT_WEIGHTING
    text_sparsity: Optional[float] = TEXT_SPARSITY
    sentiment_threshold: float = SENTIMENT_THRESHOLD

    def __post_init__(self):
        if not 0.0 < self.test_size < 1.0:
            raise ConfigError(f"test_size must be between 0 and 1, got {self.test_size}")
        if self.cv_folds < 2:
            raise ConfigError(f"cv_folds must be at least 2, got {self.cv_folds}")
        if self.text_weighting not in ("tf", "tfidf"):
            raise ConfigError(f"text_weighting must be 'tf' or 'tfidf', got {self.text_weighting!r}")
        if self.text_sparsity is not None and not 0.0 < self.text_sparsity <= 1.0:
            raise ConfigError(f"text_sparsity must be in (0, 1], got {self.text_sparsity}")
        if not 0.0 <= self.sentiment_threshold <= 1.0:
            raise ConfigError(f"sentiment_threshold must be in [0, 1], got {self.sentiment_threshold}")

    @property
    def labels(self) -> List[str]:
        return [self.negative_label, self.positive_label]
