import logging
from dataclasses import dataclass
from typing import List, Optional

import pandas as pd
from sklearn.model_selection import train_test_split

from .balance import BalanceResult, balance_classes
from .config import LOG_LEVEL, PipelineConfig
from .errors import MissingColumnError
from .evaluate import evaluate_models
from .features import FeatureEncoder, FeatureRanking, prepare_features, select_top_features
from .ingest import check_labels, join_feedback, load_employees, load_feedback, load_stopwords
from .models import EstimatorSpec, TrainedModels, train_models
from .reporting import report_to_text
from .text import TextVectorizer

logger = logging.getLogger(__name__)


@dataclass
class TextBranchResult:
    report: pd.DataFrame
    models: TrainedModels
    balance: BalanceResult
    vocabulary_size: int
    top_terms: pd.Series


@dataclass
class PipelineResult:
    config: PipelineConfig
    selected_features: List[str]
    ranking: FeatureRanking
    balance: BalanceResult
    models: TrainedModels
    report: pd.DataFrame
    n_train: int
    n_test: int
    text: Optional[TextBranchResult] = None


def _split_indices(labels: pd.Series, config: PipelineConfig):
    train_idx, test_idx = train_test_split(
        labels.index,
        test_size=config.test_size,
        stratify=labels,
        random_state=config.random_state,
    )
    return train_idx, test_idx


def _run_text_branch(
    joined: pd.DataFrame,
    train_idx,
    test_idx,
    config: PipelineConfig,
    estimators: Optional[EstimatorSpec],
) -> TextBranchResult:
    stopwords = load_stopwords(config.stopwords_file)
    vectorizer = TextVectorizer(
        weighting=config.text_weighting,
        language=config.text_language,
        stopwords=stopwords,
        sparsity=config.text_sparsity,
    )

    train_docs = joined.loc[train_idx, config.text_column].tolist()
    test_docs = joined.loc[test_idx, config.text_column].tolist()

    # Vocabulary comes from the training documents only
    train_tdm = vectorizer.fit_transform(train_docs)
    test_tdm = vectorizer.transform(test_docs)

    balanced = balance_classes(
        train_tdm.to_frame(),
        joined.loc[train_idx, config.target].reset_index(drop=True),
        perc_over=config.perc_over,
        perc_under=config.perc_under,
        random_state=config.random_state,
    )
    models = train_models(
        balanced.X, balanced.y,
        cv_folds=config.cv_folds,
        random_state=config.random_state,
        estimators=estimators,
    )
    report = evaluate_models(models, test_tdm.to_frame(), joined.loc[test_idx, config.target], config.positive_label)

    return TextBranchResult(
        report=report,
        models=models,
        balance=balanced,
        vocabulary_size=len(vectorizer.vocabulary_),
        top_terms=train_tdm.most_frequent(15),
    )


def run_pipeline(
    config: Optional[PipelineConfig] = None,
    employees: Optional[pd.DataFrame] = None,
    feedback: Optional[pd.DataFrame] = None,
    estimators: Optional[EstimatorSpec] = None,
) -> PipelineResult:
    """
    Load -> prepare -> split -> select -> encode -> balance (train only)
    -> train -> evaluate on the untouched test split. Feedback text, when
    available, goes through the same split with its own vocabulary.
    """
    config = config or PipelineConfig()

    if employees is None:
        employees = load_employees(config.employee_csv, config.target, config.labels)
    else:
        if config.target not in employees.columns:
            raise MissingColumnError([config.target], "employee dataset")
        check_labels(employees[config.target], config.labels)
    employees = employees.reset_index(drop=True)

    if feedback is None and config.feedback_csv is not None and config.feedback_csv.exists():
        feedback = load_feedback(config.feedback_csv, config.text_column)

    prepared = prepare_features(
        employees,
        target=config.target,
        categorical_columns=config.categorical_columns,
        threshold=config.variance_threshold,
    )
    train_idx, test_idx = _split_indices(prepared[config.target], config)
    train, test = prepared.loc[train_idx], prepared.loc[test_idx]

    # Importances come from the training rows only
    train, ranking = select_top_features(
        train,
        target=config.target,
        top_n=config.top_n_features,
        random_state=config.random_state,
    )
    selected = [c for c in train.columns if c != config.target]

    encoder = FeatureEncoder().fit(train[selected])
    X_train = encoder.transform(train[selected])
    X_test = encoder.transform(test[selected])

    balanced = balance_classes(
        X_train,
        train[config.target],
        perc_over=config.perc_over,
        perc_under=config.perc_under,
        random_state=config.random_state,
    )
    models = train_models(
        balanced.X, balanced.y,
        cv_folds=config.cv_folds,
        random_state=config.random_state,
        estimators=estimators,
    )
    report = evaluate_models(models, X_test, test[config.target], config.positive_label)

    result = PipelineResult(
        config=config,
        selected_features=selected,
        ranking=ranking,
        balance=balanced,
        models=models,
        report=report,
        n_train=len(train),
        n_test=len(test),
    )

    if feedback is not None:
        joined = join_feedback(employees, feedback, config.text_column, config.target)
        result.text = _run_text_branch(joined, train_idx, test_idx, config, estimators)
    else:
        logger.info("No feedback data; skipping the text branch")

    return result


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(name)s - %(message)s")

    result = run_pipeline()
    print(report_to_text(result))


if __name__ == "__main__":
    main()
