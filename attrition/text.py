import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np
import pandas as pd
from nltk.tokenize import RegexpTokenizer
from scipy import sparse
from sklearn.feature_extraction.text import CountVectorizer, TfidfTransformer

from .config import TEXT_LANGUAGE, TEXT_SPARSITY, TEXT_WEIGHTING
from .errors import EmptyVocabularyError, MalformedInputError, UnsupportedLanguageError

logger = logging.getLogger(__name__)

LATIN_LANGUAGES = {"en", "es", "fr", "de", "it", "pt", "nl"}
SEGMENTED_LANGUAGES = {"zh", "zh-hans", "zh-hant"}
SUPPORTED_LANGUAGES = LATIN_LANGUAGES | SEGMENTED_LANGUAGES

_NUMBERS = re.compile(r"\d+")
_PUNCTUATION = re.compile(r"[^\w\s]|_")
_WORDS = RegexpTokenizer(r"\w+")


def _check_language(language: str) -> str:
    lang = (language or "").strip().lower()
    if lang not in SUPPORTED_LANGUAGES:
        raise UnsupportedLanguageError(language, SUPPORTED_LANGUAGES)
    return lang


def tokenize(text: str, language: str = TEXT_LANGUAGE) -> List[str]:
    """Word-boundary split for Latin scripts, dictionary segmentation for Chinese."""
    lang = _check_language(language)

    if lang in SEGMENTED_LANGUAGES:
        import jieba

        tokens = []
        for chunk in text.split():
            tokens.extend(w for w in jieba.lcut(chunk, HMM=False) if w.strip())
        return tokens

    return _WORDS.tokenize(text)


def normalize(text: str, stopwords: Optional[Set[str]] = None, language: str = TEXT_LANGUAGE) -> str:
    """
    Lowercase, drop numerals / punctuation / stop-words and collapse whitespace.
    Tokens of the result are separated by single spaces.
    """
    if not isinstance(text, str):
        raise MalformedInputError(f"Expected text, got {type(text).__name__}")

    s = text.lower()
    s = _NUMBERS.sub(" ", s)
    s = _PUNCTUATION.sub(" ", s)

    tokens = tokenize(s, language)
    if stopwords:
        tokens = [t for t in tokens if t not in stopwords]
    return " ".join(tokens)


# -------------------------
# Term-document matrix
# -------------------------
@dataclass
class TermDocumentMatrix:
    matrix: sparse.csr_matrix
    vocabulary: Tuple[str, ...]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.matrix.shape

    def counts_for(self, row: int) -> Dict[str, float]:
        """Non-zero cells of one document, keyed by term."""
        doc = self.matrix[row].tocoo()
        return {self.vocabulary[j]: v.item() for j, v in zip(doc.col, doc.data)}

    def to_frame(self, index: Optional[Iterable] = None) -> pd.DataFrame:
        return pd.DataFrame(self.matrix.toarray(), columns=list(self.vocabulary), index=index)

    def most_frequent(self, n: int = 10) -> pd.Series:
        totals = np.asarray(self.matrix.sum(axis=0)).ravel()
        series = pd.Series(totals, index=list(self.vocabulary))
        order = sorted(series.index, key=lambda term: (-series[term], term))
        return series.loc[order[:n]]


class TextVectorizer:
    """
    Learns a vocabulary from a training corpus and maps documents onto it.

    weighting: "tf" for raw term counts, "tfidf" for TF-IDF weights.
    sparsity: when set, terms missing from more than this share of the
    training documents are dropped (0.99 keeps terms present in more than
    1% of documents).
    """

    def __init__(
        self,
        weighting: str = TEXT_WEIGHTING,
        language: str = TEXT_LANGUAGE,
        stopwords: Optional[Set[str]] = None,
        sparsity: Optional[float] = TEXT_SPARSITY,
    ):
        if weighting not in ("tf", "tfidf"):
            raise ValueError(f"weighting must be 'tf' or 'tfidf', got {weighting!r}")
        if sparsity is not None and not 0.0 < sparsity <= 1.0:
            raise ValueError(f"sparsity must be in (0, 1], got {sparsity}")

        self.weighting = weighting
        self.language = _check_language(language)
        self.stopwords = set(stopwords) if stopwords else set()
        self.sparsity = sparsity

        self.vocabulary_: Optional[Tuple[str, ...]] = None
        self._counter: Optional[CountVectorizer] = None
        self._tfidf: Optional[TfidfTransformer] = None

    def analyze(self, doc: str) -> List[str]:
        return tokenize(normalize(doc, self.stopwords, self.language), self.language)

    @staticmethod
    def _check_docs(docs: Sequence[str]) -> List[str]:
        docs = list(docs)
        for i, doc in enumerate(docs):
            if not isinstance(doc, str):
                raise MalformedInputError(f"Document {i} is {type(doc).__name__}, expected text")
        return docs

    def fit(self, docs: Sequence[str]) -> "TextVectorizer":
        docs = self._check_docs(docs)
        if not docs:
            raise MalformedInputError("Cannot build a vocabulary from an empty corpus")

        counter = CountVectorizer(analyzer=self.analyze, token_pattern=None)
        try:
            counts = counter.fit_transform(docs)
        except ValueError as exc:
            raise EmptyVocabularyError("No term left after text normalization") from exc

        terms = counter.get_feature_names_out()
        if self.sparsity is not None:
            doc_freq = np.asarray((counts > 0).sum(axis=0)).ravel()
            keep = doc_freq > len(docs) * (1.0 - self.sparsity)
            if not keep.any():
                raise EmptyVocabularyError(
                    f"Every term is sparser than {self.sparsity}; vocabulary would be empty"
                )
            logger.info("Sparse-term pruning kept %d of %d terms", int(keep.sum()), len(terms))
            terms = terms[keep]

        self.vocabulary_ = tuple(str(t) for t in terms)
        self._counter = CountVectorizer(analyzer=self.analyze, token_pattern=None, vocabulary=list(self.vocabulary_))
        self._counter.fit(docs)

        if self.weighting == "tfidf":
            self._tfidf = TfidfTransformer().fit(self._counter.transform(docs))

        logger.info("Vocabulary built from %d documents: %d terms", len(docs), len(self.vocabulary_))
        return self

    def transform(self, docs: Sequence[str]) -> TermDocumentMatrix:
        if self._counter is None:
            raise RuntimeError("TextVectorizer must be fitted before transform")

        counts = self._counter.transform(self._check_docs(docs))
        if self._tfidf is not None:
            counts = self._tfidf.transform(counts)
        return TermDocumentMatrix(matrix=sparse.csr_matrix(counts), vocabulary=self.vocabulary_)

    def fit_transform(self, docs: Sequence[str]) -> TermDocumentMatrix:
        docs = self._check_docs(docs)
        return self.fit(docs).transform(docs)
