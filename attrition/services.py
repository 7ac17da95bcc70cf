import logging
from typing import Any, Dict, List, Optional

import requests
from transformers import pipeline

from .config import (
    AZURE_TEXT_ENDPOINT,
    AZURE_TEXT_KEY,
    AZURE_TRANSLATOR_ENDPOINT,
    AZURE_TRANSLATOR_KEY,
    AZURE_TRANSLATOR_REGION,
    GROQ_API_KEY,
    GROQ_MODEL,
    LOCAL_SENTIMENT_MODEL,
    REQUEST_TIMEOUT,
    SERVICE_MODE,
)
from .errors import ServiceError, UnsupportedLanguageError

logger = logging.getLogger(__name__)

# Azure expects script-qualified Chinese codes
_LANGUAGE_CODES = {"zh": "zh-Hans", "zh-hans": "zh-Hans", "zh-hant": "zh-Hant"}

TRANSLATION_LANGUAGES = {"en", "zh", "zh-hans", "zh-hant", "es", "fr", "de", "it", "ja", "pt", "nl"}
SENTIMENT_LANGUAGES = {
    "azure": {"en", "zh", "zh-hans", "zh-hant", "es", "fr", "de", "it", "ja", "pt", "nl"},
    "local": {"en"},
}


def _language(code: str, supported) -> str:
    lang = (code or "").strip().lower()
    if lang not in supported:
        raise UnsupportedLanguageError(code, supported)
    return _LANGUAGE_CODES.get(lang, lang)


def _mode(mode: Optional[str]) -> str:
    return (mode or SERVICE_MODE).strip().lower()


# =========================
# HTTP helper
# =========================
def _post(url: str, headers: Dict[str, str], payload: Any, params: Optional[Dict[str, Any]] = None) -> Any:
    try:
        response = requests.post(url, headers=headers, params=params, json=payload, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        logger.error("Request to %s failed: %s", url, exc)
        raise ServiceError(f"Network error calling {url}: {exc}") from exc

    if response.status_code in (401, 403):
        logger.error("Request to %s rejected: %s", url, response.text)
        raise ServiceError("Invalid or unauthorized API key", status=response.status_code)
    if not 200 <= response.status_code < 300:
        logger.error("Request to %s returned %s: %s", url, response.status_code, response.text)
        raise ServiceError(f"Service error: {response.text[:200]}", status=response.status_code)

    try:
        return response.json()
    except ValueError as exc:
        raise ServiceError(f"Malformed JSON from {url}") from exc


# =========================
# Azure Cognitive Services
# =========================
def azure_translate(text: str, source: str, target: str) -> str:
    if not AZURE_TRANSLATOR_KEY:
        raise ServiceError("AZURE_TRANSLATOR_KEY is missing in .env")

    headers = {
        "Ocp-Apim-Subscription-Key": AZURE_TRANSLATOR_KEY,
        "Content-Type": "application/json",
    }
    if AZURE_TRANSLATOR_REGION:
        headers["Ocp-Apim-Subscription-Region"] = AZURE_TRANSLATOR_REGION

    params = {
        "api-version": "3.0",
        "from": _language(source, TRANSLATION_LANGUAGES),
        "to": _language(target, TRANSLATION_LANGUAGES),
    }
    url = AZURE_TRANSLATOR_ENDPOINT.rstrip("/") + "/translate"
    data = _post(url, headers, [{"Text": text}], params=params)

    try:
        return data[0]["translations"][0]["text"]
    except (IndexError, KeyError, TypeError) as exc:
        raise ServiceError(f"Unexpected translation response: {data!r}") from exc


def azure_sentiment(text: str, language: str) -> float:
    """
    Text Analytics v3.1 sentiment, folded into one score in [0, 1]:
    positive confidence plus half the neutral confidence.
    """
    if not AZURE_TEXT_KEY or not AZURE_TEXT_ENDPOINT:
        raise ServiceError("AZURE_TEXT_KEY / AZURE_TEXT_ENDPOINT is missing in .env")

    lang = _language(language, SENTIMENT_LANGUAGES["azure"])
    headers = {
        "Ocp-Apim-Subscription-Key": AZURE_TEXT_KEY,
        "Content-Type": "application/json",
    }
    payload = {"documents": [{"id": "1", "language": lang, "text": text}]}
    url = AZURE_TEXT_ENDPOINT.rstrip("/") + "/text/analytics/v3.1/sentiment"
    data = _post(url, headers, payload)

    if not isinstance(data, dict):
        raise ServiceError(f"Unexpected sentiment response: {data!r}")

    errors: List[Dict[str, Any]] = data.get("errors") or []
    if errors:
        error = errors[0].get("error") if isinstance(errors[0], dict) else None
        if not isinstance(error, dict):
            raise ServiceError(f"Unexpected sentiment response: {data!r}")
        inner = error.get("innererror") or {}
        if not isinstance(inner, dict):
            inner = {}
        if inner.get("code") == "UnsupportedLanguageCode":
            raise UnsupportedLanguageError(language, SENTIMENT_LANGUAGES["azure"])
        raise ServiceError(f"Sentiment request rejected: {inner.get('message') or error.get('message')}")

    try:
        scores = data["documents"][0]["confidenceScores"]
        score = float(scores["positive"]) + 0.5 * float(scores.get("neutral", 0.0))
    except (IndexError, KeyError, TypeError, ValueError) as exc:
        raise ServiceError(f"Unexpected sentiment response: {data!r}") from exc

    return min(1.0, max(0.0, score))


# =========================
# Groq (API - OpenAI compatible)
# =========================
def groq_translate(text: str, source: str, target: str) -> str:
    if not GROQ_API_KEY:
        raise ServiceError("GROQ_API_KEY is missing in .env")

    source = _language(source, TRANSLATION_LANGUAGES)
    target = _language(target, TRANSLATION_LANGUAGES)

    from openai import OpenAI, OpenAIError

    client = OpenAI(
        api_key=GROQ_API_KEY,
        base_url="https://api.groq.com/openai/v1",
        timeout=REQUEST_TIMEOUT,
    )
    messages = [
        {"role": "system", "content": (
            f"Translate the user's text from language code '{source}' to '{target}'. "
            "Output ONLY the translation. No explanations."
        )},
        {"role": "user", "content": text},
    ]

    try:
        response = client.chat.completions.create(
            model=GROQ_MODEL,
            messages=messages,
            temperature=0.0,
        )
    except OpenAIError as exc:
        logger.error("Groq translation failed: %s", exc)
        raise ServiceError(f"Groq translation failed: {exc}") from exc

    content = response.choices[0].message.content
    if not content:
        raise ServiceError("Groq returned an empty translation")
    return content.strip()


# =========================
# Local model (HF, CPU-safe)
# =========================
_LOCAL_SENTIMENT = None


def _load_sentiment_pipeline():
    global _LOCAL_SENTIMENT

    if _LOCAL_SENTIMENT is None:
        logger.info("Loading local sentiment model %s", LOCAL_SENTIMENT_MODEL)
        try:
            _LOCAL_SENTIMENT = pipeline("sentiment-analysis", model=LOCAL_SENTIMENT_MODEL)
        except Exception as exc:
            logger.error("Could not load %s: %s", LOCAL_SENTIMENT_MODEL, exc)
            raise ServiceError(f"Local sentiment model {LOCAL_SENTIMENT_MODEL} failed: {exc}") from exc
    return _LOCAL_SENTIMENT


def local_sentiment(text: str, language: str) -> float:
    """P(positive) from the local English sentiment model."""
    _language(language, SENTIMENT_LANGUAGES["local"])

    clf = _load_sentiment_pipeline()
    try:
        result = clf(text, truncation=True)[0]
        score = float(result["score"])
        positive = str(result["label"]).upper() == "POSITIVE"
    except Exception as exc:
        logger.error("Local sentiment model %s failed: %s", LOCAL_SENTIMENT_MODEL, exc)
        raise ServiceError(f"Local sentiment model {LOCAL_SENTIMENT_MODEL} failed: {exc}") from exc
    return score if positive else 1.0 - score


# =========================
# Router (API vs Local)
# =========================
def translate(text: str, source: str, target: str, mode: Optional[str] = None) -> str:
    selected_mode = _mode(mode)

    if source.strip().lower() == target.strip().lower():
        _language(source, TRANSLATION_LANGUAGES)
        return text
    if selected_mode == "azure":
        return azure_translate(text, source, target)
    if selected_mode == "groq":
        return groq_translate(text, source, target)
    raise ServiceError(f"Translation is not available in {selected_mode!r} mode")


def score_sentiment(text: str, language: str = "en", mode: Optional[str] = None) -> float:
    """Sentiment score in [0, 1]; low means negative."""
    selected_mode = _mode(mode)

    if selected_mode == "azure":
        return azure_sentiment(text, language)
    if selected_mode == "local":
        return local_sentiment(text, language)
    raise ServiceError(f"Sentiment scoring is not available in {selected_mode!r} mode")
