import pytest
import requests

from attrition import services
from attrition.errors import ServiceError, UnsupportedLanguageError
from attrition.sentiment import score_feedback


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def azure_keys(monkeypatch):
    monkeypatch.setattr(services, "AZURE_TEXT_KEY", "text-key")
    monkeypatch.setattr(services, "AZURE_TEXT_ENDPOINT", "https://example.cognitiveservices.azure.com/")
    monkeypatch.setattr(services, "AZURE_TRANSLATOR_KEY", "translator-key")
    monkeypatch.setattr(services, "AZURE_TRANSLATOR_REGION", "westeurope")


@pytest.fixture
def capture_post(monkeypatch):
    calls = []

    def install(response):
        def fake_post(url, headers=None, params=None, json=None, timeout=None):
            calls.append({"url": url, "headers": headers, "params": params, "json": json})
            if isinstance(response, Exception):
                raise response
            return response

        monkeypatch.setattr(services.requests, "post", fake_post)
        return calls

    return install


def test_azure_sentiment_score(azure_keys, capture_post):
    calls = capture_post(FakeResponse(payload={
        "documents": [{"id": "1", "confidenceScores": {"positive": 0.6, "neutral": 0.2, "negative": 0.2}}],
        "errors": [],
    }))

    score = services.score_sentiment("I like my team", "en", mode="azure")

    assert score == pytest.approx(0.7)
    assert calls[0]["url"].endswith("/text/analytics/v3.1/sentiment")
    assert calls[0]["headers"]["Ocp-Apim-Subscription-Key"] == "text-key"
    assert calls[0]["json"]["documents"][0]["language"] == "en"


def test_azure_sentiment_unsupported_language_is_flagged(azure_keys, capture_post):
    calls = capture_post(FakeResponse(payload={"documents": []}))

    with pytest.raises(UnsupportedLanguageError):
        services.score_sentiment("hallo", "tlh", mode="azure")
    assert calls == []


def test_azure_sentiment_service_language_error(azure_keys, capture_post):
    capture_post(FakeResponse(payload={
        "documents": [],
        "errors": [{"id": "1", "error": {
            "code": "InvalidArgument",
            "innererror": {"code": "UnsupportedLanguageCode", "message": "Invalid language code"},
        }}],
    }))

    with pytest.raises(UnsupportedLanguageError):
        services.score_sentiment("hallo", "nl", mode="azure")


def test_invalid_key(azure_keys, capture_post):
    capture_post(FakeResponse(status_code=401, text="Access denied"))

    with pytest.raises(ServiceError) as exc:
        services.score_sentiment("text", "en", mode="azure")
    assert exc.value.status == 401


def test_server_error(azure_keys, capture_post):
    capture_post(FakeResponse(status_code=503, text="busy"))

    with pytest.raises(ServiceError) as exc:
        services.score_sentiment("text", "en", mode="azure")
    assert exc.value.status == 503


def test_network_error(azure_keys, capture_post):
    capture_post(requests.ConnectionError("connection refused"))

    with pytest.raises(ServiceError):
        services.score_sentiment("text", "en", mode="azure")


def test_malformed_response(azure_keys, capture_post):
    capture_post(FakeResponse(payload={"documents": [{"id": "1"}]}))

    with pytest.raises(ServiceError):
        services.score_sentiment("text", "en", mode="azure")


def test_non_object_response(azure_keys, capture_post):
    capture_post(FakeResponse(payload=[{"unexpected": 1}]))

    with pytest.raises(ServiceError):
        services.score_sentiment("text", "en", mode="azure")


def test_malformed_error_entry(azure_keys, capture_post):
    capture_post(FakeResponse(payload={"documents": [], "errors": ["bad request"]}))

    with pytest.raises(ServiceError):
        services.score_sentiment("text", "en", mode="azure")


def test_batch_survives_non_object_response(azure_keys, capture_post):
    capture_post(FakeResponse(payload=[{"unexpected": 1}]))

    results = score_feedback(["fine", "also fine"], language="en", mode="azure")

    assert [r.score for r in results] == [None, None]
    assert all(r.error.startswith("Unexpected sentiment response") for r in results)


def test_missing_key(monkeypatch):
    monkeypatch.setattr(services, "AZURE_TEXT_KEY", "")

    with pytest.raises(ServiceError):
        services.score_sentiment("text", "en", mode="azure")


def test_azure_translate(azure_keys, capture_post):
    calls = capture_post(FakeResponse(payload=[{"translations": [{"text": "I am tired", "to": "en"}]}]))

    out = services.translate("我很累", "zh", "en", mode="azure")

    assert out == "I am tired"
    assert calls[0]["params"] == {"api-version": "3.0", "from": "zh-Hans", "to": "en"}
    assert calls[0]["headers"]["Ocp-Apim-Subscription-Region"] == "westeurope"


def test_translate_unsupported_language(azure_keys, capture_post):
    calls = capture_post(FakeResponse(payload=[]))

    with pytest.raises(UnsupportedLanguageError):
        services.translate("text", "xx", "en", mode="azure")
    assert calls == []


def test_translate_same_language_is_identity():
    assert services.translate("hello", "en", "EN", mode="azure") == "hello"


def test_groq_translate_missing_key(monkeypatch):
    monkeypatch.setattr(services, "GROQ_API_KEY", "")

    with pytest.raises(ServiceError):
        services.translate("hola", "es", "en", mode="groq")


def test_local_sentiment(monkeypatch):
    monkeypatch.setattr(
        services, "_load_sentiment_pipeline",
        lambda: (lambda text, truncation=True: [{"label": "NEGATIVE", "score": 0.8}]),
    )

    assert services.score_sentiment("awful", "en", mode="local") == pytest.approx(0.2)


def test_local_model_load_failure(monkeypatch):
    def broken_pipeline(task, model=None):
        raise OSError("Can't load model: no network")

    monkeypatch.setattr(services, "_LOCAL_SENTIMENT", None)
    monkeypatch.setattr(services, "pipeline", broken_pipeline)

    with pytest.raises(ServiceError, match="no network"):
        services.score_sentiment("great", "en", mode="local")

    results = score_feedback(["great", "awful"], language="en", mode="local")
    assert [r.ok for r in results] == [False, False]


def test_local_model_bad_output(monkeypatch):
    monkeypatch.setattr(services, "_load_sentiment_pipeline", lambda: (lambda text, truncation=True: []))

    with pytest.raises(ServiceError):
        services.score_sentiment("great", "en", mode="local")


def test_local_sentiment_english_only():
    with pytest.raises(UnsupportedLanguageError):
        services.score_sentiment("很好", "zh", mode="local")


def test_mode_without_capability():
    with pytest.raises(ServiceError):
        services.score_sentiment("text", "en", mode="groq")
    with pytest.raises(ServiceError):
        services.translate("text", "es", "en", mode="local")
