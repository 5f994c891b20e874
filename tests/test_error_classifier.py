import httpx
import openai

from core.domain.errors import ClassifiedError, ErrorKind
from core.services.error_classifier import classify_error

ENGINE = "gemini-3-flash-preview"


def _classify(exc):
    return classify_error(exc, "Mensaje por defecto.", ENGINE)


def _explode():
    raise RuntimeError("boom")


def test_network_failures():
    assert _classify(ConnectionError("reset")).kind is ErrorKind.NETWORK
    assert _classify(Exception("TypeError: Failed to fetch")).kind is ErrorKind.NETWORK

    request = httpx.Request("POST", "https://example.invalid/v1/chat/completions")
    assert _classify(openai.APIConnectionError(request=request)).kind is ErrorKind.NETWORK
    assert _classify(openai.APITimeoutError(request=request)).kind is ErrorKind.NETWORK


def test_quota_keeps_engine():
    err = _classify(Exception("429 RESOURCE_EXHAUSTED: quota exceeded"))
    assert err.kind is ErrorKind.QUOTA_EXCEEDED
    assert err.engine == ENGINE
    assert ENGINE in err.message
    assert err.disables_ai


def test_quota_wins_over_not_found():
    err = _classify(Exception("quota exceeded while model not_found (404)"))
    assert err.kind is ErrorKind.QUOTA_EXCEEDED


def test_status_codes_from_sdk_errors(status_error):
    assert _classify(status_error("Too many requests", 429)).kind is ErrorKind.QUOTA_EXCEEDED
    assert _classify(status_error("Unauthorized", 401)).kind is ErrorKind.AUTHENTICATION
    assert _classify(status_error("Forbidden", 403)).kind is ErrorKind.AUTHENTICATION
    assert _classify(status_error("Missing", 404)).kind is ErrorKind.MODEL_UNAVAILABLE


def test_sdk_rate_limit_error():
    request = httpx.Request("POST", "https://example.invalid/v1/chat/completions")
    response = httpx.Response(429, request=request)
    exc = openai.RateLimitError("Rate limited", response=response, body=None)
    assert _classify(exc).kind is ErrorKind.QUOTA_EXCEEDED


def test_message_markers():
    auth = _classify(Exception("API key not valid. Please pass a valid API key."))
    assert auth.kind is ErrorKind.AUTHENTICATION
    assert auth.requires_credentials

    assert _classify(Exception("models/foo is NOT_FOUND")).kind is ErrorKind.MODEL_UNAVAILABLE

    invalid = _classify(Exception("Invalid argument: temperature"))
    assert invalid.kind is ErrorKind.INVALID_REQUEST
    assert "Invalid argument: temperature" in invalid.message


def test_generic_exception_is_upstream():
    err = _classify(Exception("something odd"))
    assert err.kind is ErrorKind.UPSTREAM
    assert err.message == "La API ha devuelto un error: something odd"


def test_internal_or_json_messages_use_default_message():
    assert _classify(Exception("Internal error")).message == "Mensaje por defecto."
    assert _classify(Exception("Unexpected token in JSON")).kind is ErrorKind.UNKNOWN


def test_non_exception_is_unknown():
    err = _classify("weird")
    assert err.kind is ErrorKind.UNKNOWN
    assert err.message == "Mensaje por defecto."


def test_classified_error_passes_through():
    original = ClassifiedError(ErrorKind.ANOMALOUS_PRICE, "Precio raro", price=2500.0)
    err = _classify(original)
    assert err.kind is ErrorKind.ANOMALOUS_PRICE
    assert err.message == "Precio raro"
    assert err.price == 2500.0


def test_classification_is_deterministic():
    exc = Exception("quota exceeded")
    first, second = _classify(exc), _classify(exc)
    assert (first.kind, first.message) == (second.kind, second.message)


def test_debug_info_points_at_raising_function():
    try:
        _explode()
    except RuntimeError as exc:
        err = _classify(exc)

    assert "_explode" in err.debug_info
    assert "test_error_classifier.py" in err.debug_info
    assert str(err).startswith("La API ha devuelto un error: boom")
