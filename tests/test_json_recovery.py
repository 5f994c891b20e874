import pytest

from core.domain.errors import ClassifiedError, ErrorKind
from core.domain.models import PriceQuote
from core.services.json_recovery import extract_json_payload, parse_strict, repair_json_text


def test_clean_json_parses_as_is():
    assert parse_strict('{"a": 1, "b": [1, 2]}', "op") == {"a": 1, "b": [1, 2]}


def test_markdown_fences_are_stripped():
    assert parse_strict('```json\n{"price": 12.5}\n```', "op") == {"price": 12.5}


def test_commentary_around_payload_is_ignored():
    text = '¡Claro! Aquí tienes el resultado: {"a": 1} Espero que te sirva.'
    assert parse_strict(text, "op") == {"a": 1}


def test_top_level_array_inside_commentary():
    assert parse_strict("Resultado: [1, 2, 3] fin", "op") == [1, 2, 3]


def test_unescaped_inner_quotes_are_repaired():
    text = '{"summary": "El CEO dijo "crecemos" ayer", "n": 1}'
    assert parse_strict(text, "op") == {"summary": 'El CEO dijo "crecemos" ayer', "n": 1}


def test_raw_newline_inside_string_is_repaired():
    text = '{"fullText": "línea uno\nlínea dos"}'
    assert parse_strict(text, "op") == {"fullText": "línea uno\nlínea dos"}


def test_plain_text_is_malformed_payload_with_operation_label():
    with pytest.raises(ClassifiedError) as exc_info:
        parse_strict("not json at all", "identify_assets")

    err = exc_info.value
    assert err.kind is ErrorKind.MALFORMED_PAYLOAD
    assert err.operation == "identify_assets"
    assert "identify_assets" in err.message
    assert err.raw_text == "not json at all"


def test_schema_violation_is_malformed_payload():
    with pytest.raises(ClassifiedError) as exc_info:
        parse_strict('{"price": 10}', "get_asset_quote", schema=PriceQuote)
    assert exc_info.value.kind is ErrorKind.MALFORMED_PAYLOAD


def test_schema_returns_typed_model():
    quote = parse_strict(
        '{"price": 10, "changeValue": -1, "changePercentage": -9.1, "currency": "EUR"}',
        "get_asset_quote",
        schema=PriceQuote,
    )
    assert isinstance(quote, PriceQuote)
    assert quote.change_value == -1


def test_extract_without_brackets_returns_trimmed_text():
    assert extract_json_payload("  hola  ") == "hola"


def test_repair_keeps_escaped_sequences():
    text = '{"path": "C:\\\\data", "q": "\\"ok\\""}'
    assert repair_json_text(text) == text
