from core.services.sanitizers import sanitize_market_payload, sanitize_number, sanitize_quote_payload


def test_sanitize_number_variants():
    assert sanitize_number(12.5) == 12.5
    assert sanitize_number(3) == 3
    assert sanitize_number("12.5%") == 12.5
    assert sanitize_number("24.3x") == 24.3
    assert sanitize_number("-0.8 USD") == -0.8
    assert sanitize_number("$.75") == 0.75
    assert sanitize_number("N/A") == 0.0
    assert sanitize_number(None) == 0.0
    assert sanitize_number(True) == 0.0


def test_sanitize_number_is_idempotent():
    for value in ("12.5%", "abc", 7, -3.25, None):
        once = sanitize_number(value)
        assert sanitize_number(once) == once


def test_market_payload_metrics_become_numbers():
    payload = {
        "title": "Banca europea",
        "assets": [
            {"name": "Banco A", "ticker": "BA", "peRatio": "8.2x", "eps": "1.10 EUR", "dividendYield": "6.5%"},
            {"name": "Banco B", "ticker": "BB", "peRatio": None, "eps": 0.4, "dividendYield": "n/d"},
        ],
        "sectorAverage": {"marketCap": "50B", "averagePeRatio": "9", "averageEps": "0.9", "averageDividendYield": "5%"},
    }

    result = sanitize_market_payload(payload)

    assert result["assets"][0]["peRatio"] == 8.2
    assert result["assets"][0]["eps"] == 1.10
    assert result["assets"][0]["dividendYield"] == 6.5
    assert result["assets"][1]["peRatio"] == 0.0
    assert result["assets"][1]["dividendYield"] == 0.0
    assert result["sectorAverage"]["averageDividendYield"] == 5.0
    assert result["sectorAverage"]["marketCap"] == "50B"
    # El payload original no se toca.
    assert payload["assets"][0]["peRatio"] == "8.2x"


def test_missing_sector_average_gets_zero_defaults():
    result = sanitize_market_payload({"title": "X", "assets": []})
    assert result["sectorAverage"] == {
        "marketCap": "0",
        "averagePeRatio": 0.0,
        "averageEps": 0.0,
        "averageDividendYield": 0.0,
    }


def test_non_dict_payload():
    assert sanitize_market_payload(["nope"]) == {}


def test_quote_payload_only_touches_change_fields():
    payload = {"price": "n/d", "changeValue": "-1.5 EUR", "changePercentage": "0.64%", "currency": "EUR"}

    result = sanitize_quote_payload(payload)

    assert result == {"price": "n/d", "changeValue": -1.5, "changePercentage": 0.64, "currency": "EUR"}
    assert sanitize_quote_payload({"price": 10}) == {"price": 10}
    assert sanitize_quote_payload("texto") == "texto"
