import pytest

from core.domain.errors import ClassifiedError, ErrorKind
from core.services.anomaly_guard import check_historical_price


def _check(historical, current):
    check_historical_price(historical_price=historical, current_price=current, currency="EUR", date="2020-01-02")


def test_ratio_boundaries_are_accepted():
    _check(2000, 100)
    _check(5, 100)


@pytest.mark.parametrize("historical", [2001, 4.9])
def test_ratio_outside_bounds_is_rejected(historical):
    with pytest.raises(ClassifiedError) as exc_info:
        _check(historical, 100)

    err = exc_info.value
    assert err.kind is ErrorKind.ANOMALOUS_PRICE
    assert err.price == historical
    assert "2020-01-02" in err.message


@pytest.mark.parametrize("current", [None, 1, 0.5])
def test_unreliable_current_price_skips_check(current):
    _check(999999, current)


def test_missing_historical_price_skips_check():
    _check(None, 100)
