import pytest

from shopstock.errors import ValidationError
from shopstock.validation import MAX_PRICE_CENTS, format_cents, parse_money_cents


@pytest.mark.parametrize("raw, cents", [
    ("95.00", 9500),
    ("95", 9500),
    (95, 9500),
    (0.1, 10),
    (" 12.5 ", 1250),
])
def test_parse_money_cents(raw, cents):
    assert parse_money_cents(raw, "price") == cents


@pytest.mark.parametrize("raw", ["1e30", "1E+400", "-1", "1.005", "abc", "NaN", "Infinity", True])
def test_malformed_money_is_validation_error(raw):
    with pytest.raises(ValidationError):
        parse_money_cents(raw, "price")


def test_money_upper_bound():
    assert parse_money_cents(format_cents(MAX_PRICE_CENTS), "price") == MAX_PRICE_CENTS
    with pytest.raises(ValidationError):
        parse_money_cents("10000000.00", "price")


def test_blank_money_allowed_when_optional():
    assert parse_money_cents("", "discount", allow_none=True) is None
    with pytest.raises(ValidationError):
        parse_money_cents(None, "discount")
