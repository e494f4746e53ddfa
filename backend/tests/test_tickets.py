# Overview: Pytest coverage for ticket numbers and pack sizing.

import pytest

from scratchers.errors import InvalidStartTicketError, UnsupportedPriceError
from scratchers.tickets import (
    STANDARD_PRICES_CENTS,
    TicketNumber,
    compute_end_ticket,
    pack_size_for_price,
    parse_ticket_value,
)


@pytest.mark.parametrize(
    "price_cents,size",
    [
        (4000, 30),
        (3000, 30),
        (2500, 30),
        (2000, 30),
        (1000, 50),
        (500, 80),
        (300, 100),
        (200, 100),
        (100, 240),
    ],
)
def test_pack_size_table(price_cents, size):
    assert pack_size_for_price(price_cents) == size


@pytest.mark.parametrize("price_cents", [0, 150, 700, 5000, None])
def test_unsupported_price(price_cents):
    with pytest.raises(UnsupportedPriceError) as exc:
        pack_size_for_price(price_cents)
    assert exc.value.code == "UNSUPPORTED_PRICE"


def test_standard_prices_cover_table():
    assert STANDARD_PRICES_CENTS == [100, 200, 300, 500, 1000, 2000, 2500, 3000, 4000]


def test_end_ticket_keeps_zero_padding():
    assert compute_end_ticket("000120", 50) == "000169"


def test_end_ticket_grows_past_width():
    # Width is a minimum, not a cap
    assert compute_end_ticket("95", 30) == "124"


def test_end_ticket_trims_input():
    assert compute_end_ticket("  007 ", 80) == "086"


@pytest.mark.parametrize("start", ["", "   ", "12a", "-5", "1.5", None])
def test_invalid_start_ticket(start):
    with pytest.raises(InvalidStartTicketError):
        compute_end_ticket(start, 50)


class TestTicketNumber:
    def test_parse_keeps_width(self):
        number = TicketNumber.parse(" 0042 ")
        assert number.value == 42
        assert number.width == 4
        assert str(number) == "0042"

    def test_parse_rejects_non_ascii_digits(self):
        assert TicketNumber.parse("٣٤") is None

    def test_parse_ticket_value(self):
        assert parse_ticket_value("0150") == 150
        assert parse_ticket_value("abc") is None
        assert parse_ticket_value("") is None
        assert parse_ticket_value(None) is None
