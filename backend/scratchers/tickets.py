# Overview: Ticket-number value type and the fixed price -> pack size table.

"""
Ticket numbers are business strings, not integers: "000120" and "120" name
the same ticket but print differently. TicketNumber keeps both the numeric
value and the printed width so derived numbers (a pack's end ticket) render
with the same zero padding as the number they came from.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import InvalidStartTicketError, UnsupportedPriceError


# price (cents) -> tickets per pack
PACK_SIZE_BY_PRICE_CENTS = {
    4000: 30,
    3000: 30,
    2500: 30,
    2000: 30,
    1000: 50,
    500: 80,
    300: 100,
    200: 100,
    100: 240,
}

STANDARD_PRICES_CENTS = sorted(PACK_SIZE_BY_PRICE_CENTS)


def pack_size_for_price(price_cents: int | None) -> int:
    """Tickets per pack for a product price; any price outside the table is unsupported."""
    size = PACK_SIZE_BY_PRICE_CENTS.get(price_cents) if price_cents is not None else None
    if size is None:
        shown = "unknown" if price_cents is None else f"${price_cents / 100:.2f}"
        raise UnsupportedPriceError(
            "Unsupported scratcher price for auto pack sizing.",
            details={"price": shown},
        )
    return size


@dataclass(frozen=True)
class TicketNumber:
    value: int
    width: int

    @classmethod
    def parse(cls, text: str | None) -> Optional["TicketNumber"]:
        """Parse a printed ticket number; None when it is blank or not all digits."""
        if text is None:
            return None
        stripped = str(text).strip()
        if not stripped or not stripped.isdigit() or not stripped.isascii():
            return None
        return cls(value=int(stripped), width=len(stripped))

    def advance(self, count: int) -> "TicketNumber":
        return TicketNumber(value=self.value + count, width=self.width)

    def __str__(self) -> str:
        return str(self.value).zfill(self.width)


def parse_ticket_value(text: str | None) -> int | None:
    parsed = TicketNumber.parse(text)
    return parsed.value if parsed else None


def compute_end_ticket(start_ticket: str, pack_size: int) -> str:
    """
    Last ticket of a pack: start + size - 1, padded to the start's width.

    compute_end_ticket("000120", 50) == "000169"
    """
    start = TicketNumber.parse(start_ticket)
    if start is None:
        raise InvalidStartTicketError(
            "Invalid start ticket number.",
            details={"start_ticket": start_ticket},
        )
    return str(start.advance(pack_size - 1))
