"""Money arithmetic in integer cents.

Amounts, prices and balances are int cents. The only fractional quantities
are per-phase rates (Decimal cents per score point) and multipliers; both are
collapsed to whole cents with round-half-up at the last step.
"""

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 4400 -> '$44.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def round_cents(value: Decimal) -> int:
    """Round a fractional cent value half-up to whole cents."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def split_royalty(price_cents: int, royalty_bps: int) -> tuple[int, int]:
    """Split a resale price into (creator_royalty, seller_proceeds).

    Royalty is floored so the seller never receives less than their share.
    """
    royalty = int(
        (Decimal(price_cents) * royalty_bps / 10000).quantize(Decimal(1), rounding=ROUND_FLOOR)
    )
    return royalty, price_cents - royalty
