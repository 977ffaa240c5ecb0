"""Price formula for unsold items.

    multiplier(index) = (1 + increase_percent / 100) ^ (index - 1)
    price_cents       = round_half_up(base_rate_cents * score * multiplier)

Decimal throughout, evaluated under a fixed local context, so the same phase
state always produces the same cents on every process.
"""

from decimal import Decimal, localcontext

from src.cx_common.errors import InvalidScoreError
from src.cx_common.money import round_cents

MIN_SCORE = 0
MAX_SCORE = 500

_PRECISION = 28
_DISPLAY_QUANTUM = Decimal("0.0001")


def validate_score(score: int) -> None:
    if not (MIN_SCORE <= score <= MAX_SCORE):
        raise InvalidScoreError(score)


def phase_multiplier(index: int, increase_percent: Decimal) -> Decimal:
    if index < 1:
        raise ValueError(f"Phase index must be >= 1, got {index}")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return (1 + Decimal(increase_percent) / 100) ** (index - 1)


def price_cents(base_rate_cents: Decimal, score: int, multiplier: Decimal) -> int:
    validate_score(score)
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return round_cents(Decimal(base_rate_cents) * score * multiplier)


def display_multiplier(multiplier: Decimal) -> str:
    """4-decimal multiplier label, e.g. Decimal('1.1025') -> '1.1025'."""
    return str(multiplier.quantize(_DISPLAY_QUANTUM))
