"""Tests for cx_release.domain.pricing: multiplier and price formula."""

from decimal import Decimal

import pytest

from src.cx_common.errors import InvalidScoreError
from src.cx_release.domain.pricing import (
    display_multiplier,
    phase_multiplier,
    price_cents,
    validate_score,
)


class TestPhaseMultiplier:
    def test_first_phase_is_one(self) -> None:
        assert phase_multiplier(1, Decimal("10")) == Decimal(1)

    def test_second_phase(self) -> None:
        assert phase_multiplier(2, Decimal("10")) == Decimal("1.10")

    def test_compounds(self) -> None:
        assert phase_multiplier(3, Decimal("10")) == Decimal("1.2100")

    def test_zero_percent_is_flat(self) -> None:
        assert phase_multiplier(20, Decimal("0")) == Decimal(1)

    def test_fractional_percent(self) -> None:
        assert display_multiplier(phase_multiplier(3, Decimal("7.5"))) == "1.1556"

    def test_index_below_one_raises(self) -> None:
        with pytest.raises(ValueError):
            phase_multiplier(0, Decimal("10"))


class TestPriceCents:
    def test_phase_one_scenario(self) -> None:
        # $0.10 per point x 400 points x 1.0
        assert price_cents(Decimal("10"), 400, Decimal(1)) == 4000

    def test_phase_two_scenario(self) -> None:
        assert price_cents(Decimal("10"), 400, phase_multiplier(2, Decimal("10"))) == 4400

    def test_rounds_half_up(self) -> None:
        # 0.5 cents per point x 1 point = 0.5 -> 1
        assert price_cents(Decimal("0.5"), 1, Decimal(1)) == 1

    def test_zero_score_is_free(self) -> None:
        assert price_cents(Decimal("10"), 0, Decimal("1.5")) == 0

    def test_deterministic(self) -> None:
        m = phase_multiplier(17, Decimal("7.5"))
        assert price_cents(Decimal("10"), 377, m) == price_cents(Decimal("10"), 377, m)

    def test_invalid_score_raises(self) -> None:
        with pytest.raises(InvalidScoreError):
            price_cents(Decimal("10"), 501, Decimal(1))


class TestValidateScore:
    def test_bounds(self) -> None:
        validate_score(0)
        validate_score(500)

    @pytest.mark.parametrize("score", [-1, 501])
    def test_out_of_range(self, score: int) -> None:
        with pytest.raises(InvalidScoreError):
            validate_score(score)
