from decimal import Decimal

import pytest

from posledger.money import (
    allocate_proportionally,
    clamp,
    format_cents,
    has_valid_quantity_scale,
    line_gross_cents,
    round_half_up,
    tax_cents,
    to_decimal,
)


pytestmark = pytest.mark.pricing


class TestRounding:
    def test_half_up_rounds_half_cent_away_from_zero(self):
        assert round_half_up(Decimal("0.5")) == 1
        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("2.49")) == 2

    def test_line_gross_for_weighed_quantity(self):
        # 1.255 kg at 3.99/kg = 500.745 cents
        assert line_gross_cents(399, Decimal("1.255")) == 501

    def test_tax_in_basis_points(self):
        assert tax_cents(10000, 1200) == 1200
        assert tax_cents(999, 500) == 50  # 49.95 -> 50
        assert tax_cents(1000, 0) == 0

    def test_clamp(self):
        assert clamp(-5, 0, 100) == 0
        assert clamp(500, 0, 100) == 100
        assert clamp(42, 0, 100) == 42


class TestToDecimal:
    def test_float_goes_through_repr(self):
        assert to_decimal(1.1) == Decimal("1.1")

    def test_accepts_int_str_decimal(self):
        assert to_decimal(3) == Decimal(3)
        assert to_decimal(" 0.750 ") == Decimal("0.750")
        assert to_decimal(Decimal("2")) == Decimal("2")

    @pytest.mark.parametrize("value", [True, "abc", None, "NaN", float("inf"), [1]])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)

    def test_quantity_scale(self):
        assert has_valid_quantity_scale(Decimal("0.001"))
        assert has_valid_quantity_scale(Decimal("12"))
        assert not has_valid_quantity_scale(Decimal("0.0005"))
        assert not has_valid_quantity_scale(Decimal("1e30"))


class TestAllocateProportionally:
    def test_exact_split(self):
        assert allocate_proportionally(2000, [15000, 5000]) == [1500, 500]

    def test_leftover_cents_go_to_largest_remainders(self):
        shares = allocate_proportionally(100, [1, 1, 1])
        assert sum(shares) == 100
        # equal remainders: earlier lines get the extra cent
        assert shares == [34, 33, 33]

    def test_shares_stay_within_one_cent_of_exact(self):
        weights = [333, 667, 1, 12345]
        total = 977
        shares = allocate_proportionally(total, weights)
        assert sum(shares) == total
        weight_sum = sum(weights)
        for share, weight in zip(shares, weights):
            exact = Decimal(total * weight) / weight_sum
            assert abs(Decimal(share) - exact) < 1

    def test_zero_weights_or_zero_total(self):
        assert allocate_proportionally(100, [0, 0]) == [0, 0]
        assert allocate_proportionally(0, [10, 20]) == [0, 0]
        assert allocate_proportionally(100, []) == []


def test_format_cents():
    assert format_cents(10200) == "102.00"
    assert format_cents(5) == "0.05"
    assert format_cents(-150) == "-1.50"
