"""
Pricing tests: totals, discount clamping and per-line discount allocation.

compute_totals() is pure, so most cases use plain stand-in products; the
price_cart() cases run against the test database.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from posledger.errors import InsufficientStockError, InvalidQuantityError, ProductNotFoundError
from posledger.services.pricing_service import (
    LineRequest,
    check_stock,
    compute_totals,
    normalize_items,
    price_cart,
    price_line,
)


pytestmark = pytest.mark.pricing


def _product(product_id, price_cents, tax_rate_bps=0, quantity_on_hand=100, name=None):
    return SimpleNamespace(
        id=product_id,
        name=name or f"P{product_id}",
        price_cents=price_cents,
        tax_rate_bps=tax_rate_bps,
        quantity_on_hand=Decimal(quantity_on_hand),
    )


def _cart(specs, discount_cents=0):
    lines = [price_line(_product(i, price, bps), Decimal(qty)) for i, (price, qty, bps) in enumerate(specs, start=1)]
    return compute_totals(lines, discount_cents)


class TestComputeTotals:
    def test_two_units_no_tax(self):
        cart = _cart([(1000, "2", 0)])
        assert (cart.subtotal_cents, cart.tax_cents, cart.discount_cents, cart.total_cents) == (2000, 0, 0, 2000)

    def test_tax_on_gross_discount_does_not_reduce_tax(self):
        cart = _cart([(10000, "1", 1200)], discount_cents=1000)
        assert cart.subtotal_cents == 10000
        assert cart.tax_cents == 1200
        assert cart.discount_cents == 1000
        assert cart.total_cents == 10200

    def test_discount_split_in_proportion_to_line_gross(self):
        cart = _cart([(15000, "1", 0), (5000, "1", 0)], discount_cents=2000)
        assert [line.discount_cents for line in cart.lines] == [1500, 500]
        assert cart.total_cents == 18000

    def test_discount_above_subtotal_clamps_to_subtotal(self):
        cart = _cart([(10000, "1", 500)], discount_cents=50000)
        assert cart.discount_cents == 10000
        assert cart.total_cents == cart.tax_cents == 500
        assert cart.lines[0].discount_cents == 10000

    def test_negative_discount_clamps_to_zero(self):
        cart = _cart([(1000, "1", 0)], discount_cents=-300)
        assert cart.discount_cents == 0
        assert cart.total_cents == 1000

    def test_line_discounts_always_sum_to_applied_discount(self):
        cart = _cart([(333, "1", 0), (333, "1", 0), (334, "1", 0)], discount_cents=101)
        assert sum(line.discount_cents for line in cart.lines) == cart.discount_cents == 101

    def test_fractional_quantity_rounds_half_up(self):
        cart = _cart([(250, "0.002", 0)])  # 0.5 cent
        assert cart.subtotal_cents == 1
        assert cart.total_cents == 1

    def test_to_dict_reports_lines_in_order(self):
        cart = _cart([(100, "1", 0), (200, "3", 0)])
        payload = cart.to_dict()
        assert [line["product_id"] for line in payload["lines"]] == [1, 2]
        assert payload["lines"][1]["quantity"] == "3"
        assert payload["subtotal_cents"] == 700


class TestNormalizeItems:
    def test_accepts_dicts_tuples_and_requests(self):
        requests = normalize_items([
            {"product_id": 1, "quantity": "1.5"},
            (2, 3),
            LineRequest(product_id=3, quantity=Decimal("0.250")),
        ])
        assert [r.product_id for r in requests] == [1, 2, 3]
        assert [r.quantity for r in requests] == [Decimal("1.5"), Decimal(3), Decimal("0.250")]

    @pytest.mark.parametrize("quantity", [0, -1, "0", "-0.5"])
    def test_non_positive_quantity_rejected(self, quantity):
        with pytest.raises(InvalidQuantityError):
            normalize_items([{"product_id": 1, "quantity": quantity}])

    def test_too_many_decimal_places_rejected(self):
        with pytest.raises(InvalidQuantityError) as exc:
            normalize_items([{"product_id": 1, "quantity": "0.0001"}])
        assert exc.value.kind == "invalid_quantity"

    def test_non_numeric_quantity_rejected(self):
        with pytest.raises(InvalidQuantityError):
            normalize_items([{"product_id": 1, "quantity": "lots"}])

    def test_non_integer_product_id_is_not_found(self):
        with pytest.raises(ProductNotFoundError):
            normalize_items([{"product_id": "1", "quantity": 1}])

    @pytest.mark.parametrize("quantity", ["1e30", "100000000000", Decimal("99999999999.9995")])
    def test_quantity_beyond_column_range_rejected(self, quantity):
        with pytest.raises(InvalidQuantityError) as exc:
            normalize_items([{"product_id": 1, "quantity": quantity}])
        assert exc.value.kind == "invalid_quantity"

    @pytest.mark.parametrize("item", [5, (1, 2, 3), None])
    def test_malformed_item_rejected(self, item):
        with pytest.raises(InvalidQuantityError):
            normalize_items([item])


class TestCheckStock:
    def test_same_product_on_two_lines_is_summed(self):
        products = {1: _product(1, 100, quantity_on_hand=3)}
        requests = [LineRequest(1, Decimal(2)), LineRequest(1, Decimal(2))]
        with pytest.raises(InsufficientStockError) as exc:
            check_stock(requests, products, allow_negative_stock=False)
        assert exc.value.details["requested_quantity"] == "4"
        assert exc.value.details["on_hand"] == "3"

    def test_exact_stock_is_enough(self):
        products = {1: _product(1, 100, quantity_on_hand=3)}
        check_stock([LineRequest(1, Decimal(3))], products, allow_negative_stock=False)

    def test_negative_stock_policy_skips_check(self):
        products = {1: _product(1, 100, quantity_on_hand=0)}
        check_stock([LineRequest(1, Decimal(5))], products, allow_negative_stock=True)


class TestPriceCart:
    def test_prices_against_stored_products(self, make_product):
        a = make_product("A", price_cents=1000, quantity=10)
        b = make_product("B", price_cents=10000, tax_rate_bps=1200, quantity=5)

        cart = price_cart([{"product_id": b.id, "quantity": 1}, {"product_id": a.id, "quantity": 2}], 1000)

        assert [line.product_id for line in cart.lines] == [b.id, a.id]
        assert cart.subtotal_cents == 12000
        assert cart.tax_cents == 1200
        assert cart.total_cents == 12200

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFoundError) as exc:
            price_cart([{"product_id": 999999, "quantity": 1}])
        assert exc.value.details == {"product_id": 999999}

    def test_insufficient_stock_names_product(self, make_product):
        product = make_product("C", name="Basmati 5kg", quantity=3)
        with pytest.raises(InsufficientStockError) as exc:
            price_cart([{"product_id": product.id, "quantity": 5}])
        assert exc.value.message == "Insufficient stock for Basmati 5kg"
        assert exc.value.http_status == 409

    def test_pricing_does_not_write(self, make_product, on_hand):
        product = make_product("D", quantity=4)
        price_cart([{"product_id": product.id, "quantity": 4}])
        assert on_hand(product.id) == Decimal(4)
