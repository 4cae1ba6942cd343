"""Tests for order pricing."""

from decimal import Decimal

from storefront.pricing import (
    FLAT_SHIPPING,
    calculate_totals,
    display_amount,
    effective_unit_price,
    summarize,
)


class TestEffectiveUnitPrice:
    def test_not_on_sale(self):
        assert effective_unit_price(Decimal("100")) == Decimal("100")

    def test_on_sale_applies_percentage(self):
        assert effective_unit_price(Decimal("100"), True, Decimal("20")) == Decimal("80")

    def test_sale_percentage_ignored_when_not_on_sale(self):
        assert effective_unit_price(Decimal("100"), False, Decimal("20")) == Decimal("100")

    def test_on_sale_without_percentage(self):
        assert effective_unit_price(Decimal("50"), True, None) == Decimal("50")

    def test_accepts_strings(self):
        assert effective_unit_price("19.99") == Decimal("19.99")


class TestCalculateTotals:
    def test_discounted_order_gets_free_shipping(self):
        # Two units of a 100.00 product at 20% off
        unit = effective_unit_price(Decimal("100"), True, Decimal("20"))
        prices = calculate_totals([(unit, 2)])

        assert prices.items_price == Decimal("160")
        assert prices.shipping_price == Decimal("0")
        assert prices.tax_price == Decimal("12.80")
        assert prices.total_price == Decimal("172.80")

    def test_flat_shipping_at_threshold(self):
        prices = calculate_totals([(Decimal("50"), 2)])

        assert prices.items_price == Decimal("100")
        assert prices.shipping_price == FLAT_SHIPPING
        assert prices.tax_price == Decimal("8")
        assert prices.total_price == Decimal("118")

    def test_free_shipping_just_above_threshold(self):
        prices = calculate_totals([(Decimal("100.01"), 1)])
        assert prices.shipping_price == Decimal("0")

    def test_multiple_lines(self):
        prices = calculate_totals([(Decimal("10"), 3), (Decimal("5.50"), 2)])

        assert prices.items_price == Decimal("41.00")
        assert prices.shipping_price == Decimal("10")
        assert prices.total_price == Decimal("41") + Decimal("10") + Decimal("3.28")

    def test_total_is_sum_of_parts(self):
        prices = calculate_totals([(Decimal("33.33"), 3)])
        assert prices.total_price == prices.items_price + prices.shipping_price + prices.tax_price

    def test_no_rounding_before_total(self):
        prices = summarize(Decimal("0.05"))
        assert prices.tax_price == Decimal("0.004")
        assert prices.total_price == Decimal("10.054")


class TestDisplay:
    def test_display_amount_rounds_half_up(self):
        assert display_amount(Decimal("10.005")) == Decimal("10.01")
        assert display_amount(Decimal("10.004")) == Decimal("10.00")

    def test_to_display(self):
        display = summarize(Decimal("0.05")).to_display()
        assert display == {
            "itemsPrice": "0.05",
            "shippingPrice": "10.00",
            "taxPrice": "0.00",
            "totalPrice": "10.05",
        }
