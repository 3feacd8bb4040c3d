from decimal import Decimal

import pytest

from app.models.cart_line import CartLine
from app.services.context_service import PracticeContext
from app.services.pricing import build_order, discounted_unit_price, price_line
from app.utils.money import split_evenly, to_money

D = Decimal


def _ctx(**kw):
    fields = dict(
        effective_user_id="doc-1",
        role="doctor",
        practice_id="doc-1",
        practice_address={"city": "Austin"},
    )
    fields.update(kw)
    return PracticeContext(**fields)


def test_price_line_matches_reference_scenario():
    p = price_line(D("50.00"), 1, D("5.00"), D("10"), D("3.75"))
    assert p.line_total == D("50.00")
    assert p.discount_amount == D("5.00")
    assert p.shipping_cost == D("5.00")
    # (50 - 5 + 5) * 3.75% = 1.875, half-even to cents
    assert p.merchant_fee == D("1.88")
    assert p.total_amount == D("51.88")


@pytest.mark.parametrize(
    "price,qty,shipping,discount,fee",
    [
        (D("19.99"), 3, D("7.33"), D("15"), D("3.75")),
        (D("0.01"), 1, D("0.00"), D("0"), D("3.75")),
        (D("120.50"), 2, D("3.34"), D("33.3"), D("2.9")),
        (D("9.95"), 7, D("12.01"), D("100"), D("3.75")),
    ],
)
def test_totals_add_up_exactly(price, qty, shipping, discount, fee):
    p = price_line(price, qty, shipping, discount, fee)
    assert p.total_amount == p.line_total - p.discount_amount + p.shipping_cost + p.merchant_fee
    expected_fee = (p.line_total - p.discount_amount + p.shipping_cost) * fee / 100
    assert abs(p.merchant_fee - expected_fee) <= D("0.005")


def test_fee_is_charged_after_discount():
    no_discount = price_line(D("100"), 1, D("0"), D("0"), D("10"))
    half_off = price_line(D("100"), 1, D("0"), D("50"), D("10"))
    assert no_discount.merchant_fee == D("10.00")
    assert half_off.merchant_fee == D("5.00")


def test_discounted_unit_price():
    assert discounted_unit_price(D("50.00"), D("10")) == D("45.00")
    assert discounted_unit_price(D("19.99"), D("15")) == D("16.99")
    assert discounted_unit_price(D("10"), D("0")) == D("10.00")


def test_money_rounds_half_even():
    assert to_money("1.875") == D("1.88")
    assert to_money("1.865") == D("1.86")
    assert to_money(3.75) == D("3.75")


def test_split_evenly_hands_out_leftover_cents_first():
    assert split_evenly(D("10.00"), 3) == [D("3.34"), D("3.33"), D("3.33")]
    assert sum(split_evenly(D("0.05"), 4)) == D("0.05")
    assert split_evenly(D("0"), 2) == [D("0.00"), D("0.00")]


def test_build_order_for_practice_line():
    line = CartLine(
        id="line-1",
        product_id="prod-1",
        quantity=2,
        price_snapshot=D("25.00"),
        shipping_speed="2day",
        provider_id="prov-9",
        assigned_pharmacy_id="pharm-1",
        refills_allowed=True,
        refills_total=3,
    )
    order, order_line = build_order(
        line, _ctx(), D("4.00"), D("10"), D("3.75"), "SAVE10", "pm-1", "credit_card"
    )
    assert order.correlation_key == order_line.correlation_key
    assert order.ship_to == "practice"
    assert order.practice_address == {"city": "Austin"}
    assert order.formatted_shipping_address == {"city": "Austin"}
    assert order.doctor_id == "doc-1"
    assert order.discount_code == "SAVE10"
    assert order.subtotal_before_discount == D("50.00")
    assert order.discount_amount == D("5.00")
    assert order.shipping_total == D("4.00")
    assert order.payment_method_used == "credit_card"
    assert order.status == "pending"

    assert order_line.price == D("22.50")
    assert order_line.price_before_discount == D("25.00")
    assert order_line.shipping_cost == D("4.00")
    assert order_line.provider_id == "prov-9"
    assert order_line.refills_remaining == 3


def test_build_order_for_patient_line_has_no_address():
    line = CartLine(
        id="line-2",
        product_id="prod-2",
        quantity=1,
        price_snapshot=D("80.00"),
        shipping_speed="ground",
        patient_id="pat-1",
        patient_address={"city": "Dallas"},
        provider_id="prov-9",
    )
    order, order_line = build_order(
        line, _ctx(staff_provider_id="prov-staff"), D("0"), D("0"), D("3.75"), None, "pm-1", None
    )
    assert order.ship_to == "patient"
    assert order.practice_address is None
    assert order.formatted_shipping_address is None
    assert order.discount_code is None
    assert order_line.patient_address == {"city": "Dallas"}
    # staff override wins over the line's provider
    assert order_line.provider_id == "prov-staff"
