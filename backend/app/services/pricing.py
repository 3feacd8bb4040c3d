"""
Per-line order arithmetic.

Every amount is a Decimal rounded half-even to cents as soon as it is computed,
and totals are summed from the rounded parts, so

    total_amount == line_total - discount_amount + shipping + merchant_fee

holds exactly for every order.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple
from uuid import uuid4

from app.models.cart_line import CartLine
from app.schemas.order_schema import OrderDraft, OrderLineDraft
from app.services.context_service import PracticeContext
from app.utils.money import HUNDRED, percent_of, to_decimal, to_money


@dataclass(frozen=True)
class LinePricing:
    line_total: Decimal
    discount_amount: Decimal
    shipping_cost: Decimal
    merchant_fee: Decimal
    total_amount: Decimal


def price_line(
    price_snapshot,
    quantity: int,
    shipping_cost,
    discount_percentage,
    merchant_fee_percentage,
) -> LinePricing:
    line_total = to_money(to_decimal(price_snapshot or 0) * (quantity or 1))
    discount_amount = percent_of(line_total, discount_percentage)
    shipping = to_money(shipping_cost)
    # fee is charged on the discounted subtotal plus shipping
    merchant_fee = percent_of(line_total - discount_amount + shipping, merchant_fee_percentage)
    total = line_total - discount_amount + shipping + merchant_fee
    return LinePricing(line_total, discount_amount, shipping, merchant_fee, total)


def discounted_unit_price(price_snapshot, discount_percentage) -> Decimal:
    price = to_decimal(price_snapshot or 0)
    return to_money(price * (1 - to_decimal(discount_percentage) / HUNDRED))


def build_order(
    line: CartLine,
    ctx: PracticeContext,
    shipping_cost: Decimal,
    discount_percentage: Decimal,
    merchant_fee_percentage: Decimal,
    discount_code: Optional[str],
    payment_method_id: str,
    payment_method_used: Optional[str],
) -> Tuple[OrderDraft, OrderLineDraft]:
    """One order and its single order line for one cart line."""
    pricing = price_line(
        line.price_snapshot,
        line.quantity,
        shipping_cost,
        discount_percentage,
        merchant_fee_percentage,
    )
    ship_to = "patient" if line.patient_id else "practice"
    address = ctx.practice_address if ship_to == "practice" else None
    key = uuid4().hex

    order = OrderDraft(
        correlation_key=key,
        doctor_id=ctx.practice_id,
        total_amount=pricing.total_amount,
        subtotal_before_discount=pricing.line_total,
        discount_code=discount_code or None,
        discount_percentage=to_decimal(discount_percentage),
        discount_amount=pricing.discount_amount,
        shipping_total=pricing.shipping_cost,
        merchant_fee_amount=pricing.merchant_fee,
        merchant_fee_percentage=to_decimal(merchant_fee_percentage),
        ship_to=ship_to,
        practice_address=address,
        formatted_shipping_address=address,
        payment_method_id=payment_method_id,
        payment_method_used=payment_method_used,
    )
    order_line = OrderLineDraft(
        correlation_key=key,
        product_id=line.product_id,
        quantity=line.quantity or 1,
        price=discounted_unit_price(line.price_snapshot, discount_percentage),
        price_before_discount=to_money(line.price_snapshot or 0),
        discount_percentage=to_decimal(discount_percentage),
        discount_amount=pricing.discount_amount,
        shipping_speed=line.shipping_speed,
        shipping_cost=pricing.shipping_cost,
        patient_id=line.patient_id,
        patient_name=line.patient_name,
        patient_email=line.patient_email,
        patient_phone=line.patient_phone,
        patient_address=line.patient_address,
        gender_at_birth=line.gender_at_birth,
        prescription_url=line.prescription_url,
        prescription_method=line.prescription_method,
        provider_id=ctx.provider_for(line.provider_id),
        assigned_pharmacy_id=line.assigned_pharmacy_id,
        destination_state=line.destination_state,
        refills_allowed=bool(line.refills_allowed),
        refills_total=line.refills_total or 0,
        refills_remaining=line.refills_total or 0,
    )
    return order, order_line
