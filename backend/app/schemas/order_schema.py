from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel


class OrderDraft(BaseModel):
    """Order row as built from one cart line, before it has an id."""

    correlation_key: str
    doctor_id: str
    total_amount: Decimal
    subtotal_before_discount: Decimal
    discount_code: Optional[str] = None
    discount_percentage: Decimal
    discount_amount: Decimal
    shipping_total: Decimal
    merchant_fee_amount: Decimal
    merchant_fee_percentage: Decimal
    status: str = "pending"
    payment_status: str = "pending"
    ship_to: str
    practice_address: Optional[Any] = None
    formatted_shipping_address: Optional[Any] = None
    payment_method_id: str
    payment_method_used: Optional[str] = None


class OrderLineDraft(BaseModel):
    """Order line for the order sharing its correlation_key."""

    correlation_key: str
    product_id: str
    quantity: int
    price: Decimal
    price_before_discount: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    shipping_speed: str
    shipping_cost: Decimal
    patient_id: Optional[str] = None
    patient_name: Optional[str] = None
    patient_email: Optional[str] = None
    patient_phone: Optional[str] = None
    patient_address: Optional[Any] = None
    gender_at_birth: Optional[str] = None
    prescription_url: Optional[str] = None
    prescription_method: Optional[str] = None
    provider_id: Optional[str] = None
    assigned_pharmacy_id: Optional[str] = None
    destination_state: Optional[str] = None
    refills_allowed: bool = False
    refills_total: int = 0
    refills_remaining: int = 0
