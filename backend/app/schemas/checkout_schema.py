from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

# Money is Decimal internally and a JSON number on the wire.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class PlaceOrderIn(BaseModel):
    cart_id: str
    payment_method_id: str
    discount_code: Optional[str] = None
    discount_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    merchant_fee_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    # optional here so a missing token is reported as a CSRF failure, not a 422
    csrf_token: Optional[str] = None

    @field_validator("discount_percentage", mode="before")
    @classmethod
    def null_discount_is_zero(cls, v):
        return 0 if v is None else v


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    order_number: str
    doctor_id: str
    total_amount: Money
    subtotal_before_discount: Money
    discount_code: Optional[str] = None
    discount_percentage: Money
    discount_amount: Money
    shipping_total: Money
    merchant_fee_amount: Money
    merchant_fee_percentage: Money
    status: str
    payment_status: str
    ship_to: str
    practice_address: Optional[Any] = None
    formatted_shipping_address: Optional[Any] = None
    payment_method_id: Optional[str] = None
    payment_method_used: Optional[str] = None
    created_at: datetime


class FailedPayment(BaseModel):
    order_id: str
    order_number: str
    success: bool = False
    error: str
    authorizenet_response: Optional[Any] = None


class PlaceOrderOut(BaseModel):
    success: bool
    created_orders: List[OrderOut]
    failed_payments: List[FailedPayment]
    failed_orders: List[str]
    execution_time_seconds: float
