from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.db import Base
from app.utils.clock import utcnow


class Order(Base):
    __tablename__ = "orders"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    # generated per draft before insert; order lines find their parent through it
    correlation_key = Column(String(64), unique=True, nullable=False, index=True)
    doctor_id = Column(String(36), nullable=False, index=True)  # billing owner

    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    subtotal_before_discount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_code = Column(String(64), nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_total = Column(Numeric(12, 2), nullable=False, default=0)
    merchant_fee_amount = Column(Numeric(12, 2), nullable=False, default=0)
    merchant_fee_percentage = Column(Numeric(5, 2), nullable=False, default=0)

    status = Column(String(32), nullable=False, default="pending")
    payment_status = Column(
        String(32), nullable=False, default="pending"
    )  # pending, paid, payment_failed
    ship_to = Column(String(16), nullable=False)  # practice, patient
    practice_address = Column(JSON, nullable=True)
    formatted_shipping_address = Column(JSON, nullable=True)

    payment_method_id = Column(String(64), nullable=True)
    payment_method_used = Column(String(32), nullable=True)
    transaction_id = Column(String(128), nullable=True)
    payment_error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    lines = relationship(
        "OrderLine", back_populates="order", cascade="all, delete-orphan"
    )


class OrderLine(Base):
    __tablename__ = "order_lines"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(String(36), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    price = Column(Numeric(12, 2), nullable=False)  # unit price after discount
    price_before_discount = Column(Numeric(12, 2), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_speed = Column(String(32), nullable=False)
    shipping_cost = Column(Numeric(12, 2), nullable=False, default=0)

    patient_id = Column(String(36), nullable=True)
    patient_name = Column(String(255), nullable=True)
    patient_email = Column(String(255), nullable=True)
    patient_phone = Column(String(64), nullable=True)
    patient_address = Column(JSON, nullable=True)
    gender_at_birth = Column(String(32), nullable=True)

    prescription_url = Column(String(1024), nullable=True)
    prescription_method = Column(String(64), nullable=True)
    provider_id = Column(String(36), nullable=True)
    assigned_pharmacy_id = Column(String(36), nullable=True)
    destination_state = Column(String(8), nullable=True)
    refills_allowed = Column(Boolean, nullable=False, default=False)
    refills_total = Column(Integer, nullable=False, default=0)
    refills_remaining = Column(Integer, nullable=False, default=0)

    order = relationship("Order", back_populates="lines")
