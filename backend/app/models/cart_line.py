from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.db import Base
from app.utils.clock import utcnow


class CartLine(Base):
    __tablename__ = "cart_lines"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    cart_id = Column(
        String(36), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = Column(String(36), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    price_snapshot = Column(
        Numeric(12, 2), nullable=False, default=0
    )  # unit price at time of add
    shipping_speed = Column(String(32), nullable=False, default="ground")

    # patient_id present -> ship to patient, otherwise ship to practice
    patient_id = Column(String(36), nullable=True)
    patient_name = Column(String(255), nullable=True)
    patient_email = Column(String(255), nullable=True)
    patient_phone = Column(String(64), nullable=True)
    patient_address = Column(JSON, nullable=True)
    gender_at_birth = Column(String(32), nullable=True)

    prescription_url = Column(String(1024), nullable=True)
    prescription_method = Column(String(64), nullable=True)
    refills_allowed = Column(Boolean, nullable=False, default=False)
    refills_total = Column(Integer, nullable=False, default=0)

    destination_state = Column(String(8), nullable=True)
    provider_id = Column(String(36), nullable=True)
    assigned_pharmacy_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    cart = relationship("Cart", back_populates="lines")
