from uuid import uuid4

from app.db import Base
from sqlalchemy import Boolean, Column, DateTime, String, func
from sqlalchemy.orm import relationship


class Cart(Base):
    __tablename__ = "carts"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    doctor_id = Column(String(36), nullable=False, index=True)  # owning user
    created_at = Column(DateTime, server_default=func.now())

    # set while a place-order run owns the cart
    checking_out = Column(Boolean, default=False, nullable=False)
    checkout_started_at = Column(DateTime, nullable=True)

    lines = relationship(
        "CartLine",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartLine.created_at",
    )
