"""
Practice directory records the checkout reads: who the caller is, which
practice they bill to, where the practice ships, and which payment method
they picked. Written by other parts of the platform.
"""
from uuid import uuid4

from sqlalchemy import JSON, Column, String

from app.db import Base


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(String(36), primary_key=True)  # same as the auth user id
    role = Column(String(32), nullable=False, default="doctor")  # doctor, staff, provider, admin
    practice_id = Column(String(36), nullable=True)
    provider_id = Column(String(36), nullable=True)


class Practice(Base):
    __tablename__ = "practices"
    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=True)
    shipping_address = Column(JSON, nullable=True)


class Provider(Base):
    __tablename__ = "providers"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(36), nullable=True, index=True)
    practice_id = Column(String(36), nullable=True, index=True)


class PaymentMethod(Base):
    __tablename__ = "payment_methods"
    id = Column(String(64), primary_key=True)
    user_id = Column(String(36), nullable=True, index=True)
    payment_type = Column(String(32), nullable=True)  # credit_card, bank_account
