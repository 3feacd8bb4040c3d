from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.db import Base
from app.utils.clock import utcnow


class UserSession(Base):
    __tablename__ = "user_sessions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    csrf_token = Column(String(128), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class ImpersonationSession(Base):
    __tablename__ = "active_impersonation_sessions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    admin_user_id = Column(String(36), nullable=False, index=True)
    impersonated_user_id = Column(String(36), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
