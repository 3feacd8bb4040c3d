from typing import Optional

from sqlalchemy.orm import Session

from app.models.session import ImpersonationSession, UserSession
from app.utils.clock import utcnow


class SessionRepository:
    def __init__(self, db: Session):
        self.db = db

    def validate_csrf(self, user_id: str, token: Optional[str]) -> bool:
        """True when `token` belongs to an unexpired session of `user_id`."""
        if not token:
            return False
        rec = (
            self.db.query(UserSession)
            .filter(
                UserSession.user_id == user_id,
                UserSession.csrf_token == token,
                UserSession.expires_at >= utcnow(),
            )
            .first()
        )
        return rec is not None

    def impersonated_user_id(self, admin_user_id: str) -> Optional[str]:
        rec = (
            self.db.query(ImpersonationSession)
            .filter(
                ImpersonationSession.admin_user_id == admin_user_id,
                ImpersonationSession.is_active == True,  # noqa: E712
            )
            .first()
        )
        return rec.impersonated_user_id if rec else None
