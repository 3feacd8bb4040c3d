from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.repositories.directory_repo import DirectoryRepository
from app.repositories.session_repo import SessionRepository
from app.utils.log import get_logger

log = get_logger("checkout")

# roles that act on behalf of the practice they are linked to
PRACTICE_MEMBER_ROLES = ("staff", "provider")


@dataclass(frozen=True)
class CallerContext:
    """Authenticated caller, resolved once from the bearer token."""

    user_id: str


@dataclass(frozen=True)
class PracticeContext:
    effective_user_id: str
    role: Optional[str]
    practice_id: str  # billing owner stamped on orders as doctor_id
    practice_address: Any = None
    staff_provider_id: Optional[str] = None

    def provider_for(self, line_provider_id: Optional[str]) -> Optional[str]:
        # staff orders are attributed to the staff member's own provider record
        if self.staff_provider_id:
            return self.staff_provider_id
        return line_provider_id


class ContextResolver:
    def __init__(self, db: Session):
        self.db = db
        self.directory = DirectoryRepository(db)
        self.sessions = SessionRepository(db)

    def effective_user_id(self, caller: CallerContext) -> str:
        """An admin with an active impersonation session checks out as the impersonated user."""
        impersonated = self.sessions.impersonated_user_id(caller.user_id)
        if impersonated:
            log.info(
                f"Impersonation detected: admin={caller.user_id} effective={impersonated}"
            )
            return impersonated
        return caller.user_id

    def resolve(self, effective_user_id: str) -> PracticeContext:
        """
        Work out who is billed and where practice-bound lines ship.
        Missing profile, provider or practice rows fall back to the caller's own id
        and unchanged provider ids instead of failing the checkout.
        """
        profile = self.directory.get_profile(effective_user_id)
        role = profile.role if profile else None

        practice_id = effective_user_id
        if role in PRACTICE_MEMBER_ROLES and profile.practice_id:
            practice_id = profile.practice_id

        staff_provider_id = None
        if role == "staff" and profile.provider_id:
            provider = self.directory.get_provider(profile.provider_id)
            staff_provider_id = provider.id if provider else None

        return PracticeContext(
            effective_user_id=effective_user_id,
            role=role,
            practice_id=practice_id,
            practice_address=self.directory.get_practice_address(practice_id),
            staff_provider_id=staff_provider_id,
        )
