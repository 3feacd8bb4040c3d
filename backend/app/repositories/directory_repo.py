from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models.directory import PaymentMethod, Practice, Profile, Provider


class DirectoryRepository:
    """Read-only lookups into profiles, practices, providers and payment methods."""

    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.db.get(Profile, user_id)

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self.db.get(Provider, provider_id)

    def get_practice_address(self, practice_id: Optional[str]) -> Optional[Any]:
        if not practice_id:
            return None
        practice = self.db.get(Practice, practice_id)
        return practice.shipping_address if practice else None

    def get_payment_type(self, payment_method_id: str) -> Optional[str]:
        pm = self.db.get(PaymentMethod, payment_method_id)
        return pm.payment_type if pm else None
