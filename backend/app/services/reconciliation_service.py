from datetime import timedelta
from typing import Dict

from sqlalchemy.orm import Session

from app.config import settings
from app.repositories.cart_repo import CartRepository
from app.repositories.idempotency_repo import IdempotencyRepository
from app.repositories.order_repo import OrderRepository
from app.utils.clock import utcnow
from app.utils.log import get_logger

log = get_logger("reconciliation")


class ReconciliationService:
    """
    Periodic cleanup after interrupted checkouts: frees carts whose checkout
    lock outlived its TTL, reopens idempotency keys whose request died midway,
    and fails orders that never got a charge attempt.
    """

    def __init__(self, db: Session):
        self.db = db
        self.carts = CartRepository(db)
        self.orders = OrderRepository(db)
        self.idem_repo = IdempotencyRepository(db)

    def run(self) -> Dict[str, int]:
        now = utcnow()
        stale_before = now - timedelta(seconds=settings.CHECKOUT_LOCK_TTL_SECONDS)
        released = self.carts.release_stale_locks(stale_before)
        stale_keys = self.idem_repo.fail_stale(stale_before)
        abandoned = self.orders.mark_abandoned(
            now - timedelta(seconds=settings.ABANDONED_ORDER_TTL_SECONDS)
        )
        self.db.commit()
        if released or stale_keys or abandoned:
            log.info(
                f"released {released} stale cart locks, failed {stale_keys} stuck idempotency keys, "
                f"failed {abandoned} abandoned orders"
            )
        return {
            "released_locks": released,
            "stale_idempotency_keys": stale_keys,
            "abandoned_orders": abandoned,
        }
