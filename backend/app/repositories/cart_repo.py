from datetime import datetime
from typing import Optional

from sqlalchemy import delete, or_, update
from sqlalchemy.orm import Session, selectinload

from app.models.cart import Cart
from app.models.cart_line import CartLine
from app.utils.clock import utcnow


class CartRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_with_lines(self, cart_id: str) -> Optional[Cart]:
        return (
            self.db.query(Cart)
            .options(selectinload(Cart.lines))
            .filter(Cart.id == cart_id)
            .first()
        )

    def acquire_checkout_lock(self, cart_id: str, stale_before: datetime) -> bool:
        """
        Flip carts.checking_out on with a conditional UPDATE so only one request wins.
        A lock taken before `stale_before` is considered abandoned and can be taken over.
        """
        res = self.db.execute(
            update(Cart)
            .where(
                Cart.id == cart_id,
                or_(
                    Cart.checking_out == False,  # noqa: E712
                    Cart.checkout_started_at == None,  # noqa: E711
                    Cart.checkout_started_at < stale_before,
                ),
            )
            .values(checking_out=True, checkout_started_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def release_checkout_lock(self, cart_id: str):
        self.db.execute(
            update(Cart)
            .where(Cart.id == cart_id)
            .values(checking_out=False, checkout_started_at=None)
            .execution_options(synchronize_session=False)
        )

    def release_stale_locks(self, stale_before: datetime) -> int:
        res = self.db.execute(
            update(Cart)
            .where(Cart.checking_out == True, Cart.checkout_started_at < stale_before)  # noqa: E712
            .values(checking_out=False, checkout_started_at=None)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def delete_lines(self, cart_id: str) -> int:
        res = self.db.execute(
            delete(CartLine)
            .where(CartLine.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount
