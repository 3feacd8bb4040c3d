from datetime import datetime
from typing import Dict, List, Optional
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.order import Order, OrderLine
from app.schemas.order_schema import OrderDraft, OrderLineDraft


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def _gen_order_number(self) -> str:
        return f"ORD-{uuid4().hex[:10].upper()}"

    def insert_orders(self, drafts: List[OrderDraft]) -> Dict[str, Order]:
        """
        Insert every draft in one flush and return the new rows keyed by correlation_key.
        """
        orders = [
            Order(order_number=self._gen_order_number(), **d.model_dump())
            for d in drafts
        ]
        self.db.add_all(orders)
        self.db.flush()
        return {o.correlation_key: o for o in orders}

    def insert_order_lines(
        self, drafts: List[OrderLineDraft], orders_by_key: Dict[str, Order]
    ) -> List[OrderLine]:
        """
        Stamp each line draft with the id of the order created from the same cart line.
        Raises KeyError when a draft has no matching order.
        """
        lines = []
        for d in drafts:
            order = orders_by_key[d.correlation_key]
            fields = d.model_dump(exclude={"correlation_key"})
            lines.append(OrderLine(order_id=order.id, **fields))
        self.db.add_all(lines)
        self.db.flush()
        return lines

    def mark_paid(self, order: Order, transaction_id: Optional[str] = None):
        order.payment_status = "paid"
        order.transaction_id = transaction_id
        order.payment_error = None
        self.db.flush()

    def mark_payment_failed(self, order: Order, error: str):
        order.payment_status = "payment_failed"
        order.status = "pending"
        order.payment_error = error
        self.db.flush()

    def mark_abandoned(self, created_before: datetime) -> int:
        """Orders still waiting on a charge attempt since `created_before` count as failed."""
        res = self.db.execute(
            update(Order)
            .where(Order.payment_status == "pending", Order.created_at < created_before)
            .values(payment_status="payment_failed", payment_error="Abandoned before payment")
            .execution_options(synchronize_session=False)
        )
        return res.rowcount
