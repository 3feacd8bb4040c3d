from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.adapters.payment import PaymentGateway, PaymentResult
from app.adapters.pharmacy import PharmacyGateway
from app.models.order import Order, OrderLine
from app.repositories.order_repo import OrderRepository
from app.utils.log import get_logger
from app.utils.side_effects import best_effort

log = get_logger("payments")


@dataclass
class SettlementResult:
    failed_payments: List[Dict] = field(default_factory=list)
    failed_orders: List[str] = field(default_factory=list)
    paid_orders: List[str] = field(default_factory=list)

    @property
    def all_paid(self) -> bool:
        return not self.failed_payments


class PaymentSettler:
    """
    Charges every created order on its own. A failed charge marks that order
    payment_failed and moves on; orders already charged are never rolled back.
    """

    def __init__(self, db: Session, gateway: PaymentGateway, pharmacy: PharmacyGateway):
        self.db = db
        self.orders = OrderRepository(db)
        self.gateway = gateway
        self.pharmacy = pharmacy

    def settle(
        self,
        orders: Sequence[Order],
        lines_by_order: Dict[str, List[OrderLine]],
        payment_method_id: str,
        csrf_token: Optional[str] = None,
    ) -> SettlementResult:
        result = SettlementResult()
        for order in orders:
            try:
                outcome = self.gateway.charge(
                    order.id, payment_method_id, order.total_amount, csrf_token=csrf_token
                )
            except Exception as e:
                log.exception(f"charge raised for order {order.order_number}")
                outcome = PaymentResult(success=False, error=str(e) or "Payment processing failed")

            if outcome.success:
                self.orders.mark_paid(order, outcome.transaction_id)
                self.db.commit()
                result.paid_orders.append(order.id)
                self._submit_to_pharmacies(order, lines_by_order.get(order.id, []))
            else:
                self._record_failure(result, order, outcome)
        return result

    def _record_failure(self, result: SettlementResult, order: Order, outcome: PaymentResult):
        error = outcome.error or "Payment processing failed"
        log.warning(f"payment failed for order {order.order_number}: {error}")
        self.orders.mark_payment_failed(order, error)
        self.db.commit()
        result.failed_payments.append(
            {
                "order_id": order.id,
                "order_number": order.order_number,
                "success": False,
                "error": error,
                "authorizenet_response": outcome.gateway_response,
            }
        )
        result.failed_orders.append(order.id)

    def _submit_to_pharmacies(self, order: Order, lines: List[OrderLine]):
        """One send-order-to-pharmacy call per pharmacy, carrying that pharmacy's line ids."""
        by_pharmacy: Dict[str, List[str]] = {}
        for line in lines:
            if line.assigned_pharmacy_id:
                by_pharmacy.setdefault(line.assigned_pharmacy_id, []).append(line.id)
        for pharmacy_id, line_ids in by_pharmacy.items():
            log.info(f"sending {len(line_ids)} order lines to pharmacy {pharmacy_id}")
            best_effort(
                log,
                f"send-order-to-pharmacy order={order.id} pharmacy={pharmacy_id}",
                self.pharmacy.send_order,
                order.id,
                line_ids,
                pharmacy_id,
            )
