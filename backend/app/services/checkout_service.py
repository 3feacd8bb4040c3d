import time
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.adapters.discounts import DiscountTracker
from app.adapters.functions_client import FunctionsClient
from app.adapters.payment import PaymentGateway
from app.adapters.pharmacy import PharmacyGateway
from app.adapters.shipping import ShippingCalculator
from app.config import settings
from app.models.cart import Cart
from app.models.idempotency import IdempotencyStatus
from app.models.order import Order, OrderLine
from app.repositories.cart_repo import CartRepository
from app.repositories.directory_repo import DirectoryRepository
from app.repositories.idempotency_repo import IdempotencyRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.session_repo import SessionRepository
from app.schemas.checkout_schema import OrderOut, PlaceOrderIn, PlaceOrderOut
from app.schemas.order_schema import OrderDraft, OrderLineDraft
from app.services.context_service import CallerContext, ContextResolver, PracticeContext
from app.services.exceptions import (
    CartForbidden,
    CartNotFound,
    CheckoutInProgress,
    InvalidCsrfToken,
    PersistenceError,
)
from app.services.payment_service import PaymentSettler, SettlementResult
from app.services.pricing import build_order
from app.services.shipping_service import (
    ShippingPricer,
    allocate_shipping,
    group_lines,
    partition_lines,
)
from app.utils.clock import utcnow
from app.utils.log import get_logger
from app.utils.money import to_decimal
from app.utils.side_effects import best_effort
from app.utils.transactions import fresh_transaction

log = get_logger("checkout")


class CheckoutService:
    """
    place-order pipeline: one order per cart line, one charge per order.

    Everything up to and including the order inserts is all-or-nothing. From the
    first charge on, each order settles on its own and a failed charge never
    undoes another order.
    """

    def __init__(self, db: Session, functions: Optional[FunctionsClient] = None):
        self.db = db
        functions = functions or FunctionsClient()
        self.carts = CartRepository(db)
        self.orders = OrderRepository(db)
        self.directory = DirectoryRepository(db)
        self.sessions = SessionRepository(db)
        self.idem_repo = IdempotencyRepository(db)
        self.context = ContextResolver(db)
        self.shipping = ShippingPricer(ShippingCalculator(functions))
        self.settler = PaymentSettler(db, PaymentGateway(functions), PharmacyGateway(functions))
        self.discounts = DiscountTracker(functions)

    def place_order(
        self,
        caller: CallerContext,
        payload: PlaceOrderIn,
        idempotency_key: Optional[str] = None,
    ) -> Dict:
        start = time.monotonic()
        log.info(f"Starting order placement cart={payload.cart_id} user={caller.user_id}")

        if not self.sessions.validate_csrf(caller.user_id, payload.csrf_token):
            log.error(f"CSRF validation failed for user={caller.user_id}")
            raise InvalidCsrfToken()

        # keys are per caller so one user's key can never replay another user's response
        key = f"{caller.user_id}:{idempotency_key}" if idempotency_key else None
        if key:
            stored = self._begin_idempotent(key)
            if stored is not None:
                log.info(f"Replaying stored response for idempotency key={idempotency_key!r}")
                return stored

        try:
            resp = self._run(caller, payload, start)
        except Exception as e:
            if key:
                best_effort(log, "idempotency mark_failed", self.idem_repo.mark_failed, key, str(e))
            raise

        if key:
            best_effort(log, "idempotency mark_completed", self.idem_repo.mark_completed, key, resp)
        return resp

    def _begin_idempotent(self, key: str) -> Optional[Dict]:
        rec, created = self.idem_repo.begin(key, "place_order")
        if created:
            return None
        if rec and rec.status == IdempotencyStatus.COMPLETED and rec.response_body:
            return rec.response_body
        if rec and rec.status == IdempotencyStatus.FAILED and self.idem_repo.reopen(key):
            return None
        raise CheckoutInProgress("Duplicate request in progress, try again later")

    def _run(self, caller: CallerContext, payload: PlaceOrderIn, start: float) -> Dict:
        effective_user_id = self.context.effective_user_id(caller)
        cart = self._load_cart(payload.cart_id, effective_user_id)

        stale_before = utcnow() - timedelta(seconds=settings.CHECKOUT_LOCK_TTL_SECONDS)
        if not self.carts.acquire_checkout_lock(cart.id, stale_before):
            self.db.rollback()
            log.warning(f"Checkout already running for cart={cart.id}")
            raise CheckoutInProgress()
        self.db.commit()

        try:
            ctx = self.context.resolve(effective_user_id)
            return self._checkout(cart, ctx, payload, start)
        finally:
            best_effort(log, f"release checkout lock cart={cart.id}", self._release_lock, cart.id)

    def _load_cart(self, cart_id: str, effective_user_id: str) -> Cart:
        cart = self.carts.get_with_lines(cart_id)
        if not cart or not cart.lines:
            log.error(f"Cart not found or empty: {cart_id}")
            raise CartNotFound()
        if cart.doctor_id != effective_user_id:
            log.error(
                f"Cart ownership mismatch cart_owner={cart.doctor_id} effective_user={effective_user_id}"
            )
            raise CartForbidden()
        return cart

    def _checkout(self, cart: Cart, ctx: PracticeContext, payload: PlaceOrderIn, start: float) -> Dict:
        # lines are re-read after taking the lock; a finished concurrent checkout empties them
        lines = list(cart.lines)
        if not lines:
            raise CartNotFound()

        practice_lines, patient_lines = partition_lines(lines)
        log.info(
            f"Processing {len(practice_lines)} practice lines, {len(patient_lines)} patient lines"
        )

        groups = group_lines(practice_lines) + group_lines(patient_lines)
        self.shipping.price(groups)
        shipping_by_line = allocate_shipping(groups)

        merchant_fee_percentage = (
            payload.merchant_fee_percentage
            if payload.merchant_fee_percentage is not None
            else to_decimal(settings.DEFAULT_MERCHANT_FEE_PERCENTAGE)
        )
        payment_type = self.directory.get_payment_type(payload.payment_method_id)

        drafts = [
            build_order(
                line,
                ctx,
                shipping_by_line[line.id],
                payload.discount_percentage,
                merchant_fee_percentage,
                payload.discount_code,
                payload.payment_method_id,
                payment_type,
            )
            for line in practice_lines + patient_lines
        ]
        orders, lines_by_order = self._persist(drafts)

        settlement = self.settler.settle(
            orders, lines_by_order, payload.payment_method_id, csrf_token=payload.csrf_token
        )
        log.info(f"{len(settlement.paid_orders)} of {len(orders)} orders paid")
        if settlement.all_paid:
            self._finalize(cart.id, ctx, payload, orders)
        else:
            log.info(f"Leaving cart={cart.id} intact: {len(settlement.failed_orders)} payment(s) failed")

        return self._response(orders, settlement, start)

    def _persist(
        self, drafts: List[Tuple[OrderDraft, OrderLineDraft]]
    ) -> Tuple[List[Order], Dict[str, List[OrderLine]]]:
        """
        Insert all orders, then all order lines, in one transaction. A failure in
        either step leaves neither orders nor lines behind.
        """
        order_drafts = [o for o, _ in drafts]
        line_drafts = [l for _, l in drafts]

        stage = "orders"
        try:
            with fresh_transaction(self.db):
                orders_by_key = self.orders.insert_orders(order_drafts)
                log.info(f"Created {len(orders_by_key)} orders")
                stage = "order lines"
                created_lines = self.orders.insert_order_lines(line_drafts, orders_by_key)
        except (SQLAlchemyError, KeyError) as e:
            log.error(f"Failed to create {stage}: {e!r}")
            raise PersistenceError(f"Failed to create {stage}") from e

        log.info(f"Created {len(created_lines)} order lines for {len(orders_by_key)} orders")
        orders = [orders_by_key[d.correlation_key] for d in order_drafts]
        lines_by_order: Dict[str, List[OrderLine]] = {}
        for line in created_lines:
            lines_by_order.setdefault(line.order_id, []).append(line)
        return orders, lines_by_order

    def _finalize(self, cart_id: str, ctx: PracticeContext, payload: PlaceOrderIn, orders: List[Order]):
        """Every order was paid: count the discount use once and empty the cart."""
        if payload.discount_code and orders:
            best_effort(
                log,
                "increment-discount-usage",
                self.discounts.increment_usage,
                payload.discount_code,
                ctx.effective_user_id,
                orders[0].id,
            )
        deleted = best_effort(log, f"clear cart lines cart={cart_id}", self._clear_cart, cart_id)
        if deleted is not None:
            log.info(f"Cleared {deleted} cart lines for cart={cart_id}")

    def _clear_cart(self, cart_id: str) -> int:
        try:
            n = self.carts.delete_lines(cart_id)
            self.db.commit()
            return n
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _release_lock(self, cart_id: str):
        self.db.rollback()
        self.carts.release_checkout_lock(cart_id)
        self.db.commit()

    def _response(self, orders: List[Order], settlement: SettlementResult, start: float) -> Dict:
        elapsed = round(time.monotonic() - start, 3)
        log.info(
            f"Completed in {elapsed}s - {len(orders)} orders, "
            f"{len(settlement.failed_payments)} payment failures"
        )
        out = PlaceOrderOut(
            success=settlement.all_paid,
            created_orders=[OrderOut.model_validate(o) for o in orders],
            failed_payments=settlement.failed_payments,
            failed_orders=settlement.failed_orders,
            execution_time_seconds=elapsed,
        )
        return out.model_dump(mode="json")
