from datetime import timedelta
from decimal import Decimal

from app.main import reconcile_job
from app.models.cart import Cart
from app.models.idempotency import IdempotencyRecord, IdempotencyStatus
from app.models.order import Order
from app.repositories.idempotency_repo import IdempotencyRepository
from app.services.reconciliation_service import ReconciliationService
from app.utils.clock import utcnow


def _order(db, number, payment_status="pending", age=timedelta(0)):
    o = Order(
        order_number=number,
        correlation_key=f"key-{number}",
        doctor_id="doc-1",
        total_amount=Decimal("10.00"),
        subtotal_before_discount=Decimal("10.00"),
        ship_to="practice",
        payment_status=payment_status,
        created_at=utcnow() - age,
    )
    db.add(o)
    db.commit()
    return o.id


def _locked_cart(db, age):
    c = Cart(doctor_id="doc-1", checking_out=True, checkout_started_at=utcnow() - age)
    db.add(c)
    db.commit()
    return c.id


def test_releases_only_stale_locks(db):
    stale = _locked_cart(db, timedelta(hours=2))
    fresh = _locked_cart(db, timedelta(seconds=5))

    result = ReconciliationService(db).run()
    assert result["released_locks"] == 1

    db.expire_all()
    assert db.get(Cart, stale).checking_out is False
    assert db.get(Cart, fresh).checking_out is True


def test_fails_orders_abandoned_before_payment(db):
    abandoned = _order(db, "ORD-OLD", age=timedelta(days=1))
    recent = _order(db, "ORD-NEW")
    paid = _order(db, "ORD-PAID", payment_status="paid", age=timedelta(days=1))

    result = ReconciliationService(db).run()
    assert result["abandoned_orders"] == 1

    db.expire_all()
    old = db.get(Order, abandoned)
    assert old.payment_status == "payment_failed"
    assert old.payment_error == "Abandoned before payment"
    assert db.get(Order, recent).payment_status == "pending"
    assert db.get(Order, paid).payment_status == "paid"


def test_scheduled_job_runs_with_its_own_session(db):
    stale = _locked_cart(db, timedelta(hours=2))
    reconcile_job()
    db.expire_all()
    assert db.get(Cart, stale).checking_out is False


def test_fails_stuck_idempotency_keys(db):
    stuck = IdempotencyRecord(
        key="doc-1:stuck",
        operation="place_order",
        status=IdempotencyStatus.IN_PROGRESS,
        updated_at=utcnow() - timedelta(hours=2),
    )
    running = IdempotencyRecord(
        key="doc-1:running", operation="place_order", status=IdempotencyStatus.IN_PROGRESS
    )
    done = IdempotencyRecord(
        key="doc-1:done",
        operation="place_order",
        status=IdempotencyStatus.COMPLETED,
        updated_at=utcnow() - timedelta(hours=2),
    )
    db.add_all([stuck, running, done])
    db.commit()

    result = ReconciliationService(db).run()
    assert result["stale_idempotency_keys"] == 1

    repo = IdempotencyRepository(db)
    assert repo.get("doc-1:stuck").status == IdempotencyStatus.FAILED
    assert repo.get("doc-1:running").status == IdempotencyStatus.IN_PROGRESS
    assert repo.get("doc-1:done").status == IdempotencyStatus.COMPLETED
    # a failed key can be picked up again by the next request
    assert repo.reopen("doc-1:stuck") is True
