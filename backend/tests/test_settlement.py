from decimal import Decimal

from app.adapters.payment import PaymentGateway
from app.adapters.pharmacy import PharmacyGateway
from app.models.order import Order
from app.services.payment_service import PaymentSettler


def _orders(db, n):
    orders = []
    for i in range(n):
        o = Order(
            order_number=f"ORD-{i}",
            correlation_key=f"key-{i}",
            doctor_id="doc-1",
            total_amount=Decimal("20.00"),
            subtotal_before_discount=Decimal("20.00"),
            ship_to="practice",
        )
        db.add(o)
        orders.append(o)
    db.commit()
    return orders


def test_settlement_tracks_paid_and_failed_orders(db, functions):
    functions.charge_outcomes[2] = "decline"
    orders = _orders(db, 3)
    client = functions.client()

    result = PaymentSettler(db, PaymentGateway(client), PharmacyGateway(client)).settle(
        orders, {}, "pm-1"
    )

    assert result.paid_orders == [orders[0].id, orders[2].id]
    assert result.failed_orders == [orders[1].id]
    assert result.failed_payments[0]["error"] == "Card declined"
    assert result.all_paid is False

    db.expire_all()
    assert [db.get(Order, o.id).payment_status for o in orders] == [
        "paid",
        "payment_failed",
        "paid",
    ]
