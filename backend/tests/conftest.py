import json
import os
import tempfile
from datetime import timedelta
from decimal import Decimal

# Point the app at a throwaway SQLite file before anything imports app.config.
_tmpdir = tempfile.mkdtemp(prefix="checkout-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["FUNCTIONS_BASE_URL"] = "http://functions.test"

import httpx  # noqa: E402
import jwt  # noqa: E402
import pytest  # noqa: E402

from app.adapters.functions_client import FunctionsClient  # noqa: E402
from app.api.deps import get_functions_client  # noqa: E402
from app.db import SessionLocal, init_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.cart import Cart  # noqa: E402
from app.models.cart_line import CartLine  # noqa: E402
from app.models.directory import PaymentMethod, Practice, Profile, Provider  # noqa: E402
from app.models.session import ImpersonationSession, UserSession  # noqa: E402
from app.utils.clock import utcnow  # noqa: E402

CSRF_TOKEN = "csrf-test-token"
PRACTICE_ADDRESS = {
    "street": "1 Clinic Way",
    "city": "Austin",
    "state": "TX",
    "zip": "78701",
}


class FakeFunctions:
    """
    Stands in for the serverless functions behind FunctionsClient.
    Records every call and answers according to the knobs below.
    """

    def __init__(self):
        self.calls = []
        self.shipping_costs = {}  # (pharmacy_id, speed) -> cost, None (no cost) or "error"
        self.default_shipping_cost = 10
        self.charge_outcomes = {}  # 1-based charge number -> "decline" | "raise"
        self.pharmacy_fails = False
        self.discount_fails = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        name = request.url.path.rsplit("/", 1)[-1]
        body = json.loads(request.content or b"{}")
        self.calls.append((name, body, dict(request.headers)))

        if name == "calculate-shipping":
            key = (body["pharmacy_id"], body["shipping_speed"])
            cost = self.shipping_costs.get(key, self.default_shipping_cost)
            if cost == "error":
                return httpx.Response(500, json={"error": "carrier down"})
            return httpx.Response(200, json={"shipping_cost": cost})

        if name == "charge-payment":
            n = len(self.calls_to("charge-payment"))
            outcome = self.charge_outcomes.get(n)
            if outcome == "raise":
                raise httpx.ConnectError("gateway unreachable", request=request)
            if outcome == "decline":
                return httpx.Response(
                    200,
                    json={
                        "success": False,
                        "error": "Card declined",
                        "authorizenet_response": {"responseCode": "2"},
                    },
                )
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "transaction_id": f"txn-{n}",
                    "authorizenet_response": {"responseCode": "1"},
                },
            )

        if name == "send-order-to-pharmacy":
            if self.pharmacy_fails:
                return httpx.Response(502, json={"error": "pharmacy api down"})
            return httpx.Response(200, json={"ok": True})

        if name == "increment-discount-usage":
            if self.discount_fails:
                return httpx.Response(500, json={"error": "rpc failed"})
            return httpx.Response(200, json={"ok": True})

        return httpx.Response(404, json={"error": f"unknown function {name}"})

    def client(self) -> FunctionsClient:
        return FunctionsClient(
            base_url="http://functions.test",
            internal_key="test-key",
            timeout=5,
            transport=httpx.MockTransport(self.handler),
        )

    def calls_to(self, name):
        return [body for n, body, _ in self.calls if n == name]


class Factory:
    """Seeds the rows a checkout reads."""

    def __init__(self, db):
        self.db = db

    def user(
        self,
        user_id,
        role="doctor",
        practice_id=None,
        provider_id=None,
        csrf_token=CSRF_TOKEN,
        address=PRACTICE_ADDRESS,
    ):
        self.db.add(Profile(id=user_id, role=role, practice_id=practice_id, provider_id=provider_id))
        if role == "doctor":
            self.db.add(Practice(id=user_id, name=f"Practice {user_id}", shipping_address=address))
        if csrf_token:
            self.db.add(
                UserSession(
                    user_id=user_id,
                    csrf_token=csrf_token,
                    expires_at=utcnow() + timedelta(hours=1),
                )
            )
        self.db.commit()

    def provider(self, provider_id, user_id=None, practice_id=None):
        self.db.add(Provider(id=provider_id, user_id=user_id, practice_id=practice_id))
        self.db.commit()

    def payment_method(self, pm_id="pm-1", user_id=None, payment_type="credit_card"):
        self.db.add(PaymentMethod(id=pm_id, user_id=user_id, payment_type=payment_type))
        self.db.commit()

    def impersonation(self, admin_user_id, impersonated_user_id):
        self.db.add(
            ImpersonationSession(
                admin_user_id=admin_user_id, impersonated_user_id=impersonated_user_id
            )
        )
        self.db.commit()

    def cart(self, owner_id, lines=()):
        cart = Cart(doctor_id=owner_id)
        self.db.add(cart)
        self.db.flush()
        base = utcnow()
        for i, spec in enumerate(lines):
            fields = {
                "product_id": f"prod-{i + 1}",
                "quantity": 1,
                "price_snapshot": Decimal("50.00"),
                "shipping_speed": "ground",
                "assigned_pharmacy_id": "pharm-1",
                # distinct timestamps keep cart.lines in insertion order
                "created_at": base + timedelta(milliseconds=i),
            }
            fields.update(spec)
            self.db.add(CartLine(cart_id=cart.id, **fields))
        self.db.commit()
        return cart.id


def make_token(user_id, secret="test-secret", **claims):
    return jwt.encode({"sub": user_id, **claims}, secret, algorithm="HS256")


def auth_headers(user_id, **extra):
    headers = {"Authorization": f"Bearer {make_token(user_id)}"}
    headers.update(extra)
    return headers


@pytest.fixture(autouse=True)
def setup_db():
    init_db(reset=True)
    yield


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def make(db):
    return Factory(db)


@pytest.fixture
def functions():
    fake = FakeFunctions()
    app.dependency_overrides[get_functions_client] = fake.client
    yield fake
    app.dependency_overrides.pop(get_functions_client, None)


@pytest.fixture
def auth():
    return auth_headers
