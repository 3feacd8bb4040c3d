from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from app.adapters.functions_client import FunctionInvokeError, FunctionsClient


@dataclass
class PaymentResult:
    success: bool
    error: Optional[str] = None
    gateway_response: Any = None
    transaction_id: Optional[str] = None


class PaymentGateway:
    """
    Charges one order through the charge-payment function (Authorize.net behind it).
    A decline or an unreachable gateway comes back as PaymentResult(success=False);
    only unexpected errors raise.
    """

    def __init__(self, functions: FunctionsClient):
        self.functions = functions

    def charge(
        self,
        order_id: str,
        payment_method_id: str,
        amount: Decimal,
        csrf_token: Optional[str] = None,
    ) -> PaymentResult:
        headers = {"x-csrf-token": csrf_token} if csrf_token else None
        try:
            data = self.functions.invoke(
                "charge-payment",
                {
                    "order_id": order_id,
                    "payment_method_id": payment_method_id,
                    "amount": float(amount),
                },
                headers=headers,
            )
        except FunctionInvokeError as e:
            payload = e.payload if isinstance(e.payload, dict) else {}
            return PaymentResult(
                success=False,
                error=payload.get("error") or str(e) or "Payment processing failed",
                gateway_response=payload.get("authorizenet_response"),
            )

        data = data if isinstance(data, dict) else {}
        if not data.get("success"):
            return PaymentResult(
                success=False,
                error=data.get("error") or "Payment processing failed",
                gateway_response=data.get("authorizenet_response"),
            )
        return PaymentResult(
            success=True,
            gateway_response=data.get("authorizenet_response"),
            transaction_id=data.get("transaction_id"),
        )
