from typing import List

from app.adapters.functions_client import FunctionsClient


class PharmacyGateway:
    """Submits paid order lines to their pharmacy via send-order-to-pharmacy."""

    def __init__(self, functions: FunctionsClient):
        self.functions = functions

    def send_order(self, order_id: str, order_line_ids: List[str], pharmacy_id: str) -> None:
        self.functions.invoke(
            "send-order-to-pharmacy",
            {
                "order_id": order_id,
                "order_line_ids": order_line_ids,
                "pharmacy_id": pharmacy_id,
            },
        )
