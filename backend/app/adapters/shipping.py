from decimal import Decimal, InvalidOperation
from typing import Optional

from app.adapters.functions_client import FunctionsClient
from app.utils.money import to_money


class ShippingCalculator:
    """Wraps the calculate-shipping function."""

    def __init__(self, functions: FunctionsClient):
        self.functions = functions

    def calculate(self, pharmacy_id: Optional[str], shipping_speed: str) -> Optional[Decimal]:
        """
        Returns the shipping cost for one (pharmacy, speed) shipment, or None when
        the function answered without a usable cost. Transport errors propagate as
        FunctionInvokeError.
        """
        data = self.functions.invoke(
            "calculate-shipping",
            {"pharmacy_id": pharmacy_id, "shipping_speed": shipping_speed},
        )
        if not isinstance(data, dict):
            return None
        cost = data.get("shipping_cost")
        if cost is None or isinstance(cost, bool):
            return None
        try:
            cost = to_money(cost)
        except (InvalidOperation, TypeError, ValueError):
            return None
        if not cost.is_finite() or cost < 0:
            return None
        return cost
