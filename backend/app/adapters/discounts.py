from app.adapters.functions_client import FunctionsClient


class DiscountTracker:
    def __init__(self, functions: FunctionsClient):
        self.functions = functions

    def increment_usage(self, code: str, user_id: str, order_id: str) -> None:
        self.functions.invoke(
            "increment-discount-usage",
            {"code": code, "user_id": user_id, "order_id": order_id},
        )
