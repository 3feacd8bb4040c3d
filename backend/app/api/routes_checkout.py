from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.adapters.functions_client import FunctionsClient
from app.api.deps import get_caller, get_functions_client
from app.db import get_db
from app.schemas.checkout_schema import PlaceOrderIn, PlaceOrderOut
from app.services.checkout_service import CheckoutService
from app.services.context_service import CallerContext
from app.services.exceptions import CheckoutException
from app.utils.log import get_logger

router = APIRouter(tags=["checkout"])
log = get_logger("checkout")


@router.post("/place-order", summary="Place orders for every line of a cart", response_model=PlaceOrderOut)
def place_order(
    payload: PlaceOrderIn,
    caller: CallerContext = Depends(get_caller),
    db: Session = Depends(get_db),
    functions: FunctionsClient = Depends(get_functions_client),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    svc = CheckoutService(db, functions)
    try:
        return svc.place_order(caller, payload, idempotency_key=idempotency_key)
    except CheckoutException:
        raise
    except Exception as e:
        log.exception("Fatal error placing order")
        return JSONResponse(status_code=500, content={"error": str(e) or type(e).__name__})
