from contextlib import asynccontextmanager

import uvicorn
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.health import router as health_router
from app.api.routes_checkout import router as checkout_router
from app.config import settings
from app.db import SessionLocal, init_db
from app.services.exceptions import CheckoutException
from app.services.reconciliation_service import ReconciliationService
from app.utils.log import get_logger

log = get_logger("app")


def reconcile_job():
    db = SessionLocal()
    try:
        ReconciliationService(db).run()
    except Exception:
        log.exception("reconciliation run failed")
        db.rollback()
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    init_db()

    scheduler = None
    if settings.ENABLE_SCHEDULER:
        # releases stale cart locks and fails orders abandoned before payment
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            reconcile_job,
            "interval",
            seconds=settings.RECONCILE_INTERVAL_SECONDS,
            id="reconcile_checkouts",
        )
        scheduler.start()
    app.state.scheduler = scheduler

    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)


app = FastAPI(title="Practice Checkout - Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CheckoutException)
def checkout_exception_handler(request: Request, exc: CheckoutException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(checkout_router, prefix="/api", tags=["checkout"])


def run():
    uvicorn.run(app, host=settings.APP_HOST, port=settings.APP_PORT)


if __name__ == "__main__":
    run()
