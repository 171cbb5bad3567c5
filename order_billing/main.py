from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from order_billing.api.routes_admin import router as admin_router
from order_billing.api.routes_orders import router as orders_router
from order_billing.core.config import get_settings
from order_billing.core.logging import configure_logging
from order_billing.persistence.pg import init_db, session_scope
from order_billing.persistence.seed import seed_default_charges, seed_default_shipping_rates
from order_billing.plenty.errors import PlentyApiError

configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(title=settings.app_name)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    if settings.seed_defaults_on_startup:
        with session_scope() as session:
            charges = seed_default_charges(session)
            rates = seed_default_shipping_rates(session)
        logger.info("default billing data ready: charges=%s shipping_rates=%s", charges, rates)


@app.exception_handler(PlentyApiError)
async def plenty_api_error_handler(_: Request, exc: PlentyApiError):
    return JSONResponse(
        status_code=502,
        content={
            "detail": exc.user_message,
            "error": exc.kind.value,
            "retryable": exc.retryable,
        },
    )


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(orders_router)
app.include_router(admin_router)
