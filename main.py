"""
Pelecard Receipts - Application Entry Point
============================================
FastAPI app initialization, logging, and router registration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from config import settings
from modules.payment.gateways import get_all_gateway_names
from modules.payment.routes import router as payment_router
from modules.payment.service import get_payment_service

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("receipts")


@asynccontextmanager
async def lifespan(app):
    # Build store/clients up front so config errors surface at boot
    service = get_payment_service()
    logger.info(f"Server running (store: {service.settings.store_backend})")
    yield
    await service.aclose()
    logger.info("Outbound clients closed")


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="Pelecard Receipts",
    description="Pelecard payments reconciled into Summit receipts",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    return {"status": "ok", "gateways": get_all_gateway_names()}


app.include_router(payment_router)
