"""
Payment Routes
================
Pelecard initiation, server-side webhook, browser return.
"""

import logging

from fastapi import APIRouter, Request, Depends
from fastapi.responses import PlainTextResponse, RedirectResponse

from common.exceptions import GatewayInitError, MissingIdentifierError
from common.helpers import public_base_url
from modules.payment.service import PaymentService, get_payment_service

logger = logging.getLogger("receipts.payment.routes")

router = APIRouter(tags=["payment"])


# ==========================================
# 🏦 Init: redirect to the hosted page
# ==========================================

@router.get("/")
async def start_payment(
    request: Request,
    RegID: str = "",
    CustomerName: str = "",
    CustomerEmail: str = "",
    Course: str = "",
    Amount: str = "",
    service: PaymentService = Depends(get_payment_service),
):
    try:
        url = await service.start_payment(
            RegID,
            base_url=public_base_url(request, service.settings.base_url),
            customer_name=CustomerName,
            customer_email=CustomerEmail,
            course=Course,
            amount=Amount,
        )
    except MissingIdentifierError as e:
        return PlainTextResponse(e.message, status_code=400)
    except GatewayInitError as e:
        logger.error(f"Init failed for {RegID}: {e.message}")
        return PlainTextResponse(e.message, status_code=500)
    return RedirectResponse(url, status_code=302)


@router.get("/j2")
async def start_card_registration(
    RegID: str = "",
    ReturnURL: str = "",
    service: PaymentService = Depends(get_payment_service),
):
    """Card registration (token) flow; the gateway redirects straight to ReturnURL."""
    try:
        url = await service.start_card_registration(RegID, ReturnURL)
    except MissingIdentifierError as e:
        return PlainTextResponse(e.message, status_code=400)
    except GatewayInitError as e:
        return PlainTextResponse(e.message, status_code=500)
    return RedirectResponse(url, status_code=302)


# ==========================================
# 🔔 Webhook: always OK
# ==========================================

@router.post("/pelecard-callback")
async def pelecard_callback(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
):
    """
    Pelecard server-side feedback. Usually form-encoded, sometimes JSON.
    Anything but 200 makes Pelecard retry, so every outcome answers OK.
    """
    try:
        body = await request.body()
    except Exception as e:
        logger.error(f"Webhook body read failed: {e}")
        return PlainTextResponse("OK")

    outcome = await service.handle_notification(body)
    logger.info(f"Webhook outcome: {outcome.status} RegID={outcome.reg_id!r}")
    return PlainTextResponse("OK")


# ==========================================
# ↩️ Browser return → downstream form
# ==========================================

@router.get("/callback")
@router.get("/thankyou")
async def browser_return(
    Status: str = "",
    RegID: str = "",
    TransactionId: str = "",
    PelecardTransactionId: str = "",
    service: PaymentService = Depends(get_payment_service),
):
    url = await service.return_redirect_url(Status, RegID, TransactionId or PelecardTransactionId)
    return RedirectResponse(url, status_code=302)
