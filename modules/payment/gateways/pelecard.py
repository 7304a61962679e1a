"""
Pelecard Gateway
=================
REST/JSON. init → hosted page redirect → server-side feedback (webhook)
+ browser GoodURL/ErrorURL. GetTransaction for the authoritative record.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from config.settings import Settings
from modules.payment.gateways import (
    BaseGateway, GatewayInitRequest, GatewayInitResult,
    GatewayLookupResult,
)

logger = logging.getLogger("receipts.gateway.pelecard")

LOOKUP_OK = "000"


class PelecardGateway(BaseGateway):
    name = "pelecard"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    def _client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.http_timeout, connect=5.0),
                transport=self._transport,
            )
        return self._http_client

    def _credentials(self) -> Dict[str, Any]:
        return {
            "terminal": self.settings.pele_terminal,
            "user": self.settings.pele_user,
            "password": self.settings.pele_password,
        }

    def build_init_payload(self, req: GatewayInitRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            **self._credentials(),
            "ActionType": req.action_type,
            "Currency": self.settings.pele_currency,
            "ShopNo": self.settings.pele_shop_no,
            "GoodURL": req.good_url,
            "ErrorURL": req.error_url,
            # Echoed back as ParamX on the webhook and the return URL
            "ParamX": req.reg_id,
        }

        # Only J4 charges choose between an open and a fixed amount
        if req.action_type == "J4":
            payload["FreeTotal"] = "True" if req.amount_minor is None else "False"
        payload["Total"] = req.amount_minor or 0

        if req.server_callback_url:
            payload["ServerSideGoodFeedbackURL"] = req.server_callback_url
            payload["ServerSideErrorFeedbackURL"] = req.server_callback_url
            payload["MaxPayments"] = self.settings.pele_max_payments
            payload["MinPayments"] = self.settings.pele_min_payments

        if req.create_token:
            payload["CreateToken"] = "True"
        if req.feedback_method:
            payload["FeedbackDataTransferMethod"] = req.feedback_method
        return payload

    async def init_payment(self, req: GatewayInitRequest) -> GatewayInitResult:
        payload = self.build_init_payload(req)
        try:
            resp = await self._client().post(self.settings.pele_init_url, json=payload)
            data = resp.json()
        except httpx.TimeoutException:
            logger.error(f"Pelecard init timeout [{req.reg_id}]")
            return GatewayInitResult(success=False, error_message="Pelecard did not respond")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Pelecard init failed [{req.reg_id}]: {e}")
            return GatewayInitResult(success=False, error_message=f"Pelecard init error: {e}")

        if not isinstance(data, dict):
            data = {"response": data}
        logger.info(f"Pelecard init [{req.reg_id}] {req.action_type}: URL={'yes' if data.get('URL') else 'no'}")

        if data.get("URL"):
            return GatewayInitResult(success=True, redirect_url=data["URL"], raw=data)
        return GatewayInitResult(success=False, error_message=json.dumps(data, ensure_ascii=False), raw=data)

    async def get_transaction(self, transaction_id: str) -> GatewayLookupResult:
        payload = {**self._credentials(), "TransactionId": transaction_id}
        try:
            resp = await self._client().post(self.settings.pele_lookup_url, json=payload)
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Pelecard lookup failed [{transaction_id}]: {e}")
            return GatewayLookupResult(success=False, error_message=str(e))

        if not isinstance(data, dict):
            return GatewayLookupResult(success=False, error_message="Unexpected lookup response")

        status = str(data.get("StatusCode", ""))
        result_data = data.get("ResultData")
        logger.info(f"Pelecard lookup [{transaction_id}]: StatusCode={status}")

        if status == LOOKUP_OK and isinstance(result_data, dict):
            return GatewayLookupResult(success=True, data=result_data)
        return GatewayLookupResult(
            success=False,
            error_message=data.get("ErrorMessage") or f"StatusCode {status or 'missing'}",
        )

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
