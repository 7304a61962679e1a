"""
Summit Invoicing Client
========================
Thin wrapper around documents/create. Responses come wrapped as
{"Status": ..., "Data": {...}}; we unwrap one level. Never raises:
"no DocumentDownloadURL" is a valid outcome for callers.
"""

import logging
from typing import Any, Dict, Optional, Union

import httpx

from common.exceptions import InvoicingError
from common.helpers import now_utc
from config.settings import Settings

logger = logging.getLogger("receipts.invoicing")

DOCUMENT_TYPE_RECEIPT = 1
PAYMENT_TYPE_CREDIT_CARD = 5


def unwrap_envelope(obj: Any) -> Dict[str, Any]:
    """{"Data": {...}} → {...}; a bare object is returned as-is; anything else → {}."""
    if not isinstance(obj, dict):
        return {}
    data = obj.get("Data")
    if data:
        return data if isinstance(data, dict) else {}
    return obj


def build_document_payload(
    settings: Settings,
    reg_id: str,
    transaction_id: str,
    amount: Union[int, float],
    payments: int,
    last4: str,
    customer_name: str = "",
    customer_email: str = "",
) -> Dict[str, Any]:
    """Receipt for a single "Registration" line paid by credit card."""
    name = customer_name or settings.default_customer_name
    email = customer_email or settings.default_customer_email
    return {
        "Details": {
            "Date": now_utc().isoformat(),
            "Customer": {"Name": name, "EmailAddress": email},
            "SendByEmail": {"EmailAddress": email, "Original": True},
            "Type": DOCUMENT_TYPE_RECEIPT,
            "ExternalReference": reg_id,
            "Comments": f"Pelecard {transaction_id}",
        },
        "Items": [{
            "Quantity": 1,
            "UnitPrice": amount,
            "TotalPrice": amount,
            "Item": {"Name": "Registration"},
        }],
        "Payments": [{
            "Amount": amount,
            "Type": PAYMENT_TYPE_CREDIT_CARD,
            "Details_CreditCard": {"Last4Digits": last4, "Payments": payments},
        }],
        "VATIncluded": True,
        "Credentials": {
            "CompanyID": settings.summit_company_id,
            "APIKey": settings.summit_api_key,
        },
    }


class SumitClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.http_timeout, connect=5.0),
                transport=self._transport,
            )
        return self._http_client

    async def _post(self, payload: Dict[str, Any]) -> Any:
        try:
            resp = await self._client().post(self.settings.summit_create_url, json=payload)
        except httpx.HTTPError as e:
            raise InvoicingError(f"Summit request failed: {e}") from e
        try:
            return resp.json()
        except ValueError as e:
            raise InvoicingError(f"Summit returned non-JSON (HTTP {resp.status_code})") from e

    async def create_document(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST the document; returns the unwrapped result or {}."""
        ref = payload.get("Details", {}).get("ExternalReference", "")
        try:
            body = await self._post(payload)
        except InvoicingError as e:
            logger.error(f"Summit create [{ref}]: {e.message}")
            return {}

        result = unwrap_envelope(body)
        if not result:
            logger.error(f"Summit create [{ref}]: unusable envelope {body!r:.300}")
            return {}
        if not result.get("DocumentDownloadURL"):
            status = body.get("Status") if isinstance(body, dict) else None
            logger.warning(f"Summit create [{ref}]: no DocumentDownloadURL (Status={status})")
        return result

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
