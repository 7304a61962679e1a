"""
Webhook Notification Decoding
==============================
Pelecard's server-side feedback arrives in several shapes:

1. a JSON object as the whole body,
2. form-encoded, with one field (key or value) holding the JSON result,
3. plain form fields,
4. near-JSON with single quotes.

decode_notification() tries them in that order and returns a fixed
GatewayNotification; business logic never sees the raw body.
"""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl

from common.exceptions import NotificationUnparseableError
from modules.payment.fields import extract_registration_id

logger = logging.getLogger("receipts.payment.notification")

JSON_MARKER = "TransactionId"
KNOWN_FIELDS = ("TransactionId", "ParamX", "ShvaResult")
APPROVAL_CODES = frozenset({"000", "0"})


class NotificationEncoding(str, enum.Enum):
    JSON_BODY = "json_body"
    EMBEDDED_JSON = "embedded_json"
    FORM = "form"
    REPAIRED_JSON = "repaired_json"


@dataclass(frozen=True)
class GatewayNotification:
    encoding: NotificationEncoding
    registration_id: str
    transaction_id: str
    result_code: str
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def approved(self) -> bool:
        return self.result_code in APPROVAL_CODES

    @classmethod
    def from_fields(cls, encoding: NotificationEncoding, fields: Dict[str, Any]) -> "GatewayNotification":
        return cls(
            encoding=encoding,
            registration_id=extract_registration_id(fields),
            transaction_id=_text(fields.get("TransactionId")),
            result_code=_text(fields.get("ShvaResult")),
            fields=dict(fields),
        )


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _json_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def repair_json(text: str) -> Optional[Dict[str, Any]]:
    """Best effort: single → double quotes, then parse. None when still broken."""
    return _json_object(text.strip().replace("'", '"'))


def _form_fields(text: str) -> Dict[str, str]:
    try:
        return dict(parse_qsl(text, keep_blank_values=True, strict_parsing=False))
    except ValueError:
        return {}


def _embedded_json(form: Dict[str, str], parse=_json_object) -> Optional[Dict[str, Any]]:
    # Some setups post the JSON as a field value, others as a bare key
    for key, value in form.items():
        for candidate in (value, key):
            if JSON_MARKER in candidate:
                data = parse(candidate)
                if data is not None:
                    return data
    return None


def decode_notification(body: bytes) -> GatewayNotification:
    """Decode a raw webhook body, raising NotificationUnparseableError if nothing fits."""
    text = body.decode("utf-8", errors="replace").strip()
    if not text:
        raise NotificationUnparseableError("Empty notification body")

    data = _json_object(text)
    if data is not None:
        return GatewayNotification.from_fields(NotificationEncoding.JSON_BODY, data)

    form = _form_fields(text)
    data = _embedded_json(form)
    if data is not None:
        return GatewayNotification.from_fields(NotificationEncoding.EMBEDDED_JSON, data)

    if any(k in form for k in KNOWN_FIELDS):
        return GatewayNotification.from_fields(NotificationEncoding.FORM, form)

    data = repair_json(text) or _embedded_json(form, parse=repair_json)
    if data is not None:
        return GatewayNotification.from_fields(NotificationEncoding.REPAIRED_JSON, data)

    raise NotificationUnparseableError(f"Unrecognised notification body ({len(body)} bytes)")
