"""
Gateway Field Normalizer
=========================
Pure functions turning loosely-typed Pelecard fields into canonical values.
Pelecard is inconsistent about units: "total" is shekels in the open-amount
flow and agorot in the fixed-amount flow, so the lookup order below is
load-bearing and must not be reshuffled.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping, Optional, Union

FREE_TOTAL_FIELD = "FreeTotalAmount"
AMOUNT_FIELDS = ("TotalX100", "DebitTotal", "TotalMinor", "AmountMinor", "Total", "Amount")
PAYMENT_FIELDS = ("TotalPayments", "NumberOfPayments", "Payments", "PaymentsNum")
INSTALLMENT_CODE_FIELDS = ("PaymentsCode", "CreditTerms")
CARD_NUMBER_FIELDS = ("CreditCardNumber", "CardNumber", "MaskedCardNumber", "CreditCard")
REGISTRATION_FIELD = "ParamX"
COMPOSITE_DELIMITER = "|"

_NON_NUMERIC = re.compile(r"[^\d-]")
_LEADING_INT = re.compile(r"^-?\d+")
_LEADING_DECIMAL = re.compile(r"^\s*([-+]?\d*\.?\d+)")
_INSTALLMENTS = re.compile(r"(?<!\d)(\d{1,2})(?!\d)")
_LAST4 = re.compile(r"(?<!\d)(\d{4})\s*$")


def parse_integer(value: Any) -> Optional[int]:
    """Strip everything but digits and '-', parse the leading integer. None if absent/unparseable."""
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    match = _LEADING_INT.match(_NON_NUMERIC.sub("", s))
    return int(match.group()) if match else None


def _free_total_minor(value: Any) -> Optional[int]:
    s = str(value)
    if "." in s:
        match = _LEADING_DECIMAL.match(s)
        if match:
            try:
                shekels = Decimal(match.group(1))
            except InvalidOperation:
                shekels = None
            if shekels is not None:
                return int((shekels * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    n = parse_integer(value)
    if n is None:
        return None
    # Small bare numbers are shekels
    if 0 < n < 100:
        return n * 100
    return n


def amount_in_minor_units(record: Mapping[str, Any]) -> int:
    """Charged amount in agorot, 0 when no amount field parses."""
    free_total = record.get(FREE_TOTAL_FIELD)
    if free_total:
        n = _free_total_minor(free_total)
        if n is not None:
            return n

    for field in AMOUNT_FIELDS:
        n = parse_integer(record.get(field))
        if n is not None:
            return n
    return 0


def payment_count(record: Mapping[str, Any]) -> int:
    """Installment count, 1 when nothing usable is present."""
    for field in PAYMENT_FIELDS:
        n = parse_integer(record.get(field))
        if n and n > 0:
            return n

    for field in INSTALLMENT_CODE_FIELDS:
        code = record.get(field)
        if not code:
            continue
        match = _INSTALLMENTS.search(str(code))
        if match and int(match.group(1)) > 0:
            return int(match.group(1))
    return 1


def last4_digits(record: Mapping[str, Any]) -> str:
    """Trailing four digits of the masked card number, '' when unavailable."""
    for field in CARD_NUMBER_FIELDS:
        value = record.get(field)
        if not value:
            continue
        match = _LAST4.search(str(value))
        if match:
            return match.group(1)
    return ""


def extract_registration_id(record: Mapping[str, Any]) -> str:
    """RegID echoed back in ParamX; composite 'ctx|RegID' values use the second segment."""
    raw = str(record.get(REGISTRATION_FIELD) or "").strip()
    if COMPOSITE_DELIMITER not in raw:
        return raw
    segments = [part.strip() for part in raw.split(COMPOSITE_DELIMITER)]
    return segments[1] or segments[0]


def major_to_minor(value: Any) -> Optional[int]:
    """'120' / '120.50' (shekels) → agorot; None when blank or not a number."""
    if value is None or not str(value).strip():
        return None
    try:
        shekels = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    if not shekels.is_finite():
        return None
    return int((shekels * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def minor_to_major(minor: int) -> Union[int, float]:
    """9900 → 99, 9950 → 99.5"""
    if minor % 100 == 0:
        return minor // 100
    return minor / 100


def format_amount(value: Any) -> str:
    """Render a stored amount for a query string."""
    if value is None or value == "":
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
