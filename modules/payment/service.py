"""
Payment Service
=================
Pelecard hosted-page payments reconciled into Summit receipts.

Two notifications race for every transaction: the server-side webhook
(handle_notification) and the browser return (converge). Both only ever
merge fields into the RegID record; the browser side waits a bounded time
for the webhook's paidAmount to show up.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from common.exceptions import (
    GatewayInitError, MissingIdentifierError, NotApprovedError,
    NotificationUnparseableError,
)
from common.helpers import with_query
from config.settings import Settings, get_settings
from modules.invoicing.client import SumitClient, build_document_payload
from modules.payment.fields import (
    amount_in_minor_units, format_amount, last4_digits, major_to_minor,
    minor_to_major, payment_count,
)
from modules.payment.gateways import (
    BaseGateway, GatewayInitRequest, get_gateway, register_gateway,
)
from modules.payment.gateways.pelecard import PelecardGateway
from modules.payment.notification import (
    APPROVAL_CODES, GatewayNotification, decode_notification,
)
from modules.receipt.store import TransactionStore, build_store, merge_record

logger = logging.getLogger("receipts.payment")

STATUS_APPROVED = "approved"
STATUS_FAILED = "failed"


@dataclass
class NotificationOutcome:
    """What the webhook did; the HTTP answer is always OK regardless."""
    status: str
    reg_id: str = ""
    transaction_id: str = ""
    amount: Optional[Union[int, float]] = None
    receipt_url: str = ""


@dataclass
class ConvergenceResult:
    record: Dict[str, Any] = field(default_factory=dict)
    timed_out: bool = False
    refetched: bool = False


def _has_amount(record: Dict[str, Any]) -> bool:
    return record.get("paidAmount") not in (None, "")


class PaymentService:

    def __init__(
        self,
        settings: Settings,
        store: TransactionStore,
        gateway: BaseGateway,
        invoicing: SumitClient,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.store = store
        self.gateway = gateway
        self.invoicing = invoicing
        self._sleep = sleep
        self._clock = clock

    # ==========================================
    # 🏦 Initiation (J4, open amount)
    # ==========================================

    async def start_payment(
        self,
        reg_id: str,
        base_url: str,
        customer_name: str = "",
        customer_email: str = "",
        course: str = "",
        amount: str = "",
    ) -> str:
        """Persist the customer metadata and return the hosted-page URL."""
        reg_id = (reg_id or "").strip()
        if not reg_id:
            raise MissingIdentifierError()

        try:
            self._remember_customer(reg_id, customer_name, customer_email, course)
        except Exception as e:
            # The charge can still go through; the receipt falls back to placeholders
            logger.error(f"Could not store customer for {reg_id}: {e}")

        amount_minor = major_to_minor(amount)
        if amount and amount_minor is None:
            logger.warning(f"Ignoring unparseable fixed amount {amount!r} for {reg_id}")

        callback = f"{base_url}/callback"
        result = await self.gateway.init_payment(GatewayInitRequest(
            reg_id=reg_id,
            good_url=with_query(callback, Status=STATUS_APPROVED, RegID=reg_id),
            error_url=with_query(callback, Status=STATUS_FAILED, RegID=reg_id),
            server_callback_url=f"{base_url}/pelecard-callback",
            action_type="J4",
            amount_minor=amount_minor,
        ))
        if not result.success:
            raise GatewayInitError(result.error_message or "Pelecard init failed", payload=result.raw)
        return result.redirect_url

    def _remember_customer(self, reg_id: str, name: str, email: str, course: str) -> None:
        record = self.store.get(reg_id)
        updates = {}
        for key, value in (("CustomerName", name), ("CustomerEmail", email), ("Course", course)):
            # Set once; a later initiation only fills gaps
            if value and not record.get(key):
                updates[key] = value
        if not record or updates:
            record.update(updates)
            self.store.put(reg_id, record)

    # ==========================================
    # 💳 Card registration (J2, token only)
    # ==========================================

    async def start_card_registration(self, reg_id: str, return_url: str) -> str:
        reg_id = (reg_id or "").strip()
        if not reg_id or not return_url:
            raise MissingIdentifierError("Missing RegID or ReturnURL")

        result = await self.gateway.init_payment(GatewayInitRequest(
            reg_id=reg_id,
            good_url=with_query(return_url, Status=STATUS_APPROVED, RegID=reg_id),
            error_url=with_query(return_url, Status=STATUS_FAILED, RegID=reg_id),
            action_type="J2",
            amount_minor=0,
            create_token=True,
            feedback_method="GET",
        ))
        if not result.success:
            logger.error(f"Pelecard J2 init failed [{reg_id}]: {result.error_message}")
            raise GatewayInitError("Pelecard J2 init failed", payload=result.raw)
        return result.redirect_url

    # ==========================================
    # 🔔 Webhook Reconciler
    # ==========================================

    async def handle_notification(self, body: bytes) -> NotificationOutcome:
        """Process one server-side feedback. Never raises."""
        logger.info("Pelecard webhook received")
        try:
            notification = decode_notification(body)
        except NotificationUnparseableError as e:
            logger.warning(f"Webhook ignored: {e.message}")
            return NotificationOutcome(status="unparseable")
        except Exception as e:
            logger.exception(f"Webhook body could not be decoded: {e}")
            return NotificationOutcome(status="unparseable")

        logger.info(
            f"Webhook decoded ({notification.encoding.value}): RegID={notification.registration_id!r} "
            f"TransactionId={notification.transaction_id!r} ShvaResult={notification.result_code!r}"
        )
        try:
            return await self._reconcile(notification)
        except MissingIdentifierError as e:
            logger.info(f"Webhook ignored: {e.message}")
            return NotificationOutcome(
                status="missing_id",
                reg_id=notification.registration_id,
                transaction_id=notification.transaction_id,
            )
        except NotApprovedError as e:
            logger.info(f"Webhook not approved: {e.message}")
            return NotificationOutcome(
                status="not_approved",
                reg_id=notification.registration_id,
                transaction_id=notification.transaction_id,
            )
        except Exception as e:
            logger.exception(f"Webhook error for {notification.registration_id}: {e}")
            return NotificationOutcome(
                status="error",
                reg_id=notification.registration_id,
                transaction_id=notification.transaction_id,
            )

    async def _reconcile(self, notification: GatewayNotification) -> NotificationOutcome:
        reg_id = notification.registration_id
        tx_id = notification.transaction_id
        if not reg_id:
            raise MissingIdentifierError("Missing RegID")
        if not tx_id:
            raise MissingIdentifierError(f"Missing TransactionId for {reg_id}")
        if not notification.approved:
            raise NotApprovedError(f"{reg_id}/{tx_id} ShvaResult={notification.result_code or 'missing'}")

        working = notification.fields
        if self.settings.pele_verify_transactions:
            lookup = await self.gateway.get_transaction(tx_id)
            if lookup.success:
                working = lookup.data
            else:
                logger.warning(f"Lookup failed for {tx_id}, using notification fields: {lookup.error_message}")

        amount_minor = amount_in_minor_units(working)
        # 0 means no amount field; leave paidAmount unset so the browser side keeps waiting
        amount = minor_to_major(amount_minor) if amount_minor else None
        payments = payment_count(working)
        last4 = last4_digits(working)
        logger.info(f"Calculated {reg_id}: amount_minor={amount_minor} payments={payments} last4={last4!r}")
        if amount_minor == 0:
            logger.warning(f"Approved transaction {tx_id} carries no amount field")

        saved = self.store.get(reg_id)
        receipt_url = ""
        document_id = None
        status = "no_receipt"

        if (self.settings.deduplicate_invoices
                and saved.get("transactionId") == tx_id and saved.get("receiptUrl")):
            logger.info(f"Receipt already issued for {tx_id}, skipping invoicing")
            receipt_url = saved["receiptUrl"]
            status = "duplicate"
        else:
            payload = build_document_payload(
                self.settings, reg_id, tx_id, amount or 0, payments, last4,
                customer_name=saved.get("CustomerName", ""),
                customer_email=saved.get("CustomerEmail", ""),
            )
            document = await self.invoicing.create_document(payload)
            if document.get("DocumentDownloadURL"):
                receipt_url = document["DocumentDownloadURL"]
                document_id = document.get("DocumentID")
                status = "receipt_issued"
            else:
                logger.info(f"No receipt URL from Summit for {reg_id}")

        # Re-read inside merge_record: the browser path may have written meanwhile
        merge_record(self.store, reg_id, {
            "paidAmount": amount,
            "payments": payments,
            "last4": last4,
            "transactionId": tx_id,
            "receiptUrl": receipt_url or None,
            "documentId": document_id,
        })
        logger.info(f"Saved {reg_id}: paidAmount={amount} receipt={'yes' if receipt_url else 'no'}")

        return NotificationOutcome(
            status=status, reg_id=reg_id, transaction_id=tx_id,
            amount=amount, receipt_url=receipt_url,
        )

    # ==========================================
    # ↩️ Browser Convergence
    # ==========================================

    async def converge(self, reg_id: str, transaction_id: str = "") -> ConvergenceResult:
        """Wait (bounded) for the webhook's paidAmount, then try one gateway lookup."""
        timeout = self.settings.convergence_timeout_ms / 1000
        poll = self.settings.convergence_poll_ms / 1000
        deadline = self._clock() + timeout

        result = ConvergenceResult(record=self.store.get(reg_id))
        while not _has_amount(result.record):
            remaining = deadline - self._clock()
            if remaining <= 0:
                result.timed_out = True
                break
            await self._sleep(min(poll, remaining))
            result.record = self.store.get(reg_id)

        if result.timed_out:
            logger.warning(f"No paidAmount for {reg_id} after {self.settings.convergence_timeout_ms}ms")
            if transaction_id:
                await self._refetch(reg_id, transaction_id, result)
        return result

    async def _refetch(self, reg_id: str, transaction_id: str, result: ConvergenceResult) -> None:
        lookup = await self.gateway.get_transaction(transaction_id)
        if not lookup.success:
            logger.warning(f"Second-chance lookup failed for {reg_id}/{transaction_id}: {lookup.error_message}")
            return
        code = str(lookup.data.get("ShvaResult", "")).strip()
        if code not in APPROVAL_CODES:
            logger.info(f"Second-chance lookup for {transaction_id}: not approved ({code or 'missing'})")
            return

        amount_minor = amount_in_minor_units(lookup.data)
        result.record = merge_record(self.store, reg_id, {
            "paidAmount": minor_to_major(amount_minor) if amount_minor else None,
            "payments": payment_count(lookup.data),
            "last4": last4_digits(lookup.data),
            "transactionId": transaction_id,
        })
        result.refetched = True
        logger.info(f"Second-chance lookup stored paidAmount={result.record.get('paidAmount')} for {reg_id}")

    async def return_redirect_url(self, status: str, reg_id: str, transaction_id: str = "") -> str:
        """Downstream form URL for the browser return. Never raises."""
        reg_id = (reg_id or "").strip()
        if not reg_id:
            return self.settings.failure_url

        record: Dict[str, Any] = {}
        if (status or "").lower() == STATUS_APPROVED:
            try:
                record = (await self.converge(reg_id, transaction_id)).record
            except Exception as e:
                logger.exception(f"Convergence error for {reg_id}: {e}")
                record = {}
        else:
            # No webhook will bring an amount for a failed attempt
            logger.info(f"Browser return for {reg_id} with Status={status!r}")

        return with_query(
            self.settings.form_url,
            RegID=reg_id,
            Status=status or "",
            Total=format_amount(record.get("paidAmount")),
            ReceiptURL=record.get("receiptUrl", ""),
            Last4=record.get("last4", ""),
        )

    async def aclose(self) -> None:
        await self.gateway.aclose()
        await self.invoicing.aclose()


def build_payment_service(settings: Settings) -> PaymentService:
    register_gateway(PelecardGateway(settings))
    return PaymentService(
        settings=settings,
        store=build_store(settings),
        gateway=get_gateway(PelecardGateway.name),
        invoicing=SumitClient(settings),
    )


@lru_cache()
def get_payment_service() -> PaymentService:
    """FastAPI dependency: process-wide service built from get_settings()."""
    return build_payment_service(get_settings())
