"""
Payment Service

Collects invoice payments through Terra Switching. A payment is recorded
once per gateway transaction, whether it arrives by webhook, by the
redirect callback, or both.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from pymongo.errors import DuplicateKeyError
import json
import logging

from app.core.config import settings
from app.core.exceptions import (
    InvalidWebhookError,
    InvoiceNotFoundError,
    PaymentNotAllowedError,
)
from app.models.invoice import InvestigationStatus, PaymentStatus
from app.models.settlement import TaxPaymentStatus
from app.services.tax_report import object_id, serialize_invoice
from app.services.terraswitch import TerraSwitchClient, kobo_to_naira, metadata_value

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(
        self,
        db,
        gateway: Optional[TerraSwitchClient] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.db = db
        self.gateway = gateway or TerraSwitchClient()
        self._now = now or (lambda: datetime.now(timezone.utc))

    async def _bank_invoice(self, bank_id: str, invoice_id: str) -> Dict[str, Any]:
        oid = object_id(invoice_id)
        invoice = await self.db.invoices.find_one({"_id": oid}) if oid else None
        if not invoice or invoice["bank_id"] != bank_id:
            raise InvoiceNotFoundError()
        return invoice

    async def _invoice_for_charge(self, data: Dict[str, Any]) -> Dict[str, Any]:
        invoice_id = metadata_value(data.get("metadata"), "invoiceId")
        invoice = None
        if invoice_id:
            oid = object_id(invoice_id)
            invoice = await self.db.invoices.find_one({"_id": oid}) if oid else None
        if invoice is None and data.get("reference"):
            invoice = await self.db.invoices.find_one({"payment_reference": data["reference"]})
        if invoice is None:
            logger.error(f"No invoice found for gateway transaction {data.get('reference')}")
            raise InvoiceNotFoundError()
        return invoice

    async def initialize_payment(
        self,
        bank: Dict[str, Any],
        invoice_id: str,
        email: str,
        callback_url: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a gateway payment link for the amount currently due.

        Args:
            bank: Current bank user (id, business_name, display_name)
            invoice_id: Invoice to pay
            email: Payer email for the gateway receipt
            callback_url: Redirect target after checkout

        Returns:
            dict with invoice_id, payment_link, payment_reference, amount
        """
        invoice = await self._bank_invoice(bank["id"], invoice_id)

        if invoice.get("investigation_status") == InvestigationStatus.APPROVED.value:
            raise PaymentNotAllowedError("This invoice has already been approved")
        amount = round(float(invoice.get("amount_due") or 0.0), 2)
        if amount <= 0:
            raise PaymentNotAllowedError("Nothing is due on this invoice")

        bank_name = invoice.get("bank_name") or bank.get("business_name") or ""
        contact = (bank.get("display_name") or bank_name or "Bank").split()
        redirect_url = callback_url or f"{settings.FRONTEND_URL}/dashboard/payment-callback?invoice={invoice_id}"

        data = await self.gateway.initialize_transaction(
            amount=amount,
            description=f"Tax payment for invoice {invoice['invoice_number']}",
            customer={
                "email": email,
                "firstName": contact[0],
                "lastName": " ".join(contact[1:]) or contact[0],
                "phoneNumber": "",
                "phoneCode": "+234",
            },
            metadata=[
                {"key": "invoiceId", "value": invoice_id},
                {"key": "invoiceNumber", "value": invoice["invoice_number"]},
                {"key": "bankId", "value": invoice["bank_id"]},
                {"key": "bankName", "value": bank_name},
                {"key": "taxReportId", "value": invoice["tax_report_id"]},
            ],
            redirect_url=redirect_url
        )
        reference = data.get("reference") or data.get("slug")

        await self.db.invoices.update_one(
            {"_id": invoice["_id"]},
            {
                "$set": {
                    "payment_link": data["link"],
                    "payment_reference": reference,
                    "payment_status": PaymentStatus.PAYMENT_LINK_GENERATED.value,
                    "updated_at": self._now(),
                },
                "$unset": {"failure_reason": ""},
                "$inc": {"version": 1},
            }
        )

        logger.info(f"Payment link generated for invoice {invoice['invoice_number']} ({amount:.2f})")
        return {
            "invoice_id": invoice_id,
            "payment_link": data["link"],
            "payment_reference": reference,
            "amount": amount,
        }

    async def record_successful_payment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Record a successful charge reported by the gateway.

        Returns:
            The tax payment document; an already recorded transaction returns
            the existing record unchanged
        """
        reference = str(data.get("reference") or data.get("id") or "")
        if not reference:
            raise InvalidWebhookError("Charge has no transaction reference")

        existing = await self.db.taxPayments.find_one({"transaction_reference": reference})
        if existing:
            logger.info(f"Transaction {reference} already recorded")
            existing["id"] = str(existing.pop("_id"))
            return existing

        invoice = await self._invoice_for_charge(data)
        invoice_id = str(invoice["_id"])
        amount = kobo_to_naira(data.get("amount"))
        now = self._now()

        payment_dict = {
            "bank_id": invoice["bank_id"],
            "bank_name": invoice.get("bank_name", ""),
            "invoice_id": invoice_id,
            "tax_report_id": invoice.get("tax_report_id"),
            "amount": amount,
            "reference_number": invoice["invoice_number"],
            "transaction_reference": reference,
            "status": TaxPaymentStatus.PENDING.value,
            "created_at": now,
        }
        try:
            result = await self.db.taxPayments.insert_one(payment_dict)
        except DuplicateKeyError:
            logger.info(f"Transaction {reference} recorded by a concurrent request")
            existing = await self.db.taxPayments.find_one({"transaction_reference": reference})
            existing["id"] = str(existing.pop("_id"))
            return existing

        amount_due = max(0.0, round(float(invoice.get("amount_due") or 0.0) - amount, 2))
        await self.db.invoices.update_one(
            {"_id": invoice["_id"]},
            {
                "$set": {
                    "payment_status": PaymentStatus.SUCCESS.value,
                    "payment_reference": invoice.get("payment_reference") or reference,
                    "paid_date": now,
                    "amount_due": amount_due,
                    "updated_at": now,
                },
                "$unset": {"failure_reason": ""},
                "$inc": {"paid_amount": amount, "version": 1},
            }
        )

        logger.info(f"Recorded payment {reference} of {amount:.2f} for invoice {invoice['invoice_number']}")
        payment_dict["id"] = str(result.inserted_id)
        payment_dict.pop("_id", None)
        return payment_dict

    async def record_failed_payment(self, data: Dict[str, Any]) -> None:
        invoice = await self._invoice_for_charge(data)
        if invoice.get("payment_status") == PaymentStatus.SUCCESS.value:
            logger.warning(
                f"Ignoring failed charge {data.get('reference')} for already paid invoice {invoice['invoice_number']}"
            )
            return

        reason = data.get("gateway_response") or data.get("message") or "Payment failed"
        await self.db.invoices.update_one(
            {"_id": invoice["_id"]},
            {
                "$set": {
                    "payment_status": PaymentStatus.FAILED.value,
                    "failure_reason": reason,
                    "updated_at": self._now(),
                },
                "$inc": {"version": 1},
            }
        )
        logger.info(f"Payment failed for invoice {invoice['invoice_number']}: {reason}")

    async def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify and dispatch a Terra Switching webhook event"""
        if not self.gateway.verify_webhook_signature(raw_body, signature):
            logger.warning("Rejected webhook with invalid signature")
            raise InvalidWebhookError()

        try:
            event = json.loads(raw_body)
        except ValueError:
            raise InvalidWebhookError("Invalid webhook payload")

        event_type = event.get("event")
        data = event.get("data") or {}

        if event_type == "charge.success":
            await self.record_successful_payment(data)
        elif event_type == "charge.failed":
            await self.record_failed_payment(data)
        else:
            logger.info(f"Unhandled webhook event type: {event_type}")

        return {"status": "success", "event": event_type}

    async def verify_and_record(self, bank_id: str, invoice_id: str) -> Dict[str, Any]:
        """
        Confirm a payment after the gateway redirects the bank back.

        Returns:
            The invoice after recording the gateway's verdict
        """
        invoice = await self._bank_invoice(bank_id, invoice_id)
        reference = invoice.get("payment_reference")
        if not reference:
            raise PaymentNotAllowedError("No payment has been initialized for this invoice")

        data = await self.gateway.verify_transaction(reference)
        data.setdefault("reference", reference)
        if not metadata_value(data.get("metadata"), "invoiceId"):
            data["metadata"] = {"invoiceId": invoice_id}

        status = data.get("status")
        if status == "success":
            await self.record_successful_payment(data)
        elif status in ("failed", "abandoned"):
            await self.record_failed_payment(data)
        elif invoice.get("payment_status") != PaymentStatus.SUCCESS.value:
            await self.db.invoices.update_one(
                {"_id": invoice["_id"]},
                {
                    "$set": {"payment_status": PaymentStatus.PROCESSING.value, "updated_at": self._now()},
                    "$inc": {"version": 1},
                }
            )

        updated = await self.db.invoices.find_one({"_id": invoice["_id"]})
        return serialize_invoice(updated)
