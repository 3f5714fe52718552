"""
Settlement Service

Attributes an approved invoice's tax to the government ledger. Runs once
per approved invoice; a retried approval finds the existing settlement
instead of creating another.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from pymongo.errors import DuplicateKeyError
import secrets
import logging

from app.core.config import settings
from app.models.settlement import TaxPaymentStatus

logger = logging.getLogger(__name__)


class SettlementService:
    """Creates and lists government settlements"""

    REFERENCE_DIGITS = 5

    def __init__(self, db, now: Optional[Callable[[], datetime]] = None):
        self.db = db
        self._now = now or (lambda: datetime.now(timezone.utc))

    @classmethod
    def generate_reference(cls, now: datetime, prefix: Optional[str] = None) -> str:
        """
        Settlement reference such as SET-202403-04217.

        The random suffix is not checked for collisions; uniqueness per
        invoice is enforced separately.
        """
        prefix = prefix or settings.SETTLEMENT_REFERENCE_PREFIX
        suffix = secrets.randbelow(10 ** cls.REFERENCE_DIGITS)
        return f"{prefix}-{now:%Y%m}-{suffix:0{cls.REFERENCE_DIGITS}d}"

    async def get_for_invoice(self, invoice_id: str) -> Optional[Dict[str, Any]]:
        settlement = await self.db.adminSettlements.find_one({"invoice_id": invoice_id})
        if settlement:
            settlement["id"] = str(settlement.pop("_id"))
        return settlement

    async def create_for_approved_invoice(self, invoice: Dict[str, Any], approved_by: str) -> Dict[str, Any]:
        """
        Create the settlement for an approved invoice.

        Args:
            invoice: Approved invoice document (with "id")
            approved_by: Admin user ID who approved the invoice

        Returns:
            The settlement document, existing or new
        """
        existing = await self.get_for_invoice(invoice["id"])
        if existing:
            logger.info(f"Settlement {existing['reference_number']} already exists for invoice {invoice['id']}")
            return existing

        payment = await self.db.taxPayments.find_one(
            {"bank_id": invoice["bank_id"], "reference_number": invoice["invoice_number"]},
            sort=[("created_at", -1)]
        )
        if payment is None:
            logger.warning(
                f"No payment record found for invoice {invoice['invoice_number']} "
                f"(bank {invoice['bank_id']}); settling without payment link"
            )

        now = self._now()
        settlement_dict = {
            "reference_number": self.generate_reference(now),
            "tax_report_id": invoice["tax_report_id"],
            "invoice_id": invoice["id"],
            "payment_id": str(payment["_id"]) if payment else None,
            "bank_id": invoice["bank_id"],
            "bank_name": invoice.get("bank_name", ""),
            "amount": invoice["tax_amount"],
            "description": f"Tax revenue settlement for invoice {invoice['invoice_number']}",
            "approved_by": approved_by,
            "created_at": now,
        }

        try:
            result = await self.db.adminSettlements.insert_one(settlement_dict)
        except DuplicateKeyError:
            logger.info(f"Concurrent settlement detected for invoice {invoice['id']}")
            return await self.get_for_invoice(invoice["id"])

        settlement_dict["id"] = str(result.inserted_id)
        settlement_dict.pop("_id", None)

        await self.db.taxPayments.update_many(
            {"invoice_id": invoice["id"], "status": TaxPaymentStatus.PENDING.value},
            {"$set": {"status": TaxPaymentStatus.SETTLED.value, "settled_at": now}}
        )

        logger.info(
            f"Created settlement {settlement_dict['reference_number']} of "
            f"{settlement_dict['amount']:.2f} for invoice {invoice['invoice_number']}"
        )
        return settlement_dict

    async def list_settlements(self, limit: int = 50, skip: int = 0) -> List[Dict[str, Any]]:
        cursor = self.db.adminSettlements.find({}).sort("created_at", -1).skip(skip).limit(limit)
        settlements = await cursor.to_list(length=limit)
        for settlement in settlements:
            settlement["id"] = str(settlement.pop("_id"))
        return settlements
