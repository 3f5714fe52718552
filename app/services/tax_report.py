"""
Tax Report Service

Lifecycle of bank tax reports and their invoices:

    (none) --create--> pending --approve--> approved
                          |
                          +----reject--> rejected --revise--> pending ...

A report and its invoice are always written together. When the second
write fails the first is compensated, so callers never observe a report
whose invoice disagrees with it.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
import secrets
import logging

from app.core.config import settings
from app.core.exceptions import (
    DuplicateTaxReportError,
    InvoiceNotFoundError,
    RevisionNotAllowedError,
    RevisionRequiredError,
    ReviewNotAllowedError,
    StaleWriteError,
    TaxReportNotFoundError,
    TaxReportValidationError,
)
from app.models.invoice import InvestigationStatus, PaymentStatus, REVIEWABLE_STATUSES
from app.models.tax_report import TaxReportStatus
from app.schemas.tax_report import TaxReportSubmission
from app.services.periods import Period, current_period, filing_due_date
from app.services.reconciliation import InvoiceFigures, parse_amount, parse_percentage, reconcile
from app.services.settlement import SettlementService
from app.services.submission_status import latest_by_period

logger = logging.getLogger(__name__)


def object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def available_review_actions(invoice: Dict[str, Any]) -> List[str]:
    """
    Review actions an admin may take on an invoice right now.

    Approve and reject are only offered once the payment has succeeded and
    the invoice is still awaiting a decision.
    """
    actions = []
    status = invoice.get("investigation_status")
    if status == InvestigationStatus.PENDING_REVIEW.value:
        actions.append("start_review")
    if invoice.get("payment_status") == PaymentStatus.SUCCESS.value and status in REVIEWABLE_STATUSES:
        actions.extend(["approve", "reject"])
    return actions


def serialize_report(report: Dict[str, Any]) -> Dict[str, Any]:
    report = dict(report)
    report["id"] = str(report.pop("_id"))
    report["period_label"] = Period(report["year"], report["month"]).label
    return report


def serialize_invoice(invoice: Dict[str, Any]) -> Dict[str, Any]:
    invoice = dict(invoice)
    invoice["id"] = str(invoice.pop("_id"))
    invoice["available_actions"] = available_review_actions(invoice)
    return invoice


class TaxReportService:
    """Creates, revises and reviews tax reports and their invoices"""

    def __init__(
        self,
        db,
        settlement_service: Optional[SettlementService] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.db = db
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.settlement_service = settlement_service or SettlementService(db, now=self._now)
        self.tax_rate = settings.TAX_RATE

    def now(self) -> datetime:
        return self._now()

    # ========== Validation ==========

    def _resolve_period(self, submission: TaxReportSubmission) -> Period:
        current = current_period(self._now())
        if submission.year is None and submission.month is None:
            return current
        if submission.year is None or submission.month is None:
            raise TaxReportValidationError({"period": "Both year and month are required"})

        period = Period(submission.year, submission.month)
        if period > current:
            raise TaxReportValidationError({"period": "Cannot file a report for a future period"})
        return period

    @staticmethod
    def _validate_submission(
        submission: TaxReportSubmission,
        existing_document: Optional[Tuple[str, str]] = None
    ) -> Tuple[float, float, str, str]:
        """
        Check the form and return (volume, profit, document_url, file_name).

        Collects every field error before raising so the form can show
        them all at once.
        """
        errors: Dict[str, str] = {}

        volume = parse_amount(submission.transaction_volume)
        if volume is None:
            errors["transaction_volume"] = "Transaction volume is required and must be a number"
        elif volume < 0:
            errors["transaction_volume"] = "Transaction volume cannot be negative"

        profit = parse_percentage(submission.profit_baseline)
        if profit is None:
            errors["profit_baseline"] = "Profit baseline is required and must be a number"
        elif not 0 <= profit <= 100:
            errors["profit_baseline"] = "Profit baseline must be between 0 and 100"

        if submission.document is not None:
            document = (submission.document.url, submission.document.file_name)
        else:
            document = existing_document
        if not document or not document[0]:
            errors["document"] = "A supporting document is required"

        if not submission.is_confirmed:
            errors["is_confirmed"] = "You must confirm that the information provided is accurate"

        if errors:
            raise TaxReportValidationError(errors)

        return volume, profit, document[0], document[1]

    # ========== Reads ==========

    async def _find_report(self, report_id: str) -> Dict[str, Any]:
        oid = object_id(report_id)
        report = await self.db.taxReports.find_one({"_id": oid}) if oid else None
        if not report:
            raise TaxReportNotFoundError()
        return report

    async def _find_invoice(self, invoice_id: str) -> Dict[str, Any]:
        oid = object_id(invoice_id)
        invoice = await self.db.invoices.find_one({"_id": oid}) if oid else None
        if not invoice:
            raise InvoiceNotFoundError()
        return invoice

    async def get_report(self, report_id: str, bank_id: Optional[str] = None) -> Dict[str, Any]:
        """Get a report; when bank_id is given, reports of other banks are hidden"""
        report = await self._find_report(report_id)
        if bank_id is not None and report["bank_id"] != bank_id:
            raise TaxReportNotFoundError()
        return serialize_report(report)

    async def get_invoice(self, invoice_id: str, bank_id: Optional[str] = None) -> Dict[str, Any]:
        invoice = await self._find_invoice(invoice_id)
        if bank_id is not None and invoice["bank_id"] != bank_id:
            raise InvoiceNotFoundError()
        return serialize_invoice(invoice)

    async def get_invoice_for_report(self, report_id: str) -> Optional[Dict[str, Any]]:
        invoice = await self.db.invoices.find_one({"tax_report_id": report_id})
        return serialize_invoice(invoice) if invoice else None

    async def list_reports(self, bank_id: str) -> List[Dict[str, Any]]:
        """All reports of a bank, most recently submitted first"""
        cursor = self.db.taxReports.find({"bank_id": bank_id}).sort("submitted_at", -1)
        reports = await cursor.to_list(length=None)
        return [serialize_report(report) for report in reports]

    async def list_invoices(self, bank_id: str) -> List[Dict[str, Any]]:
        cursor = self.db.invoices.find({"bank_id": bank_id}).sort("issued_date", -1)
        invoices = await cursor.to_list(length=None)
        return [serialize_invoice(invoice) for invoice in invoices]

    async def list_all_reports(
        self,
        status: Optional[str] = None,
        bank_id: Optional[str] = None,
        limit: int = 100,
        skip: int = 0
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Reports across all banks for the admin review queue"""
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if bank_id:
            query["bank_id"] = bank_id

        total = await self.db.taxReports.count_documents(query)
        cursor = self.db.taxReports.find(query).sort("submitted_at", -1).skip(skip).limit(limit)
        reports = await cursor.to_list(length=limit)
        return [serialize_report(report) for report in reports], total

    async def find_period_report(self, bank_id: str, period: Period) -> Optional[Dict[str, Any]]:
        """Authoritative report of a bank for a period (most recently submitted)"""
        cursor = self.db.taxReports.find({"bank_id": bank_id, "year": period.year, "month": period.month})
        reports = await cursor.to_list(length=None)
        return latest_by_period(reports).get(period)

    async def total_paid(self, invoice: Dict[str, Any]) -> float:
        """Sum of successful payments recorded against an invoice"""
        invoice_id = str(invoice["_id"]) if "_id" in invoice else invoice["id"]
        cursor = self.db.taxPayments.find({"invoice_id": invoice_id})
        payments = await cursor.to_list(length=None)
        if payments:
            return round(sum(payment.get("amount", 0.0) for payment in payments), 2)
        return round(float(invoice.get("paid_amount") or 0.0), 2)

    # ========== Invoice construction ==========

    def _generate_invoice_number(self, period: Period) -> str:
        return f"{settings.INVOICE_NUMBER_PREFIX}-{period.year:04d}{period.month:02d}-{secrets.token_hex(3).upper()}"

    @staticmethod
    def _figures_fields(volume: float, profit: float, figures: InvoiceFigures) -> Dict[str, Any]:
        return {
            "transaction_volume": volume,
            "profit_baseline": profit,
            "tax_rate": figures.tax_rate,
            "tax_amount": figures.tax_amount,
            "previous_payment_amount": figures.previous_payment_amount,
            "additional_tax_amount": figures.additional_tax_amount,
            "amount_due": figures.additional_tax_amount,
        }

    @staticmethod
    def _settled_status(figures: InvoiceFigures) -> str:
        # An invoice with nothing left to collect is treated as paid
        if figures.additional_tax_amount > 0:
            return PaymentStatus.PENDING.value
        return PaymentStatus.SUCCESS.value

    def _new_invoice(
        self,
        bank_id: str,
        bank_name: str,
        period: Period,
        volume: float,
        profit: float,
        figures: InvoiceFigures,
        now: datetime
    ) -> Dict[str, Any]:
        return {
            "invoice_number": self._generate_invoice_number(period),
            "bank_id": bank_id,
            "bank_name": bank_name,
            **self._figures_fields(volume, profit, figures),
            "paid_amount": 0.0,
            "issued_date": now,
            "due_date": filing_due_date(period),
            "payment_status": self._settled_status(figures),
            "investigation_status": InvestigationStatus.PENDING_REVIEW.value,
            "created_at": now,
            "updated_at": now,
            "version": 1,
        }

    # ========== Create ==========

    async def submit_report(
        self,
        bank_id: str,
        bank_name: str,
        submission: TaxReportSubmission
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Submit the bank form for a period.

        Creates a new report for an unfiled period and revises the existing
        one when the period's report was rejected.
        """
        period = self._resolve_period(submission)
        existing = await self.find_period_report(bank_id, period)
        if existing and existing.get("status") == TaxReportStatus.REJECTED.value:
            return await self.revise_report(bank_id, str(existing["_id"]), submission)
        return await self.create_report(bank_id, bank_name, submission)

    async def create_report(
        self,
        bank_id: str,
        bank_name: str,
        submission: TaxReportSubmission
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        File a report for a period that has none.

        Returns:
            Tuple of (report, invoice)
        """
        period = self._resolve_period(submission)
        volume, profit, document_url, file_name = self._validate_submission(submission)

        existing = await self.find_period_report(bank_id, period)
        if existing:
            if existing.get("status") == TaxReportStatus.REJECTED.value:
                raise RevisionRequiredError(str(existing["_id"]))
            raise DuplicateTaxReportError(period.label)

        now = self._now()
        report_dict = {
            "bank_id": bank_id,
            "bank_name": bank_name,
            "year": period.year,
            "month": period.month,
            "transaction_volume": volume,
            "profit_baseline": profit,
            "notes": submission.notes,
            "document_url": document_url,
            "file_name": file_name,
            "status": TaxReportStatus.PENDING.value,
            "revision_count": 0,
            "submitted_at": now,
            "updated_at": now,
            "version": 1,
        }

        figures = reconcile(volume, profit, 0.0, self.tax_rate)
        invoice_dict = self._new_invoice(bank_id, bank_name, period, volume, profit, figures, now)

        try:
            result = await self.db.taxReports.insert_one(report_dict)
        except DuplicateKeyError:
            raise DuplicateTaxReportError(period.label)
        report_id = str(result.inserted_id)

        try:
            invoice_dict["tax_report_id"] = report_id
            invoice_result = await self.db.invoices.insert_one(invoice_dict)
        except Exception as e:
            logger.error(f"Invoice creation failed for report {report_id}, removing report: {e}")
            await self.db.taxReports.delete_one({"_id": result.inserted_id})
            raise

        report_dict["_id"] = result.inserted_id
        invoice_dict["_id"] = invoice_result.inserted_id

        logger.info(
            f"Bank {bank_id} submitted tax report {report_id} for {period.key} "
            f"(tax {figures.tax_amount:.2f}, invoice {invoice_dict['invoice_number']})"
        )
        return serialize_report(report_dict), serialize_invoice(invoice_dict)

    # ========== Revise ==========

    async def revise_report(
        self,
        bank_id: str,
        report_id: str,
        submission: TaxReportSubmission,
        expected_version: Optional[int] = None
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Resubmit a rejected report with corrected figures.

        The report and its invoice are updated in place; ids and the invoice
        number never change. Money already paid is carried over and only
        the difference is due.
        """
        report = await self._find_report(report_id)
        if report["bank_id"] != bank_id:
            raise RevisionNotAllowedError("Tax report does not belong to this bank")
        if report.get("status") != TaxReportStatus.REJECTED.value:
            raise RevisionNotAllowedError(
                f"Only rejected reports can be revised (current status: {report.get('status')})"
            )
        version = report.get("version", 1)
        if expected_version is not None and expected_version != version:
            raise StaleWriteError()

        volume, profit, document_url, file_name = self._validate_submission(
            submission,
            existing_document=(report.get("document_url"), report.get("file_name"))
        )

        invoice = await self.db.invoices.find_one({"tax_report_id": report_id})
        previous_payment = await self.total_paid(invoice) if invoice else 0.0
        figures = reconcile(volume, profit, previous_payment, self.tax_rate)
        now = self._now()

        result = await self.db.taxReports.update_one(
            {"_id": report["_id"], "status": TaxReportStatus.REJECTED.value, "version": version},
            {
                "$set": {
                    "transaction_volume": volume,
                    "profit_baseline": profit,
                    "notes": submission.notes if submission.notes is not None else report.get("notes"),
                    "document_url": document_url,
                    "file_name": file_name,
                    "status": TaxReportStatus.PENDING.value,
                    "resubmitted_at": now,
                    "updated_at": now,
                },
                "$unset": {"rejection_reason": ""},
                "$inc": {"revision_count": 1, "version": 1},
            }
        )
        if result.matched_count == 0:
            raise StaleWriteError()

        try:
            if invoice:
                invoice = await self._apply_revision_to_invoice(invoice, volume, profit, figures, now)
            else:
                # Reports filed before invoices were generated get one now
                invoice_dict = self._new_invoice(
                    bank_id, report.get("bank_name", ""), Period(report["year"], report["month"]),
                    volume, profit, figures, now
                )
                invoice_dict["tax_report_id"] = report_id
                invoice_result = await self.db.invoices.insert_one(invoice_dict)
                invoice_dict["_id"] = invoice_result.inserted_id
                invoice = invoice_dict
        except Exception as e:
            logger.error(f"Invoice update failed for revised report {report_id}, restoring report: {e}")
            await self.db.taxReports.replace_one({"_id": report["_id"]}, report)
            raise

        updated_report = await self.db.taxReports.find_one({"_id": report["_id"]})
        logger.info(
            f"Bank {bank_id} revised tax report {report_id} "
            f"(revision {updated_report['revision_count']}, additional due {figures.additional_tax_amount:.2f})"
        )
        return serialize_report(updated_report), serialize_invoice(invoice)

    async def _apply_revision_to_invoice(
        self,
        invoice: Dict[str, Any],
        volume: float,
        profit: float,
        figures: InvoiceFigures,
        now: datetime
    ) -> Dict[str, Any]:
        fields = self._figures_fields(volume, profit, figures)
        fields.update({
            "investigation_status": InvestigationStatus.PENDING_REVIEW.value,
            "updated_at": now,
        })
        unset = {"rejection_reason": "", "reviewed_by": "", "reviewed_at": ""}

        # A fresh payment is only needed when the revision raised the liability
        if figures.additional_tax_amount > 0:
            fields["payment_status"] = PaymentStatus.PENDING.value
            unset.update({"payment_link": "", "failure_reason": ""})
        elif invoice.get("payment_status") != PaymentStatus.SUCCESS.value:
            fields["payment_status"] = PaymentStatus.SUCCESS.value
            unset["failure_reason"] = ""

        updated = await self.db.invoices.find_one_and_update(
            {"_id": invoice["_id"]},
            {"$set": fields, "$unset": unset, "$inc": {"version": 1}},
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise InvoiceNotFoundError()
        return updated

    # ========== Admin review ==========

    def _ensure_reviewable(self, invoice: Dict[str, Any], action: str) -> None:
        if invoice.get("payment_status") != PaymentStatus.SUCCESS.value:
            raise ReviewNotAllowedError(action, "payment has not been completed")
        if invoice.get("investigation_status") not in REVIEWABLE_STATUSES:
            raise ReviewNotAllowedError(
                action, f"invoice has already been {invoice.get('investigation_status')}"
            )

    async def start_review(self, invoice_id: str, reviewer_id: str) -> Dict[str, Any]:
        """Mark an invoice as being investigated by an admin"""
        invoice = await self._find_invoice(invoice_id)
        updated = await self.db.invoices.find_one_and_update(
            {"_id": invoice["_id"], "investigation_status": InvestigationStatus.PENDING_REVIEW.value},
            {
                "$set": {
                    "investigation_status": InvestigationStatus.UNDER_REVIEW.value,
                    "reviewed_by": reviewer_id,
                    "updated_at": self._now(),
                },
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise ReviewNotAllowedError("start reviewing", "invoice is not awaiting review")

        logger.info(f"Admin {reviewer_id} started reviewing invoice {invoice_id}")
        return serialize_invoice(updated)

    async def _decide(
        self,
        invoice_id: str,
        reviewer_id: str,
        action: str,
        investigation_status: InvestigationStatus,
        report_status: TaxReportStatus,
        rejection_reason: Optional[str] = None
    ) -> Dict[str, Any]:
        invoice = await self._find_invoice(invoice_id)
        self._ensure_reviewable(invoice, action)

        now = self._now()
        invoice_set = {
            "investigation_status": investigation_status.value,
            "reviewed_by": reviewer_id,
            "reviewed_at": now,
            "updated_at": now,
        }
        report_set: Dict[str, Any] = {"status": report_status.value, "updated_at": now}
        report_update: Dict[str, Any] = {"$set": report_set, "$inc": {"version": 1}}
        invoice_update: Dict[str, Any] = {"$set": invoice_set, "$inc": {"version": 1}}
        if rejection_reason is not None:
            invoice_set["rejection_reason"] = rejection_reason
            report_set["rejection_reason"] = rejection_reason
        else:
            invoice_update["$unset"] = {"rejection_reason": ""}
            report_update["$unset"] = {"rejection_reason": ""}

        # The filter repeats the gate so that a concurrent or retried
        # decision matches nothing
        updated = await self.db.invoices.find_one_and_update(
            {
                "_id": invoice["_id"],
                "payment_status": PaymentStatus.SUCCESS.value,
                "investigation_status": {"$in": list(REVIEWABLE_STATUSES)},
            },
            invoice_update,
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise ReviewNotAllowedError(action, "invoice was reviewed by another request")

        report_oid = object_id(invoice["tax_report_id"])
        try:
            result = await self.db.taxReports.update_one({"_id": report_oid}, report_update)
            if result.matched_count == 0:
                raise TaxReportNotFoundError()
        except Exception as e:
            logger.error(f"Report update failed while trying to {action} invoice {invoice_id}, restoring invoice: {e}")
            await self.db.invoices.replace_one({"_id": invoice["_id"]}, invoice)
            raise

        return updated

    async def approve(self, invoice_id: str, reviewer_id: str) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
        """
        Approve a paid invoice and its report, then settle it.

        Settlement failures are logged and do not undo the approval.

        Returns:
            Tuple of (invoice, settlement or None)
        """
        updated = await self._decide(
            invoice_id,
            reviewer_id,
            "approve",
            InvestigationStatus.APPROVED,
            TaxReportStatus.APPROVED
        )
        invoice = serialize_invoice(updated)
        logger.info(f"Admin {reviewer_id} approved invoice {invoice['invoice_number']}")

        settlement = None
        try:
            settlement = await self.settlement_service.create_for_approved_invoice(invoice, reviewer_id)
        except Exception as e:
            logger.error(f"Settlement creation failed for approved invoice {invoice_id}: {e}")

        return invoice, settlement

    async def reject(self, invoice_id: str, reviewer_id: str, rejection_reason: str) -> Dict[str, Any]:
        """Reject a paid invoice; the bank must revise the report"""
        reason = (rejection_reason or "").strip()
        if not reason:
            raise TaxReportValidationError({"rejection_reason": "A rejection reason is required"})

        updated = await self._decide(
            invoice_id,
            reviewer_id,
            "reject",
            InvestigationStatus.REJECTED,
            TaxReportStatus.REJECTED,
            rejection_reason=reason
        )
        logger.info(f"Admin {reviewer_id} rejected invoice {updated['invoice_number']}: {reason}")
        return serialize_invoice(updated)
