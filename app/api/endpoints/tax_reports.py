from fastapi import APIRouter, Depends, HTTPException, Path
from typing import List
from app.api.deps import get_current_user, get_tax_report_service
from app.core.config import settings
from app.core.roles import require_role
from app.models.user import UserRole
from app.schemas.user import UserResponse
from app.schemas.tax_report import (
    MonthlySubmissionView,
    TaxReportResponse,
    TaxReportRevision,
    TaxReportSubmission,
)
from app.schemas.invoice import InvoiceResponse, TaxReportWithInvoice
from app.services.submission_status import build_monthly_view
from app.services.tax_report import TaxReportService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tax Reports"])


def _with_invoice(report: dict, invoice: dict) -> TaxReportWithInvoice:
    return TaxReportWithInvoice(
        report=TaxReportResponse(**report, invoice_id=invoice["id"]),
        invoice=InvoiceResponse(**invoice)
    )


@router.get(
    "/status",
    response_model=MonthlySubmissionView,
    description="Submission history, missing periods and current-period eligibility"
)
@require_role(UserRole.BANK)
async def get_submission_status(
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> MonthlySubmissionView:
    """
    Monthly submission view for the bank dashboard.

    - submissions: filed periods, newest first
    - periods: every period since the bank joined
    - missing_periods: unfiled periods before the current one
    - status: whether the bank may submit for the current period
    """
    try:
        reports = await tax_report_service.list_reports(current_user.id)
        invoices = await tax_report_service.list_invoices(current_user.id)
        return build_monthly_view(
            reports,
            invoices,
            current_user.created_at,
            tax_report_service.now(),
            settings.MISSING_PERIOD_FALLBACK_MONTHS
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error building submission status: {e}")
        raise HTTPException(status_code=500, detail="Failed to get submission status")


@router.get(
    "/",
    response_model=List[TaxReportResponse],
    description="List the bank's tax reports"
)
@require_role(UserRole.BANK)
async def list_tax_reports(
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> List[TaxReportResponse]:
    try:
        reports = await tax_report_service.list_reports(current_user.id)
        invoices = await tax_report_service.list_invoices(current_user.id)
        invoice_ids = {invoice["tax_report_id"]: invoice["id"] for invoice in invoices}
        return [
            TaxReportResponse(**report, invoice_id=invoice_ids.get(report["id"]))
            for report in reports
        ]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing tax reports: {e}")
        raise HTTPException(status_code=500, detail="Failed to list tax reports")


@router.post(
    "/",
    response_model=TaxReportWithInvoice,
    status_code=201,
    description="Submit a tax report; a rejected report for the same period is revised"
)
@require_role(UserRole.BANK)
async def submit_tax_report(
    submission: TaxReportSubmission,
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> TaxReportWithInvoice:
    """
    Submit the monthly tax report.

    Tax is transaction_volume x profit_baseline% x tax rate. An invoice is
    issued with the report. Returns 409 if the period already has a pending
    or approved report.
    """
    try:
        report, invoice = await tax_report_service.submit_report(
            current_user.id,
            current_user.bank_name,
            submission
        )
        return _with_invoice(report, invoice)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error submitting tax report: {e}")
        raise HTTPException(status_code=500, detail="Failed to submit tax report")


@router.get(
    "/{report_id}",
    response_model=TaxReportWithInvoice,
    description="Get a tax report with its invoice"
)
@require_role(UserRole.BANK)
async def get_tax_report(
    report_id: str = Path(..., description="Tax report ID"),
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> TaxReportWithInvoice:
    try:
        report = await tax_report_service.get_report(report_id, bank_id=current_user.id)
        invoice = await tax_report_service.get_invoice_for_report(report_id)
        if invoice is None:
            raise HTTPException(status_code=404, detail="Invoice not found for this report")
        return _with_invoice(report, invoice)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting tax report {report_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get tax report")


@router.put(
    "/{report_id}",
    response_model=TaxReportWithInvoice,
    description="Revise a rejected tax report"
)
@require_role(UserRole.BANK)
async def revise_tax_report(
    revision: TaxReportRevision,
    report_id: str = Path(..., description="Tax report ID"),
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> TaxReportWithInvoice:
    """
    Resubmit a rejected report with corrected figures.

    Amounts already paid are credited; only the difference becomes due.
    Send expected_version to fail with 409 if the report changed since it
    was loaded.
    """
    try:
        report, invoice = await tax_report_service.revise_report(
            current_user.id,
            report_id,
            revision,
            expected_version=revision.expected_version
        )
        return _with_invoice(report, invoice)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error revising tax report {report_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to revise tax report")
