"""Admin endpoints for reviewing bank tax reports"""

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from typing import List, Optional
from app.api.deps import get_current_user, get_tax_report_service, get_dashboard_service
from app.core.roles import require_role
from app.models.tax_report import TaxReportStatus
from app.models.user import UserRole
from app.schemas.user import UserResponse
from app.schemas.tax_report import TaxReportListResponse, TaxReportResponse
from app.schemas.invoice import InvoiceResponse, ReviewReject, ReviewResult
from app.schemas.dashboard import AdminStats, RecentSubmission
from app.services.dashboard import DashboardService
from app.services.tax_report import TaxReportService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin - Tax Reports"])


@router.get(
    "/tax-reports",
    response_model=TaxReportListResponse,
    description="View tax reports from all banks (requires admin privileges)"
)
@require_role(UserRole.ADMIN)
async def list_tax_reports(
    status: Optional[TaxReportStatus] = None,
    bank_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    skip: int = Query(0, ge=0),
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> TaxReportListResponse:
    """
    Query Parameters:
    - status: pending, approved or rejected
    - bank_id: Filter by bank
    - limit / skip: Pagination
    """
    try:
        reports, total = await tax_report_service.list_all_reports(
            status=status.value if status else None,
            bank_id=bank_id,
            limit=limit,
            skip=skip
        )
        return TaxReportListResponse(
            reports=[TaxReportResponse(**report) for report in reports],
            total=total
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing tax reports for admin: {e}")
        raise HTTPException(status_code=500, detail="Failed to get tax reports")


@router.get(
    "/invoices/{invoice_id}",
    response_model=InvoiceResponse,
    description="Get an invoice with the review actions currently available"
)
@require_role(UserRole.ADMIN)
async def get_invoice(
    invoice_id: str = Path(..., description="Invoice ID"),
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> InvoiceResponse:
    try:
        invoice = await tax_report_service.get_invoice(invoice_id)
        return InvoiceResponse(**invoice)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get invoice")


@router.post(
    "/invoices/{invoice_id}/start-review",
    response_model=InvoiceResponse,
    description="Mark an invoice as under review"
)
@require_role(UserRole.ADMIN)
async def start_review(
    invoice_id: str = Path(..., description="Invoice ID"),
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> InvoiceResponse:
    """
    Transitions: pending_review -> under_review
    """
    try:
        invoice = await tax_report_service.start_review(invoice_id, current_user.id)
        return InvoiceResponse(**invoice)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error starting review of invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to start review")


@router.post(
    "/invoices/{invoice_id}/approve",
    response_model=ReviewResult,
    description="Approve a paid invoice and settle it to government"
)
@require_role(UserRole.ADMIN)
async def approve_invoice(
    invoice_id: str = Path(..., description="Invoice ID"),
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> ReviewResult:
    """
    Approve an invoice whose payment succeeded.

    Transitions: pending_review or under_review -> approved (report: approved)

    A settlement is created once per invoice. If creating it fails the
    approval still stands and settlement_reference is null.
    """
    try:
        invoice, settlement = await tax_report_service.approve(invoice_id, current_user.id)
        return ReviewResult(
            invoice=InvoiceResponse(**invoice),
            report_status=TaxReportStatus.APPROVED.value,
            settlement_reference=settlement["reference_number"] if settlement else None
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error approving invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to approve invoice")


@router.post(
    "/invoices/{invoice_id}/reject",
    response_model=ReviewResult,
    description="Reject a paid invoice; the bank must revise the report"
)
@require_role(UserRole.ADMIN)
async def reject_invoice(
    reject_data: ReviewReject,
    invoice_id: str = Path(..., description="Invoice ID"),
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> ReviewResult:
    """
    Transitions: pending_review or under_review -> rejected (report: rejected)

    The rejection reason is shown to the bank on the report.
    """
    try:
        invoice = await tax_report_service.reject(invoice_id, current_user.id, reject_data.rejection_reason)
        return ReviewResult(
            invoice=InvoiceResponse(**invoice),
            report_status=TaxReportStatus.REJECTED.value
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error rejecting invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to reject invoice")


@router.get(
    "/stats",
    response_model=AdminStats,
    description="Get admin dashboard statistics"
)
@require_role(UserRole.ADMIN)
async def get_admin_stats(
    current_user: UserResponse = Depends(get_current_user),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
) -> AdminStats:
    try:
        stats = await dashboard_service.admin_stats()
        return AdminStats(**stats)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting admin stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to get admin stats")


@router.get(
    "/submissions/recent",
    response_model=List[RecentSubmission],
    description="Latest bank submissions"
)
@require_role(UserRole.ADMIN)
async def get_recent_submissions(
    limit: int = Query(10, ge=1, le=100),
    current_user: UserResponse = Depends(get_current_user),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
) -> List[RecentSubmission]:
    try:
        submissions = await dashboard_service.recent_submissions(limit)
        return [RecentSubmission(**submission) for submission in submissions]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting recent submissions: {e}")
        raise HTTPException(status_code=500, detail="Failed to get recent submissions")
