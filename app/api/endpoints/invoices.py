from fastapi import APIRouter, Depends, HTTPException, Path
from typing import List
from app.api.deps import get_current_user, get_tax_report_service, get_payment_service
from app.core.roles import require_role
from app.models.user import UserRole
from app.schemas.user import UserResponse
from app.schemas.invoice import InvoiceResponse, PaymentInitRequest, PaymentInitResponse
from app.services.payment import PaymentService
from app.services.tax_report import TaxReportService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Invoices"])


@router.get(
    "/",
    response_model=List[InvoiceResponse],
    description="List the bank's invoices"
)
@require_role(UserRole.BANK)
async def list_invoices(
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> List[InvoiceResponse]:
    try:
        invoices = await tax_report_service.list_invoices(current_user.id)
        return [InvoiceResponse(**invoice) for invoice in invoices]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing invoices: {e}")
        raise HTTPException(status_code=500, detail="Failed to list invoices")


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    description="Get an invoice"
)
@require_role(UserRole.BANK)
async def get_invoice(
    invoice_id: str = Path(..., description="Invoice ID"),
    current_user: UserResponse = Depends(get_current_user),
    tax_report_service: TaxReportService = Depends(get_tax_report_service)
) -> InvoiceResponse:
    try:
        invoice = await tax_report_service.get_invoice(invoice_id, bank_id=current_user.id)
        return InvoiceResponse(**invoice)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get invoice")


@router.post(
    "/{invoice_id}/payment",
    response_model=PaymentInitResponse,
    description="Create a Terra Switching payment link for the amount due"
)
@require_role(UserRole.BANK)
async def initialize_payment(
    payment_request: PaymentInitRequest,
    invoice_id: str = Path(..., description="Invoice ID"),
    current_user: UserResponse = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> PaymentInitResponse:
    """
    Start paying an invoice.

    Redirect the bank to payment_link. The invoice moves to paid once the
    gateway confirms the charge by webhook or via the verify endpoint.
    """
    try:
        result = await payment_service.initialize_payment(
            current_user.model_dump(),
            invoice_id,
            payment_request.email,
            callback_url=payment_request.callback_url
        )
        return PaymentInitResponse(**result)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error initializing payment for invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to initialize payment")


@router.post(
    "/{invoice_id}/payment/verify",
    response_model=InvoiceResponse,
    description="Confirm the payment after returning from the gateway"
)
@require_role(UserRole.BANK)
async def verify_payment(
    invoice_id: str = Path(..., description="Invoice ID"),
    current_user: UserResponse = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service)
) -> InvoiceResponse:
    try:
        invoice = await payment_service.verify_and_record(current_user.id, invoice_id)
        return InvoiceResponse(**invoice)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error verifying payment for invoice {invoice_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to verify payment")
