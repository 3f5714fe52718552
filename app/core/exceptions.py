from typing import Dict, Optional
from fastapi import HTTPException, status

class AuthenticationError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

class RoleRequiredError(HTTPException):
    def __init__(self, roles):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"This action requires one of the roles: {', '.join(roles)}"
        )

class TaxReportValidationError(HTTPException):
    """Raised for user-correctable form errors; nothing is written."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Tax report validation failed", "errors": errors}
        )

class TaxReportNotFoundError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tax report not found"
        )

class InvoiceNotFoundError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice not found"
        )

class DuplicateTaxReportError(HTTPException):
    def __init__(self, period_label: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A tax report for {period_label} has already been submitted"
        )

class RevisionRequiredError(HTTPException):
    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"The report for this period was rejected and must be revised (report {report_id})"
        )

class RevisionNotAllowedError(HTTPException):
    def __init__(self, reason: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=reason or "Tax report is not eligible for revision"
        )

class StaleWriteError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="The record was modified by another request. Reload and try again"
        )

class ReviewNotAllowedError(HTTPException):
    def __init__(self, action: str, reason: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot {action} this invoice: {reason}"
        )

class PaymentNotAllowedError(HTTPException):
    def __init__(self, reason: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=reason
        )

class PaymentGatewayError(HTTPException):
    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Payment gateway error: {message}"
        )

class InvalidWebhookError(HTTPException):
    def __init__(self, detail: str = "Invalid webhook signature"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )

class POSAgentNotFoundError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No POS agent found with the provided identifier"
        )
