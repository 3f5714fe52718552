from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models.invoice import PaymentStatus, InvestigationStatus
from app.schemas.tax_report import TaxReportResponse


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    bank_id: str
    bank_name: str = ""
    tax_report_id: str
    transaction_volume: float
    profit_baseline: float
    tax_rate: float
    tax_amount: float
    previous_payment_amount: float = 0.0
    additional_tax_amount: float = 0.0
    amount_due: float = 0.0
    paid_amount: float = 0.0
    issued_date: datetime
    due_date: Optional[datetime] = None
    payment_status: PaymentStatus
    payment_reference: Optional[str] = None
    payment_link: Optional[str] = None
    failure_reason: Optional[str] = None
    paid_date: Optional[datetime] = None
    investigation_status: InvestigationStatus
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    available_actions: List[str] = Field(default_factory=list, description="Review actions an admin may take now")
    created_at: datetime
    updated_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "id": "665f1f77bcf86cd799439011",
                "invoice_number": "INV-202403-4F9A2C",
                "bank_id": "665f1f77bcf86cd799439012",
                "bank_name": "First Ondo Bank",
                "tax_report_id": "665f1f77bcf86cd799439013",
                "transaction_volume": 10000000.0,
                "profit_baseline": 20.0,
                "tax_rate": 0.05,
                "tax_amount": 100000.0,
                "previous_payment_amount": 0.0,
                "additional_tax_amount": 100000.0,
                "amount_due": 100000.0,
                "paid_amount": 0.0,
                "issued_date": "2024-03-28T10:30:00Z",
                "due_date": "2024-04-30T23:59:59Z",
                "payment_status": "pending",
                "investigation_status": "pending_review",
                "available_actions": [],
                "created_at": "2024-03-28T10:30:00Z",
                "updated_at": "2024-03-28T10:30:00Z"
            }
        }


class TaxReportWithInvoice(BaseModel):
    """Result of a create or revise action"""
    report: TaxReportResponse
    invoice: InvoiceResponse


class PaymentInitRequest(BaseModel):
    email: str = Field(..., description="Email the gateway sends the receipt to")
    callback_url: Optional[str] = Field(None, description="Where the gateway redirects after payment")


class PaymentInitResponse(BaseModel):
    invoice_id: str
    payment_link: str
    payment_reference: str
    amount: float


class ReviewReject(BaseModel):
    rejection_reason: str = Field(..., description="Why the report was rejected")


class ReviewResult(BaseModel):
    invoice: InvoiceResponse
    report_status: str
    settlement_reference: Optional[str] = None

