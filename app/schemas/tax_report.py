from pydantic import BaseModel, Field
from typing import Optional, List, Union
from datetime import datetime
from app.models.tax_report import TaxReportStatus


class SupportingDocument(BaseModel):
    """Reference to a file already uploaded to storage by the client"""
    url: str = Field(..., min_length=1, description="Durable storage URL")
    file_name: str = Field(..., min_length=1, description="Original file name")


class TaxReportSubmission(BaseModel):
    """
    Bank tax report form.

    Figures are accepted as typed in the form ("₦ 25,000,000", "20%") and
    validated by the service so that blank or non-numeric input is reported
    field by field instead of failing request parsing.
    """
    year: Optional[int] = Field(None, ge=2000, description="Period year (default: current period)")
    month: Optional[int] = Field(None, ge=1, le=12, description="Period month 1-12 (default: current period)")
    transaction_volume: Union[float, str, None] = Field(None, description="Total POS transaction volume (NGN)")
    profit_baseline: Union[float, str, None] = Field(None, description="Average profit baseline (%)")
    notes: Optional[str] = Field(None, max_length=2000)
    document: Optional[SupportingDocument] = Field(None, description="Newly uploaded document, if any")
    is_confirmed: bool = Field(False, description="Bank confirms the figures are accurate")

    class Config:
        json_schema_extra = {
            "example": {
                "year": 2024,
                "month": 3,
                "transaction_volume": "₦ 10,000,000",
                "profit_baseline": "20%",
                "notes": "March POS volume across all agents",
                "document": {
                    "url": "https://storage.example.com/tax-documents/bank-1/march.pdf",
                    "file_name": "march.pdf"
                },
                "is_confirmed": True
            }
        }


class TaxReportRevision(TaxReportSubmission):
    expected_version: Optional[int] = Field(None, description="Version the client last read")


class TaxReportResponse(BaseModel):
    id: str
    bank_id: str
    bank_name: str = ""
    year: int
    month: int
    period_label: str
    transaction_volume: float
    profit_baseline: float
    notes: Optional[str] = None
    document_url: str
    file_name: str
    status: TaxReportStatus
    revision_count: int
    rejection_reason: Optional[str] = None
    submitted_at: datetime
    resubmitted_at: Optional[datetime] = None
    updated_at: datetime
    version: int = 1
    invoice_id: Optional[str] = None


class PeriodInfo(BaseModel):
    year: int
    month: int
    label: str
    key: str


class MonthlySubmission(BaseModel):
    """One calendar period in a bank's submission history"""
    year: int
    month: int
    label: str
    key: str
    submitted: bool
    approved: bool = False
    status: Optional[TaxReportStatus] = None
    submission_date: Optional[datetime] = None
    amount: Optional[float] = None
    report_id: Optional[str] = None
    invoice_id: Optional[str] = None


class SubmissionStatus(BaseModel):
    has_submitted_current_period: bool
    has_approved_current_period: bool
    can_submit_current_period: bool
    current_period_report_id: Optional[str] = None
    current_period_status: Optional[TaxReportStatus] = None


class MonthlySubmissionView(BaseModel):
    current_period: PeriodInfo
    submissions: List[MonthlySubmission] = Field(..., description="Submitted periods, most recent first")
    periods: List[MonthlySubmission] = Field(..., description="Every period from account creation to now, oldest first")
    missing_periods: List[PeriodInfo] = Field(..., description="Unfiled periods before the current one, oldest first")
    status: SubmissionStatus


class TaxReportListResponse(BaseModel):
    reports: List[TaxReportResponse]
    total: int
