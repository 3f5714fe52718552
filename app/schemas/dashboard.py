from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class AdminStats(BaseModel):
    total_banks: int
    total_pos_agents: int
    total_tax_revenue: float = Field(..., description="Transaction volume of approved reports")
    total_deductions: float = Field(..., description="Tax amount of approved invoices")
    pending_amount: float = Field(..., description="Tax amount of reports awaiting approval")
    pending_reviews: int = Field(0, description="Paid invoices awaiting an admin decision")


class RecentSubmission(BaseModel):
    report_id: str
    bank_id: str
    bank_name: str
    period_label: str
    status: str
    transaction_volume: float
    pos_agent_count: int
    submitted_at: datetime


class MonthlyRevenue(BaseModel):
    year: int
    month: int
    label: str
    amount: float


class BankFilingStatus(BaseModel):
    bank_id: str
    bank_name: str
    submitted_this_month: bool
    report_status: Optional[str] = None


class PaymentSummary(BaseModel):
    id: str
    bank_name: str
    amount: float
    reference_number: str
    status: str
    created_at: datetime


class SettlementSummary(BaseModel):
    id: str
    reference_number: str
    bank_id: str
    bank_name: str
    invoice_id: str
    amount: float
    description: str
    approved_by: Optional[str] = None
    created_at: datetime


class GovernmentOverview(BaseModel):
    total_collected: float = Field(..., description="Sum of all settlements")
    pending_settlements: float = Field(..., description="Payments received but not yet settled")
    current_month_revenue: float
    monthly_revenue: List[MonthlyRevenue] = Field(..., description="Last 12 periods, oldest first")
    banks: List[BankFilingStatus]
    recent_payments: List[PaymentSummary]
    recent_settlements: List[SettlementSummary]
