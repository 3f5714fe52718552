from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime


class POSAgentCreate(BaseModel):
    full_name: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=7, max_length=20)
    business_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    tin: Optional[str] = Field(None, description="Tax identification number")
    business_address: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "full_name": "Adebayo Ogunleye",
                "phone_number": "08031234567",
                "business_name": "Ogunleye POS Services",
                "email": "adebayo@example.com",
                "tin": "12345678-0001",
                "business_address": "12 Oba Adesida Road, Akure"
            }
        }


class POSAgentResponse(BaseModel):
    id: str
    bank_id: str
    full_name: str
    phone_number: str
    business_name: str
    email: Optional[str] = None
    tin: Optional[str] = None
    business_address: Optional[str] = None
    status: str = "active"
    created_at: datetime


class TaxStatusResponse(BaseModel):
    """Public compliance answer for a POS agent and period"""
    agent_name: str
    phone_number: str
    tin: Optional[str] = None
    business_name: str
    bank_id: str
    bank_name: str
    period: str = Field(..., description="Period label, e.g. March 2024")
    period_key: str = Field(..., description="YYYY-MM")
    status: Literal["compliant", "defaulting"]
    last_submission_status: str = Field(..., description="pending, approved, rejected or none")
    submission_date: Optional[datetime] = None
    amount_paid: Optional[float] = None
    due_date: Optional[datetime] = None
    default_amount: Optional[float] = None
