from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from fastapi import HTTPException
import logging

from app.core.exceptions import POSAgentNotFoundError
from app.models.invoice import PaymentStatus
from app.models.tax_report import TaxReportStatus
from app.schemas.pos_agent import POSAgentCreate
from app.services.periods import Period, filing_due_date
from app.services.submission_status import latest_by_period, last_submitted_at
from app.services.tax_report import object_id

logger = logging.getLogger(__name__)

# Lookup order for the public status check
IDENTIFIER_FIELDS = ("phone_number", "tin", "email")


class POSAgentService:
    def __init__(self, db, now: Optional[Callable[[], datetime]] = None):
        self.db = db
        self._now = now or (lambda: datetime.now(timezone.utc))

    async def add_agent(self, bank_id: str, data: POSAgentCreate) -> Dict[str, Any]:
        """Register a POS agent under a bank"""
        phone_number = data.phone_number.strip()
        if await self.db.posAgents.find_one({"phone_number": phone_number}):
            raise HTTPException(status_code=409, detail="A POS agent with this phone number already exists")

        agent_dict = data.model_dump()
        agent_dict.update({
            "bank_id": bank_id,
            "phone_number": phone_number,
            "status": "active",
            "created_at": self._now(),
        })
        result = await self.db.posAgents.insert_one(agent_dict)

        agent_dict["id"] = str(result.inserted_id)
        agent_dict.pop("_id", None)
        logger.info(f"Bank {bank_id} registered POS agent {agent_dict['id']}")
        return agent_dict

    async def list_agents(self, bank_id: str) -> List[Dict[str, Any]]:
        cursor = self.db.posAgents.find({"bank_id": bank_id}).sort("created_at", -1)
        agents = await cursor.to_list(length=None)
        for agent in agents:
            agent["id"] = str(agent.pop("_id"))
        return agents

    async def count_agents(self, bank_id: str) -> int:
        return await self.db.posAgents.count_documents({"bank_id": bank_id})

    async def _find_agent(self, identifier: str) -> Dict[str, Any]:
        for field in IDENTIFIER_FIELDS:
            agent = await self.db.posAgents.find_one({field: identifier})
            if agent:
                return agent
        raise POSAgentNotFoundError()

    async def check_tax_status(self, identifier: str, period_key: str) -> Dict[str, Any]:
        """
        Whether the bank behind a POS agent is compliant for a period.

        Args:
            identifier: Agent phone number, TIN or email
            period_key: Period in YYYY-MM format

        Returns:
            dict matching TaxStatusResponse
        """
        try:
            period = Period.parse(period_key)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        identifier = (identifier or "").strip()
        if not identifier:
            raise HTTPException(status_code=400, detail="An identifier is required")

        agent = await self._find_agent(identifier)
        bank_id = agent.get("bank_id")
        bank = await self.db.users.find_one({"_id": object_id(bank_id)}) if bank_id else None
        if bank is None:
            raise HTTPException(status_code=404, detail="Associated bank not found")
        bank_name = bank.get("business_name") or bank.get("display_name") or "Unknown Bank"

        cursor = self.db.taxReports.find({"bank_id": bank_id, "year": period.year, "month": period.month})
        reports = await cursor.to_list(length=None)
        report = latest_by_period(reports).get(period)
        invoice = (
            await self.db.invoices.find_one({"tax_report_id": str(report["_id"])}) if report else None
        )

        compliant = False
        amount_paid = 0.0
        last_status = "none"
        if report is not None:
            last_status = report.get("status") or TaxReportStatus.PENDING.value
            if last_status == TaxReportStatus.APPROVED.value:
                compliant = True
                if invoice:
                    amount_paid = float(invoice.get("paid_amount") or invoice.get("tax_amount") or 0.0)
                    if invoice.get("payment_status") == PaymentStatus.FAILED.value and not invoice.get("paid_amount"):
                        compliant = False
                        amount_paid = 0.0
            elif last_status == TaxReportStatus.PENDING.value:
                compliant = True
                if invoice:
                    amount_paid = float(invoice.get("paid_amount") or 0.0)

        default_amount = None
        if not compliant:
            default_amount = round(float(invoice.get("amount_due") or 0.0), 2) if invoice else 0.0

        logger.info(f"Tax status for agent {agent['_id']} in {period.key}: {'compliant' if compliant else 'defaulting'}")
        return {
            "agent_name": agent.get("full_name") or agent.get("business_name", ""),
            "phone_number": agent.get("phone_number", ""),
            "tin": agent.get("tin"),
            "business_name": agent.get("business_name", ""),
            "bank_id": bank_id,
            "bank_name": bank_name,
            "period": period.label,
            "period_key": period.key,
            "status": "compliant" if compliant else "defaulting",
            "last_submission_status": last_status,
            "submission_date": last_submitted_at(report) if report else None,
            "amount_paid": round(amount_paid, 2) if compliant else None,
            "due_date": None if compliant else filing_due_date(period),
            "default_amount": default_amount,
        }
