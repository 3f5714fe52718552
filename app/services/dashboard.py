"""Figures for the admin and government dashboards"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from app.models.invoice import InvestigationStatus, PaymentStatus, REVIEWABLE_STATUSES
from app.models.settlement import TaxPaymentStatus
from app.models.tax_report import TaxReportStatus
from app.models.user import UserRole
from app.services.periods import Period, current_period, iter_periods
from app.services.settlement import SettlementService
from app.services.tax_report import object_id

REVENUE_PERIODS = 12


class DashboardService:
    def __init__(self, db, now: Optional[Callable[[], datetime]] = None):
        self.db = db
        self._now = now or (lambda: datetime.now(timezone.utc))

    async def _sum(self, collection, match: Dict[str, Any], field: str) -> float:
        pipeline = [
            {"$match": match},
            {"$group": {"_id": None, "total": {"$sum": f"${field}"}}}
        ]
        result = await collection.aggregate(pipeline).to_list(length=1)
        return round(result[0]["total"], 2) if result else 0.0

    async def admin_stats(self) -> Dict[str, Any]:
        total_banks = await self.db.users.count_documents({"role": UserRole.BANK.value})
        total_pos_agents = await self.db.posAgents.count_documents({})

        total_tax_revenue = await self._sum(
            self.db.taxReports, {"status": TaxReportStatus.APPROVED.value}, "transaction_volume"
        )
        total_deductions = await self._sum(
            self.db.invoices, {"investigation_status": InvestigationStatus.APPROVED.value}, "tax_amount"
        )

        pending = await self.db.taxReports.find({"status": TaxReportStatus.PENDING.value}, {"_id": 1}).to_list(length=None)
        pending_ids = [str(report["_id"]) for report in pending]
        pending_amount = 0.0
        if pending_ids:
            pending_amount = await self._sum(
                self.db.invoices, {"tax_report_id": {"$in": pending_ids}}, "tax_amount"
            )

        pending_reviews = await self.db.invoices.count_documents({
            "payment_status": PaymentStatus.SUCCESS.value,
            "investigation_status": {"$in": list(REVIEWABLE_STATUSES)},
        })

        return {
            "total_banks": total_banks,
            "total_pos_agents": total_pos_agents,
            "total_tax_revenue": total_tax_revenue,
            "total_deductions": total_deductions,
            "pending_amount": pending_amount,
            "pending_reviews": pending_reviews,
        }

    async def recent_submissions(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Latest reports, each with its bank's registered POS agent count"""
        cursor = self.db.taxReports.find({}).sort("submitted_at", -1).limit(limit)
        reports = await cursor.to_list(length=limit)

        agent_counts: Dict[str, int] = {}
        submissions = []
        for report in reports:
            bank_id = report["bank_id"]
            if bank_id not in agent_counts:
                agent_counts[bank_id] = await self.db.posAgents.count_documents({"bank_id": bank_id})
            submissions.append({
                "report_id": str(report["_id"]),
                "bank_id": bank_id,
                "bank_name": report.get("bank_name", ""),
                "period_label": Period(report["year"], report["month"]).label,
                "status": report.get("status", TaxReportStatus.PENDING.value),
                "transaction_volume": report.get("transaction_volume", 0.0),
                "pos_agent_count": agent_counts[bank_id],
                "submitted_at": report.get("resubmitted_at") or report["submitted_at"],
            })
        return submissions

    async def government_overview(self, recent_limit: int = 10) -> Dict[str, Any]:
        now = self._now()
        current = current_period(now)

        total_collected = await self._sum(self.db.adminSettlements, {}, "amount")
        pending_settlements = await self._sum(
            self.db.taxPayments, {"status": TaxPaymentStatus.PENDING.value}, "amount"
        )

        # Revenue by the period of the settled report
        revenue: Dict[Period, float] = {}
        settlements = await self.db.adminSettlements.find({}, {"tax_report_id": 1, "amount": 1}).to_list(length=None)
        for settlement in settlements:
            report = await self.db.taxReports.find_one(
                {"_id": object_id(settlement.get("tax_report_id") or "")}, {"year": 1, "month": 1}
            )
            if report is None:
                continue
            period = Period(report["year"], report["month"])
            revenue[period] = revenue.get(period, 0.0) + settlement.get("amount", 0.0)

        monthly_revenue = [
            {"year": p.year, "month": p.month, "label": p.label, "amount": round(revenue.get(p, 0.0), 2)}
            for p in iter_periods(current.shift(-(REVENUE_PERIODS - 1)), current)
        ]

        banks = []
        bank_users = await self.db.users.find({"role": UserRole.BANK.value}).sort("business_name", 1).to_list(length=None)
        for bank in bank_users:
            bank_id = str(bank["_id"])
            report = await self.db.taxReports.find_one(
                {"bank_id": bank_id, "year": current.year, "month": current.month},
                sort=[("submitted_at", -1)]
            )
            banks.append({
                "bank_id": bank_id,
                "bank_name": bank.get("business_name") or bank.get("display_name") or bank.get("email", ""),
                "submitted_this_month": report is not None,
                "report_status": report.get("status") if report else None,
            })

        cursor = self.db.taxPayments.find({}).sort("created_at", -1).limit(recent_limit)
        recent_payments = []
        for payment in await cursor.to_list(length=recent_limit):
            recent_payments.append({
                "id": str(payment["_id"]),
                "bank_name": payment.get("bank_name", ""),
                "amount": payment.get("amount", 0.0),
                "reference_number": payment.get("reference_number", ""),
                "status": payment.get("status", TaxPaymentStatus.PENDING.value),
                "created_at": payment["created_at"],
            })

        recent_settlements = await SettlementService(self.db, now=self._now).list_settlements(limit=recent_limit)

        return {
            "total_collected": total_collected,
            "pending_settlements": pending_settlements,
            "current_month_revenue": round(revenue.get(current, 0.0), 2),
            "monthly_revenue": monthly_revenue,
            "banks": banks,
            "recent_payments": recent_payments,
            "recent_settlements": recent_settlements,
        }

