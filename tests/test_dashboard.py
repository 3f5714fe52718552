"""
POS Tax Portal - Dashboard Tests
"""

import pytest

from app.schemas.pos_agent import POSAgentCreate
from app.services.dashboard import DashboardService, REVENUE_PERIODS
from app.services.pos_agent import POSAgentService

from conftest import clock, make_submission, record_payment


async def _approved_filing(tax_report_service, payment_service, bank, admin, month=3, volume=10_000_000):
    _, invoice = await tax_report_service.create_report(
        bank["id"], bank["business_name"], make_submission(month=month, transaction_volume=volume)
    )
    await record_payment(payment_service, invoice["id"], invoice["tax_amount"], reference=f"TRX-{invoice['id']}")
    await tax_report_service.approve(invoice["id"], admin["id"])
    return invoice


class TestAdminStats:

    @pytest.mark.asyncio
    async def test_totals(self, db, tax_report_service, payment_service, bank, other_bank, admin):
        await _approved_filing(tax_report_service, payment_service, bank, admin)
        await tax_report_service.create_report(
            other_bank["id"], other_bank["business_name"], make_submission(transaction_volume=4_000_000)
        )
        agents = POSAgentService(db, now=clock)
        await agents.add_agent(bank["id"], POSAgentCreate(
            full_name="Agent One", phone_number="08030000001", business_name="One POS"
        ))

        stats = await DashboardService(db, now=clock).admin_stats()

        assert stats["total_banks"] == 2
        assert stats["total_pos_agents"] == 1
        assert stats["total_tax_revenue"] == pytest.approx(10_000_000)
        assert stats["total_deductions"] == pytest.approx(100_000)
        assert stats["pending_amount"] == pytest.approx(40_000)
        assert stats["pending_reviews"] == 0

    @pytest.mark.asyncio
    async def test_recent_submissions_use_real_agent_counts(self, db, tax_report_service, bank, other_bank):
        agents = POSAgentService(db, now=clock)
        for index in range(3):
            await agents.add_agent(bank["id"], POSAgentCreate(
                full_name=f"Agent {index}", phone_number=f"0803000000{index}", business_name="POS"
            ))
        await tax_report_service.create_report(bank["id"], bank["business_name"], make_submission())
        await tax_report_service.create_report(other_bank["id"], other_bank["business_name"], make_submission())

        submissions = await DashboardService(db, now=clock).recent_submissions()

        counts = {s["bank_id"]: s["pos_agent_count"] for s in submissions}
        assert counts == {bank["id"]: 3, other_bank["id"]: 0}
        assert all(s["period_label"] == "March 2024" for s in submissions)


class TestGovernmentOverview:

    @pytest.mark.asyncio
    async def test_overview(self, db, tax_report_service, payment_service, bank, other_bank, admin, government):
        await _approved_filing(tax_report_service, payment_service, bank, admin, month=2, volume=6_000_000)
        await _approved_filing(tax_report_service, payment_service, bank, admin, month=3)
        _, unsettled = await tax_report_service.create_report(
            other_bank["id"], other_bank["business_name"], make_submission(transaction_volume=2_000_000)
        )
        await record_payment(payment_service, unsettled["id"], 20_000, reference="TRX-unsettled")

        overview = await DashboardService(db, now=clock).government_overview()

        assert overview["total_collected"] == pytest.approx(160_000)
        assert overview["pending_settlements"] == pytest.approx(20_000)
        assert overview["current_month_revenue"] == pytest.approx(100_000)
        assert len(overview["monthly_revenue"]) == REVENUE_PERIODS
        assert overview["monthly_revenue"][-1]["label"] == "March 2024"
        assert overview["monthly_revenue"][-2]["amount"] == pytest.approx(60_000)

        banks = {b["bank_id"]: b for b in overview["banks"]}
        assert banks[bank["id"]]["submitted_this_month"] is True
        assert banks[bank["id"]]["report_status"] == "approved"
        assert banks[other_bank["id"]]["report_status"] == "pending"

        assert len(overview["recent_payments"]) == 3
        assert len(overview["recent_settlements"]) == 2
