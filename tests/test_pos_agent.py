"""
POS Tax Portal - POS Agent and Tax Status Tests
"""

import pytest
from fastapi import HTTPException

from app.core.exceptions import POSAgentNotFoundError
from app.schemas.pos_agent import POSAgentCreate
from app.services.pos_agent import POSAgentService

from conftest import clock, make_submission, record_payment


def _agent_data(**overrides):
    data = {
        "full_name": "Adebayo Ogunleye",
        "phone_number": "08031234567",
        "business_name": "Ogunleye POS Services",
        "email": "adebayo@example.com",
        "tin": "12345678-0001",
    }
    data.update(overrides)
    return POSAgentCreate(**data)


@pytest.fixture
def pos_agent_service(db):
    return POSAgentService(db, now=clock)


class TestPOSAgents:

    @pytest.mark.asyncio
    async def test_add_and_list(self, pos_agent_service, bank, other_bank):
        agent = await pos_agent_service.add_agent(bank["id"], _agent_data())
        await pos_agent_service.add_agent(other_bank["id"], _agent_data(phone_number="08039999999"))

        assert agent["bank_id"] == bank["id"]
        assert agent["status"] == "active"
        agents = await pos_agent_service.list_agents(bank["id"])
        assert [a["id"] for a in agents] == [agent["id"]]
        assert await pos_agent_service.count_agents(bank["id"]) == 1

    @pytest.mark.asyncio
    async def test_duplicate_phone_number(self, pos_agent_service, bank):
        await pos_agent_service.add_agent(bank["id"], _agent_data())

        with pytest.raises(HTTPException) as exc_info:
            await pos_agent_service.add_agent(bank["id"], _agent_data(full_name="Someone Else"))
        assert exc_info.value.status_code == 409


class TestTaxStatus:

    @pytest.mark.asyncio
    async def test_no_report_is_defaulting(self, pos_agent_service, bank):
        await pos_agent_service.add_agent(bank["id"], _agent_data())

        status = await pos_agent_service.check_tax_status("08031234567", "2024-02")

        assert status["status"] == "defaulting"
        assert status["bank_name"] == "First Ondo Bank"
        assert status["period"] == "February 2024"
        assert status["last_submission_status"] == "none"
        assert status["default_amount"] == 0.0
        assert (status["due_date"].year, status["due_date"].month, status["due_date"].day) == (2024, 3, 31)
        assert status["amount_paid"] is None

    @pytest.mark.asyncio
    async def test_pending_report_is_compliant(self, pos_agent_service, tax_report_service, bank):
        await pos_agent_service.add_agent(bank["id"], _agent_data())
        await tax_report_service.create_report(bank["id"], bank["business_name"], make_submission())

        status = await pos_agent_service.check_tax_status("12345678-0001", "2024-03")

        assert status["status"] == "compliant"
        assert status["last_submission_status"] == "pending"
        assert status["due_date"] is None

    @pytest.mark.asyncio
    async def test_approved_report_is_compliant_with_amount(
        self, pos_agent_service, tax_report_service, payment_service, bank, admin
    ):
        await pos_agent_service.add_agent(bank["id"], _agent_data())
        _, invoice = await tax_report_service.create_report(bank["id"], bank["business_name"], make_submission())
        await record_payment(payment_service, invoice["id"], 100_000)
        await tax_report_service.approve(invoice["id"], admin["id"])

        status = await pos_agent_service.check_tax_status("adebayo@example.com", "2024-03")

        assert status["status"] == "compliant"
        assert status["last_submission_status"] == "approved"
        assert status["amount_paid"] == pytest.approx(100_000)

    @pytest.mark.asyncio
    async def test_rejected_report_is_defaulting_with_outstanding_amount(
        self, db, pos_agent_service, tax_report_service, bank, admin
    ):
        await pos_agent_service.add_agent(bank["id"], _agent_data())
        report, invoice = await tax_report_service.create_report(
            bank["id"], bank["business_name"], make_submission()
        )
        from bson import ObjectId
        await db.invoices.update_one({"_id": ObjectId(invoice["id"])}, {"$set": {"payment_status": "success"}})
        await tax_report_service.reject(invoice["id"], admin["id"], "volume mismatch")

        status = await pos_agent_service.check_tax_status("08031234567", "2024-03")

        assert status["status"] == "defaulting"
        assert status["last_submission_status"] == "rejected"
        assert status["default_amount"] == pytest.approx(100_000)

    @pytest.mark.asyncio
    async def test_unknown_identifier(self, pos_agent_service):
        with pytest.raises(POSAgentNotFoundError):
            await pos_agent_service.check_tax_status("08000000000", "2024-03")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("period", ["2024/03", "2024-13", ""])
    async def test_invalid_period(self, pos_agent_service, period):
        with pytest.raises(HTTPException) as exc_info:
            await pos_agent_service.check_tax_status("08031234567", period)
        assert exc_info.value.status_code == 400
