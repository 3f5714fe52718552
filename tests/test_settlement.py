"""
POS Tax Portal - Settlement Service Tests
"""

import re
import pytest
from datetime import datetime, timezone

from app.services.settlement import SettlementService

from conftest import clock


def _approved_invoice(invoice_id="inv-1", number="INV-202403-ABC123", tax_amount=100_000.0):
    return {
        "id": invoice_id,
        "invoice_number": number,
        "bank_id": "bank-1",
        "bank_name": "First Ondo Bank",
        "tax_report_id": "report-1",
        "tax_amount": tax_amount,
        "investigation_status": "approved",
    }


class TestSettlementReference:

    def test_format(self):
        reference = SettlementService.generate_reference(datetime(2024, 3, 1, tzinfo=timezone.utc))
        assert re.match(r"^SET-202403-\d{5}$", reference)

    def test_custom_prefix(self):
        reference = SettlementService.generate_reference(datetime(2023, 12, 1), prefix="ODS")
        assert reference.startswith("ODS-202312-")


class TestSettlementService:

    @pytest.mark.asyncio
    async def test_creates_settlement_for_tax_amount(self, db):
        service = SettlementService(db, now=clock)
        await db.taxPayments.insert_one({
            "bank_id": "bank-1",
            "invoice_id": "inv-1",
            "reference_number": "INV-202403-ABC123",
            "transaction_reference": "TRX-1",
            "amount": 100_000.0,
            "status": "pending",
            "created_at": clock(),
        })

        settlement = await service.create_for_approved_invoice(_approved_invoice(), "admin-1")

        assert settlement["amount"] == pytest.approx(100_000)
        assert settlement["invoice_id"] == "inv-1"
        assert settlement["approved_by"] == "admin-1"
        assert settlement["payment_id"] is not None
        assert settlement["reference_number"].startswith("SET-202403-")

        payment = await db.taxPayments.find_one({"transaction_reference": "TRX-1"})
        assert payment["status"] == "settled"

    @pytest.mark.asyncio
    async def test_is_idempotent_per_invoice(self, db):
        service = SettlementService(db, now=clock)

        first = await service.create_for_approved_invoice(_approved_invoice(), "admin-1")
        second = await service.create_for_approved_invoice(_approved_invoice(), "admin-2")

        assert second["id"] == first["id"]
        assert second["reference_number"] == first["reference_number"]
        assert await db.adminSettlements.count_documents({"invoice_id": "inv-1"}) == 1

    @pytest.mark.asyncio
    async def test_settles_without_payment_record(self, db):
        service = SettlementService(db, now=clock)

        settlement = await service.create_for_approved_invoice(_approved_invoice(), "admin-1")

        assert settlement["payment_id"] is None
        assert settlement["amount"] == pytest.approx(100_000)

    @pytest.mark.asyncio
    async def test_list_settlements_newest_first(self, db):
        older = SettlementService(db, now=lambda: datetime(2024, 2, 1, tzinfo=timezone.utc))
        newer = SettlementService(db, now=clock)
        await older.create_for_approved_invoice(_approved_invoice("inv-1", "INV-202402-000001"), "admin-1")
        await newer.create_for_approved_invoice(_approved_invoice("inv-2", "INV-202403-000002"), "admin-1")

        settlements = await newer.list_settlements()

        assert [s["invoice_id"] for s in settlements] == ["inv-2", "inv-1"]
        assert all("id" in s and "_id" not in s for s in settlements)
