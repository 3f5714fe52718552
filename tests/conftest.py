"""
POS Tax Portal - Test Configuration

Pytest fixtures and configuration. Services run against an in-memory
MongoDB (mongomock-motor) with a fixed clock.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("TERRASWITCH_SECRET_KEY", "test-terra-secret")
os.environ.setdefault("TERRASWITCH_WEBHOOK_SECRET", "test-webhook-secret")

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from app.core.database_indexes import create_indexes
from app.models.user import UserRole
from app.schemas.tax_report import SupportingDocument, TaxReportSubmission
from app.services.payment import PaymentService
from app.services.tax_report import TaxReportService


NOW = datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)


def clock():
    return NOW


@pytest_asyncio.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["pos_tax_portal_test"]
    await create_indexes(database)
    return database


@pytest.fixture
def tax_report_service(db):
    return TaxReportService(db, now=clock)


@pytest.fixture
def payment_service(db):
    return PaymentService(db, gateway=MagicMock(), now=clock)


async def _insert_user(db, email, role, business_name=None, created_at=None):
    user = {
        "email": email,
        "role": role.value,
        "business_name": business_name,
        "display_name": business_name,
        "is_active": True,
        "created_at": created_at or datetime(2023, 12, 5, tzinfo=timezone.utc),
    }
    result = await db.users.insert_one(user)
    user["id"] = str(result.inserted_id)
    user.pop("_id", None)
    return user


@pytest_asyncio.fixture
async def bank(db):
    return await _insert_user(db, "finance@firstondo.ng", UserRole.BANK, "First Ondo Bank")


@pytest_asyncio.fixture
async def other_bank(db):
    return await _insert_user(db, "tax@akurecoop.ng", UserRole.BANK, "Akure Cooperative Bank")


@pytest_asyncio.fixture
async def admin(db):
    return await _insert_user(db, "admin@ondo.gov.ng", UserRole.ADMIN)


@pytest_asyncio.fixture
async def government(db):
    return await _insert_user(db, "revenue@ondo.gov.ng", UserRole.GOVERNMENT)


def make_submission(**overrides) -> TaxReportSubmission:
    data = {
        "year": 2024,
        "month": 3,
        "transaction_volume": "₦ 10,000,000",
        "profit_baseline": "20%",
        "document": SupportingDocument(url="https://storage.test/march.pdf", file_name="march.pdf"),
        "is_confirmed": True,
    }
    data.update(overrides)
    return TaxReportSubmission(**data)


async def record_payment(payment_service, invoice_id, naira, reference="TRX-0001"):
    """Record a successful gateway charge (gateway amounts are in kobo)"""
    return await payment_service.record_successful_payment({
        "reference": reference,
        "amount": int(round(naira * 100)),
        "status": "success",
        "metadata": {"invoiceId": invoice_id},
    })
