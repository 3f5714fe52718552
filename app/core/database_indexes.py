"""
Database indexes for query performance and record uniqueness.

Run this module once after setting up the database to create indexes.
You can run it with: python -m app.core.database_indexes
"""

from motor.motor_asyncio import AsyncIOMotorClient
from app.core.config import settings
import asyncio
import logging

logger = logging.getLogger(__name__)


async def create_indexes(db):
    """Create all necessary database indexes"""
    logger.info("Creating database indexes...")

    # Users collection indexes
    await db.users.create_index("email", unique=True)
    await db.users.create_index("role")
    logger.info("✓ Created indexes for 'users' collection")

    # One report per bank and period
    await db.taxReports.create_index([("bank_id", 1), ("year", 1), ("month", 1)], unique=True)
    await db.taxReports.create_index([("status", 1), ("submitted_at", -1)])
    await db.taxReports.create_index("submitted_at")
    logger.info("✓ Created indexes for 'taxReports' collection")

    # One invoice per report
    await db.invoices.create_index("tax_report_id", unique=True)
    await db.invoices.create_index("invoice_number", unique=True)
    await db.invoices.create_index([("bank_id", 1), ("issued_date", -1)])
    await db.invoices.create_index("payment_reference")
    await db.invoices.create_index([("payment_status", 1), ("investigation_status", 1)])
    logger.info("✓ Created indexes for 'invoices' collection")

    # One payment record per gateway transaction
    await db.taxPayments.create_index("transaction_reference", unique=True)
    await db.taxPayments.create_index([("bank_id", 1), ("reference_number", 1)])
    await db.taxPayments.create_index([("invoice_id", 1), ("status", 1)])
    await db.taxPayments.create_index("created_at")
    logger.info("✓ Created indexes for 'taxPayments' collection")

    # One settlement per approved invoice
    await db.adminSettlements.create_index("invoice_id", unique=True)
    await db.adminSettlements.create_index("created_at")
    logger.info("✓ Created indexes for 'adminSettlements' collection")

    await db.posAgents.create_index("phone_number")
    await db.posAgents.create_index("tin")
    await db.posAgents.create_index("email")
    await db.posAgents.create_index("bank_id")
    logger.info("✓ Created indexes for 'posAgents' collection")

    logger.info("All indexes created successfully!")


async def main():
    client = AsyncIOMotorClient(settings.MONGODB_URL)
    try:
        await create_indexes(client[settings.DATABASE_NAME])
    finally:
        client.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
