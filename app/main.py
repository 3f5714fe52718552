from fastapi import FastAPI, Request, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorClient
from typing import Optional
from app.core.config import settings
from app.api.endpoints import users, tax_reports, invoices, admin_reviews, government, pos_agents
from app.services.payment import PaymentService
import logging

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="POS Tax Portal")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS_LIST,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

# Include routers
app.include_router(users.router, prefix="/users")
app.include_router(tax_reports.router, prefix="/tax-reports")
app.include_router(invoices.router, prefix="/invoices")
app.include_router(admin_reviews.router, prefix="/admin")
app.include_router(government.router, prefix="/government")
app.include_router(pos_agents.router, prefix="/pos-agents")


@app.get("/")
async def root():
    return {"message": "POS Tax Portal API"}

# Terra Switching posts charge events here
@app.post("/webhooks/terraswitch")
async def terraswitch_webhook(
    request: Request,
    signature: Optional[str] = Header(None, alias="x-terra-signature")
):
    """Webhook endpoint for Terra Switching payment events"""
    if not signature:
        raise HTTPException(status_code=400, detail="Missing webhook signature")

    try:
        # Signature is computed over the raw body
        body = await request.body()

        payment_service = PaymentService(app.mongodb)

        result = await payment_service.handle_webhook(body, signature)
        return JSONResponse(content=result)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing webhook: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

@app.on_event("startup")
async def startup_db_client():
    app.mongodb_client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=True)
    app.mongodb = app.mongodb_client[settings.DATABASE_NAME]
    logger.info(f"Connected to database {settings.DATABASE_NAME}")

@app.on_event("shutdown")
async def shutdown_db_client():
    app.mongodb_client.close()
