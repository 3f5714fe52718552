from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List
from app.api.deps import get_current_user, get_dashboard_service, get_settlement_service
from app.core.roles import require_role
from app.models.user import UserRole
from app.schemas.user import UserResponse
from app.schemas.dashboard import GovernmentOverview, SettlementSummary
from app.services.dashboard import DashboardService
from app.services.settlement import SettlementService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Government"])


@router.get(
    "/overview",
    response_model=GovernmentOverview,
    description="Tax revenue overview for the state government"
)
@require_role(UserRole.GOVERNMENT, UserRole.ADMIN)
async def get_overview(
    current_user: UserResponse = Depends(get_current_user),
    dashboard_service: DashboardService = Depends(get_dashboard_service)
) -> GovernmentOverview:
    try:
        overview = await dashboard_service.government_overview()
        return GovernmentOverview(**overview)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting government overview: {e}")
        raise HTTPException(status_code=500, detail="Failed to get overview")


@router.get(
    "/settlements",
    response_model=List[SettlementSummary],
    description="Settlements attributed to government, newest first"
)
@require_role(UserRole.GOVERNMENT, UserRole.ADMIN)
async def list_settlements(
    limit: int = Query(50, ge=1, le=200),
    skip: int = Query(0, ge=0),
    current_user: UserResponse = Depends(get_current_user),
    settlement_service: SettlementService = Depends(get_settlement_service)
) -> List[SettlementSummary]:
    try:
        settlements = await settlement_service.list_settlements(limit=limit, skip=skip)
        return [SettlementSummary(**settlement) for settlement in settlements]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing settlements: {e}")
        raise HTTPException(status_code=500, detail="Failed to list settlements")
