from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List
from app.api.deps import get_current_user, get_pos_agent_service
from app.core.roles import require_role
from app.models.user import UserRole
from app.schemas.user import UserResponse
from app.schemas.pos_agent import POSAgentCreate, POSAgentResponse, TaxStatusResponse
from app.services.pos_agent import POSAgentService
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["POS Agents"])


@router.get(
    "/tax-status",
    response_model=TaxStatusResponse,
    description="Public check of whether a POS agent's bank has filed and paid for a period"
)
async def check_tax_status(
    identifier: str = Query(..., description="Agent phone number, TIN or email"),
    period: str = Query(..., description="Period in YYYY-MM format"),
    pos_agent_service: POSAgentService = Depends(get_pos_agent_service)
) -> TaxStatusResponse:
    try:
        status = await pos_agent_service.check_tax_status(identifier, period)
        return TaxStatusResponse(**status)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error checking tax status: {e}")
        raise HTTPException(status_code=500, detail="Failed to check tax status")


@router.post(
    "/",
    response_model=POSAgentResponse,
    status_code=201,
    description="Register a POS agent under the current bank"
)
@require_role(UserRole.BANK)
async def add_pos_agent(
    agent_data: POSAgentCreate,
    current_user: UserResponse = Depends(get_current_user),
    pos_agent_service: POSAgentService = Depends(get_pos_agent_service)
) -> POSAgentResponse:
    try:
        agent = await pos_agent_service.add_agent(current_user.id, agent_data)
        return POSAgentResponse(**agent)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error adding POS agent: {e}")
        raise HTTPException(status_code=500, detail="Failed to add POS agent")


@router.get(
    "/",
    response_model=List[POSAgentResponse],
    description="List the current bank's POS agents"
)
@require_role(UserRole.BANK)
async def list_pos_agents(
    current_user: UserResponse = Depends(get_current_user),
    pos_agent_service: POSAgentService = Depends(get_pos_agent_service)
) -> List[POSAgentResponse]:
    try:
        agents = await pos_agent_service.list_agents(current_user.id)
        return [POSAgentResponse(**agent) for agent in agents]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing POS agents: {e}")
        raise HTTPException(status_code=500, detail="Failed to list POS agents")
