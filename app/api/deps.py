from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from app.core.exceptions import AuthenticationError
from app.core.security import decode_access_token
from app.services.users import UserService
from app.services.tax_report import TaxReportService
from app.services.payment import PaymentService
from app.services.pos_agent import POSAgentService
from app.services.dashboard import DashboardService
from app.services.settlement import SettlementService
from app.schemas.user import UserResponse

# Tokens are issued by the external identity provider
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

def get_db():
    from app.main import app  # Local import to avoid circular dependency
    return app.mongodb

def get_user_service(db=Depends(get_db)) -> UserService:
    return UserService(db)

def get_tax_report_service(db=Depends(get_db)) -> TaxReportService:
    return TaxReportService(db)

def get_payment_service(db=Depends(get_db)) -> PaymentService:
    return PaymentService(db)

def get_pos_agent_service(db=Depends(get_db)) -> POSAgentService:
    return POSAgentService(db)

def get_dashboard_service(db=Depends(get_db)) -> DashboardService:
    return DashboardService(db)

def get_settlement_service(db=Depends(get_db)) -> SettlementService:
    return SettlementService(db)

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    user_service: UserService = Depends(get_user_service)
) -> UserResponse:
    payload = decode_access_token(token)

    user = await user_service.get_user_by_id(payload["sub"])
    if user is None or not user.get("is_active", True):
        raise AuthenticationError()

    return UserResponse(**user)
