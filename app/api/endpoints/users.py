from fastapi import APIRouter, Depends
from app.api.deps import get_current_user, get_user_service
from app.schemas.user import UserResponse
from app.services.users import UserService

router = APIRouter(tags=["Users"])

@router.get("/me",
    response_model=UserResponse,
    description="Get current user information",
    responses={
        200: {"description": "Return current user details"},
        401: {"description": "Not authenticated"}
    })
async def read_user_me(
    current_user: UserResponse = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
) -> UserResponse:
    """
    Get details of the currently authenticated user.

    Requires a valid access token in the Authorization header. The role
    decides which dashboard the client shows (admin, bank, government,
    pos_agent).
    """
    await user_service.touch_last_login(current_user.id)
    return current_user
