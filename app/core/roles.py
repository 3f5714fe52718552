"""Role checks for portal endpoints"""

from functools import wraps
from fastapi import HTTPException, status
from app.core.exceptions import RoleRequiredError
from app.models.user import UserRole
from app.schemas.user import UserResponse


def require_role(*roles: UserRole):
    """Decorator to restrict an endpoint to users holding one of the given roles"""
    allowed = {role.value for role in roles}

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            # Find current_user in kwargs
            current_user = kwargs.get('current_user')
            if not current_user:
                # Try to find it in args (if passed positionally)
                for arg in args:
                    if isinstance(arg, UserResponse):
                        current_user = arg
                        break

            if not current_user:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Authentication required"
                )

            if current_user.role.value not in allowed:
                raise RoleRequiredError(sorted(allowed))

            return await func(*args, **kwargs)

        return wrapper

    return decorator
