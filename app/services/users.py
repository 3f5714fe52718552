from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pymongo.errors import DuplicateKeyError
from fastapi import HTTPException
from app.schemas.user import UserCreate
from app.services.tax_report import object_id
import logging

logger = logging.getLogger(__name__)

class UserService:
    """Reads and provisions portal users; credentials live with the identity provider"""

    def __init__(self, db):
        self.db = db

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        oid = object_id(user_id)
        if oid is None:
            return None
        user = await self.db.users.find_one({"_id": oid})
        if user:
            user["id"] = str(user.pop("_id"))
        return user

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        user = await self.db.users.find_one({"email": email})
        if user:
            user["id"] = str(user.pop("_id"))
        return user

    async def create_user(self, user_create: UserCreate) -> Dict[str, Any]:
        user_dict = user_create.model_dump()
        user_dict.update({
            "role": user_create.role.value,
            "is_active": True,
            "created_at": datetime.now(timezone.utc),
        })
        try:
            result = await self.db.users.insert_one(user_dict)
        except DuplicateKeyError:
            raise HTTPException(status_code=409, detail="A user with this email already exists")

        user_dict["id"] = str(result.inserted_id)
        user_dict.pop("_id", None)
        logger.info(f"Created {user_dict['role']} user {user_dict['id']}")
        return user_dict

    async def touch_last_login(self, user_id: str) -> None:
        await self.db.users.update_one(
            {"_id": object_id(user_id)},
            {"$set": {"last_login": datetime.now(timezone.utc)}}
        )
