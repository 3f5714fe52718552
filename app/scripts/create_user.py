#!/usr/bin/env python3
"""
Portal User Provisioning Script

Usage:
    python -m app.scripts.create_user

Creates a portal user (admin, bank, government) and prints an access token
for local development. In production users and tokens come from the
identity provider; only the user record is needed here.
"""

import asyncio
from datetime import timedelta

from motor.motor_asyncio import AsyncIOMotorClient
from pydantic import ValidationError
from app.core.config import settings
from app.core.security import create_access_token
from app.models.user import UserRole
from app.schemas.user import UserCreate
from app.services.users import UserService


async def create_user():
    """Create a user with a role"""

    client = AsyncIOMotorClient(settings.MONGODB_URL)
    user_service = UserService(client[settings.DATABASE_NAME])

    print("=" * 60)
    print("Portal User Creation")
    print("=" * 60)
    print()

    email = input("Email: ").strip()
    roles = ", ".join(role.value for role in UserRole)
    role = input(f"Role ({roles}): ").strip().lower()
    business_name = input("Business name (banks: bank name, optional): ").strip() or None

    try:
        user_create = UserCreate(email=email, role=role, business_name=business_name)
    except ValidationError as e:
        print(f"❌ Invalid input: {e}")
        client.close()
        return

    existing = await user_service.get_user_by_email(user_create.email)
    if existing:
        print(f"ℹ️  User '{email}' already exists with role '{existing['role']}'")
        user = existing
    else:
        user = await user_service.create_user(user_create)
        print()
        print("✅ User created successfully!")

    token = create_access_token({"sub": user["id"]}, expires_delta=timedelta(days=7))
    print(f"   ID:    {user['id']}")
    print(f"   Role:  {user['role']}")
    print(f"   Token: {token}")

    client.close()


async def list_users():
    """List users grouped by role"""

    client = AsyncIOMotorClient(settings.MONGODB_URL)
    db = client[settings.DATABASE_NAME]

    print()
    print("=" * 60)
    print("Portal Users")
    print("=" * 60)
    print()

    for role in UserRole:
        users = await db.users.find({"role": role.value}).to_list(length=None)
        print(f"{role.value} ({len(users)})")
        for user in users:
            print(f"   📧 {user['email']}  {user.get('business_name') or ''}")
        print()

    client.close()


async def main():
    """Main menu"""

    print()
    print("Options:")
    print("  1. Create a user")
    print("  2. List users")
    print("  3. Exit")
    print()

    choice = input("Select option (1-3): ").strip()

    if choice == "1":
        await create_user()
    elif choice == "2":
        await list_users()
    elif choice == "3":
        print("Goodbye!")
        return
    else:
        print("❌ Invalid option")
        return


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\n❌ Cancelled by user")
