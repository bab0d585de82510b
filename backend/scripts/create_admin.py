#!/usr/bin/env python
"""Create the first admin account"""
import argparse
import asyncio
import os
import sys
import logging

from pydantic import ValidationError
from sqlalchemy import or_, select

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from carshop.core.database import AsyncSessionLocal, engine
from carshop.core.security import get_password_hash
from carshop.models.user import Role, User
from carshop.schemas.user import UserCreate

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("create_admin")


def build_admin(username: str, email: str, password: str) -> UserCreate:
    """Apply the registration rules to the admin account; raises ValidationError."""
    return UserCreate(username=username, email=email, password=password, role=Role.admin)


async def create_admin(username: str, email: str, password: str) -> bool:
    try:
        admin = build_admin(username, email, password)
    except ValidationError as e:
        for error in e.errors():
            logger.error(f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}")
        return False

    async with AsyncSessionLocal() as db:
        result = await db.execute(
            select(User.id).where(or_(User.username == admin.username, User.email == admin.email))
        )
        if result.first() is not None:
            logger.error(f"Username or email already taken: {admin.username} / {admin.email}")
            return False

        db.add(User(
            username=admin.username,
            email=admin.email,
            password_hash=get_password_hash(admin.password),
            role=admin.role,
        ))
        await db.commit()

    await engine.dispose()
    logger.info(f"Admin user created: {admin.username}")
    return True


def main():
    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("username")
    parser.add_argument("email")
    parser.add_argument("password")
    args = parser.parse_args()

    if not asyncio.run(create_admin(args.username, args.email, args.password)):
        sys.exit(1)


if __name__ == "__main__":
    main()
