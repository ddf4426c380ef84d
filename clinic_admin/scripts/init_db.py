"""
Initialize the database: create tables, seed roles and the first administrator.
Run with: python -m clinic_admin.scripts.init_db
"""

import asyncio
from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_admin.core.config import settings
from clinic_admin.core.permissions import RoleName
from clinic_admin.core.security import generate_remember_token
from clinic_admin.domain.users.models import User, utcnow
from clinic_admin.domain.users.repository import RoleRepository, UserRepository
from clinic_admin.infrastructure.database import AsyncSessionLocal, close_db, init_db


async def seed_admin(
    session: AsyncSession,
    email: str,
    password: Optional[str],
    name: str = "Administrator"
) -> Optional[User]:
    """Create the administrator account unless that email already exists"""
    users = UserRepository(session)
    if await users.get_by_email(email):
        logger.info(f"Administrator {email} already exists")
        return None

    if not password:
        logger.warning("SEED_ADMIN_PASSWORD is not set; skipping administrator account")
        return None

    admin_role = await RoleRepository(session).get_by_name(RoleName.ADMIN.value)
    if admin_role is None:
        raise RuntimeError("Roles must be seeded before the administrator")

    user = await users.create({
        "name": name,
        "email": email,
        "password": password,
        "role_id": admin_role.id,
        "email_verified_at": utcnow(),
        "remember_token": generate_remember_token()
    })
    logger.info(f"Created administrator {email}")
    return user


async def init() -> None:
    logger.info("Creating database tables and seeding roles...")
    await init_db()

    async with AsyncSessionLocal() as session:
        await seed_admin(
            session,
            email=settings.SEED_ADMIN_EMAIL,
            password=settings.SEED_ADMIN_PASSWORD,
            name=settings.SEED_ADMIN_NAME
        )

    await close_db()
    logger.info("Database initialized.")


if __name__ == "__main__":
    asyncio.run(init())
