"""
Seed script to create the first SUPER_ADMIN user.

SUPER_ADMIN accounts cannot be self-provisioned through the API. Run once,
after the identity provider account exists, with env set:
  SUPER_ADMIN_EMAIL=admin@yourplatform.com
  SUPER_ADMIN_EXTERNAL_ID=<subject of the identity provider account>

Creates:
- users: one APPROVED user with role SUPER_ADMIN and no school
- audit_logs: the AUTO_APPROVE_USER entry for that user
"""
import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schooladmin.auth.approval import create_user_with_approval
from schooladmin.auth.models import User
from schooladmin.core.config import settings
from schooladmin.core.enums import Role
from schooladmin.core.logging import configure_logging
from schooladmin.db.schema_check import ensure_schema
from schooladmin.db.session import AsyncSessionLocal, engine

logger = logging.getLogger(__name__)

DEFAULT_SUPER_ADMIN_FIRST_NAME = "Platform"
DEFAULT_SUPER_ADMIN_LAST_NAME = "Admin"


async def seed_super_admin(db: AsyncSession) -> None:
    email = settings.super_admin_email
    external_id = settings.super_admin_external_id
    if not email or not external_id:
        logger.warning("SUPER_ADMIN_EMAIL / SUPER_ADMIN_EXTERNAL_ID not set; skipping super admin.")
        return

    result = await db.execute(
        select(User).where((User.external_id == external_id) | (User.email == email))
    )
    existing = result.scalars().first()
    if existing:
        if existing.role != Role.SUPER_ADMIN.value:
            logger.error(
                "User %s already exists with role %s; not promoting it", email, existing.role
            )
        else:
            logger.info("SUPER_ADMIN user already exists: %s", email)
        return

    provisioned = await create_user_with_approval(
        db,
        external_id=external_id,
        email=email,
        role=Role.SUPER_ADMIN,
        first_name=DEFAULT_SUPER_ADMIN_FIRST_NAME,
        last_name=DEFAULT_SUPER_ADMIN_LAST_NAME,
    )
    logger.info("Created SUPER_ADMIN user %s (%s)", email, provisioned.user.id)


async def main() -> None:
    configure_logging()
    await ensure_schema(engine)
    async with AsyncSessionLocal() as db:
        try:
            await seed_super_admin(db)
        except Exception:
            await db.rollback()
            logger.exception("Super admin seed failed")
            raise


if __name__ == "__main__":
    asyncio.run(main())
