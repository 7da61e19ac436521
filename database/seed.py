"""
Default data for a fresh database.

Ensures the admin account configured through ``ADMIN_*`` settings exists and
that there is at least one period to work with.
"""

import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy import select, func

from core.config import settings
from core.security import hash_password
from database.engine import AsyncSessionLocal, init_db, close_db
from database.models.periods import Period
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)

DEFAULT_PERIOD = {
    "period": "1",
    "start_date": datetime(2025, 4, 1, 8, 0, tzinfo=timezone.utc),
    "end_date": datetime(2025, 4, 30, 17, 0, tzinfo=timezone.utc),
    "is_current": True,
    "is_open": True,
}


async def ensure_admin(session) -> User | None:
    """Create or refresh the configured admin. Skipped when ADMIN_* is unset."""
    if not (settings.admin_email and settings.admin_password):
        logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin seed")
        return None

    result = await session.execute(select(User).where(User.email == settings.admin_email))
    admin = result.scalar_one_or_none()
    if admin is None:
        admin = User(email=settings.admin_email)
        session.add(admin)
        logger.info(f"Creating admin {settings.admin_email}")

    admin.name = settings.admin_name or "Admin"
    admin.password_hash = hash_password(settings.admin_password)
    admin.role = UserRole.ADMIN
    admin.is_active = True
    return admin


async def ensure_period(session) -> Period | None:
    """Create the first period when the table is empty."""
    count = await session.execute(select(func.count(Period.id)))
    if count.scalar():
        return None
    period = Period(**DEFAULT_PERIOD)
    session.add(period)
    logger.info("Creating default period")
    return period


async def seed_defaults() -> None:
    async with AsyncSessionLocal() as session:
        await ensure_admin(session)
        await ensure_period(session)
        await session.commit()


async def main() -> None:
    await init_db()
    try:
        await seed_defaults()
    finally:
        await close_db()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
