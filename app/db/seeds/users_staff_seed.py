from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import User, UserRole
from app.utils.logging import get_logger

logger = get_logger()

DEFAULT_STAFF = [
    {
        "email": "admin@alxorazmiy.uz",
        "first_name": "Super",
        "last_name": "Admin",
        "role": UserRole.SUPERADMIN,
    },
    {
        "email": "reviewer@alxorazmiy.uz",
        "first_name": "Admissions",
        "last_name": "Reviewer",
        "role": UserRole.ADMIN,
    },
]


async def seed_users_staff(db_session: AsyncSession):
    """Create the default staff accounts, skipping any that already exist"""

    created = 0
    for entry in DEFAULT_STAFF:
        existing = await db_session.execute(
            select(User.id).where(User.email == entry["email"])
        )
        if existing.scalar_one_or_none():
            continue

        db_session.add(User(is_active=True, **entry))
        created += 1

    await db_session.commit()
    logger.info(f"Seeded {created} staff account(s)")
