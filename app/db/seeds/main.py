"""
Main seeding file that orchestrates all database seeding operations.

Staff accounts go first so demo cases can be reviewed straight away.
"""

from app.db.session import AsyncSessionLocal
from app.utils.logging import get_logger

from .users_staff_seed import seed_users_staff
from .users_applicants_seed import seed_users_applicants

logger = get_logger()


async def seed_all_data():
    """Seed all database tables in dependency order."""

    async with AsyncSessionLocal() as db_session:
        try:
            logger.info("Starting database seeding...")
            await seed_users_staff(db_session)
            await seed_users_applicants(db_session)
            logger.info("Database seeding completed successfully!")
            return True

        except Exception as e:
            logger.error(f"Database seeding failed: {str(e)}")
            await db_session.rollback()
            raise e
