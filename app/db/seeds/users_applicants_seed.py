from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import User, UserRole
from app.services.case_service import CaseService
from app.utils.logging import get_logger

logger = get_logger()

DEMO_APPLICANTS = [
    ("aziza.karimova@example.com", "Aziza", "Karimova"),
    ("timur.rashidov@example.com", "Timur", "Rashidov"),
]


async def seed_users_applicants(db_session: AsyncSession):
    """Create demo applicants together with their (empty) cases"""

    case_service = CaseService(db_session)
    for email, first_name, last_name in DEMO_APPLICANTS:
        result = await db_session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(
                email=email,
                first_name=first_name,
                last_name=last_name,
                role=UserRole.APPLICANT,
                is_active=True,
            )
            db_session.add(user)
            await db_session.flush()

        # Registration hook: one case per applicant
        await case_service.create_case(user.id)

    logger.info(f"Seeded {len(DEMO_APPLICANTS)} demo applicant(s)")
