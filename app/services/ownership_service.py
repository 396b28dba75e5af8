from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config.settings import settings
from app.db.models import Application, User
from app.schemas.chat_schemas import AssignmentView
from app.services.actor import Actor
from app.utils.errors import AuthorizationError, NotFoundError
from app.utils.logging import get_logger
from app.utils.string_utils import to_id_or_not_found

logger = get_logger()


def staff_display_name(user: Optional[User]) -> str:
    """First and last name of a staff member, or the office name when both are blank."""
    if user is None:
        return settings.STAFF_FALLBACK_NAME
    name = f"{user.first_name or ''} {user.last_name or ''}".strip()
    return name or settings.STAFF_FALLBACK_NAME


class OwnershipService:
    """Authorizes case access and performs first-touch assignment"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def load_case(self, case_id: str) -> Application:
        """Fetch a case with applicant and owner loaded, or raise NotFoundError"""
        result = await self.db.execute(
            select(Application)
            .options(
                selectinload(Application.applicant),
                selectinload(Application.assigned_admin),
            )
            .where(
                Application.id
                == to_id_or_not_found(
                    case_id, "Application not found", "APPLICATION_NOT_FOUND"
                )
            )
            .execution_options(populate_existing=True)
        )
        case = result.scalar_one_or_none()
        if not case:
            raise NotFoundError("Application not found", "APPLICATION_NOT_FOUND")
        return case

    @staticmethod
    def ensure_participant(case: Application, actor: Actor) -> None:
        """Staff may reach every case; an applicant only their own."""
        if actor.is_applicant and case.user_id != actor.user_id:
            raise AuthorizationError(
                "You can only access your own application", "NOT_OWN_APPLICATION"
            )

    async def claim_if_unassigned(self, case: Application, actor: Actor) -> bool:
        """
        Atomically make ``actor`` the owner of ``case`` if nobody owns it yet.

        A single conditional UPDATE decides the race: exactly one concurrent
        writer sees an affected row. The case instance is refreshed either
        way so callers observe the winning owner.
        """
        result = await self.db.execute(
            update(Application)
            .where(
                Application.id == case.id,
                Application.assigned_admin_id.is_(None),
            )
            .values(assigned_admin_id=actor.user_id)
            .execution_options(synchronize_session=False)
        )
        won = result.rowcount == 1

        await self.db.refresh(
            case, attribute_names=["assigned_admin_id", "assigned_admin", "updated_at"]
        )

        if won:
            logger.info(f"Application {case.id} assigned to admin {actor.user_id}")
        else:
            logger.info(
                f"Admin {actor.user_id} lost claim on application {case.id} "
                f"to {case.assigned_admin_id}"
            )
        return won

    def _reject_if_other_owner(self, case: Application, actor: Actor) -> None:
        if case.assigned_admin_id and case.assigned_admin_id != actor.user_id:
            owner_name = staff_display_name(case.assigned_admin)
            raise AuthorizationError(
                f"This applicant is in communication with {owner_name}",
                "ASSIGNED_TO_OTHER_STAFF",
                meta={
                    "assigned_admin_id": case.assigned_admin_id,
                    "assigned_admin_name": owner_name,
                },
            )

    async def resolve_for_edit(self, case: Application, actor: Actor) -> None:
        """
        Gate a staff edit of the case record. The first staff editor of an
        unowned case becomes its owner, superadmins included; only a regular
        admin is turned away from a case someone else owns.
        """
        self.ensure_participant(case, actor)
        if not actor.is_staff:
            return

        if case.assigned_admin_id is None:
            await self.claim_if_unassigned(case, actor)
        if not actor.is_superadmin:
            self._reject_if_other_owner(case, actor)

    async def resolve_for_send(self, case: Application, actor: Actor) -> None:
        """Gate a chat message; a regular admin may claim here."""
        self.ensure_participant(case, actor)
        if actor.is_applicant or actor.is_superadmin:
            return

        if case.assigned_admin_id is None:
            await self.claim_if_unassigned(case, actor)
        self._reject_if_other_owner(case, actor)

    async def resolve_for_view(
        self, case: Application, actor: Actor
    ) -> AssignmentView:
        """Gate a thread read. Viewing another admin's case succeeds read-only."""
        self.ensure_participant(case, actor)

        if actor.is_staff and not actor.is_superadmin and case.assigned_admin_id is None:
            await self.claim_if_unassigned(case, actor)

        return self.assignment_view(case, actor)

    @staticmethod
    def assignment_view(case: Application, actor: Actor) -> AssignmentView:
        owner_name = (
            staff_display_name(case.assigned_admin) if case.assigned_admin_id else None
        )
        assigned_to_other = bool(
            actor.is_staff
            and not actor.is_superadmin
            and case.assigned_admin_id
            and case.assigned_admin_id != actor.user_id
        )
        return AssignmentView(
            assigned_admin_id=case.assigned_admin_id,
            assigned_admin_name=owner_name,
            assigned_to_other=assigned_to_other,
        )
