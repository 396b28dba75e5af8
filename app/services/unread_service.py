from typing import Dict

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Application, ChatMessage, UserRole
from app.db.session import get_async_session
from app.schemas.chat_schemas import UnreadSummary
from app.services.actor import Actor
from app.utils.errors import AuthorizationError

# Unread messages the staff side still has to look at
UNREAD_FROM_APPLICANT = (
    ChatMessage.sender_role == UserRole.APPLICANT,
    ChatMessage.is_read.is_(False),
)


class UnreadService:
    """Per-staff unread projections for the All and For Me queues"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_unread_summary(self, actor: Actor) -> UnreadSummary:
        """
        Superadmins see every case in both maps. A regular admin's All map
        covers unowned cases and the For Me map covers cases they own, so the
        two never share a key. The badge total counts owned cases only
        (every case for a superadmin).
        """
        if not actor.is_staff:
            raise AuthorizationError("Staff access required", "STAFF_ONLY")

        if actor.is_superadmin:
            all_map = await self._unread_map()
            return UnreadSummary(
                all_unread_map=all_map,
                for_me_unread_map=dict(all_map),
                total_unread_chats=len(all_map),
            )

        all_map = await self._unread_map(Application.assigned_admin_id.is_(None))
        for_me_map = await self._unread_map(
            Application.assigned_admin_id == actor.user_id
        )
        total = await self.db.scalar(
            select(func.count(ChatMessage.application_id.distinct()))
            .join(Application, Application.id == ChatMessage.application_id)
            .where(*UNREAD_FROM_APPLICANT)
            .where(Application.assigned_admin_id == actor.user_id)
        )
        return UnreadSummary(
            all_unread_map=all_map,
            for_me_unread_map=for_me_map,
            total_unread_chats=total or 0,
        )

    async def _unread_map(self, *case_filters) -> Dict[str, int]:
        result = await self.db.execute(
            select(ChatMessage.application_id, func.count(ChatMessage.id))
            .join(Application, Application.id == ChatMessage.application_id)
            .where(*UNREAD_FROM_APPLICANT)
            .where(*case_filters)
            .group_by(ChatMessage.application_id)
        )
        return {application_id: count for application_id, count in result.all()}


def get_unread_service(
    db_session: AsyncSession = Depends(get_async_session),
) -> UnreadService:
    """Dependency function to get UnreadService instance"""
    return UnreadService(db_session)
