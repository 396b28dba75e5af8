from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import (
    Notification,
    NotificationType,
    User,
    STAFF_ROLES,
    UNREAD_CHAT_PREDICATE,
    new_id,
)
from app.db.session import get_async_session
from app.schemas.notification_schemas import NotificationItem, NotificationSort
from app.services.actor import Actor
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import DatabaseError, NotFoundError
from app.utils.logging import get_logger
from app.utils.string_utils import to_id_or_not_found

logger = get_logger()

# Dialects offering INSERT ... ON CONFLICT against a partial unique index
UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def display_message(notification: Notification) -> str:
    """Text shown in the bell menu; collapsed bursts carry their count."""
    if notification.count > 1:
        return f"{notification.message} ({notification.count})"
    return notification.message


class NotificationService:
    """Turns case and chat activity into per-recipient notifications"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ========== WRITE SIDE ==========

    async def notify_chat_event(
        self,
        recipient_ids: Iterable[str],
        case_id: str,
        summary_line: str,
        burst_line: str,
    ) -> None:
        """
        Record one chat event for each recipient, collapsing bursts.

        A recipient with no unread chat notification for the case gets a new
        row (count 1, ``summary_line``). Otherwise the existing unread row is
        bumped in the same statement: count + 1, ``burst_line`` and a fresh
        ``updated_at`` so it re-surfaces at the top of the feed.
        """
        recipient_ids = list(dict.fromkeys(recipient_ids))
        if not recipient_ids:
            return

        dialect = self.db.get_bind().dialect.name
        insert = UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise DatabaseError(
                f"Chat notifications need ON CONFLICT support, got dialect {dialect}",
                "UNSUPPORTED_DIALECT",
            )

        now = naive_utc_now()
        stmt = insert(Notification).values(
            [
                {
                    "id": new_id(),
                    "user_id": recipient_id,
                    "application_id": case_id,
                    "message": summary_line,
                    "notification_type": NotificationType.CHAT_MESSAGE,
                    "count": 1,
                    "is_read": False,
                    "created_at": now,
                    "updated_at": now,
                }
                for recipient_id in recipient_ids
            ]
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Notification.user_id, Notification.application_id],
            index_where=UNREAD_CHAT_PREDICATE,
            set_={
                "count": Notification.count + 1,
                "message": burst_line,
                "updated_at": now,
            },
        )
        await self.db.execute(stmt)
        logger.info(
            f"Chat notification recorded for {len(recipient_ids)} recipient(s) "
            f"on application {case_id}"
        )

    async def notify(
        self,
        recipient_ids: Iterable[str],
        case_id: Optional[str],
        message: str,
        notification_type: NotificationType = NotificationType.GENERAL,
        changed_fields: Optional[Dict[str, Any]] = None,
    ) -> List[Notification]:
        """Create plain (never collapsed) notifications"""
        notifications = [
            Notification(
                user_id=recipient_id,
                application_id=case_id,
                message=message,
                notification_type=notification_type,
                changed_fields=changed_fields,
                count=1,
                is_read=False,
            )
            for recipient_id in dict.fromkeys(recipient_ids)
        ]
        self.db.add_all(notifications)
        await self.db.flush()
        return notifications

    async def active_staff_ids(self) -> List[str]:
        result = await self.db.execute(
            select(User.id).where(User.role.in_(STAFF_ROLES), User.is_active.is_(True))
        )
        return list(result.scalars().all())

    async def notify_staff_broadcast(
        self,
        case_id: str,
        message: str,
        notification_type: NotificationType = NotificationType.GENERAL,
    ) -> List[Notification]:
        """Notify every active admin and superadmin"""
        staff_ids = await self.active_staff_ids()
        return await self.notify(staff_ids, case_id, message, notification_type)

    # ========== READ SIDE ==========

    async def list_notifications(
        self,
        actor: Actor,
        page: int = 1,
        per_page: int = 20,
        sort: NotificationSort = NotificationSort.NEWEST,
    ) -> Tuple[List[NotificationItem], int, int]:
        """Page of the caller's notifications plus total and unread counts"""
        order = (
            Notification.updated_at.asc()
            if sort == NotificationSort.OLDEST
            else Notification.updated_at.desc()
        )
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == actor.user_id)
            .order_by(order, Notification.id)
            .execution_options(populate_existing=True)
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        notifications = result.scalars().all()

        total = await self.db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == actor.user_id
            )
        )
        unread_count = await self.get_unread_count(actor)

        items = [self._to_item(notification) for notification in notifications]
        return items, total or 0, unread_count

    async def get_unread_count(self, actor: Actor) -> int:
        count = await self.db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == actor.user_id,
                Notification.is_read.is_(False),
            )
        )
        return count or 0

    async def mark_read(self, actor: Actor, notification_id: str) -> NotificationItem:
        """Mark one of the caller's notifications read; already-read rows stay read"""
        notification = await self._get_own(actor, notification_id)

        if not notification.is_read:
            # Keep updated_at: reading must not reorder the feed
            await self.db.execute(
                update(Notification)
                .where(
                    Notification.id == notification.id,
                    Notification.is_read.is_(False),
                )
                .values(is_read=True, updated_at=Notification.updated_at)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            notification = await self._get_own(actor, notification_id)

        return self._to_item(notification)

    async def mark_all_read(self, actor: Actor) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(
                Notification.user_id == actor.user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, updated_at=Notification.updated_at)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(
            f"Marked {result.rowcount} notification(s) read for user {actor.user_id}"
        )
        return result.rowcount

    async def _get_own(self, actor: Actor, notification_id: str) -> Notification:
        notification_id = to_id_or_not_found(
            notification_id, "Notification not found", "NOTIFICATION_NOT_FOUND"
        )
        result = await self.db.execute(
            select(Notification)
            .where(
                Notification.id == notification_id,
                Notification.user_id == actor.user_id,
            )
            .execution_options(populate_existing=True)
        )
        notification = result.scalar_one_or_none()
        if not notification:
            raise NotFoundError("Notification not found", "NOTIFICATION_NOT_FOUND")
        return notification

    @staticmethod
    def _to_item(notification: Notification) -> NotificationItem:
        return NotificationItem(
            id=notification.id,
            application_id=notification.application_id,
            message=display_message(notification),
            notification_type=notification.notification_type,
            count=notification.count,
            is_read=notification.is_read,
            changed_fields=notification.changed_fields,
            created_at=notification.created_at,
            updated_at=notification.updated_at,
        )


def get_notification_service(
    db_session: AsyncSession = Depends(get_async_session),
) -> NotificationService:
    """Dependency function to get NotificationService instance"""
    return NotificationService(db_session)
