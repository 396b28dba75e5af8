from fastapi import APIRouter, Depends, Request, Query

from app.middlewares.auth_middleware import get_current_actor
from app.schemas.notification_schemas import (
    MarkNotificationsReadRequest,
    NotificationSort,
    NotificationStats,
)
from app.services.actor import Actor
from app.services.notification_service import (
    NotificationService,
    get_notification_service,
)
from app.utils.responses import ResponseBuilder

notifications_router = APIRouter()


@notifications_router.get("")
async def list_notifications(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    notification_service: NotificationService = Depends(get_notification_service),
    page: int = Query(default=1, ge=1, description="Page number"),
    per_page: int = Query(
        default=20, ge=1, le=100, alias="perPage", description="Items per page"
    ),
    sort: NotificationSort = Query(
        default=NotificationSort.NEWEST, description="newest or oldest first"
    ),
):
    """
    Page of the caller's notifications ordered by last activity.

    A collapsed chat burst shows its count in the message text, e.g.
    "New chat messages from applicant (3)".
    """
    items, total, unread_count = await notification_service.list_notifications(
        actor, page, per_page, sort
    )

    return ResponseBuilder.paginated(
        request=request,
        data=items,
        page=page,
        per_page=per_page,
        total=total,
        message=f"Retrieved {len(items)} notifications",
        meta={"unread_count": unread_count},
    )


@notifications_router.put("/read")
async def mark_notifications_read(
    request: Request,
    payload: MarkNotificationsReadRequest,
    actor: Actor = Depends(get_current_actor),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """Mark one notification (``id``) or all of them (``all: true``) as read"""
    if payload.all:
        marked = await notification_service.mark_all_read(actor)
    else:
        await notification_service.mark_read(actor, payload.id)
        marked = 1

    unread_count = await notification_service.get_unread_count(actor)

    return ResponseBuilder.success(
        request=request,
        data=NotificationStats(unread_count=unread_count, marked_count=marked),
        message=f"Marked {marked} notification(s) as read",
    )
