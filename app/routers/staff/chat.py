from fastapi import APIRouter, Depends, Request

from app.middlewares.auth_middleware import require_staff
from app.services.actor import Actor
from app.services.unread_service import UnreadService, get_unread_service
from app.utils.responses import ResponseBuilder

chat_router = APIRouter()


@chat_router.get("/unread", summary="Unread applicant messages per queue")
async def get_unread_summary(
    request: Request,
    actor: Actor = Depends(require_staff),
    unread_service: UnreadService = Depends(get_unread_service),
):
    """
    Unread applicant messages keyed by application, for the All and For Me
    queues, plus the badge total of the caller's own cases.
    """
    summary = await unread_service.get_unread_summary(actor)

    return ResponseBuilder.success(
        request=request,
        data=summary,
        message=f"{summary.total_unread_chats} conversation(s) with unread messages",
    )
