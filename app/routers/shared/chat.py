from fastapi import APIRouter, Depends, Request, Path, status

from app.middlewares.auth_middleware import get_current_actor
from app.schemas.chat_schemas import SendMessageRequest
from app.services.actor import Actor
from app.services.chat_service import ChatService, get_chat_service
from app.utils.responses import ResponseBuilder

chat_router = APIRouter()


@chat_router.get(
    "/{case_id}/messages",
    summary="Open a conversation",
    description="Returns the ordered message log and marks everything the caller did not send as read. A regular admin opening an unassigned application takes ownership of it.",
)
async def open_thread(
    request: Request,
    case_id: str = Path(..., description="Application ID"),
    actor: Actor = Depends(get_current_actor),
    chat_service: ChatService = Depends(get_chat_service),
):
    thread = await chat_service.open_thread(case_id, actor)

    return ResponseBuilder.success(
        request=request,
        data=thread,
        message=f"Retrieved {len(thread.messages)} messages",
    )


@chat_router.post(
    "/{case_id}/messages",
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    request: Request,
    payload: SendMessageRequest,
    case_id: str = Path(..., description="Application ID"),
    actor: Actor = Depends(get_current_actor),
    chat_service: ChatService = Depends(get_chat_service),
):
    """Post a text message and/or attachment to an application's conversation"""
    result = await chat_service.send_message(
        case_id,
        actor,
        body=payload.message,
        file_path=payload.file_path,
        file_name=payload.file_name,
    )

    return ResponseBuilder.created(request, data=result, message="Message sent")
