from typing import List, Optional

from fastapi import Depends
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.db.models import Application, ChatMessage, User, UserRole
from app.db.session import get_async_session
from app.schemas.chat_schemas import (
    ChatMessageItem,
    SendMessageResponse,
    ThreadResponse,
)
from app.services.actor import Actor
from app.services.notification_service import NotificationService
from app.services.ownership_service import OwnershipService, staff_display_name
from app.utils.errors import InputValidationError
from app.utils.logging import get_logger

logger = get_logger()

APPLICANT_SUMMARY_LINE = "New chat message from applicant"
APPLICANT_BURST_LINE = "New chat messages from applicant"


def sender_display_name(user: Optional[User]) -> Optional[str]:
    if user is None:
        return None
    if user.role != UserRole.APPLICANT:
        return staff_display_name(user)
    name = f"{user.first_name or ''} {user.last_name or ''}".strip()
    return name or user.email


class MessageLog:
    """Append-only, per-case ordered chat log"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def append_message(
        self,
        case_id: str,
        sender: Actor,
        body: Optional[str] = None,
        file_path: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> ChatMessage:
        body = (body or "").strip() or None
        file_path = (file_path or "").strip() or None
        if body is None and file_path is None:
            raise InputValidationError(
                "Message or file is required",
                "EMPTY_MESSAGE",
                errors=[{"field": "message", "message": "Message or file is required"}],
            )

        chat_message = ChatMessage(
            application_id=case_id,
            sender_id=sender.user_id,
            sender_role=sender.role,
            message=body,
            file_path=file_path,
            file_name=file_name if file_path else None,
            is_read=False,
        )
        self.db.add(chat_message)
        await self.db.flush()
        return chat_message

    async def list_messages(self, case_id: str) -> List[ChatMessageItem]:
        """Full log of a case, oldest first"""
        result = await self.db.execute(
            select(ChatMessage)
            .options(selectinload(ChatMessage.sender))
            .where(ChatMessage.application_id == case_id)
            .order_by(ChatMessage.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return [self.to_item(message) for message in result.scalars().all()]

    async def mark_thread_read(self, case_id: str, reader_id: str) -> int:
        """Flip every unread message in the case not sent by ``reader_id``; never unsets"""
        result = await self.db.execute(
            update(ChatMessage)
            .where(
                ChatMessage.application_id == case_id,
                ChatMessage.sender_id != reader_id,
                ChatMessage.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def to_item(
        message: ChatMessage, sender: Optional[User] = None
    ) -> ChatMessageItem:
        sender = sender or message.sender
        return ChatMessageItem(
            id=message.id,
            application_id=message.application_id,
            sender_id=message.sender_id,
            sender_role=message.sender_role,
            sender_email=sender.email if sender else None,
            sender_name=sender_display_name(sender),
            message=message.message,
            file_path=message.file_path,
            file_name=message.file_name,
            is_read=message.is_read,
            created_at=message.created_at,
        )


class ChatService:
    """Compound chat operations: ownership gate, log write, notification, commit"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.ownership = OwnershipService(db_session)
        self.message_log = MessageLog(db_session)
        self.notifications = NotificationService(db_session)

    async def open_thread(self, case_id: str, actor: Actor) -> ThreadResponse:
        """
        Open a case's conversation.

        Access check, then first-touch claim for an unassigned case, then
        everything the caller did not send is marked read, then the ordered
        log is returned together with the assignment view. An admin opening
        another admin's case gets the log read-only (``assigned_to_other``).
        """
        case = await self.ownership.load_case(case_id)
        view = await self.ownership.resolve_for_view(case, actor)

        marked = await self.message_log.mark_thread_read(case.id, actor.user_id)
        messages = await self.message_log.list_messages(case.id)
        await self.db.commit()

        if marked:
            logger.info(
                f"User {actor.user_id} read {marked} message(s) on application {case.id}"
            )

        return ThreadResponse(
            **view.model_dump(), messages=messages, marked_read=marked
        )

    async def send_message(
        self,
        case_id: str,
        actor: Actor,
        body: Optional[str] = None,
        file_path: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> SendMessageResponse:
        """
        Post a message to a case.

        A regular admin claims an unassigned case here and is rejected with
        the owner's name when another admin holds it. The message and its
        notification commit together.
        """
        case = await self.ownership.load_case(case_id)
        await self.ownership.resolve_for_send(case, actor)

        chat_message = await self.message_log.append_message(
            case.id, actor, body, file_path, file_name
        )
        sender = await self.db.get(User, actor.user_id)

        await self._notify_counterpart(case, actor, sender)
        await self.db.commit()

        logger.info(
            f"Message {chat_message.id} posted to application {case.id} "
            f"by {actor.role.value} {actor.user_id}"
        )
        view = self.ownership.assignment_view(case, actor)
        return SendMessageResponse(
            **view.model_dump(),
            chat_message=self.message_log.to_item(chat_message, sender),
        )

    async def _notify_counterpart(
        self, case: Application, actor: Actor, sender: Optional[User]
    ) -> None:
        if actor.is_applicant:
            if case.assigned_admin_id:
                recipient_ids = [case.assigned_admin_id]
            else:
                recipient_ids = await self.notifications.active_staff_ids()
            await self.notifications.notify_chat_event(
                recipient_ids, case.id, APPLICANT_SUMMARY_LINE, APPLICANT_BURST_LINE
            )
            return

        staff_name = staff_display_name(sender)
        await self.notifications.notify_chat_event(
            [case.user_id],
            case.id,
            f"New message from {staff_name}",
            f"New messages from {staff_name}",
        )


def get_chat_service(
    db_session: AsyncSession = Depends(get_async_session),
) -> ChatService:
    """Dependency function to get ChatService instance"""
    return ChatService(db_session)
