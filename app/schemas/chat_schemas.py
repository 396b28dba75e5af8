from datetime import datetime
from typing import Dict, List, Optional
from pydantic import Field

from app.db.models import UserRole
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class SendMessageRequest(BaseModel):
    message: Optional[str] = Field(None, description="Message body")
    file_path: Optional[str] = Field(None, description="Stored attachment path")
    file_name: Optional[str] = Field(None, description="Original attachment name")


class ChatMessageItem(BaseModel):
    id: str = Field(..., description="Message ID")
    application_id: str = Field(..., description="Application ID")
    sender_id: str = Field(..., description="Sender user ID")
    sender_role: UserRole = Field(..., description="Sender role at send time")
    sender_email: Optional[str] = Field(None, description="Sender email")
    sender_name: Optional[str] = Field(None, description="Sender display name")
    message: Optional[str] = Field(None, description="Message body")
    file_path: Optional[str] = Field(None, description="Attachment path")
    file_name: Optional[str] = Field(None, description="Attachment name")
    is_read: bool = Field(..., description="Whether the recipient has read it")
    created_at: datetime = Field(..., description="Creation timestamp")


class AssignmentView(BaseModel):
    """Who owns a case, as seen by the caller."""

    assigned_admin_id: Optional[str] = Field(None, description="Owner user ID")
    assigned_admin_name: Optional[str] = Field(None, description="Owner display name")
    assigned_to_other: bool = Field(
        False, description="Owned by another regular admin; thread is read-only"
    )


class ThreadResponse(AssignmentView):
    messages: List[ChatMessageItem] = Field(
        default_factory=list, description="Messages, oldest first"
    )
    marked_read: int = Field(0, description="Messages flipped to read by this open")


class SendMessageResponse(AssignmentView):
    chat_message: ChatMessageItem = Field(..., description="The stored message")


class UnreadSummary(BaseModel):
    all_unread_map: Dict[str, int] = Field(
        default_factory=dict, description="Unread applicant messages per case in the All queue"
    )
    for_me_unread_map: Dict[str, int] = Field(
        default_factory=dict, description="Unread applicant messages per owned case"
    )
    total_unread_chats: int = Field(
        0, description="Distinct owned cases with unread applicant messages"
    )
