from datetime import datetime
from typing import Any, Optional
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class AuditLogItem(BaseModel):
    id: str = Field(..., description="Audit entry ID")
    admin_id: str = Field(..., description="Acting staff user ID")
    admin_email: Optional[str] = Field(None, description="Acting staff email")
    application_id: Optional[str] = Field(None, description="Related application ID")
    action: str = Field(..., description="Action name, e.g. edit_application")
    details: Optional[Any] = Field(None, description="Decoded details payload")
    created_at: datetime = Field(..., description="Creation timestamp")
