from typing import Optional
from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class StoredFile(BaseModel):
    """Result of an upload; ``file_path`` goes into a case field or chat message"""

    file_path: str = Field(..., description="Object path in the storage bucket")
    file_name: str = Field(..., description="Original file name")
    size: int = Field(..., description="Size of the uploaded file in bytes")
    content_type: Optional[str] = Field(None, description="MIME type of the file")
