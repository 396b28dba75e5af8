import asyncio
import os
from io import BytesIO
from typing import Optional
from uuid import uuid4

from minio import Minio
from minio.error import S3Error
from fastapi import UploadFile, HTTPException

from app.config.settings import settings
from app.schemas.storage_schemas import StoredFile
from app.utils.errors import InputValidationError
from app.utils.logging import get_logger

logger = get_logger()

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

PDF = "application/pdf"
JPEG = "image/jpeg"
PNG = "image/png"

# Accepted content types per document slot; unknown slots accept anything
ALLOWED_CONTENT_TYPES = {
    "passport_image": [JPEG, PNG],
    "attestat_pdf": [PDF],
    "language_cert_pdf": [PDF],
    "sat_pdf": [PDF],
    "cefr_pdf": [PDF],
    "social_protection_pdf": [PDF],
    "social_registry_pdf": [PDF],
    "achievements_pdf": [PDF],
    "chat_file": [PDF, JPEG, PNG],
}


def validate_upload(doc_type: str, content_type: Optional[str], size: int) -> None:
    if size > MAX_UPLOAD_BYTES:
        raise InputValidationError("File size must be less than 10MB", "FILE_TOO_LARGE")

    allowed = ALLOWED_CONTENT_TYPES.get(doc_type)
    if allowed and content_type not in allowed:
        raise InputValidationError(
            f"Invalid file type. Allowed: {', '.join(allowed)}", "INVALID_FILE_TYPE"
        )


class MinIOService:
    """Service for MinIO object storage operations"""

    def __init__(self):
        self.client = Minio(
            endpoint=settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
        )
        self.bucket_name = settings.MINIO_BUCKET_NAME

    def _ensure_bucket_exists(self):
        """Ensure the bucket exists, create if it doesn't."""
        if not self.client.bucket_exists(self.bucket_name):
            self.client.make_bucket(self.bucket_name)

    async def store(self, file: UploadFile, doc_type: str, owner_id: str) -> StoredFile:
        """
        Store an uploaded document under the owner's prefix.

        Args:
            file: FastAPI UploadFile object
            doc_type: Document slot (passport_image, chat_file, ...)
            owner_id: User the file belongs to; used as the object prefix

        Returns:
            StoredFile with the object path to save on the case or message
        """
        if not file.filename:
            raise InputValidationError("File must have a filename", "FILE_NAME_REQUIRED")

        data = await file.read()
        validate_upload(doc_type, file.content_type, len(data))

        extension = os.path.splitext(file.filename)[1]
        object_name = f"{owner_id}/{doc_type}_{uuid4()}{extension}"

        # MinIO client is synchronous
        def _upload_sync():
            self._ensure_bucket_exists()
            return self.client.put_object(
                bucket_name=self.bucket_name,
                object_name=object_name,
                data=BytesIO(data),
                length=len(data),
                content_type=file.content_type or "application/octet-stream",
            )

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, _upload_sync)
        except S3Error as e:
            logger.error(f"Failed to upload {object_name} to MinIO: {str(e)}")
            raise HTTPException(
                status_code=500, detail=f"Failed to upload file to MinIO: {str(e)}"
            )

        logger.info(f"Stored {object_name} ({len(data)} bytes)")
        return StoredFile(
            file_path=object_name,
            file_name=file.filename,
            size=len(data),
            content_type=file.content_type,
        )


def get_minio_service() -> MinIOService:
    """Dependency to get MinIO service instance"""
    return MinIOService()
