from typing import Annotated

from fastapi import APIRouter, Depends, UploadFile, File, Form, Request, status

from app.middlewares.auth_middleware import get_current_actor
from app.services.actor import Actor
from app.services.minio_service import MinIOService, get_minio_service
from app.utils.responses import ResponseBuilder

storage_router = APIRouter()


@storage_router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_file(
    request: Request,
    minio_service: Annotated[MinIOService, Depends(get_minio_service)],
    actor: Actor = Depends(get_current_actor),
    file: UploadFile = File(...),
    doc_type: str = Form(..., alias="docType"),
):
    """
    Upload a document or chat attachment

    - Max 10MB; content type checked against the document slot
    - Returns the object path to store on the application or message
    """
    stored = await minio_service.store(file, doc_type, actor.user_id)

    return ResponseBuilder.created(
        request, data=stored, message=f"File '{stored.file_name}' uploaded successfully"
    )
