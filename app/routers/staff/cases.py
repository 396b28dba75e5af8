from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Request, Path, Query, status

from app.db.models import ApplicationStatus, EducationType
from app.middlewares.auth_middleware import require_staff
from app.schemas.case_schemas import CaseListFilters, DocumentVerificationRequest
from app.services.actor import Actor
from app.services.case_service import CaseService, get_case_service
from app.utils.responses import ResponseBuilder

cases_router = APIRouter()


@cases_router.get(
    "",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="List applications",
    description="Staff case list with status, education type, text and date filters. Most recently updated first.",
)
async def list_cases(
    request: Request,
    actor: Actor = Depends(require_staff),
    case_service: CaseService = Depends(get_case_service),
    status_filter: Optional[ApplicationStatus] = Query(
        None, alias="status", description="Filter by status"
    ),
    education_type: Optional[EducationType] = Query(
        None, alias="educationType", description="Filter by education type"
    ),
    search: Optional[str] = Query(
        None, description="Substring of applicant email, surname or given name"
    ),
    date_from: Optional[date] = Query(
        None, alias="dateFrom", description="Created on or after (YYYY-MM-DD)"
    ),
    date_to: Optional[date] = Query(
        None, alias="dateTo", description="Created on or before (YYYY-MM-DD)"
    ),
    for_me: bool = Query(False, alias="forMe", description="Only my cases"),
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(20, ge=1, le=100, alias="perPage", description="Items per page"),
):
    """Filtered, paginated list of applications"""
    filters = CaseListFilters(
        status=status_filter,
        education_type=education_type,
        search=search,
        date_from=date_from,
        date_to=date_to,
        for_me=for_me,
        page=page,
        per_page=per_page,
    )
    items, total = await case_service.list_cases(actor, filters)

    return ResponseBuilder.paginated(
        request=request,
        data=items,
        page=page,
        per_page=per_page,
        total=total,
        message=f"Retrieved {len(items)} of {total} applications",
    )


@cases_router.post(
    "/{case_id}/verify",
    summary="Mark a document verified or invalid",
    description="Sets one of the <document>_verified / <document>_invalid flags for language_cert, sat, cefr or attestat. Raising a flag emails the applicant.",
)
async def verify_document(
    request: Request,
    payload: DocumentVerificationRequest,
    case_id: str = Path(..., description="Application ID"),
    actor: Actor = Depends(require_staff),
    case_service: CaseService = Depends(get_case_service),
):
    case = await case_service.verify_document(
        case_id, actor, payload.field, payload.value
    )

    return ResponseBuilder.success(
        request=request,
        data=case,
        message="Document review updated",
    )
