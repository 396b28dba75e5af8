from fastapi import APIRouter, Depends, Request

from app.middlewares.auth_middleware import require_applicant
from app.services.actor import Actor
from app.services.case_service import CaseService, get_case_service
from app.utils.responses import ResponseBuilder

case_router = APIRouter()


@case_router.get("", summary="My application")
async def get_own_case(
    request: Request,
    actor: Actor = Depends(require_applicant),
    case_service: CaseService = Depends(get_case_service),
):
    """The signed-in applicant's application"""
    case = await case_service.get_own_case(actor)

    return ResponseBuilder.success(
        request=request,
        data=case,
        message="Application retrieved successfully",
    )
