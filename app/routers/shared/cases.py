from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request, Path

from app.middlewares.auth_middleware import get_current_actor
from app.services.actor import Actor
from app.services.case_service import CaseService, get_case_service
from app.utils.responses import ResponseBuilder

cases_router = APIRouter()


@cases_router.get("/{case_id}", summary="Application detail")
async def get_case(
    request: Request,
    case_id: str = Path(..., description="Application ID"),
    actor: Actor = Depends(get_current_actor),
    case_service: CaseService = Depends(get_case_service),
):
    """Staff may read any application; applicants only their own"""
    case = await case_service.get_case(case_id, actor)

    return ResponseBuilder.success(
        request=request,
        data=case,
        message="Application retrieved successfully",
    )


@cases_router.put(
    "/{case_id}",
    summary="Update application fields",
    description="Partial update. Applicants edit their form; staff may also change the status. The first staff member to edit an unassigned application takes ownership of it.",
)
async def update_case(
    request: Request,
    case_id: str = Path(..., description="Application ID"),
    fields: Dict[str, Any] = Body(..., description="Fields to change (camelCase or snake_case)"),
    actor: Actor = Depends(get_current_actor),
    case_service: CaseService = Depends(get_case_service),
):
    """Apply a partial update and fan out the resulting notifications"""
    case = await case_service.update_case(case_id, actor, fields)

    return ResponseBuilder.success(
        request=request,
        data=case,
        message="Application updated successfully",
    )
