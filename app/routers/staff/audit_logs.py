from fastapi import APIRouter, Depends, Request, Query

from app.middlewares.auth_middleware import require_superadmin
from app.services.actor import Actor
from app.services.audit_service import (
    AuditService,
    get_audit_service,
    DEFAULT_LOG_LIMIT,
)
from app.utils.responses import ResponseBuilder

audit_logs_router = APIRouter()


@audit_logs_router.get("", summary="Recent staff actions")
async def list_audit_logs(
    request: Request,
    _: Actor = Depends(require_superadmin),
    audit_service: AuditService = Depends(get_audit_service),
    limit: int = Query(
        default=DEFAULT_LOG_LIMIT, ge=1, le=1000, description="Maximum entries"
    ),
):
    """Most recent audit entries first (superadmin only)"""
    logs = await audit_service.list_logs(limit)

    return ResponseBuilder.success(
        request=request,
        data=logs,
        message=f"Retrieved {len(logs)} audit entries",
    )
