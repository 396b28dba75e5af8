from fastapi import APIRouter

from .cases import cases_router
from .chat import chat_router
from .audit_logs import audit_logs_router

staff_router = APIRouter()

# Include sub-routers
staff_router.include_router(cases_router, prefix="/cases", tags=["Staff - Applications"])
staff_router.include_router(chat_router, prefix="/chat", tags=["Staff - Chat"])
staff_router.include_router(
    audit_logs_router, prefix="/audit-logs", tags=["Staff - Audit Logs"]
)
