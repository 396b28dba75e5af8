from fastapi import APIRouter

from .cases import cases_router
from .chat import chat_router
from .health import health_router
from .notifications import notifications_router
from .storage import storage_router

shared_router = APIRouter()

# Include sub-routers
shared_router.include_router(
    health_router, prefix="/health", tags=["Shared - Health Checks"]
)
shared_router.include_router(cases_router, prefix="/cases", tags=["Shared - Applications"])
shared_router.include_router(chat_router, prefix="/chat", tags=["Shared - Chat"])
shared_router.include_router(
    notifications_router, prefix="/notifications", tags=["Shared - Notifications"]
)
shared_router.include_router(storage_router, prefix="/storage", tags=["Shared - Storage"])
