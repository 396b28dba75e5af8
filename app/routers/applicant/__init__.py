from fastapi import APIRouter

from .case import case_router

applicant_router = APIRouter()

# Include sub-routers
applicant_router.include_router(case_router, prefix="/case", tags=["Applicant - Application"])
