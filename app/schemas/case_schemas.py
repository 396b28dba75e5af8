from datetime import date, datetime
from typing import Optional, Union
from pydantic import ConfigDict, Field, field_validator, model_validator

from app.db.models import ApplicationStatus, EducationType, LanguageCertType
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class CaseListFilters(BaseModel):
    """Filters for the staff case list"""

    status: Optional[ApplicationStatus] = Field(None, description="Filter by status")
    education_type: Optional[EducationType] = Field(
        None, description="Filter by education type"
    )
    search: Optional[str] = Field(
        None, description="Substring of applicant email, surname or given name"
    )
    date_from: Optional[date] = Field(None, description="Created on or after")
    date_to: Optional[date] = Field(None, description="Created on or before (inclusive)")
    for_me: bool = Field(False, description="Only cases owned by the caller")
    page: int = Field(1, ge=1, description="Page number")
    per_page: int = Field(20, ge=1, le=100, description="Items per page")


class CaseFieldUpdate(BaseModel):
    """
    Partial update of a case. Only keys present in the request are applied;
    which keys a caller may send depends on their role.
    """

    model_config = ConfigDict(extra="forbid")

    education_type: Optional[EducationType] = None
    surname: Optional[str] = Field(None, max_length=100)
    given_name: Optional[str] = Field(None, max_length=100)
    gender: Optional[str] = Field(None, max_length=20)
    citizenship: Optional[str] = Field(None, max_length=100)
    card_number: Optional[str] = Field(None, max_length=50)
    date_of_birth: Optional[date] = None
    date_of_issue: Optional[date] = None
    date_of_expiry: Optional[date] = None
    personal_number: Optional[str] = Field(None, max_length=50)
    place_of_birth: Optional[str] = Field(None, max_length=200)
    passport_image_path: Optional[str] = Field(None, max_length=500)
    attestat_pdf_path: Optional[str] = Field(None, max_length=500)
    language_cert_type: Optional[LanguageCertType] = None
    language_cert_pdf_path: Optional[str] = Field(None, max_length=500)
    language_cert_score: Optional[str] = Field(None, max_length=20)
    language_cert_date: Optional[date] = None
    social_registry: Optional[bool] = None
    social_registry_pdf_path: Optional[str] = Field(None, max_length=500)
    completion_percentage: Optional[int] = Field(None, ge=0, le=100)
    status: Optional[ApplicationStatus] = None

    @field_validator("language_cert_score", mode="before")
    @classmethod
    def score_as_text(cls, value: Union[str, int, float, None]):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="after")
    def required_columns_not_null(self):
        for name in ("social_registry", "completion_percentage", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class CaseSummary(BaseModel):
    id: str = Field(..., description="Application ID")
    user_id: str = Field(..., description="Applicant user ID")
    applicant_email: Optional[str] = Field(None, description="Applicant email")
    status: ApplicationStatus = Field(..., description="Lifecycle status")
    status_label: str = Field(..., description="Human-readable status")
    education_type: Optional[str] = Field(None, description="Education type")
    surname: Optional[str] = Field(None, description="Surname")
    given_name: Optional[str] = Field(None, description="Given name")
    completion_percentage: int = Field(0, description="Form completion, 0..100")
    assigned_admin_id: Optional[str] = Field(None, description="Owner user ID")
    assigned_admin_email: Optional[str] = Field(None, description="Owner email")
    assigned_admin_name: Optional[str] = Field(None, description="Owner display name")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class CaseDetail(CaseSummary):
    gender: Optional[str] = None
    citizenship: Optional[str] = None
    card_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    date_of_issue: Optional[date] = None
    date_of_expiry: Optional[date] = None
    personal_number: Optional[str] = None
    place_of_birth: Optional[str] = None
    passport_image_path: Optional[str] = None
    attestat_pdf_path: Optional[str] = None
    language_cert_type: Optional[str] = None
    language_cert_pdf_path: Optional[str] = None
    language_cert_score: Optional[str] = None
    language_cert_date: Optional[date] = None
    social_registry: bool = False
    social_registry_pdf_path: Optional[str] = None
    language_cert_verified: bool = False
    language_cert_invalid: bool = False
    sat_verified: bool = False
    sat_invalid: bool = False
    cefr_verified: bool = False
    cefr_invalid: bool = False
    attestat_verified: bool = False
    attestat_invalid: bool = False


class DocumentVerificationRequest(BaseModel):
    """Set one review flag, e.g. ``{"field": "attestat_verified", "value": true}``"""

    field: str = Field(..., description="Flag name, <document>_verified or <document>_invalid")
    value: bool = Field(..., description="New flag value")
