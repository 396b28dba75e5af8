from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends
from pydantic import ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.db.models import (
    Application,
    ApplicationStatus,
    NotificationType,
    User,
    APPLICATION_STATUS_LABELS,
)
from app.db.session import get_async_session
from app.schemas.case_schemas import (
    CaseDetail,
    CaseFieldUpdate,
    CaseListFilters,
    CaseSummary,
)
from app.services.actor import Actor
from app.services.audit_service import AuditService
from app.services.email_service import EmailService
from app.services.notification_service import NotificationService
from app.services.ownership_service import OwnershipService, staff_display_name
from app.utils.datetime_utils import end_of_day, naive_utc_now, start_of_day
from app.utils.errors import AuthorizationError, InputValidationError, NotFoundError
from app.utils.logging import get_logger

logger = get_logger()

FIELD_LABELS = {
    "education_type": "Education Type",
    "surname": "Surname",
    "given_name": "Given Name",
    "gender": "Gender",
    "citizenship": "Citizenship",
    "card_number": "Passport Number",
    "date_of_birth": "Date of Birth",
    "date_of_issue": "Date of Issue",
    "date_of_expiry": "Date of Expiry",
    "personal_number": "Personal Number (JSHIR)",
    "place_of_birth": "Place of Birth",
    "passport_image_path": "Passport Image",
    "attestat_pdf_path": "Attestat / Diploma",
    "language_cert_type": "Language Certificate Type",
    "language_cert_pdf_path": "Language Certificate PDF",
    "language_cert_score": "Language Certificate Score",
    "language_cert_date": "Language Certificate Date",
    "social_registry": "Social Registry",
    "social_registry_pdf_path": "Social Registry PDF",
    "status": "Application Status",
    "completion_percentage": "Completion Percentage",
}

FORM_FIELDS = frozenset(FIELD_LABELS) - {"status", "completion_percentage"}
APPLICANT_EDITABLE_FIELDS = FORM_FIELDS | {"completion_percentage"}
STAFF_EDITABLE_FIELDS = APPLICANT_EDITABLE_FIELDS | {"status"}

# Progress bookkeeping, not something the applicant needs to hear about
SILENT_FIELDS = frozenset({"completion_percentage"})

APPLICANT_UPDATE_MESSAGE = "Applicant has updated their application"
EMPTY_VALUE = "(empty)"

# Documents staff can mark verified or invalid, with their display names
VERIFIABLE_DOCUMENTS = {
    "language_cert": "Language Certificate",
    "sat": "SAT Certificate",
    "cefr": "CEFR Certificate",
    "attestat": "Attestat / Diploma",
}
VERIFICATION_FLAGS = {
    f"{document}_{outcome}": (document, outcome)
    for document in VERIFIABLE_DOCUMENTS
    for outcome in ("verified", "invalid")
}

# Accept both camelCase and snake_case request keys
_FIELD_BY_KEY = {
    **{name: name for name in CaseFieldUpdate.model_fields},
    **{to_camel(name): name for name in CaseFieldUpdate.model_fields},
}


def _column_value(value: Any) -> Any:
    """Form enums live in plain string columns; status keeps its enum type."""
    if isinstance(value, Enum) and not isinstance(value, ApplicationStatus):
        return value.value
    return value


def _display_value(name: str, value: Any) -> str:
    if value is None or value == "":
        return EMPTY_VALUE
    if name == "status":
        return APPLICATION_STATUS_LABELS.get(value, str(value))
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _applicant_name(detail: CaseDetail) -> str:
    return f"{detail.given_name or ''} {detail.surname or ''}".strip() or "Applicant"


def _audit_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


class CaseService:
    """Case registry: reads, filtered listing, role-aware partial updates and document review"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.ownership = OwnershipService(db_session)
        self.notifications = NotificationService(db_session)
        self.audit = AuditService(db_session)
        self.email = EmailService()

    # ========== READS ==========

    async def get_case(self, case_id: str, actor: Actor) -> CaseDetail:
        case = await self.ownership.load_case(case_id)
        self.ownership.ensure_participant(case, actor)
        return self.to_detail(case)

    async def get_own_case(self, actor: Actor) -> CaseDetail:
        """The applicant's single case"""
        if not actor.is_applicant:
            raise AuthorizationError("Applicant access required", "APPLICANT_ONLY")

        result = await self.db.execute(
            select(Application)
            .options(
                selectinload(Application.applicant),
                selectinload(Application.assigned_admin),
            )
            .where(Application.user_id == actor.user_id)
            .execution_options(populate_existing=True)
        )
        case = result.scalar_one_or_none()
        if not case:
            raise NotFoundError("Application not found", "APPLICATION_NOT_FOUND")
        return self.to_detail(case)

    async def list_cases(
        self, actor: Actor, filters: CaseListFilters
    ) -> Tuple[List[CaseSummary], int]:
        """Filtered page of cases, most recently updated first, plus the total"""
        if not actor.is_staff:
            raise AuthorizationError("Staff access required", "STAFF_ONLY")

        conditions = self._build_filters(actor, filters)

        total = await self.db.scalar(
            select(func.count(Application.id))
            .join(User, Application.user_id == User.id)
            .where(*conditions)
        )

        result = await self.db.execute(
            select(Application)
            .join(User, Application.user_id == User.id)
            .options(
                selectinload(Application.applicant),
                selectinload(Application.assigned_admin),
            )
            .where(*conditions)
            .order_by(Application.updated_at.desc(), Application.id)
            .offset((filters.page - 1) * filters.per_page)
            .limit(filters.per_page)
            .execution_options(populate_existing=True)
        )
        items = [self.to_summary(case) for case in result.scalars().all()]
        return items, total or 0

    def _build_filters(self, actor: Actor, filters: CaseListFilters) -> list:
        conditions = []
        if filters.for_me:
            conditions.append(Application.assigned_admin_id == actor.user_id)
        if filters.status:
            conditions.append(Application.status == filters.status)
        if filters.education_type:
            conditions.append(
                Application.education_type == filters.education_type.value
            )
        if filters.date_from:
            conditions.append(Application.created_at >= start_of_day(filters.date_from))
        if filters.date_to:
            conditions.append(Application.created_at <= end_of_day(filters.date_to))
        if filters.search and filters.search.strip():
            term = filters.search.strip()
            conditions.append(
                or_(
                    User.email.icontains(term, autoescape=True),
                    Application.surname.icontains(term, autoescape=True),
                    Application.given_name.icontains(term, autoescape=True),
                )
            )
        return conditions

    # ========== WRITES ==========

    async def create_case(self, applicant_id: str) -> Application:
        """Create the applicant's case unless it already exists"""
        existing = await self._find_by_applicant(applicant_id)
        if existing:
            return existing

        case = Application(user_id=applicant_id)
        self.db.add(case)
        try:
            await self.db.commit()
        except IntegrityError:
            # Created concurrently by another registration request
            await self.db.rollback()
            return await self._find_by_applicant(applicant_id)

        logger.info(f"Created application {case.id} for applicant {applicant_id}")
        return case

    async def _find_by_applicant(self, applicant_id: str) -> Optional[Application]:
        result = await self.db.execute(
            select(Application).where(Application.user_id == applicant_id)
        )
        return result.scalar_one_or_none()

    async def update_case(
        self, case_id: str, actor: Actor, fields: Dict[str, Any]
    ) -> CaseDetail:
        """
        Apply a partial update to a case.

        Applicants may edit the form of their own case; every active staff
        member hears about it. Staff may also set the status. The first staff
        editor of an unowned case claims it; a regular admin cannot edit a
        case another admin owns. Staff edits notify the applicant once, are
        written to the audit log when something changed and, when the status
        moves, trigger an email.
        """
        changes = self._validate_fields(actor, fields)

        case = await self.ownership.load_case(case_id)
        await self.ownership.resolve_for_edit(case, actor)

        diff: Dict[str, Tuple[Any, Any]] = {}
        for name, new_value in changes.items():
            old_value = getattr(case, name)
            new_value = _column_value(new_value)
            if old_value != new_value:
                diff[name] = (old_value, new_value)
            setattr(case, name, new_value)
        case.updated_at = naive_utc_now()

        if actor.is_staff:
            await self._notify_applicant_of_staff_edit(case, diff)
        else:
            await self.notifications.notify_staff_broadcast(
                case.id, APPLICANT_UPDATE_MESSAGE, NotificationType.APPLICANT_UPDATE
            )

        await self.db.commit()
        # Snapshot before the audit write; its rollback would expire the case
        detail = self.to_detail(case)

        if not actor.is_staff:
            return detail

        if "status" in diff:
            logger.info(
                f"Application {case.id} status {diff['status'][0].value} -> "
                f"{diff['status'][1].value} by {actor.user_id}"
            )

        if diff:
            await self._record_edit(detail.id, actor, "edit_application", diff)
        if "status" in diff:
            self._send_status_email(detail)

        return detail

    async def verify_document(
        self, case_id: str, actor: Actor, flag: str, value: bool
    ) -> CaseDetail:
        """
        Set one document review flag (``attestat_verified``, ``sat_invalid``...).

        Ownership works as for any staff edit. Raising a flag emails the
        applicant the outcome; clearing one is silent.
        """
        if not actor.is_staff:
            raise AuthorizationError("Staff access required", "STAFF_ONLY")
        if flag not in VERIFICATION_FLAGS:
            raise InputValidationError(
                "Invalid verification field",
                "INVALID_VERIFICATION_FIELD",
                errors=[
                    {
                        "field": "field",
                        "message": f"Must be one of: {', '.join(VERIFICATION_FLAGS)}",
                    }
                ],
            )

        case = await self.ownership.load_case(case_id)
        await self.ownership.resolve_for_edit(case, actor)

        old_value = getattr(case, flag)
        setattr(case, flag, value)
        case.updated_at = naive_utc_now()
        await self.db.commit()
        detail = self.to_detail(case)

        if old_value == value:
            return detail

        logger.info(f"Application {case.id} {flag} set to {value} by {actor.user_id}")
        await self._record_edit(
            detail.id, actor, "verify_document", {flag: (old_value, value)}
        )

        if value and detail.applicant_email:
            document, outcome = VERIFICATION_FLAGS[flag]
            self.email.send_document_verification(
                detail.applicant_email,
                _applicant_name(detail),
                VERIFIABLE_DOCUMENTS[document],
                outcome,
            )

        return detail

    def _validate_fields(self, actor: Actor, fields: Dict[str, Any]) -> Dict[str, Any]:
        if not fields:
            raise InputValidationError("No valid fields to update", "NO_FIELDS")

        allowed = STAFF_EDITABLE_FIELDS if actor.is_staff else APPLICANT_EDITABLE_FIELDS
        normalized: Dict[str, Any] = {}
        rejected = []
        for key, value in fields.items():
            name = _FIELD_BY_KEY.get(key)
            if name is None or name not in allowed:
                rejected.append({"field": key, "message": "Field is not editable"})
            else:
                normalized[name] = value

        if rejected:
            raise InputValidationError(
                "Request contains fields that cannot be updated",
                "FIELD_NOT_ALLOWED",
                errors=rejected,
            )

        try:
            validated = CaseFieldUpdate.model_validate(normalized)
        except ValidationError as e:
            raise InputValidationError(
                "Invalid field values",
                errors=[
                    {
                        "field": ".".join(str(part) for part in error["loc"]) or "body",
                        "message": error["msg"],
                        "type": error["type"],
                    }
                    for error in e.errors()
                ],
            )

        return {name: getattr(validated, name) for name in normalized}

    async def _notify_applicant_of_staff_edit(
        self, case: Application, diff: Dict[str, Tuple[Any, Any]]
    ) -> None:
        changed_fields = {
            name: {
                "old_value": _display_value(name, old),
                "new_value": _display_value(name, new),
                "label": FIELD_LABELS.get(name, name),
            }
            for name, (old, new) in diff.items()
            if name not in SILENT_FIELDS
        }
        if not changed_fields:
            return

        if "status" in diff:
            label = APPLICATION_STATUS_LABELS[case.status]
            await self.notifications.notify(
                [case.user_id],
                case.id,
                f"Your application status has been updated to: {label}",
                NotificationType.STATUS_CHANGE,
                changed_fields,
            )
            return

        labels = ", ".join(entry["label"] for entry in changed_fields.values())
        await self.notifications.notify(
            [case.user_id],
            case.id,
            f"{len(changed_fields)} field(s) updated in your application: {labels}",
            NotificationType.FIELD_CHANGE,
            changed_fields,
        )

    async def _record_edit(
        self,
        case_id: str,
        actor: Actor,
        action: str,
        diff: Dict[str, Tuple[Any, Any]],
    ) -> None:
        details = {
            name: {"old": _audit_value(old), "new": _audit_value(new)}
            for name, (old, new) in diff.items()
        }
        try:
            await self.audit.record(actor.user_id, case_id, action, details)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Failed to write audit entry for application {case_id}: {str(e)}"
            )

    def _send_status_email(self, detail: CaseDetail) -> None:
        if not detail.applicant_email:
            return
        self.email.send_status_update(
            detail.applicant_email, _applicant_name(detail), detail.status
        )

    # ========== TRANSFORMS ==========

    @staticmethod
    def to_summary(case: Application) -> CaseSummary:
        return CaseSummary(**CaseService._summary_fields(case))

    @staticmethod
    def to_detail(case: Application) -> CaseDetail:
        return CaseDetail(
            **CaseService._summary_fields(case),
            gender=case.gender,
            citizenship=case.citizenship,
            card_number=case.card_number,
            date_of_birth=case.date_of_birth,
            date_of_issue=case.date_of_issue,
            date_of_expiry=case.date_of_expiry,
            personal_number=case.personal_number,
            place_of_birth=case.place_of_birth,
            passport_image_path=case.passport_image_path,
            attestat_pdf_path=case.attestat_pdf_path,
            language_cert_type=case.language_cert_type,
            language_cert_pdf_path=case.language_cert_pdf_path,
            language_cert_score=case.language_cert_score,
            language_cert_date=case.language_cert_date,
            social_registry=case.social_registry,
            social_registry_pdf_path=case.social_registry_pdf_path,
            **{flag: getattr(case, flag) for flag in VERIFICATION_FLAGS},
        )

    @staticmethod
    def _summary_fields(case: Application) -> Dict[str, Any]:
        owner = case.assigned_admin if case.assigned_admin_id else None
        return {
            "id": case.id,
            "user_id": case.user_id,
            "applicant_email": case.applicant.email if case.applicant else None,
            "status": case.status,
            "status_label": APPLICATION_STATUS_LABELS[case.status],
            "education_type": case.education_type,
            "surname": case.surname,
            "given_name": case.given_name,
            "completion_percentage": case.completion_percentage,
            "assigned_admin_id": case.assigned_admin_id,
            "assigned_admin_email": owner.email if owner else None,
            "assigned_admin_name": staff_display_name(owner) if owner else None,
            "created_at": case.created_at,
            "updated_at": case.updated_at,
        }


def get_case_service(
    db_session: AsyncSession = Depends(get_async_session),
) -> CaseService:
    """Dependency function to get CaseService instance"""
    return CaseService(db_session)
