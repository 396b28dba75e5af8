import json
from datetime import date, datetime
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.db.models import (
    AdminLog,
    Application,
    ApplicationStatus,
    EducationType,
    Notification,
    NotificationType,
)
from app.schemas.case_schemas import CaseListFilters
from app.services.audit_service import AuditService
from app.services.case_service import CaseService
from app.utils.errors import AuthorizationError, InputValidationError, NotFoundError


async def _notifications(db_session, user_id):
    result = await db_session.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _audit_entries(db_session):
    result = await db_session.execute(select(AdminLog))
    return list(result.scalars().all())


class TestCaseReads:
    """Test case lookups."""

    @pytest.mark.asyncio
    async def test_staff_reads_any_case(self, db_session, case, admin_a, as_actor):
        detail = await CaseService(db_session).get_case(case.id, as_actor(admin_a))

        assert detail.id == case.id
        assert detail.status == ApplicationStatus.SUBMITTED
        assert detail.status_label == "Submitted"
        assert detail.applicant_email == "aziza@example.com"
        assert detail.assigned_admin_id is None

    @pytest.mark.asyncio
    async def test_applicant_cannot_read_other_case(
        self, db_session, case, other_applicant, as_actor
    ):
        with pytest.raises(AuthorizationError):
            await CaseService(db_session).get_case(case.id, as_actor(other_applicant))

    @pytest.mark.asyncio
    async def test_get_own_case(self, db_session, case, applicant, as_actor):
        detail = await CaseService(db_session).get_own_case(as_actor(applicant))
        assert detail.id == case.id

    @pytest.mark.asyncio
    async def test_get_own_case_requires_applicant(self, db_session, admin_a, as_actor):
        with pytest.raises(AuthorizationError) as exc_info:
            await CaseService(db_session).get_own_case(as_actor(admin_a))
        assert exc_info.value.error_code == "APPLICANT_ONLY"

    @pytest.mark.asyncio
    async def test_get_own_case_missing(self, db_session, applicant, as_actor):
        with pytest.raises(NotFoundError):
            await CaseService(db_session).get_own_case(as_actor(applicant))


class TestCreateCase:
    """Test case creation at registration."""

    @pytest.mark.asyncio
    async def test_create_is_idempotent(self, db_session, applicant):
        service = CaseService(db_session)

        first = await service.create_case(applicant.id)
        second = await service.create_case(applicant.id)

        assert first.id == second.id
        assert first.status == ApplicationStatus.SUBMITTED
        assert first.completion_percentage == 0


class TestListCases:
    """Test the staff case list."""

    @pytest.mark.asyncio
    async def test_filters(self, db_session, case, other_case, admin_a, as_actor):
        other_case.status = ApplicationStatus.PENDING_REVIEW
        other_case.education_type = EducationType.PRESIDENTIAL_SCHOOL.value
        other_case.assigned_admin_id = admin_a.id
        await db_session.commit()
        service = CaseService(db_session)
        actor = as_actor(admin_a)

        items, total = await service.list_cases(actor, CaseListFilters())
        assert total == 2

        items, total = await service.list_cases(
            actor, CaseListFilters(status=ApplicationStatus.PENDING_REVIEW)
        )
        assert [item.id for item in items] == [other_case.id]

        items, _ = await service.list_cases(
            actor, CaseListFilters(education_type=EducationType.PRESIDENTIAL_SCHOOL)
        )
        assert [item.id for item in items] == [other_case.id]

        items, _ = await service.list_cases(actor, CaseListFilters(for_me=True))
        assert [item.id for item in items] == [other_case.id]
        assert items[0].assigned_admin_name == "Alisher Navoiy"

    @pytest.mark.asyncio
    async def test_search_matches_email_and_names(
        self, db_session, case, other_case, admin_a, as_actor
    ):
        service = CaseService(db_session)
        actor = as_actor(admin_a)

        items, _ = await service.list_cases(actor, CaseListFilters(search="TIMUR@"))
        assert [item.id for item in items] == [other_case.id]

        items, _ = await service.list_cases(actor, CaseListFilters(search="karim"))
        assert [item.id for item in items] == [case.id]

        items, total = await service.list_cases(actor, CaseListFilters(search="100%"))
        assert items == [] and total == 0

    @pytest.mark.asyncio
    async def test_date_range_is_inclusive(self, db_session, case, other_case, admin_a, as_actor):
        case.created_at = datetime(2025, 5, 10, 23, 30)
        other_case.created_at = datetime(2025, 5, 11, 0, 30)
        await db_session.commit()
        service = CaseService(db_session)

        items, _ = await service.list_cases(
            as_actor(admin_a),
            CaseListFilters(date_from=date(2025, 5, 10), date_to=date(2025, 5, 10)),
        )

        assert [item.id for item in items] == [case.id]

    @pytest.mark.asyncio
    async def test_paging(self, db_session, case, other_case, admin_a, as_actor):
        items, total = await CaseService(db_session).list_cases(
            as_actor(admin_a), CaseListFilters(page=2, per_page=1)
        )
        assert len(items) == 1
        assert total == 2

    @pytest.mark.asyncio
    async def test_applicants_cannot_list(self, db_session, applicant, as_actor):
        with pytest.raises(AuthorizationError):
            await CaseService(db_session).list_cases(as_actor(applicant), CaseListFilters())


class TestStaffUpdate:
    """Test staff edits: ownership, notification, audit and email."""

    @pytest.mark.asyncio
    async def test_status_change(
        self, db_session, case, applicant, admin_a, as_actor, queued_emails
    ):
        detail = await CaseService(db_session).update_case(
            case.id, as_actor(admin_a), {"status": "pending_review"}
        )

        assert detail.status == ApplicationStatus.PENDING_REVIEW
        assert detail.assigned_admin_id == admin_a.id

        notifications = await _notifications(db_session, applicant.id)
        assert len(notifications) == 1
        notification = notifications[0]
        assert notification.notification_type == NotificationType.STATUS_CHANGE
        assert notification.message == (
            "Your application status has been updated to: Pending Review"
        )
        assert notification.changed_fields == {
            "status": {
                "old_value": "Submitted",
                "new_value": "Pending Review",
                "label": "Application Status",
            }
        }

        entries = await _audit_entries(db_session)
        assert len(entries) == 1
        assert entries[0].admin_id == admin_a.id
        assert entries[0].action == "edit_application"
        assert json.loads(entries[0].details) == {
            "status": {"old": "submitted", "new": "pending_review"}
        }

        queued_emails.assert_called_once()
        _, to, subject, html = queued_emails.call_args.args
        assert to == "aziza@example.com"
        assert subject.endswith("Application status updated: Pending Review")
        assert "Aziza Karimova" in html

    @pytest.mark.asyncio
    async def test_field_change_notification(
        self, db_session, case, applicant, superadmin, as_actor, queued_emails
    ):
        await CaseService(db_session).update_case(
            case.id,
            as_actor(superadmin),
            {"surname": "Karimova-Rashidova", "socialRegistry": True, "gender": "female"},
        )

        notifications = await _notifications(db_session, applicant.id)
        assert len(notifications) == 1
        notification = notifications[0]
        assert notification.notification_type == NotificationType.FIELD_CHANGE
        assert notification.message.startswith("3 field(s) updated in your application:")
        assert notification.changed_fields["social_registry"] == {
            "old_value": "No",
            "new_value": "Yes",
            "label": "Social Registry",
        }
        assert notification.changed_fields["gender"]["old_value"] == "(empty)"
        queued_emails.assert_not_called()

    @pytest.mark.asyncio
    async def test_superadmin_edit_claims_unassigned_case(
        self, db_session, case, superadmin, as_actor
    ):
        detail = await CaseService(db_session).update_case(
            case.id, as_actor(superadmin), {"surname": "Karimova"}
        )

        assert detail.assigned_admin_id == superadmin.id
        owner = await db_session.scalar(
            select(Application.assigned_admin_id).where(Application.id == case.id)
        )
        assert owner == superadmin.id

    @pytest.mark.asyncio
    async def test_superadmin_edit_keeps_existing_owner(
        self, db_session, case, admin_a, superadmin, as_actor
    ):
        service = CaseService(db_session)
        await service.update_case(case.id, as_actor(admin_a), {"citizenship": "Uzbekistan"})

        detail = await service.update_case(
            case.id, as_actor(superadmin), {"surname": "Karimova-Navoiy"}
        )

        assert detail.surname == "Karimova-Navoiy"
        assert detail.assigned_admin_id == admin_a.id

    @pytest.mark.asyncio
    async def test_noop_edit_writes_no_audit_entry(
        self, db_session, case, applicant, admin_a, as_actor
    ):
        detail = await CaseService(db_session).update_case(
            case.id, as_actor(admin_a), {"surname": "Karimova"}
        )

        assert detail.assigned_admin_id == admin_a.id
        assert await _audit_entries(db_session) == []
        assert await _notifications(db_session, applicant.id) == []

    @pytest.mark.asyncio
    async def test_completion_only_is_silent(
        self, db_session, case, applicant, admin_a, as_actor
    ):
        detail = await CaseService(db_session).update_case(
            case.id, as_actor(admin_a), {"completionPercentage": 40}
        )

        assert detail.completion_percentage == 40
        assert await _notifications(db_session, applicant.id) == []
        assert len(await _audit_entries(db_session)) == 1

    @pytest.mark.asyncio
    async def test_unchanged_status_sends_no_email(
        self, db_session, case, applicant, admin_a, as_actor, queued_emails
    ):
        await CaseService(db_session).update_case(
            case.id, as_actor(admin_a), {"status": "submitted"}
        )

        queued_emails.assert_not_called()
        assert await _notifications(db_session, applicant.id) == []

    @pytest.mark.asyncio
    async def test_other_admin_cannot_edit(
        self, db_session, case, admin_a, admin_b, as_actor
    ):
        service = CaseService(db_session)
        await service.update_case(case.id, as_actor(admin_a), {"surname": "A"})

        with pytest.raises(AuthorizationError) as exc_info:
            await service.update_case(case.id, as_actor(admin_b), {"surname": "B"})

        assert exc_info.value.error_code == "ASSIGNED_TO_OTHER_STAFF"
        surname = await db_session.scalar(
            select(Application.surname).where(Application.id == case.id)
        )
        assert surname == "A"

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_block_edit(
        self, db_session, case, admin_a, as_actor, queued_emails
    ):
        with patch.object(
            AuditService, "record", side_effect=SQLAlchemyError("audit table gone")
        ):
            detail = await CaseService(db_session).update_case(
                case.id, as_actor(admin_a), {"status": "incomplete_document"}
            )

        assert detail.status == ApplicationStatus.INCOMPLETE_DOCUMENT
        status = await db_session.scalar(
            select(Application.status).where(Application.id == case.id)
        )
        assert status == ApplicationStatus.INCOMPLETE_DOCUMENT
        queued_emails.assert_called_once()


class TestApplicantUpdate:
    """Test applicant edits."""

    @pytest.mark.asyncio
    async def test_broadcasts_to_active_staff(
        self, db_session, case, applicant, admin_a, superadmin, as_actor, queued_emails
    ):
        detail = await CaseService(db_session).update_case(
            case.id,
            as_actor(applicant),
            {"placeOfBirth": "Tashkent", "dateOfBirth": "2007-03-14"},
        )

        assert detail.place_of_birth == "Tashkent"
        assert detail.date_of_birth == date(2007, 3, 14)
        for staff in (admin_a, superadmin):
            notifications = await _notifications(db_session, staff.id)
            assert len(notifications) == 1
            assert notifications[0].notification_type == NotificationType.APPLICANT_UPDATE
            assert notifications[0].message == "Applicant has updated their application"
        assert await _audit_entries(db_session) == []
        queued_emails.assert_not_called()

    @pytest.mark.asyncio
    async def test_applicant_cannot_set_status(self, db_session, case, applicant, as_actor):
        with pytest.raises(InputValidationError) as exc_info:
            await CaseService(db_session).update_case(
                case.id, as_actor(applicant), {"status": "application_approved"}
            )

        assert exc_info.value.error_code == "FIELD_NOT_ALLOWED"
        assert exc_info.value.errors == [
            {"field": "status", "message": "Field is not editable"}
        ]

    @pytest.mark.asyncio
    async def test_applicant_cannot_edit_other_case(
        self, db_session, case, other_applicant, as_actor
    ):
        with pytest.raises(AuthorizationError):
            await CaseService(db_session).update_case(
                case.id, as_actor(other_applicant), {"surname": "X"}
            )

    @pytest.mark.asyncio
    async def test_enum_fields_stored_as_text(self, db_session, case, applicant, as_actor):
        detail = await CaseService(db_session).update_case(
            case.id,
            as_actor(applicant),
            {"educationType": "specialized_school", "languageCertScore": 7.5},
        )

        assert detail.education_type == "specialized_school"
        assert detail.language_cert_score == "7.5"


class TestUpdateValidation:
    """Test request validation for updates."""

    @pytest.mark.asyncio
    async def test_empty_update(self, db_session, case, admin_a, as_actor):
        with pytest.raises(InputValidationError) as exc_info:
            await CaseService(db_session).update_case(case.id, as_actor(admin_a), {})
        assert exc_info.value.error_code == "NO_FIELDS"

    @pytest.mark.asyncio
    async def test_unknown_field(self, db_session, case, admin_a, as_actor):
        with pytest.raises(InputValidationError) as exc_info:
            await CaseService(db_session).update_case(
                case.id, as_actor(admin_a), {"assignedAdminId": "someone"}
            )
        assert exc_info.value.error_code == "FIELD_NOT_ALLOWED"

    @pytest.mark.asyncio
    async def test_invalid_values(self, db_session, case, admin_a, as_actor):
        service = CaseService(db_session)
        for fields in (
            {"status": "accepted"},
            {"completionPercentage": 140},
            {"dateOfBirth": "yesterday"},
            {"socialRegistry": None},
        ):
            with pytest.raises(InputValidationError) as exc_info:
                await service.update_case(case.id, as_actor(admin_a), fields)
            assert exc_info.value.errors

    @pytest.mark.asyncio
    async def test_validation_happens_before_claim(
        self, db_session, case, admin_a, as_actor
    ):
        with pytest.raises(InputValidationError):
            await CaseService(db_session).update_case(
                case.id, as_actor(admin_a), {"status": "accepted"}
            )

        owner = await db_session.scalar(
            select(Application.assigned_admin_id).where(Application.id == case.id)
        )
        assert owner is None


class TestDocumentVerification:
    """Test staff document review flags."""

    @pytest.mark.asyncio
    async def test_verify_sets_flag_and_emails(
        self, db_session, case, admin_a, as_actor, queued_emails
    ):
        detail = await CaseService(db_session).verify_document(
            case.id, as_actor(admin_a), "attestat_verified", True
        )

        assert detail.attestat_verified is True
        assert detail.attestat_invalid is False
        assert detail.assigned_admin_id == admin_a.id

        entries = await _audit_entries(db_session)
        assert len(entries) == 1
        assert entries[0].action == "verify_document"
        assert json.loads(entries[0].details) == {
            "attestat_verified": {"old": False, "new": True}
        }

        queued_emails.assert_called_once()
        _, to, subject, html = queued_emails.call_args.args
        assert to == "aziza@example.com"
        assert subject == "Al-Xorazmiy University - Attestat / Diploma verified"
        assert "Aziza Karimova" in html

    @pytest.mark.asyncio
    async def test_invalid_flag_asks_for_new_copy(
        self, db_session, case, admin_a, as_actor, queued_emails
    ):
        await CaseService(db_session).verify_document(
            case.id, as_actor(admin_a), "sat_invalid", True
        )

        flagged = await db_session.scalar(
            select(Application.sat_invalid).where(Application.id == case.id)
        )
        assert flagged is True
        _, _, subject, html = queued_emails.call_args.args
        assert subject == "Al-Xorazmiy University - SAT Certificate needs attention"
        assert "please upload a new copy" in html

    @pytest.mark.asyncio
    async def test_clearing_and_repeating_are_quiet(
        self, db_session, case, admin_a, as_actor, queued_emails
    ):
        service = CaseService(db_session)
        actor = as_actor(admin_a)

        await service.verify_document(case.id, actor, "cefr_verified", True)
        await service.verify_document(case.id, actor, "cefr_verified", True)
        detail = await service.verify_document(case.id, actor, "cefr_verified", False)

        assert detail.cefr_verified is False
        queued_emails.assert_called_once()
        assert len(await _audit_entries(db_session)) == 2

    @pytest.mark.asyncio
    async def test_unknown_flag_rejected_before_claim(
        self, db_session, case, admin_a, as_actor, queued_emails
    ):
        with pytest.raises(InputValidationError) as exc_info:
            await CaseService(db_session).verify_document(
                case.id, as_actor(admin_a), "passport_verified", True
            )

        assert exc_info.value.error_code == "INVALID_VERIFICATION_FIELD"
        owner = await db_session.scalar(
            select(Application.assigned_admin_id).where(Application.id == case.id)
        )
        assert owner is None
        queued_emails.assert_not_called()

    @pytest.mark.asyncio
    async def test_applicant_cannot_verify(self, db_session, case, applicant, as_actor):
        with pytest.raises(AuthorizationError) as exc_info:
            await CaseService(db_session).verify_document(
                case.id, as_actor(applicant), "attestat_verified", True
            )
        assert exc_info.value.error_code == "STAFF_ONLY"

    @pytest.mark.asyncio
    async def test_other_admin_cannot_verify(
        self, db_session, case, admin_a, admin_b, as_actor, queued_emails
    ):
        service = CaseService(db_session)
        await service.update_case(case.id, as_actor(admin_a), {"citizenship": "Uzbekistan"})

        with pytest.raises(AuthorizationError) as exc_info:
            await service.verify_document(
                case.id, as_actor(admin_b), "attestat_verified", True
            )

        assert exc_info.value.error_code == "ASSIGNED_TO_OTHER_STAFF"
        queued_emails.assert_not_called()
