import pytest
import pytest_asyncio

from app.db.models import ChatMessage, UserRole
from app.services.unread_service import UnreadService
from app.utils.errors import AuthorizationError


def _message(case, sender, body, is_read=False):
    return ChatMessage(
        application_id=case.id,
        sender_id=sender.id,
        sender_role=sender.role,
        message=body,
        is_read=is_read,
    )


@pytest_asyncio.fixture
async def inbox(db_session, case, other_case, applicant, other_applicant, admin_a):
    """
    ``case`` is unowned with two unread applicant messages; ``other_case`` is
    owned by admin A with one unread and one read applicant message plus a
    staff reply.
    """
    other_case.assigned_admin_id = admin_a.id
    db_session.add_all(
        [
            _message(case, applicant, "one"),
            _message(case, applicant, "two"),
            _message(other_case, other_applicant, "old", is_read=True),
            _message(other_case, other_applicant, "new"),
            _message(other_case, admin_a, "reply"),
        ]
    )
    await db_session.commit()
    return case, other_case


class TestUnreadSummary:
    """Test the All / For Me unread projections."""

    @pytest.mark.asyncio
    async def test_regular_admin_queues_are_disjoint(self, db_session, inbox, admin_a, as_actor):
        case, other_case = inbox

        summary = await UnreadService(db_session).get_unread_summary(as_actor(admin_a))

        assert summary.all_unread_map == {case.id: 2}
        assert summary.for_me_unread_map == {other_case.id: 1}
        assert not set(summary.all_unread_map) & set(summary.for_me_unread_map)
        assert summary.total_unread_chats == 1

    @pytest.mark.asyncio
    async def test_admin_without_cases(self, db_session, inbox, admin_b, as_actor):
        case, _ = inbox

        summary = await UnreadService(db_session).get_unread_summary(as_actor(admin_b))

        assert summary.all_unread_map == {case.id: 2}
        assert summary.for_me_unread_map == {}
        assert summary.total_unread_chats == 0

    @pytest.mark.asyncio
    async def test_superadmin_maps_are_equal(self, db_session, inbox, superadmin, as_actor):
        case, other_case = inbox

        summary = await UnreadService(db_session).get_unread_summary(as_actor(superadmin))

        assert summary.all_unread_map == {case.id: 2, other_case.id: 1}
        assert summary.for_me_unread_map == summary.all_unread_map
        assert summary.total_unread_chats == 2

    @pytest.mark.asyncio
    async def test_staff_messages_never_count(
        self, db_session, case, admin_a, as_actor
    ):
        case.assigned_admin_id = admin_a.id
        db_session.add(_message(case, admin_a, "Hello from staff"))
        await db_session.commit()

        summary = await UnreadService(db_session).get_unread_summary(as_actor(admin_a))

        assert summary.for_me_unread_map == {}
        assert summary.total_unread_chats == 0

    @pytest.mark.asyncio
    async def test_applicant_is_rejected(self, db_session, applicant, as_actor):
        with pytest.raises(AuthorizationError):
            await UnreadService(db_session).get_unread_summary(as_actor(applicant))

    @pytest.mark.asyncio
    async def test_empty_when_nothing_unread(self, db_session, make_user, as_actor):
        admin = await make_user("solo@alxorazmiy.uz", UserRole.ADMIN)

        summary = await UnreadService(db_session).get_unread_summary(as_actor(admin))

        assert summary.all_unread_map == {}
        assert summary.for_me_unread_map == {}
        assert summary.total_unread_chats == 0
