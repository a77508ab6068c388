"""Tests for meetings, invites and participants."""
from datetime import date

import pytest

from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.db.enums import EventKind, PostSize, PostType, UserAdminRole
from wecarry.schemas.location import LocationInput
from wecarry.schemas.meeting import MeetingCreate, MeetingUpdate
from wecarry.schemas.post import PostCreate
from wecarry.services import meeting_service, post_service

VENUE = LocationInput(description="Chiang Mai, Thailand", country="TH", latitude=18.79, longitude=98.98)


@pytest.fixture
def owner(make_user, test_org):
    return make_user(test_org)


@pytest.fixture
def make_meeting(db, owner):
    def _make(name="Conference", start=date(2030, 3, 1), end=date(2030, 3, 3), user=None):
        return meeting_service.create_meeting(
            db,
            user or owner,
            MeetingCreate(name=name, start_date=start, end_date=end, location=VENUE),
        )

    return _make


def test_create_meeting(db, make_meeting, owner):
    meeting = make_meeting()
    assert meeting.uuid is not None
    assert meeting.invite_code is not None
    assert meeting.created_by_id == owner.id
    assert meeting.location.country == "TH"


def test_single_day_meeting_allowed(db, make_meeting):
    meeting = make_meeting(start=date(2030, 1, 1), end=date(2030, 1, 1))
    assert meeting.start_date == meeting.end_date


def test_end_before_start_rejected(db, make_meeting):
    with pytest.raises(ValidationError) as exc:
        make_meeting(start=date(2030, 1, 2), end=date(2030, 1, 1))
    assert exc.value.get("dates")


def test_date_queries(db, make_meeting):
    past = make_meeting("Past", date(2030, 1, 20), date(2030, 1, 25))
    current = make_meeting("Current", date(2030, 2, 1), date(2030, 2, 10))
    future = make_meeting("Future", date(2030, 3, 1), date(2030, 3, 2))
    today = date(2030, 2, 5)

    assert [m.id for m in meeting_service.find_on_date(db, today)] == [current.id]
    assert [m.id for m in meeting_service.find_on_or_after_date(db, today)] == [current.id, future.id]
    assert [m.id for m in meeting_service.find_after_date(db, today)] == [future.id]
    assert [m.id for m in meeting_service.find_recent(db, today)] == [past.id]


def test_update_meeting_permissions(db, make_meeting, make_user, test_org):
    meeting = make_meeting()
    stranger = make_user(test_org)
    with pytest.raises(AuthorizationError):
        meeting_service.update_meeting(db, stranger, meeting, MeetingUpdate(name="Hijack"))

    meeting_service.add_organizer(db, meeting.created_by, meeting, stranger)
    updated = meeting_service.update_meeting(db, stranger, meeting, MeetingUpdate(name="Renamed"))
    assert updated.name == "Renamed"


def test_site_admin_updates_meeting(db, make_meeting, make_user, test_org):
    meeting = make_meeting()
    admin = make_user(test_org, admin_role=UserAdminRole.ADMIN)
    updated = meeting_service.update_meeting(
        db, admin, meeting, MeetingUpdate(end_date=date(2030, 3, 5))
    )
    assert updated.end_date == date(2030, 3, 5)


def test_update_keeps_dates_valid(db, make_meeting, owner):
    meeting = make_meeting()
    with pytest.raises(ValidationError):
        meeting_service.update_meeting(db, owner, meeting, MeetingUpdate(end_date=date(2029, 1, 1)))
    db.refresh(meeting)
    assert meeting.end_date == date(2030, 3, 3)


# =============================================================================
# Invites and participants
# =============================================================================

def test_create_invites(db, make_meeting, owner, make_user, test_org):
    meeting = make_meeting()
    created, bad = meeting_service.create_invites(
        db, owner, meeting, ["A@Example.com", "not-an-email", "a@example.com", "b@example.com"]
    )
    assert sorted(i.email for i in created) == ["a@example.com", "b@example.com"]
    assert bad == ["not-an-email"]

    stranger = make_user(test_org)
    assert meeting_service.list_invites(db, stranger, meeting) == []
    assert len(meeting_service.list_invites(db, owner, meeting)) == 2
    with pytest.raises(AuthorizationError):
        meeting_service.create_invites(db, stranger, meeting, ["c@example.com"])


def test_remove_invite(db, make_meeting, owner):
    meeting = make_meeting()
    meeting_service.create_invites(db, owner, meeting, ["a@example.com"])
    meeting_service.remove_invite(db, owner, meeting, "A@example.com")
    assert meeting_service.list_invites(db, owner, meeting) == []
    with pytest.raises(NotFoundError):
        meeting_service.remove_invite(db, owner, meeting, "a@example.com")


def test_join_with_meeting_code(db, make_meeting, make_user, test_org, event_log):
    meeting = make_meeting()
    attendee = make_user(test_org)
    event_log.clear()

    participant = meeting_service.add_participant(db, attendee, meeting, str(meeting.invite_code))
    again = meeting_service.add_participant(db, attendee, meeting, str(meeting.invite_code))

    assert participant.id == again.id
    assert not participant.is_organizer
    assert [e.kind for e in event_log] == [EventKind.MEETING_PARTICIPANT_ADDED]


def test_join_with_invite_secret(db, make_meeting, owner, make_user, test_org):
    meeting = make_meeting()
    attendee = make_user(test_org, email="guest@example.com")
    (invite,), _ = meeting_service.create_invites(db, owner, meeting, ["guest@example.com"])

    participant = meeting_service.add_participant(db, attendee, meeting, str(invite.secret))
    assert participant.invite_id == invite.id


def test_join_with_bad_code(db, make_meeting, make_user, test_org):
    meeting = make_meeting()
    assert not meeting_service.is_code_valid(meeting, "nope")
    with pytest.raises(ValidationError) as exc:
        meeting_service.add_participant(db, make_user(test_org), meeting, "nope")
    assert exc.value.get("code")


def test_participant_visibility(db, make_meeting, owner, make_user, test_org):
    meeting = make_meeting()
    first = make_user(test_org)
    second = make_user(test_org)
    meeting_service.add_participant(db, first, meeting, str(meeting.invite_code))
    meeting_service.add_participant(db, second, meeting, str(meeting.invite_code))

    assert len(meeting_service.list_participants(db, owner, meeting)) == 2
    assert [p.user_id for p in meeting_service.list_participants(db, first, meeting)] == [first.id]


def test_remove_participant(db, make_meeting, owner, make_user, test_org, event_log):
    meeting = make_meeting()
    first = make_user(test_org)
    second = make_user(test_org)
    meeting_service.add_participant(db, first, meeting, str(meeting.invite_code))
    meeting_service.add_participant(db, second, meeting, str(meeting.invite_code))
    event_log.clear()

    with pytest.raises(AuthorizationError):
        meeting_service.remove_participant(db, first, meeting, second.uuid)
    meeting_service.remove_participant(db, first, meeting, first.uuid)
    meeting_service.remove_participant(db, owner, meeting, second.uuid)

    assert meeting_service.list_participants(db, owner, meeting) == []
    assert [e.kind for e in event_log] == [EventKind.MEETING_PARTICIPANT_REMOVED] * 2


def test_add_organizer(db, make_meeting, owner, make_user, test_org):
    meeting = make_meeting()
    helper = make_user(test_org)
    meeting_service.add_organizer(db, owner, meeting, helper)

    assert [u.id for u in meeting_service.list_organizers(db, meeting)] == [helper.id]
    assert meeting_service.can_update(db, helper, meeting)


# =============================================================================
# Posts at meetings
# =============================================================================

def test_post_takes_meeting_location(db, make_meeting, owner, test_org):
    meeting = make_meeting()
    post = post_service.create_post(
        db,
        owner,
        PostCreate(
            type=PostType.REQUEST,
            organization_id=test_org.uuid,
            title="Bring a charger",
            size=PostSize.SMALL,
            meeting_id=meeting.uuid,
        ),
    )

    assert post.meeting_id == meeting.id
    assert post.destination.description == VENUE.description
    assert post.destination_id != meeting.location_id
    assert [p.id for p in meeting_service.meeting_posts(db, owner, meeting)] == [post.id]
