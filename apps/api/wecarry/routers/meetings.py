"""Meetings router - events that posts can be delivered at."""

from datetime import date
from enum import Enum
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from wecarry.core.deps import get_current_user, get_db
from wecarry.db.models import Meeting, User
from wecarry.db.types import utcnow
from wecarry.schemas.meeting import (
    MeetingCreate,
    MeetingInviteRead,
    MeetingInvitesCreate,
    MeetingInvitesResult,
    MeetingJoin,
    MeetingParticipantRead,
    MeetingRead,
    MeetingUpdate,
)
from wecarry.schemas.post import UserSummary
from wecarry.services import meeting_service
from wecarry.services.access_token_service import CurrentUser

router = APIRouter()


class MeetingWhen(str, Enum):
    CURRENT = "current"
    FUTURE = "future"
    PAST = "past"


def _summary(user: User) -> UserSummary:
    return UserSummary(id=user.uuid, nickname=user.nickname)


def to_meeting_read(db: Session, user: User, meeting: Meeting) -> MeetingRead:
    can_update = meeting_service.can_update(db, user, meeting)
    return MeetingRead(
        id=meeting.uuid,
        name=meeting.name,
        description=meeting.description,
        more_info_url=meeting.more_info_url,
        start_date=meeting.start_date,
        end_date=meeting.end_date,
        location=meeting.location,
        created_by=_summary(meeting.created_by),
        image_file_id=meeting.image.uuid if meeting.image else None,
        invite_code=meeting.invite_code if can_update else None,
        can_update=can_update,
        created_at=meeting.created_at,
    )


def _invite_read(invite) -> MeetingInviteRead:
    return MeetingInviteRead(
        email=invite.email, inviter=_summary(invite.inviter), created_at=invite.created_at
    )


def _participant_read(participant) -> MeetingParticipantRead:
    return MeetingParticipantRead(
        user=_summary(participant.user),
        is_organizer=participant.is_organizer,
        created_at=participant.created_at,
    )


@router.get("", response_model=list[MeetingRead])
def list_meetings(
    when: MeetingWhen = MeetingWhen.CURRENT,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    current: meetings that have not ended yet.
    future: meetings starting after today.
    past: meetings that ended within the last four weeks.
    """
    today: date = utcnow().date()
    if when == MeetingWhen.FUTURE:
        meetings = meeting_service.find_after_date(db, today)
    elif when == MeetingWhen.PAST:
        meetings = meeting_service.find_recent(db, today)
    else:
        meetings = meeting_service.find_on_or_after_date(db, today)
    return [to_meeting_read(db, current.user, meeting) for meeting in meetings]


@router.post("", response_model=MeetingRead, status_code=201)
def create_meeting(
    data: MeetingCreate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    meeting = meeting_service.create_meeting(db, current.user, data)
    return to_meeting_read(db, current.user, meeting)


@router.get("/{meeting_id}", response_model=MeetingRead)
def get_meeting(
    meeting_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    meeting = meeting_service.find_meeting_by_uuid(db, meeting_id)
    return to_meeting_read(db, current.user, meeting)


@router.patch("/{meeting_id}", response_model=MeetingRead)
def update_meeting(
    meeting_id: UUID,
    data: MeetingUpdate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    meeting = meeting_service.find_meeting_by_uuid(db, meeting_id)
    meeting = meeting_service.update_meeting(db, current.user, meeting, data)
    return to_meeting_read(db, current.user, meeting)


# =============================================================================
# Invites
# =============================================================================

@router.get("/{meeting_id}/invites", response_model=list[MeetingInviteRead])
def list_invites(
    meeting_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    meeting = meeting_service.find_meeting_by_uuid(db, meeting_id)
    return [_invite_read(i) for i in meeting_service.list_invites(db, current.user, meeting)]


@router.post("/{meeting_id}/invites", response_model=MeetingInvitesResult, status_code=201)
def create_invites(
    meeting_id: UUID,
    data: MeetingInvitesCreate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    meeting = meeting_service.find_meeting_by_uuid(db, meeting_id)
    created, bad_emails = meeting_service.create_invites(db, current.user, meeting, data.emails)
    return MeetingInvitesResult(
        created=[_invite_read(i) for i in created], bad_emails=bad_emails
    )


@router.delete("/{meeting_id}/invites/{email}", status_code=204)
def remove_invite(
    meeting_id: UUID,
    email: str,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    meeting = meeting_service.find_meeting_by_uuid(db, meeting_id)
    meeting_service.remove_invite(db, current.user, meeting, email)


# =============================================================================
# Participants
# =============================================================================

@router.get("/{meeting_id}/participants", response_model=list[MeetingParticipantRead])
def list_participants(
    meeting_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    meeting = meeting_service.find_meeting_by_uuid(db, meeting_id)
    return [
        _participant_read(p)
        for p in meeting_service.list_participants(db, current.user, meeting)
    ]


@router.post(
    "/{meeting_id}/participants", response_model=MeetingParticipantRead, status_code=201
)
def join_meeting(
    meeting_id: UUID,
    data: MeetingJoin,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    meeting = meeting_service.find_meeting_by_uuid(db, meeting_id)
    participant = meeting_service.add_participant(db, current.user, meeting, data.code)
    return _participant_read(participant)


@router.delete("/{meeting_id}/participants/{user_id}", status_code=204)
def remove_participant(
    meeting_id: UUID,
    user_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    meeting = meeting_service.find_meeting_by_uuid(db, meeting_id)
    meeting_service.remove_participant(db, current.user, meeting, user_id)
