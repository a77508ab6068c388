"""Meeting service - meetings, invites and participants."""

import logging
import re
from datetime import date, timedelta
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.db.enums import EventKind
from wecarry.db.models import (
    Location,
    Meeting,
    MeetingInvite,
    MeetingParticipant,
    Post,
    User,
)
from wecarry.events.outbox import emit_after_commit
from wecarry.events.types import Event, MeetingParticipantEventData
from wecarry.schemas.meeting import MeetingCreate, MeetingUpdate
from wecarry.services import file_service, post_service, user_service

logger = logging.getLogger(__name__)

RECENT_MEETING_DELAY = timedelta(weeks=4)
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_meeting(meeting: Meeting) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    if not (meeting.name or "").strip():
        errors["name"] = ["name is required"]
    if meeting.start_date is None or meeting.end_date is None:
        errors.setdefault("dates", []).append("start_date and end_date are required")
    elif meeting.start_date > meeting.end_date:
        errors.setdefault("dates", []).append("start_date must not be after end_date")
    return errors


# =============================================================================
# Queries
# =============================================================================

def _ordered(query):
    return query.order_by(Meeting.start_date, Meeting.name).all()


def find_meeting_by_uuid(db: Session, meeting_uuid: UUID) -> Meeting:
    meeting = db.query(Meeting).filter(Meeting.uuid == meeting_uuid).first()
    if not meeting:
        raise NotFoundError("meeting", meeting_uuid)
    return meeting


def find_on_date(db: Session, day: date) -> list[Meeting]:
    """Meetings running on day (inclusive at both ends)."""
    return _ordered(db.query(Meeting).filter(Meeting.start_date <= day, Meeting.end_date >= day))


def find_on_or_after_date(db: Session, day: date) -> list[Meeting]:
    return _ordered(db.query(Meeting).filter(Meeting.end_date >= day))


def find_after_date(db: Session, day: date) -> list[Meeting]:
    """Meetings starting after day."""
    return _ordered(db.query(Meeting).filter(Meeting.start_date > day))


def find_recent(db: Session, day: date) -> list[Meeting]:
    """Meetings that ended in the RECENT_MEETING_DELAY before day (day itself excluded)."""
    return _ordered(
        db.query(Meeting).filter(
            Meeting.end_date >= day - RECENT_MEETING_DELAY,
            Meeting.end_date <= day - timedelta(days=1),
        )
    )


def list_organizers(db: Session, meeting: Meeting) -> list[User]:
    return (
        db.query(User)
        .join(MeetingParticipant, MeetingParticipant.user_id == User.id)
        .filter(MeetingParticipant.meeting_id == meeting.id, MeetingParticipant.is_organizer.is_(True))
        .order_by(User.id)
        .all()
    )


def is_organizer(db: Session, meeting: Meeting, user: User) -> bool:
    return (
        db.query(MeetingParticipant.id)
        .filter(
            MeetingParticipant.meeting_id == meeting.id,
            MeetingParticipant.user_id == user.id,
            MeetingParticipant.is_organizer.is_(True),
        )
        .first()
        is not None
    )


def meeting_posts(db: Session, user: User, meeting: Meeting) -> list[Post]:
    """Posts tied to meeting that user may see."""
    return post_service.list_posts(db, user, meeting_id=meeting.id)


# =============================================================================
# Permissions
# =============================================================================

def can_create(user: User) -> bool:
    return True


def can_update(db: Session, user: User, meeting: Meeting) -> bool:
    return (
        user_service.is_site_admin(user)
        or user.id == meeting.created_by_id
        or is_organizer(db, meeting, user)
    )


def _sees_everything(db: Session, user: User, meeting: Meeting) -> bool:
    return can_update(db, user, meeting)


# =============================================================================
# Create / Update
# =============================================================================

def create_meeting(db: Session, user: User, data: MeetingCreate) -> Meeting:
    if not can_create(user):
        raise AuthorizationError("user may not create meetings")

    meeting = Meeting(
        uuid=uuid4(),
        name=data.name.strip(),
        description=data.description,
        more_info_url=data.more_info_url,
        start_date=data.start_date,
        end_date=data.end_date,
        invite_code=uuid4(),
        created_by_id=user.id,
    )
    errors = validate_meeting(meeting)
    if errors:
        raise ValidationError(errors)

    meeting.location = Location(**data.location.model_dump())
    if data.image_file_id:
        meeting.image_file_id = file_service.attach_file(db, data.image_file_id).id
    db.add(meeting)
    db.commit()
    db.refresh(meeting)
    logger.info("Created meeting %s", meeting.uuid)
    return meeting


def update_meeting(db: Session, user: User, meeting: Meeting, data: MeetingUpdate) -> Meeting:
    if not can_update(db, user, meeting):
        raise AuthorizationError("user may not update this meeting")

    update_data = data.model_dump(exclude_unset=True)
    for field in ("name", "start_date", "end_date"):
        if update_data.get(field) is not None:
            setattr(meeting, field, update_data[field])
    for field in ("description", "more_info_url"):
        if field in update_data:
            setattr(meeting, field, update_data[field])
    if data.location is not None:
        for key, value in data.location.model_dump().items():
            setattr(meeting.location, key, value)
    if "image_file_id" in update_data:
        if meeting.image is not None:
            file_service.detach_file(db, meeting.image)
        meeting.image_file_id = (
            file_service.attach_file(db, data.image_file_id).id if data.image_file_id else None
        )

    errors = validate_meeting(meeting)
    if errors:
        db.rollback()
        raise ValidationError(errors)
    db.commit()
    db.refresh(meeting)
    return meeting


# =============================================================================
# Invites
# =============================================================================

def list_invites(db: Session, user: User, meeting: Meeting) -> list[MeetingInvite]:
    """All invites for the creator, organizers and site admins; none for others."""
    if not _sees_everything(db, user, meeting):
        return []
    return (
        db.query(MeetingInvite)
        .filter(MeetingInvite.meeting_id == meeting.id)
        .order_by(MeetingInvite.email)
        .all()
    )


def create_invites(
    db: Session, user: User, meeting: Meeting, emails: list[str]
) -> tuple[list[MeetingInvite], list[str]]:
    """
    Invite emails to meeting.

    Returns (invites created or already present, emails that were rejected).
    """
    if not can_update(db, user, meeting):
        raise AuthorizationError("user may not invite to this meeting")

    created: list[MeetingInvite] = []
    bad_emails: list[str] = []
    for raw in emails:
        email = (raw or "").strip().lower()
        if not EMAIL_PATTERN.match(email):
            bad_emails.append(raw)
            continue
        invite = (
            db.query(MeetingInvite)
            .filter(MeetingInvite.meeting_id == meeting.id, MeetingInvite.email == email)
            .first()
        )
        if invite is None:
            invite = MeetingInvite(meeting_id=meeting.id, inviter_id=user.id, email=email)
            db.add(invite)
            db.flush()
        if invite not in created:
            created.append(invite)
    db.commit()
    return created, bad_emails


def remove_invite(db: Session, user: User, meeting: Meeting, email: str) -> None:
    if not can_update(db, user, meeting):
        raise AuthorizationError("user may not remove invites from this meeting")
    deleted = (
        db.query(MeetingInvite)
        .filter(
            MeetingInvite.meeting_id == meeting.id,
            MeetingInvite.email == (email or "").strip().lower(),
        )
        .delete(synchronize_session=False)
    )
    if not deleted:
        raise NotFoundError("meeting invite", email)
    db.commit()


def is_code_valid(meeting: Meeting, code: str) -> bool:
    return meeting.invite_code is not None and str(meeting.invite_code) == (code or "").strip()


# =============================================================================
# Participants
# =============================================================================

def list_participants(db: Session, user: User, meeting: Meeting) -> list[MeetingParticipant]:
    """All participants for privileged users; otherwise only the caller's own row."""
    query = db.query(MeetingParticipant).filter(MeetingParticipant.meeting_id == meeting.id)
    if not _sees_everything(db, user, meeting):
        query = query.filter(MeetingParticipant.user_id == user.id)
    return query.order_by(MeetingParticipant.id).all()


def _find_participant(db: Session, meeting: Meeting, user_id: int) -> MeetingParticipant | None:
    return (
        db.query(MeetingParticipant)
        .filter(MeetingParticipant.meeting_id == meeting.id, MeetingParticipant.user_id == user_id)
        .first()
    )


def _find_invite_by_secret(db: Session, meeting: Meeting, code: str) -> MeetingInvite | None:
    try:
        secret = UUID(code.strip())
    except (AttributeError, ValueError):
        return None
    return (
        db.query(MeetingInvite)
        .filter(MeetingInvite.meeting_id == meeting.id, MeetingInvite.secret == secret)
        .first()
    )


def add_participant(db: Session, user: User, meeting: Meeting, code: str) -> MeetingParticipant:
    """Join meeting with its invite code or a personal invite secret."""
    existing = _find_participant(db, meeting, user.id)
    if existing:
        return existing

    invite = None
    if not is_code_valid(meeting, code):
        invite = _find_invite_by_secret(db, meeting, code)
        if invite is None:
            raise ValidationError.single("code", "invalid meeting invite code")

    participant = MeetingParticipant(
        meeting_id=meeting.id,
        user_id=user.id,
        invite_id=invite.id if invite else None,
    )
    db.add(participant)
    emit_after_commit(
        db,
        Event(
            EventKind.MEETING_PARTICIPANT_ADDED,
            MeetingParticipantEventData(meeting_id=meeting.id, user_id=user.id),
            message=f"Participant {user.uuid} joined meeting {meeting.uuid}",
        ),
    )
    db.commit()
    db.refresh(participant)
    return participant


def add_organizer(db: Session, user: User, meeting: Meeting, organizer: User) -> MeetingParticipant:
    if not can_update(db, user, meeting):
        raise AuthorizationError("user may not add organizers to this meeting")
    participant = _find_participant(db, meeting, organizer.id)
    if participant is None:
        participant = MeetingParticipant(meeting_id=meeting.id, user_id=organizer.id)
        db.add(participant)
        emit_after_commit(
            db,
            Event(
                EventKind.MEETING_PARTICIPANT_ADDED,
                MeetingParticipantEventData(meeting_id=meeting.id, user_id=organizer.id),
                message=f"Organizer {organizer.uuid} added to meeting {meeting.uuid}",
            ),
        )
    participant.is_organizer = True
    db.commit()
    db.refresh(participant)
    return participant


def remove_participant(db: Session, user: User, meeting: Meeting, user_uuid: UUID) -> None:
    """Users may leave; the creator, organizers and site admins may remove anyone."""
    target = user_service.find_user_by_uuid(db, user_uuid)
    if target.id != user.id and not can_update(db, user, meeting):
        raise AuthorizationError("user may not remove participants from this meeting")
    participant = _find_participant(db, meeting, target.id)
    if participant is None:
        raise NotFoundError("meeting participant", user_uuid)
    db.delete(participant)
    emit_after_commit(
        db,
        Event(
            EventKind.MEETING_PARTICIPANT_REMOVED,
            MeetingParticipantEventData(meeting_id=meeting.id, user_id=target.id),
            message=f"Participant {target.uuid} removed from meeting {meeting.uuid}",
        ),
    )
    db.commit()
