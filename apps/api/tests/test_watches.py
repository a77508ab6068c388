"""Tests for watches: saved searches and the new-post emails they trigger."""
from uuid import uuid4

import pytest

from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.db.enums import JobType, PostSize, PostVisibility
from wecarry.db.models import Location, Post, Watch
from wecarry.schemas.location import LocationInput
from wecarry.schemas.watch import WatchCreate, WatchUpdate
from wecarry.services import job_service, watch_service

NAIROBI = LocationInput(description="Nairobi, Kenya", country="KE", latitude=-1.3, longitude=36.8)
LONDON = LocationInput(description="London, UK", country="GB", latitude=51.5, longitude=-0.12)


def _watch_emails(db) -> list[str]:
    jobs = job_service.list_jobs(db, job_type=JobType.SEND_NOTIFICATION, limit=500)
    return sorted(
        job.payload["to_email"] for job in jobs if job.payload["template"] == "post_matches_watch"
    )


def _post(**kwargs) -> Post:
    return Post(
        title=kwargs.pop("title", "Bring coffee"),
        description=kwargs.pop("description", None),
        size=kwargs.pop("size", PostSize.SMALL.value),
        meeting_id=kwargs.pop("meeting_id", None),
        destination=kwargs.pop(
            "destination",
            Location(description="Nairobi, Kenya", country="KE", latitude=-1.29, longitude=36.82),
        ),
    )


# =============================================================================
# CRUD
# =============================================================================

def test_list_watches_returns_only_own(db, make_user, test_org):
    owner = make_user(test_org)
    other = make_user(test_org)
    watch = watch_service.create_watch(db, owner, WatchCreate(name="Kenya", destination=NAIROBI))
    watch_service.create_watch(db, other, WatchCreate(name="Tea", search_text="tea"))

    assert [w.uuid for w in watch_service.list_watches(db, owner)] == [watch.uuid]
    assert watch.destination.description == "Nairobi, Kenya"
    assert watch_service.list_watches(db, make_user(test_org)) == []


def test_watch_needs_a_criterion(db, test_user):
    with pytest.raises(ValidationError) as exc_info:
        watch_service.create_watch(db, test_user, WatchCreate(name="Anything", search_text="  "))
    assert "criteria" in exc_info.value.errors


def test_watch_belongs_to_its_owner(db, make_user, test_org):
    owner = make_user(test_org)
    intruder = make_user(test_org)
    watch = watch_service.create_watch(db, owner, WatchCreate(name="Tea", search_text="tea"))

    with pytest.raises(AuthorizationError):
        watch_service.find_watch_by_uuid(db, intruder, watch.uuid)
    with pytest.raises(AuthorizationError):
        watch_service.delete_watch(db, intruder, watch)
    with pytest.raises(NotFoundError):
        watch_service.find_watch_by_uuid(db, owner, uuid4())


def test_update_watch_replaces_and_clears_criteria(db, test_user):
    watch = watch_service.create_watch(
        db, test_user, WatchCreate(name="Kenya", destination=NAIROBI, size=PostSize.SMALL)
    )

    watch = watch_service.update_watch(
        db, test_user, watch, WatchUpdate(name="Tea run", destination=None, search_text="tea")
    )

    assert watch.name == "Tea run"
    assert watch.destination is None
    assert watch.search_text == "tea"
    assert watch.size == PostSize.SMALL.value
    assert db.query(Location).count() == 0


def test_update_watch_cannot_drop_every_criterion(db, test_user):
    watch = watch_service.create_watch(db, test_user, WatchCreate(name="Tea", search_text="tea"))

    with pytest.raises(ValidationError):
        watch_service.update_watch(db, test_user, watch, WatchUpdate(search_text=None))

    db.refresh(watch)
    assert watch.search_text == "tea"


def test_delete_watch(db, test_user):
    watch = watch_service.create_watch(db, test_user, WatchCreate(name="Kenya", destination=NAIROBI))
    watch_service.delete_watch(db, test_user, watch)
    assert watch_service.list_watches(db, test_user) == []
    assert db.query(Watch).count() == 0
    assert db.query(Location).count() == 0


# =============================================================================
# Matching
# =============================================================================

@pytest.mark.parametrize(
    "criteria,matches",
    [
        ({"destination": Location(description="Nairobi", latitude=-1.3, longitude=36.8)}, True),
        ({"destination": Location(description="London", latitude=51.5, longitude=-0.12)}, False),
        ({"destination": Location(description="nairobi, kenya ")}, True),
        ({"destination": Location(description="Mombasa")}, False),
        ({"search_text": "COFFEE"}, True),
        ({"search_text": "tea"}, False),
        ({"size": PostSize.MEDIUM.value}, True),
        ({"size": PostSize.TINY.value}, False),
        ({"meeting_id": 7}, False),
        ({"search_text": "coffee", "size": PostSize.TINY.value}, False),
    ],
)
def test_watch_matches_post(criteria, matches):
    watch = Watch(name="w", **criteria)
    assert watch_service.watch_matches_post(watch, _post()) is matches


def test_watch_matches_post_description_and_meeting():
    watch = Watch(name="w", meeting_id=7, search_text="beans")
    assert watch_service.watch_matches_post(watch, _post(meeting_id=7, description="Two bags of beans"))


# =============================================================================
# Notifications
# =============================================================================

def test_matching_watch_owner_gets_email(db, dispatcher, make_post, make_user, test_org, other_org):
    creator = make_user(test_org)
    watcher = make_user(other_org)
    watch_service.create_watch(db, watcher, WatchCreate(name="Kenya", destination=NAIROBI))
    elsewhere = make_user(other_org)
    watch_service.create_watch(db, elsewhere, WatchCreate(name="UK", destination=LONDON))

    make_post(creator, test_org, visibility=PostVisibility.ALL)

    assert _watch_emails(db) == [watcher.email]


def test_watch_email_skips_hidden_posts_and_creator(db, dispatcher, make_post, make_user, test_org, other_org):
    creator = make_user(test_org)
    watcher = make_user(other_org)
    watch_service.create_watch(db, watcher, WatchCreate(name="Kenya", destination=NAIROBI))
    watch_service.create_watch(db, creator, WatchCreate(name="Mine", search_text="coffee"))

    make_post(creator, test_org, visibility=PostVisibility.SAME)

    assert _watch_emails(db) == []


def test_audience_members_get_one_email(db, dispatcher, make_post, make_user, test_org):
    creator = make_user(test_org)
    member = make_user(test_org)
    watch_service.create_watch(db, member, WatchCreate(name="Coffee", search_text="coffee"))
    watch_service.create_watch(db, member, WatchCreate(name="Kenya", destination=NAIROBI))

    make_post(creator, test_org)

    jobs = job_service.list_jobs(db, job_type=JobType.SEND_NOTIFICATION, limit=500)
    assert [job.payload["template"] for job in jobs if job.payload["to_email"] == member.email] == [
        "new_request"
    ]


def test_one_email_per_watcher(db, dispatcher, make_post, make_user, test_org, other_org):
    creator = make_user(test_org)
    watcher = make_user(other_org)
    first = watch_service.create_watch(db, watcher, WatchCreate(name="Coffee", search_text="coffee"))
    watch_service.create_watch(db, watcher, WatchCreate(name="Kenya", destination=NAIROBI))

    make_post(creator, test_org, visibility=PostVisibility.ALL)

    jobs = job_service.list_jobs(db, job_type=JobType.SEND_NOTIFICATION, limit=500)
    payloads = [job.payload for job in jobs if job.payload["template"] == "post_matches_watch"]
    assert len(payloads) == 1
    assert payloads[0]["data"]["watchName"] == first.name
