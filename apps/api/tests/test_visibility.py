"""Tests for post visibility across organizations and trusts."""
import pytest

from wecarry.core.errors import NotFoundError
from wecarry.db.enums import OrgRole, PostStatus, PostType, PostVisibility, UserAdminRole
from wecarry.services import post_service, trust_service


@pytest.fixture
def org_a(make_org):
    return make_org("Org A")


@pytest.fixture
def org_b(make_org):
    return make_org("Org B")


@pytest.fixture
def user_a(make_user, org_a):
    return make_user(org_a)


@pytest.fixture
def user_b(make_user, org_b):
    return make_user(org_b)


def _listed(db, user, **filters):
    return [p.id for p in post_service.list_posts(db, user, **filters)]


def test_trusted_post_listed_for_trusted_org(db, org_a, org_b, user_a, user_b, make_post):
    trust_service.create_trust(db, org_a.id, org_b.id)
    post = make_post(user_b, org_b, visibility=PostVisibility.TRUSTED)

    assert post.id in _listed(db, user_a)
    assert post_service.is_visible(db, user_a, post)


def test_same_org_post_hidden_without_trust(db, org_a, org_b, user_a, user_b, make_post):
    post = make_post(user_b, org_b, visibility=PostVisibility.SAME)
    colleague = user_b

    assert post.id not in _listed(db, user_a)
    assert post.id in _listed(db, colleague)


def test_same_org_post_hidden_even_with_trust(db, org_a, org_b, user_a, user_b, make_post):
    trust_service.create_trust(db, org_a.id, org_b.id)
    post = make_post(user_b, org_b, visibility=PostVisibility.SAME)

    assert post.id not in _listed(db, user_a)
    with pytest.raises(NotFoundError):
        post_service.find_post_by_uuid(db, user_a, post.uuid)


def test_trusted_post_hidden_without_trust(db, org_a, org_b, user_a, user_b, make_post):
    post = make_post(user_b, org_b, visibility=PostVisibility.TRUSTED)
    assert post.id not in _listed(db, user_a)


def test_trust_works_in_both_directions(db, org_a, org_b, user_a, user_b, make_post):
    trust_service.create_trust(db, org_b.id, org_a.id)
    post = make_post(user_b, org_b, visibility=PostVisibility.TRUSTED)
    assert post.id in _listed(db, user_a)


def test_all_visibility_reaches_everyone(db, org_b, user_a, user_b, make_user, make_post):
    loner = make_user(None)
    post = make_post(user_b, org_b, visibility=PostVisibility.ALL)

    assert post.id in _listed(db, user_a)
    assert post.id in _listed(db, loner)


def test_removed_post_hidden_from_others_but_not_creator(db, org_b, user_b, make_user, make_post):
    colleague = make_user(org_b)
    post = make_post(user_b, org_b)
    post_service.update_post_status(db, user_b, post, PostStatus.REMOVED)

    assert post.id not in _listed(db, colleague)
    assert not post_service.is_visible(db, colleague, post)
    assert post.id in _listed(db, user_b)


def test_removed_post_reachable_by_admins(db, org_b, user_b, make_user, make_post):
    org_admin = make_user(org_b, org_role=OrgRole.ADMIN)
    site_admin = make_user(None, admin_role=UserAdminRole.SUPER_ADMIN)
    post = make_post(user_b, org_b)
    post_service.update_post_status(db, user_b, post, PostStatus.REMOVED)

    for admin in (org_admin, site_admin):
        assert post_service.find_post_by_uuid(db, admin, post.uuid).id == post.id
        assert post_service.is_editable(db, admin, post)
    assert post.id not in _listed(db, org_admin)


def test_list_filters(db, org_a, user_a, make_post):
    request = make_post(user_a, org_a, title="Bring coffee beans")
    offer = make_post(user_a, org_a, post_type=PostType.OFFER, title="Spare suitcase space")

    assert _listed(db, user_a, post_type=PostType.OFFER) == [offer.id]
    assert _listed(db, user_a, search="coffee") == [request.id]
    assert set(_listed(db, user_a, destination="KE")) == {request.id, offer.id}
    assert _listed(db, user_a, destination="Paris") == []
    assert _listed(db, user_a, origin="Nairobi") == []


def test_list_newest_first(db, org_a, user_a, make_post):
    first = make_post(user_a, org_a, title="First")
    second = make_post(user_a, org_a, title="Second")
    assert _listed(db, user_a) == [second.id, first.id]


# =============================================================================
# Audience
# =============================================================================

def test_audience_excludes_creator_and_opted_out(db, org_a, user_a, make_user, make_post):
    member = make_user(org_a)
    make_user(org_a, preferences={"notifications_opt_out": True})
    post = make_post(user_a, org_a)

    assert [u.id for u in post_service.get_audience(db, post)] == [member.id]


def test_audience_includes_trusted_orgs(db, org_a, org_b, user_a, user_b, make_org, make_user, make_post):
    trust_service.create_trust(db, org_a.id, org_b.id)
    outsider = make_user(make_org("Org C"))
    same = make_post(user_a, org_a, visibility=PostVisibility.SAME)
    trusted = make_post(user_a, org_a, visibility=PostVisibility.TRUSTED)

    for post in (same, trusted):
        audience = [u.id for u in post_service.get_audience(db, post)]
        assert user_b.id in audience
        assert outsider.id not in audience
