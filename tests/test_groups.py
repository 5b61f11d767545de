import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cineclub.db import models
from cineclub.services import friends, groups
from cineclub.services import users as user_service
from cineclub.services.catalog import FilmNotFoundError


def make_session() -> Session:
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    return SessionLocal()


def make_users(session: Session, *names: str) -> list:
    return [user_service.get_or_create_user(session, name) for name in names]


def test_creator_becomes_admin():
    session = make_session()
    (owner,) = make_users(session, "owner")

    group = groups.create_group(session, owner, groups.GroupDraft(title="  Noir  ", theme="noir"))

    summary = groups.get_group_summary(session, group.id, owner.id)
    assert summary.title == "Noir"
    assert summary.user_role == groups.ROLE_ADMIN
    assert summary.member_count == 1
    assert summary.creator_username == "owner"
    session.close()


def test_blank_title_is_rejected():
    session = make_session()
    (owner,) = make_users(session, "owner")
    with pytest.raises(ValueError):
        groups.create_group(session, owner, groups.GroupDraft(title="   "))
    session.close()


def test_private_groups_are_listed_for_members_only():
    session = make_session()
    owner, outsider = make_users(session, "owner", "outsider")
    groups.create_group(session, owner, groups.GroupDraft(title="Open"))
    hidden = groups.create_group(session, owner, groups.GroupDraft(title="Hidden", is_public=False))

    assert [summary.title for summary in groups.list_groups(session, owner.id)] == ["Hidden", "Open"]
    assert [summary.title for summary in groups.list_groups(session, outsider.id)] == ["Open"]
    with pytest.raises(groups.GroupPermissionError):
        groups.get_group_details(session, hidden.id, outsider.id)
    session.close()


def test_join_and_leave_public_group():
    session = make_session()
    owner, fan = make_users(session, "owner", "fan")
    group = groups.create_group(session, owner, groups.GroupDraft(title="Westerns"))

    groups.join_group(session, group.id, fan.id)
    with pytest.raises(groups.GroupConflictError):
        groups.join_group(session, group.id, fan.id)
    assert groups.get_group_summary(session, group.id, fan.id).member_count == 2

    groups.leave_group(session, group.id, fan.id)
    with pytest.raises(groups.MembershipNotFoundError):
        groups.leave_group(session, group.id, fan.id)
    with pytest.raises(groups.GroupPermissionError):
        groups.leave_group(session, group.id, owner.id)
    session.close()


def test_private_group_cannot_be_joined_directly():
    session = make_session()
    owner, fan = make_users(session, "owner", "fan")
    group = groups.create_group(session, owner, groups.GroupDraft(title="Club", is_public=False))
    with pytest.raises(groups.GroupPermissionError):
        groups.join_group(session, group.id, fan.id)
    with pytest.raises(groups.GroupNotFoundError):
        groups.join_group(session, 999, fan.id)
    session.close()


def test_only_friends_can_be_invited():
    session = make_session()
    owner, pal, stranger = make_users(session, "owner", "pal", "stranger")
    group = groups.create_group(session, owner, groups.GroupDraft(title="Club", is_public=False))
    friends.add_friendship(session, owner.id, pal.id)

    with pytest.raises(groups.GroupPermissionError):
        groups.invite_to_group(session, group.id, owner.id, stranger.id)
    with pytest.raises(groups.GroupPermissionError):
        groups.invite_to_group(session, group.id, stranger.id, pal.id)
    with pytest.raises(groups.UserNotFoundError):
        groups.invite_to_group(session, group.id, owner.id, 999)
    with pytest.raises(groups.GroupConflictError):
        groups.invite_to_group(session, group.id, owner.id, owner.id)

    invitation = groups.invite_to_group(session, group.id, owner.id, pal.id)
    assert invitation.status == groups.STATUS_PENDING
    with pytest.raises(groups.GroupConflictError):
        groups.invite_to_group(session, group.id, owner.id, pal.id)
    session.close()


def test_accepting_an_invitation_grants_membership():
    session = make_session()
    owner, pal = make_users(session, "owner", "pal")
    group = groups.create_group(session, owner, groups.GroupDraft(title="Club", is_public=False))
    friends.add_friendship(session, owner.id, pal.id)
    invitation = groups.invite_to_group(session, group.id, owner.id, pal.id)

    pending = groups.list_invitations(session, pal.id)
    assert [(entry.group_title, entry.inviter_username) for entry in pending] == [("Club", "owner")]
    with pytest.raises(groups.InvitationNotFoundError):
        groups.accept_invitation(session, invitation.id, owner.id)

    groups.accept_invitation(session, invitation.id, pal.id)

    assert groups.get_group_summary(session, group.id, pal.id).user_role == groups.ROLE_MEMBER
    assert groups.list_invitations(session, pal.id) == []
    with pytest.raises(ValueError):
        groups.accept_invitation(session, invitation.id, pal.id)
    session.close()


def test_reinviting_after_rejection_reuses_the_invitation():
    session = make_session()
    owner, pal, other = make_users(session, "owner", "pal", "other")
    group = groups.create_group(session, owner, groups.GroupDraft(title="Club"))
    friends.add_friendship(session, owner.id, pal.id)
    friends.add_friendship(session, other.id, pal.id)
    groups.join_group(session, group.id, other.id)
    first = groups.invite_to_group(session, group.id, owner.id, pal.id)
    groups.reject_invitation(session, first.id, pal.id)

    again = groups.invite_to_group(session, group.id, other.id, pal.id)

    assert again.id == first.id
    assert again.status == groups.STATUS_PENDING
    assert again.inviter_id == other.id
    rows = session.scalars(select(models.GroupInvitation)).all()
    assert len(rows) == 1
    session.close()


def test_update_requires_admin_or_moderator():
    session = make_session()
    owner, fan = make_users(session, "owner", "fan")
    group = groups.create_group(session, owner, groups.GroupDraft(title="Club"))
    groups.join_group(session, group.id, fan.id)

    with pytest.raises(groups.GroupPermissionError):
        groups.update_group(session, group.id, fan.id, {"title": "Mine"})
    with pytest.raises(ValueError):
        groups.update_group(session, group.id, owner.id, {})
    with pytest.raises(ValueError):
        groups.update_group(session, group.id, owner.id, {"title": " "})

    updated = groups.update_group(session, group.id, owner.id, {"description": "Films noirs", "is_public": False})
    assert updated.description == "Films noirs"
    assert updated.is_public is False
    session.close()


def test_delete_requires_admin_and_removes_links():
    session = make_session()
    owner, fan = make_users(session, "owner", "fan")
    film = models.Film(title="Laura")
    session.add(film)
    session.flush()
    group = groups.create_group(session, owner, groups.GroupDraft(title="Club"))
    groups.join_group(session, group.id, fan.id)
    groups.add_film_to_group(session, group.id, fan.id, film.id)

    with pytest.raises(groups.GroupPermissionError):
        groups.delete_group(session, group.id, fan.id)
    groups.delete_group(session, group.id, owner.id)

    assert session.get(models.Group, group.id) is None
    assert session.scalars(select(models.GroupMember)).all() == []
    assert session.scalars(select(models.GroupFilm)).all() == []
    assert session.get(models.Film, film.id) is not None
    session.close()


def test_group_details_order_members_and_films():
    session = make_session()
    owner, fan, mod = make_users(session, "owner", "fan", "mod")
    first = models.Film(title="Laura")
    second = models.Film(title="Gilda")
    session.add_all([first, second])
    session.flush()
    group = groups.create_group(session, owner, groups.GroupDraft(title="Club"))
    groups.join_group(session, group.id, fan.id)
    member = groups.join_group(session, group.id, mod.id)
    member.role = groups.ROLE_MODERATOR
    groups.add_film_to_group(session, group.id, owner.id, first.id)
    groups.add_film_to_group(session, group.id, fan.id, second.id)

    details = groups.get_group_details(session, group.id, fan.id)

    assert [(entry.username, entry.role) for entry in details.members] == [
        ("owner", "admin"),
        ("mod", "moderator"),
        ("fan", "member"),
    ]
    assert [(entry.title, entry.added_by) for entry in details.films] == [("Gilda", "fan"), ("Laura", "owner")]
    assert details.group.film_count == 2
    session.close()


def test_add_film_checks_membership_and_duplicates():
    session = make_session()
    owner, outsider = make_users(session, "owner", "outsider")
    film = models.Film(title="Laura")
    session.add(film)
    session.flush()
    group = groups.create_group(session, owner, groups.GroupDraft(title="Club"))

    with pytest.raises(groups.GroupPermissionError):
        groups.add_film_to_group(session, group.id, outsider.id, film.id)
    with pytest.raises(FilmNotFoundError):
        groups.add_film_to_group(session, group.id, owner.id, 999)
    groups.add_film_to_group(session, group.id, owner.id, film.id)
    with pytest.raises(groups.GroupConflictError):
        groups.add_film_to_group(session, group.id, owner.id, film.id)
    session.close()
