"""
Thematic groups: membership roles, friend invitations and shared film lists.

Public groups are visible to everyone and open to join; private groups are
visible to their members only and are entered through an invitation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Mapping, Optional
import logging

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

from ..db import models
from .catalog import FilmNotFoundError
from .friends import are_friends

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_MODERATOR = "moderator"
ROLE_MEMBER = "member"

STATUS_PENDING = "pending"
STATUS_ACCEPTED = "accepted"
STATUS_REJECTED = "rejected"

INVITATION_LIMIT = 50
UPDATABLE_FIELDS = ("title", "description", "cover_image_url", "theme", "is_public")


class GroupNotFoundError(LookupError):
    pass


class MembershipNotFoundError(LookupError):
    pass


class InvitationNotFoundError(LookupError):
    pass


class UserNotFoundError(LookupError):
    pass


class GroupPermissionError(PermissionError):
    pass


class GroupConflictError(ValueError):
    """The requested membership, invitation or film link already exists."""


@dataclass
class GroupDraft:
    title: str
    description: Optional[str] = None
    cover_image_url: Optional[str] = None
    theme: Optional[str] = None
    is_public: bool = True


@dataclass
class GroupSummary:
    id: int
    title: str
    description: Optional[str]
    cover_image_url: Optional[str]
    theme: Optional[str]
    is_public: bool
    created_at: datetime
    creator_id: int
    creator_username: str
    member_count: int = 0
    film_count: int = 0
    user_role: Optional[str] = None


@dataclass
class GroupMemberEntry:
    user_id: int
    username: str
    avatar_url: Optional[str]
    role: str
    joined_at: datetime


@dataclass
class GroupFilmEntry:
    film_id: int
    title: str
    poster_url: Optional[str]
    release_date: Optional[date]
    added_by: str
    added_at: datetime


@dataclass
class GroupDetails:
    group: GroupSummary
    members: List[GroupMemberEntry] = field(default_factory=list)
    films: List[GroupFilmEntry] = field(default_factory=list)


@dataclass
class InvitationEntry:
    id: int
    group_id: int
    group_title: str
    inviter_id: int
    inviter_username: str
    status: str
    created_at: datetime


def _summaries(user_id: int):
    member_count = (
        select(func.count(models.GroupMember.id))
        .where(models.GroupMember.group_id == models.Group.id)
        .correlate(models.Group)
        .scalar_subquery()
    )
    film_count = (
        select(func.count(models.GroupFilm.id))
        .where(models.GroupFilm.group_id == models.Group.id)
        .correlate(models.Group)
        .scalar_subquery()
    )
    user_role = (
        select(models.GroupMember.role)
        .where(
            models.GroupMember.group_id == models.Group.id,
            models.GroupMember.user_id == user_id,
        )
        .correlate(models.Group)
        .scalar_subquery()
    )
    stmt = select(
        models.Group,
        models.User.username,
        member_count.label("member_count"),
        film_count.label("film_count"),
        user_role.label("user_role"),
    ).join(models.User, models.Group.creator_id == models.User.id)
    return stmt, user_role


def _to_summary(group: models.Group, creator_username: str, member_count, film_count, user_role) -> GroupSummary:
    return GroupSummary(
        id=group.id,
        title=group.title,
        description=group.description,
        cover_image_url=group.cover_image_url,
        theme=group.theme,
        is_public=bool(group.is_public),
        created_at=group.created_at,
        creator_id=group.creator_id,
        creator_username=creator_username,
        member_count=int(member_count or 0),
        film_count=int(film_count or 0),
        user_role=user_role,
    )


def list_groups(session: Session, user_id: int) -> List[GroupSummary]:
    """Public groups plus the private groups ``user_id`` belongs to, newest first."""
    stmt, user_role = _summaries(user_id)
    stmt = stmt.where(or_(models.Group.is_public.is_(True), user_role.is_not(None))).order_by(
        models.Group.created_at.desc(), models.Group.id.desc()
    )
    return [_to_summary(*row) for row in session.execute(stmt).all()]


def get_group_summary(session: Session, group_id: int, user_id: int) -> GroupSummary:
    stmt, _ = _summaries(user_id)
    row = session.execute(stmt.where(models.Group.id == group_id)).one_or_none()
    if row is None:
        raise GroupNotFoundError(f"Group {group_id} not found")
    return _to_summary(*row)


def get_group_details(session: Session, group_id: int, user_id: int) -> GroupDetails:
    summary = get_group_summary(session, group_id, user_id)
    if not summary.is_public and summary.user_role is None:
        raise GroupPermissionError("This group is private.")

    role_rank = case(
        (models.GroupMember.role == ROLE_ADMIN, 1),
        (models.GroupMember.role == ROLE_MODERATOR, 2),
        else_=3,
    )
    member_rows = session.execute(
        select(models.GroupMember, models.User)
        .join(models.User, models.GroupMember.user_id == models.User.id)
        .where(models.GroupMember.group_id == group_id)
        .order_by(role_rank, models.GroupMember.created_at, models.GroupMember.id)
    ).all()
    film_rows = session.execute(
        select(models.GroupFilm, models.Film, models.User.username)
        .join(models.Film, models.GroupFilm.film_id == models.Film.id)
        .join(models.User, models.GroupFilm.added_by_id == models.User.id)
        .where(models.GroupFilm.group_id == group_id)
        .order_by(models.GroupFilm.created_at.desc(), models.GroupFilm.id.desc())
    ).all()
    return GroupDetails(
        group=summary,
        members=[
            GroupMemberEntry(
                user_id=user.id,
                username=user.username,
                avatar_url=user.avatar_url,
                role=member.role,
                joined_at=member.created_at,
            )
            for member, user in member_rows
        ],
        films=[
            GroupFilmEntry(
                film_id=film.id,
                title=film.title,
                poster_url=film.poster_url,
                release_date=film.release_date,
                added_by=username,
                added_at=link.created_at,
            )
            for link, film, username in film_rows
        ],
    )


def create_group(session: Session, creator: models.User, draft: GroupDraft) -> models.Group:
    title = (draft.title or "").strip()
    if not title:
        raise ValueError("Group title is required.")
    group = models.Group(
        creator_id=creator.id,
        title=title,
        description=draft.description,
        cover_image_url=draft.cover_image_url,
        theme=draft.theme,
        is_public=draft.is_public,
    )
    session.add(group)
    session.flush()
    session.add(models.GroupMember(group_id=group.id, user_id=creator.id, role=ROLE_ADMIN))
    session.flush()
    logger.info("User %s created group %s (%s)", creator.id, group.id, title)
    return group


def update_group(
    session: Session, group_id: int, user_id: int, changes: Mapping[str, Any]
) -> models.Group:
    group = _get_group(session, group_id)
    if _role(session, group_id, user_id) not in (ROLE_ADMIN, ROLE_MODERATOR):
        raise GroupPermissionError("Only admins and moderators can edit this group.")
    updates = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS}
    if not updates:
        raise ValueError("Nothing to update.")
    if "title" in updates:
        updates["title"] = (updates["title"] or "").strip()
        if not updates["title"]:
            raise ValueError("Group title is required.")
    if "is_public" in updates and updates["is_public"] is None:
        raise ValueError("is_public cannot be null.")
    for key, value in updates.items():
        setattr(group, key, value)
    group.updated_at = datetime.utcnow()
    session.flush()
    return group


def delete_group(session: Session, group_id: int, user_id: int) -> None:
    group = _get_group(session, group_id)
    if _role(session, group_id, user_id) != ROLE_ADMIN:
        raise GroupPermissionError("Only the admin can delete this group.")
    session.delete(group)
    session.flush()
    logger.info("User %s deleted group %s", user_id, group_id)


def join_group(session: Session, group_id: int, user_id: int) -> models.GroupMember:
    group = _get_group(session, group_id)
    if not group.is_public:
        raise GroupPermissionError("This group is private; an invitation is required to join.")
    if _role(session, group_id, user_id) is not None:
        raise GroupConflictError("Already a member of this group.")
    member = models.GroupMember(group_id=group_id, user_id=user_id, role=ROLE_MEMBER)
    session.add(member)
    session.flush()
    return member


def leave_group(session: Session, group_id: int, user_id: int) -> None:
    _get_group(session, group_id)
    member = _membership(session, group_id, user_id)
    if member is None:
        raise MembershipNotFoundError("Not a member of this group.")
    if member.role == ROLE_ADMIN:
        # the group would be left without an admin
        raise GroupPermissionError("The admin cannot leave the group; delete it instead.")
    session.delete(member)
    session.flush()


def invite_to_group(
    session: Session, group_id: int, inviter_id: int, invitee_id: int
) -> models.GroupInvitation:
    """
    Invite a friend into a group.

    A previously accepted or rejected invitation for the same person is
    reset to pending rather than duplicated.
    """
    group = _get_group(session, group_id)
    if _role(session, group_id, inviter_id) is None:
        raise GroupPermissionError("Only members can invite people to this group.")
    if session.get(models.User, invitee_id) is None:
        raise UserNotFoundError(f"User {invitee_id} not found")
    if invitee_id == inviter_id or _role(session, group_id, invitee_id) is not None:
        raise GroupConflictError("This user is already a member of the group.")
    if not are_friends(session, inviter_id, invitee_id):
        raise GroupPermissionError("You can only invite your friends.")

    invitation = session.scalars(
        select(models.GroupInvitation).where(
            models.GroupInvitation.group_id == group_id,
            models.GroupInvitation.invitee_id == invitee_id,
        )
    ).one_or_none()
    if invitation is not None and invitation.status == STATUS_PENDING:
        raise GroupConflictError("This user already has a pending invitation to the group.")
    if invitation is not None:
        invitation.status = STATUS_PENDING
        invitation.inviter_id = inviter_id
        invitation.created_at = datetime.utcnow()
    else:
        invitation = models.GroupInvitation(
            group_id=group_id,
            inviter_id=inviter_id,
            invitee_id=invitee_id,
            status=STATUS_PENDING,
        )
        session.add(invitation)
    session.flush()
    logger.info("User %s invited user %s to group %s (%s)", inviter_id, invitee_id, group_id, group.title)
    return invitation


def list_invitations(session: Session, user_id: int, limit: int = INVITATION_LIMIT) -> List[InvitationEntry]:
    stmt = (
        select(models.GroupInvitation, models.Group.title, models.User.username)
        .join(models.Group, models.GroupInvitation.group_id == models.Group.id)
        .join(models.User, models.GroupInvitation.inviter_id == models.User.id)
        .where(
            models.GroupInvitation.invitee_id == user_id,
            models.GroupInvitation.status == STATUS_PENDING,
        )
        .order_by(models.GroupInvitation.created_at.desc(), models.GroupInvitation.id.desc())
        .limit(limit)
    )
    return [
        InvitationEntry(
            id=invitation.id,
            group_id=invitation.group_id,
            group_title=title,
            inviter_id=invitation.inviter_id,
            inviter_username=username,
            status=invitation.status,
            created_at=invitation.created_at,
        )
        for invitation, title, username in session.execute(stmt).all()
    ]


def accept_invitation(session: Session, invitation_id: int, user_id: int) -> models.GroupInvitation:
    invitation = _pending_invitation(session, invitation_id, user_id)
    if _role(session, invitation.group_id, user_id) is None:
        session.add(models.GroupMember(group_id=invitation.group_id, user_id=user_id, role=ROLE_MEMBER))
    invitation.status = STATUS_ACCEPTED
    session.flush()
    return invitation


def reject_invitation(session: Session, invitation_id: int, user_id: int) -> models.GroupInvitation:
    invitation = _pending_invitation(session, invitation_id, user_id)
    invitation.status = STATUS_REJECTED
    session.flush()
    return invitation


def add_film_to_group(session: Session, group_id: int, user_id: int, film_id: int) -> models.GroupFilm:
    _get_group(session, group_id)
    if _role(session, group_id, user_id) is None:
        raise GroupPermissionError("Only members can add films to this group.")
    if session.get(models.Film, film_id) is None:
        raise FilmNotFoundError(f"Film {film_id} not found")
    existing = session.scalars(
        select(models.GroupFilm.id).where(
            models.GroupFilm.group_id == group_id,
            models.GroupFilm.film_id == film_id,
        )
    ).first()
    if existing is not None:
        raise GroupConflictError("This film is already in the group.")
    link = models.GroupFilm(group_id=group_id, film_id=film_id, added_by_id=user_id)
    session.add(link)
    session.flush()
    return link


def _get_group(session: Session, group_id: int) -> models.Group:
    group = session.get(models.Group, group_id)
    if group is None:
        raise GroupNotFoundError(f"Group {group_id} not found")
    return group


def _membership(session: Session, group_id: int, user_id: int) -> Optional[models.GroupMember]:
    stmt = select(models.GroupMember).where(
        models.GroupMember.group_id == group_id,
        models.GroupMember.user_id == user_id,
    )
    return session.scalars(stmt).one_or_none()


def _role(session: Session, group_id: int, user_id: int) -> Optional[str]:
    member = _membership(session, group_id, user_id)
    return member.role if member else None


def _pending_invitation(session: Session, invitation_id: int, user_id: int) -> models.GroupInvitation:
    invitation = session.get(models.GroupInvitation, invitation_id)
    if invitation is None or invitation.invitee_id != user_id:
        raise InvitationNotFoundError(f"Invitation {invitation_id} not found")
    if invitation.status != STATUS_PENDING:
        raise ValueError("Invitation already handled.")
    return invitation
