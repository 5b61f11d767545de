from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel


class GroupCreateRequest(BaseModel):
    title: str
    description: str | None = None
    cover_image_url: str | None = None
    theme: str | None = None
    is_public: bool = True


class GroupUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    cover_image_url: str | None = None
    theme: str | None = None
    is_public: bool | None = None


class GroupInviteRequest(BaseModel):
    user_id: int


class GroupFilmRequest(BaseModel):
    film_id: int


class GroupItem(BaseModel):
    id: int
    title: str
    description: str | None = None
    cover_image_url: str | None = None
    theme: str | None = None
    is_public: bool
    created_at: datetime
    creator_id: int
    creator_username: str
    member_count: int = 0
    film_count: int = 0
    user_role: str | None = None

    model_config = {
        "from_attributes": True,
    }


class GroupList(BaseModel):
    groups: list[GroupItem]


class GroupMemberItem(BaseModel):
    user_id: int
    username: str
    avatar_url: str | None = None
    role: str
    joined_at: datetime

    model_config = {
        "from_attributes": True,
    }


class GroupFilmItem(BaseModel):
    film_id: int
    title: str
    poster_url: str | None = None
    release_date: date | None = None
    added_by: str
    added_at: datetime

    model_config = {
        "from_attributes": True,
    }


class GroupDetail(BaseModel):
    group: GroupItem
    members: list[GroupMemberItem]
    films: list[GroupFilmItem]


class InvitationItem(BaseModel):
    id: int
    group_id: int
    group_title: str
    inviter_id: int
    inviter_username: str
    status: str
    created_at: datetime

    model_config = {
        "from_attributes": True,
    }


class InvitationList(BaseModel):
    invitations: list[InvitationItem]
