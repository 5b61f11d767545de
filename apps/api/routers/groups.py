from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cineclub.db import models
from cineclub.services import groups as group_service

from ..auth import require_api_user
from ..dependencies import get_db_session
from ..schemas import (
    GroupCreateRequest,
    GroupDetail,
    GroupFilmItem,
    GroupFilmRequest,
    GroupInviteRequest,
    GroupItem,
    GroupList,
    GroupMemberItem,
    GroupUpdateRequest,
    InvitationItem,
    InvitationList,
)


router = APIRouter(prefix="/groups", tags=["groups"])

GROUP_ERRORS = (LookupError, PermissionError, ValueError)


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, group_service.GroupConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.get("/", response_model=GroupList, summary="Visible groups")
def list_groups(
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> GroupList:
    summaries = group_service.list_groups(session, user.id)
    return GroupList(groups=[GroupItem.model_validate(summary) for summary in summaries])


@router.post("/", response_model=GroupItem, status_code=status.HTTP_201_CREATED, summary="Create group")
def create_group(
    payload: GroupCreateRequest,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> GroupItem:
    try:
        group = group_service.create_group(session, user, group_service.GroupDraft(**payload.model_dump()))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return GroupItem.model_validate(group_service.get_group_summary(session, group.id, user.id))


@router.get("/invitations", response_model=InvitationList, summary="Pending invitations")
def list_invitations(
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> InvitationList:
    entries = group_service.list_invitations(session, user.id)
    return InvitationList(invitations=[InvitationItem.model_validate(entry) for entry in entries])


@router.post("/invitations/{invitation_id}/accept", summary="Accept invitation")
def accept_invitation(
    invitation_id: int,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> dict:
    try:
        invitation = group_service.accept_invitation(session, invitation_id, user.id)
    except GROUP_ERRORS as exc:
        raise _http_error(exc) from exc
    return {"invitation_id": invitation.id, "group_id": invitation.group_id, "status": invitation.status}


@router.post("/invitations/{invitation_id}/reject", summary="Reject invitation")
def reject_invitation(
    invitation_id: int,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> dict:
    try:
        invitation = group_service.reject_invitation(session, invitation_id, user.id)
    except GROUP_ERRORS as exc:
        raise _http_error(exc) from exc
    return {"invitation_id": invitation.id, "group_id": invitation.group_id, "status": invitation.status}


@router.get("/{group_id}", response_model=GroupDetail, summary="Group members and films")
def read_group(
    group_id: int,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> GroupDetail:
    try:
        details = group_service.get_group_details(session, group_id, user.id)
    except GROUP_ERRORS as exc:
        raise _http_error(exc) from exc
    return GroupDetail(
        group=GroupItem.model_validate(details.group),
        members=[GroupMemberItem.model_validate(member) for member in details.members],
        films=[GroupFilmItem.model_validate(film) for film in details.films],
    )


@router.patch("/{group_id}", response_model=GroupItem, summary="Update group")
def update_group(
    group_id: int,
    payload: GroupUpdateRequest,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> GroupItem:
    try:
        group_service.update_group(session, group_id, user.id, payload.model_dump(exclude_unset=True))
    except GROUP_ERRORS as exc:
        raise _http_error(exc) from exc
    return GroupItem.model_validate(group_service.get_group_summary(session, group_id, user.id))


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete group")
def delete_group(
    group_id: int,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> None:
    try:
        group_service.delete_group(session, group_id, user.id)
    except GROUP_ERRORS as exc:
        raise _http_error(exc) from exc


@router.post("/{group_id}/join", status_code=status.HTTP_201_CREATED, summary="Join public group")
def join_group(
    group_id: int,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> dict:
    try:
        member = group_service.join_group(session, group_id, user.id)
    except GROUP_ERRORS as exc:
        raise _http_error(exc) from exc
    return {"group_id": group_id, "user_id": user.id, "role": member.role}


@router.post("/{group_id}/leave", status_code=status.HTTP_204_NO_CONTENT, summary="Leave group")
def leave_group(
    group_id: int,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> None:
    try:
        group_service.leave_group(session, group_id, user.id)
    except GROUP_ERRORS as exc:
        raise _http_error(exc) from exc


@router.post("/{group_id}/invitations", status_code=status.HTTP_201_CREATED, summary="Invite a friend")
def invite_friend(
    group_id: int,
    payload: GroupInviteRequest,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> dict:
    try:
        invitation = group_service.invite_to_group(session, group_id, user.id, payload.user_id)
    except GROUP_ERRORS as exc:
        raise _http_error(exc) from exc
    return {"invitation_id": invitation.id, "group_id": group_id, "status": invitation.status}


@router.post("/{group_id}/films", status_code=status.HTTP_201_CREATED, summary="Add film to group")
def add_film(
    group_id: int,
    payload: GroupFilmRequest,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> dict:
    try:
        group_service.add_film_to_group(session, group_id, user.id, payload.film_id)
    except GROUP_ERRORS as exc:
        raise _http_error(exc) from exc
    return {"group_id": group_id, "film_id": payload.film_id}
