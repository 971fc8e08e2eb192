from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from meetwise.api.schemas import MarkNotificationsRequest, NotificationList, NotificationRead
from meetwise.deps import get_current_user, get_session
from meetwise.models.user import User
from meetwise.repositories.notifications import NotificationsRepository
from meetwise.services.errors import ValidationFailed


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    limit: int = Query(default=10, ge=1, le=100),
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> NotificationList:
    repo = NotificationsRepository(session)
    rows = repo.list_for_user(user.id, limit=limit, unread_only=unread_only)
    return NotificationList(
        notifications=[NotificationRead.from_row(r) for r in rows],
        unread_count=repo.unread_count(user.id),
    )


@router.patch("")
def mark_notifications_read(
    body: MarkNotificationsRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Dict[str, int]:
    repo = NotificationsRepository(session)
    if body.mark_all:
        updated = repo.mark_all_read(user.id)
    elif body.notification_ids:
        updated = repo.mark_read(user.id, body.notification_ids)
    else:
        raise ValidationFailed("Provide notificationIds or markAll")
    return {"updated": updated, "unreadCount": repo.unread_count(user.id)}
