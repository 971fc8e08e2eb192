from __future__ import annotations

from typing import Iterable

from sqlalchemy import func
from sqlmodel import Session, select

from meetwise.models.notification import Notification


class NotificationsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, notification: Notification) -> Notification:
        self.session.add(notification)
        self.session.commit()
        self.session.refresh(notification)
        return notification

    def list_for_user(self, user_id: int, limit: int = 10, unread_only: bool = False) -> list[Notification]:
        statement = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            statement = statement.where(Notification.is_read == False)  # noqa: E712
        statement = statement.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        return list(self.session.exec(statement))

    def unread_count(self, user_id: int) -> int:
        statement = select(func.count()).select_from(Notification).where(
            Notification.user_id == user_id, Notification.is_read == False  # noqa: E712
        )
        return int(self.session.exec(statement).one())

    def mark_read(self, user_id: int, notification_ids: Iterable[int]) -> int:
        # Only the owner's notifications are touched
        statement = select(Notification).where(
            Notification.user_id == user_id,
            Notification.id.in_(list(notification_ids)),
            Notification.is_read == False,  # noqa: E712
        )
        return self._mark(list(self.session.exec(statement)))

    def mark_all_read(self, user_id: int) -> int:
        statement = select(Notification).where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        return self._mark(list(self.session.exec(statement)))

    def _mark(self, rows: list[Notification]) -> int:
        for row in rows:
            row.is_read = True
            self.session.add(row)
        self.session.commit()
        return len(rows)
