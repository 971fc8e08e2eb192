from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from meetwise.models.meeting import Meeting
from meetwise.services.errors import StorageFailure


class MeetingsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, meeting_id: int) -> Optional[Meeting]:
        return self.session.get(Meeting, meeting_id)

    def list_for_creator(self, creator_id: int, limit: int = 50, offset: int = 0) -> list[Meeting]:
        statement = (
            select(Meeting)
            .where(Meeting.creator_id == creator_id)
            .order_by(Meeting.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.exec(statement))

    def update(self, meeting: Meeting) -> Meeting:
        meeting.updated_at = datetime.utcnow()
        self.session.add(meeting)
        self.session.commit()
        self.session.refresh(meeting)
        return meeting

    def delete(self, meeting: Meeting) -> None:
        """Delete a meeting together with its whole breakdown."""
        from meetwise.repositories.breakdown import BreakdownRepository

        try:
            BreakdownRepository(self.session).delete_for_meeting(meeting.id)
            self.session.delete(meeting)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Failed to delete meeting") from exc
