from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from meetwise.models.breakdown import Attendee
from meetwise.services.errors import StorageFailure


class AttendeesRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, attendee_id: int) -> Optional[Attendee]:
        return self.session.get(Attendee, attendee_id)

    def list_by_meeting(self, meeting_id: int) -> list[Attendee]:
        statement = select(Attendee).where(Attendee.meeting_id == meeting_id).order_by(Attendee.id.asc())
        return list(self.session.exec(statement))

    def find_by_name(self, meeting_id: int, name: str) -> Optional[Attendee]:
        statement = select(Attendee).where(Attendee.meeting_id == meeting_id, Attendee.name == name)
        return self.session.exec(statement).first()

    def add(self, attendee: Attendee) -> Attendee:
        try:
            self.session.add(attendee)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Failed to add attendee") from exc
        self.session.refresh(attendee)
        return attendee

    def delete(self, attendee: Attendee) -> None:
        try:
            self.session.delete(attendee)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Failed to remove attendee") from exc
