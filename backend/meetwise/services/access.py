from __future__ import annotations

from sqlmodel import Session

from meetwise.models.meeting import Meeting
from meetwise.models.user import User
from meetwise.repositories.teams import TeamsRepository
from meetwise.services.errors import Forbidden


def is_creator_or_leader(session: Session, meeting: Meeting, user: User) -> bool:
    if user.id == meeting.creator_id:
        return True
    return user.id == TeamsRepository(session).leader_id_for_meeting(meeting)


def require_creator_or_leader(session: Session, meeting: Meeting, actor: User, message: str) -> None:
    if not is_creator_or_leader(session, meeting, actor):
        raise Forbidden(message)
