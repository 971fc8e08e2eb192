"""Manual edits to a meeting's attendee list.

Anyone who can see the meeting may read the list. Only the meeting creator
or the leader of its team may add or remove people, and names stay unique
within a meeting.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlmodel import Session

from meetwise.models.breakdown import Attendee
from meetwise.models.meeting import Meeting
from meetwise.models.user import User
from meetwise.repositories.attendees import AttendeesRepository
from meetwise.repositories.meetings import MeetingsRepository
from meetwise.repositories.teams import TeamsRepository
from meetwise.services.access import is_creator_or_leader, require_creator_or_leader
from meetwise.services.errors import Forbidden, NotFound, ValidationFailed

logger = logging.getLogger("meetwise.attendees")

DEFAULT_ROLE = "PARTICIPANT"


class AttendeeRoster:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.attendees = AttendeesRepository(session)

    def list_attendees(self, meeting_id: int, actor: User) -> List[Attendee]:
        meeting = self._load(meeting_id)
        if not self._can_view(meeting, actor):
            raise Forbidden("Access denied to this meeting")
        return self.attendees.list_by_meeting(meeting_id)

    def add_attendee(self, meeting_id: int, actor: User, name: Optional[str], role: Optional[str] = None) -> Attendee:
        name = (name or "").strip()
        if not name:
            raise ValidationFailed("Name is required")
        meeting = self._load(meeting_id)
        require_creator_or_leader(
            self.session, meeting, actor, "Only the meeting creator or team leader can add attendees"
        )
        if self.attendees.find_by_name(meeting_id, name) is not None:
            raise ValidationFailed("Attendee already exists in this meeting")

        attendee = self.attendees.add(
            Attendee(meeting_id=meeting_id, name=name, role=(role or "").strip() or DEFAULT_ROLE)
        )
        logger.info("Attendee %r added to meeting %s by user %s", name, meeting_id, actor.id)
        return attendee

    def remove_attendee(self, meeting_id: int, actor: User, attendee_id: Optional[int]) -> None:
        if attendee_id is None:
            raise ValidationFailed("Attendee ID is required")
        meeting = self._load(meeting_id)
        require_creator_or_leader(
            self.session, meeting, actor, "Only the meeting creator or team leader can remove attendees"
        )
        attendee = self.attendees.get(attendee_id)
        if attendee is None or attendee.meeting_id != meeting_id:
            raise NotFound("Attendee not found")
        if attendee.name == actor.name:
            raise ValidationFailed("Meeting creator cannot be removed from their own meeting")

        self.attendees.delete(attendee)
        logger.info("Attendee %s removed from meeting %s by user %s", attendee_id, meeting_id, actor.id)

    def _load(self, meeting_id: int) -> Meeting:
        meeting = MeetingsRepository(self.session).get(meeting_id)
        if meeting is None:
            raise NotFound("Meeting not found")
        return meeting

    def _can_view(self, meeting: Meeting, user: User) -> bool:
        if is_creator_or_leader(self.session, meeting, user):
            return True
        if meeting.team_id is not None and TeamsRepository(self.session).is_member(meeting.team_id, user.id):
            return True
        return self.attendees.find_by_name(meeting.id, user.name) is not None
