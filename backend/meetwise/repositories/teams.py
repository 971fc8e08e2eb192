from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from meetwise.models.meeting import Meeting
from meetwise.models.team import Team, TeamMember


class TeamsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, team_id: int) -> Optional[Team]:
        return self.session.get(Team, team_id)

    def leader_id_for_meeting(self, meeting: Meeting) -> Optional[int]:
        """Leader of the meeting's team; None for meetings without a team."""
        if meeting.team_id is None:
            return None
        team = self.get(meeting.team_id)
        return team.leader_id if team is not None else None

    def is_member(self, team_id: int, user_id: int) -> bool:
        statement = select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        return self.session.exec(statement).first() is not None

    def add_member(self, team_id: int, user_id: int) -> TeamMember:
        member = TeamMember(team_id=team_id, user_id=user_id)
        self.session.add(member)
        self.session.commit()
        return member
