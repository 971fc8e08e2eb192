from __future__ import annotations

from typing import Optional
from sqlmodel import SQLModel, Field


class Team(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    leader_id: int = Field(index=True, foreign_key="user.id")


class TeamMember(SQLModel, table=True):
    team_id: int = Field(primary_key=True, foreign_key="team.id")
    user_id: int = Field(primary_key=True, foreign_key="user.id")
