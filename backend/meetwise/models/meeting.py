from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field


class Meeting(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(default="Untitled Meeting")
    description: str = Field(default="")
    summary: str = Field(default="")
    raw_transcript: Optional[str] = None
    topic_segmentation: Optional[str] = None  # JSON string
    creator_id: int = Field(index=True, foreign_key="user.id")
    team_id: Optional[int] = Field(default=None, index=True, foreign_key="team.id")
    # Bumped by every breakdown replace; guards concurrent re-analysis
    version: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
