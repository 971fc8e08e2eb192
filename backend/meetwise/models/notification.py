from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field


class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="user.id")
    message: str
    is_read: bool = Field(default=False)
    # Lookup-only references; no foreign keys so task/meeting deletes are never blocked
    task_id: Optional[int] = Field(default=None, index=True)
    meeting_id: Optional[int] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
