from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field


class TaskStatus(str, Enum):
    OPEN = "OPEN"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    NEEDS_REWORK = "NEEDS_REWORK"
    COMPLETED = "COMPLETED"


class Task(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(index=True, foreign_key="meeting.id")
    task: str
    owner: str = Field(default="")  # name as spoken in the transcript
    due_date: Optional[datetime] = None
    status: str = Field(default=TaskStatus.OPEN.value, index=True)
    assignee_id: Optional[int] = Field(default=None, index=True, foreign_key="user.id")
    comments: Optional[str] = None  # set on rejection only
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class TaskProof(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(index=True, foreign_key="task.id")
    user_id: int = Field(foreign_key="user.id")
    file_url: str
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
