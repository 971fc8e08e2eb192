from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from meetwise.models.breakdown import Attendee
from meetwise.models.meeting import Meeting
from meetwise.models.notification import Notification
from meetwise.models.task import Task, TaskProof
from meetwise.models.user import User
from meetwise.repositories.breakdown import MeetingBreakdown


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -- requests ---------------------------------------------------------------


class CreateMeetingRequest(CamelModel):
    transcript: str
    team_id: Optional[int] = None


class CreateTaskRequest(CamelModel):
    meeting_id: int
    task: str
    owner: Optional[str] = None
    due_date: Optional[str] = None


class AssignTaskRequest(CamelModel):
    # null or "unassigned" clears the assignee
    assignee_id: Optional[Union[int, str]] = None
    due_date: Optional[str] = None


class EditTaskRequest(CamelModel):
    task: Optional[str] = None
    due_date: Optional[str] = None
    assignee_id: Optional[Union[int, str]] = None
    status: Optional[str] = None


class SubmitProofRequest(CamelModel):
    file_url: Optional[str] = None
    description: Optional[str] = None


class ReviewTaskRequest(CamelModel):
    status: str
    comments: Optional[str] = None


class MarkNotificationsRequest(CamelModel):
    notification_ids: Optional[List[int]] = None
    mark_all: bool = False


class AddAttendeeRequest(CamelModel):
    name: Optional[str] = None
    role: Optional[str] = None


# -- responses --------------------------------------------------------------


class UserRef(CamelModel):
    id: int
    name: str


class AttendeeRead(CamelModel):
    id: int
    meeting_id: int
    name: str
    role: str

    @classmethod
    def from_row(cls, attendee: Attendee) -> "AttendeeRead":
        return cls(id=attendee.id, meeting_id=attendee.meeting_id, name=attendee.name, role=attendee.role)


class ProofRead(CamelModel):
    id: int
    file_url: str
    description: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_row(cls, proof: TaskProof) -> "ProofRead":
        return cls(id=proof.id, file_url=proof.file_url, description=proof.description, created_at=proof.created_at)


class TaskRead(CamelModel):
    id: int
    meeting_id: int
    task: str
    owner: str
    due_date: Optional[datetime] = None
    status: str
    comments: Optional[str] = None
    assignee: Optional[UserRef] = None
    proofs: List[ProofRead] = []
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, task: Task, assignee: Optional[User] = None, proofs: Optional[List[TaskProof]] = None) -> "TaskRead":
        return cls(
            id=task.id,
            meeting_id=task.meeting_id,
            task=task.task,
            owner=task.owner,
            due_date=task.due_date,
            status=task.status,
            comments=task.comments,
            assignee=UserRef(id=assignee.id, name=assignee.name) if assignee is not None else None,
            proofs=[ProofRead.from_row(p) for p in proofs or []],
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class MeetingDetail(CamelModel):
    id: int
    name: str
    description: str
    summary: str
    creator_id: int
    team_id: Optional[int] = None
    version: int
    topic_segmentation: Optional[Dict[str, Any]] = None
    breakdown: Dict[str, List[Dict[str, Any]]]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_rows(
        cls,
        meeting: Meeting,
        breakdown: MeetingBreakdown,
        topic_segmentation: Optional[Dict[str, Any]] = None,
    ) -> "MeetingDetail":
        return cls(
            id=meeting.id,
            name=meeting.name,
            description=meeting.description,
            summary=meeting.summary,
            creator_id=meeting.creator_id,
            team_id=meeting.team_id,
            version=meeting.version,
            topic_segmentation=topic_segmentation,
            breakdown=breakdown.as_dict(),
            created_at=meeting.created_at,
            updated_at=meeting.updated_at,
        )


class NotificationRead(CamelModel):
    id: int
    message: str
    is_read: bool
    task_id: Optional[int] = None
    meeting_id: Optional[int] = None
    created_at: datetime

    @classmethod
    def from_row(cls, row: Notification) -> "NotificationRead":
        return cls(
            id=row.id,
            message=row.message,
            is_read=row.is_read,
            task_id=row.task_id,
            meeting_id=row.meeting_id,
            created_at=row.created_at,
        )


class NotificationList(CamelModel):
    notifications: List[NotificationRead]
    unread_count: int
