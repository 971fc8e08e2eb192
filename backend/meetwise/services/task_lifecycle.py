"""Task state machine: assignment, proof submission and leader review.

    OPEN ──submit proof──> PENDING_APPROVAL ──approve──> COMPLETED
                                 ^   │
                      resubmit   │   └──reject──> NEEDS_REWORK
                                 └─────────────────────┘

The only way back to OPEN is the leader's edit operation. Every operation
re-reads the task row with FOR UPDATE and checks its precondition against
the stored status before writing, so two leaders reviewing at once cannot
both succeed. Operations return the notification events to send once the
change has committed; they never send anything themselves.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from meetwise.models.meeting import Meeting
from meetwise.models.task import Task, TaskProof, TaskStatus
from meetwise.models.user import User
from meetwise.repositories.tasks import TasksRepository
from meetwise.repositories.teams import TeamsRepository
from meetwise.services.errors import (
    Forbidden,
    InvalidState,
    NotFound,
    ServiceError,
    StorageFailure,
    ValidationFailed,
)
from meetwise.services.normalization import parse_datetime
from meetwise.services.notification_dispatcher import EventKind, TaskEvent

logger = logging.getLogger("meetwise.tasks")


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()

PROOF_ALLOWED_FROM = (TaskStatus.OPEN.value, TaskStatus.NEEDS_REWORK.value)
EDITABLE_STATUSES = (TaskStatus.OPEN.value,)


class ReviewAction(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


@dataclass
class TransitionResult:
    task: Task
    events: List[TaskEvent] = field(default_factory=list)
    proof: Optional[TaskProof] = None


def _coerce_due_date(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValidationFailed("Invalid date format for dueDate")
    return parsed


def _rollback_on_error(method):
    # Release the row lock and drop half-applied edits when a guard fails
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except ServiceError:
            self.session.rollback()
            raise

    return wrapper


class TaskLifecycleManager:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.tasks = TasksRepository(session)
        self.teams = TeamsRepository(session)

    # -- assignment -------------------------------------------------------

    @_rollback_on_error
    def assign(self, task_id: int, actor: User, assignee_id: int, due_date: Any = UNSET) -> TransitionResult:
        task = self._load(task_id)
        meeting = self._require_leader(task, actor)
        self._require_member(meeting, assignee_id)
        new_due = _coerce_due_date(due_date) if due_date is not UNSET else UNSET
        previous = task.assignee_id
        task.assignee_id = assignee_id
        if new_due is not UNSET:
            task.due_date = new_due
        self._commit(task)

        events = []
        if previous != assignee_id:
            events.append(self._event(EventKind.TASK_ASSIGNED, assignee_id, task))
        logger.info("Task %s assigned to user %s by %s", task.id, assignee_id, actor.id)
        return TransitionResult(task=task, events=events)

    @_rollback_on_error
    def unassign(self, task_id: int, actor: User, due_date: Any = UNSET) -> TransitionResult:
        task = self._load(task_id)
        self._require_leader(task, actor)
        new_due = _coerce_due_date(due_date) if due_date is not UNSET else UNSET
        task.assignee_id = None
        if new_due is not UNSET:
            task.due_date = new_due
        self._commit(task)
        logger.info("Task %s unassigned by %s", task.id, actor.id)
        return TransitionResult(task=task)

    # -- proof and review -------------------------------------------------

    @_rollback_on_error
    def submit_proof(
        self,
        task_id: int,
        actor: User,
        file_url: str,
        description: Optional[str] = None,
    ) -> TransitionResult:
        task = self._load(task_id)
        if task.assignee_id != actor.id:
            raise Forbidden("You are not assigned to this task")
        if task.status not in PROOF_ALLOWED_FROM:
            raise InvalidState(
                f"Cannot submit proof for task with status '{task.status}'. Expected 'OPEN' or 'NEEDS_REWORK'."
            )
        if not (file_url or "").strip():
            raise ValidationFailed("No proof file provided")

        proof = self.tasks.add_proof(
            TaskProof(task_id=task.id, user_id=actor.id, file_url=file_url.strip(), description=description)
        )
        task.status = TaskStatus.PENDING_APPROVAL.value
        self._commit(task, proof)

        events = []
        meeting = self.session.get(Meeting, task.meeting_id)
        leader_id = self.teams.leader_id_for_meeting(meeting) if meeting is not None else None
        if leader_id is not None:
            events.append(self._event(EventKind.PROOF_SUBMITTED, leader_id, task))
        else:
            logger.warning("Task %s has no team leader to review submitted proof", task.id)
        return TransitionResult(task=task, events=events, proof=proof)

    @_rollback_on_error
    def review(self, task_id: int, actor: User, action: str, comments: Optional[str] = None) -> TransitionResult:
        try:
            decision = ReviewAction(action)
        except ValueError:
            raise ValidationFailed("Invalid action provided. Expected APPROVE or REJECT.") from None
        if decision is ReviewAction.REJECT and not (comments or "").strip():
            raise ValidationFailed("Comments are required when rejecting a task")

        task = self._load(task_id)
        self._require_leader(task, actor)
        if task.status != TaskStatus.PENDING_APPROVAL.value:
            raise InvalidState(f"Task is not pending approval (current status: {task.status})")
        if task.assignee_id is None:
            raise InvalidState(f"Cannot approve/reject an unassigned task (current status: {task.status})")

        if decision is ReviewAction.APPROVE:
            task.status = TaskStatus.COMPLETED.value
            task.comments = None
            kind = EventKind.TASK_APPROVED
        else:
            task.status = TaskStatus.NEEDS_REWORK.value
            task.comments = comments
            kind = EventKind.TASK_REJECTED
        self._commit(task)
        logger.info("Task %s reviewed by %s: %s", task.id, actor.id, task.status)
        return TransitionResult(task=task, events=[self._event(kind, task.assignee_id, task, comments=task.comments)])

    def approve(self, task_id: int, actor: User) -> TransitionResult:
        return self.review(task_id, actor, ReviewAction.APPROVE.value)

    def reject(self, task_id: int, actor: User, comments: str) -> TransitionResult:
        return self.review(task_id, actor, ReviewAction.REJECT.value, comments)

    # -- administrative ---------------------------------------------------

    @_rollback_on_error
    def edit(
        self,
        task_id: int,
        actor: User,
        *,
        task_text: Any = UNSET,
        due_date: Any = UNSET,
        assignee_id: Any = UNSET,
        status: Any = UNSET,
    ) -> TransitionResult:
        """Leader override of title, due date, assignee or status (OPEN only)."""
        if all(v is UNSET for v in (task_text, due_date, assignee_id, status)):
            raise ValidationFailed("No update data provided")

        task = self._load(task_id)
        meeting = self._require_leader(task, actor)

        if task_text is not UNSET and (not isinstance(task_text, str) or not task_text.strip()):
            raise ValidationFailed("Task description cannot be empty")
        if status is not UNSET and status not in EDITABLE_STATUSES:
            raise ValidationFailed("Status can only be set to 'OPEN' via general edit.")
        clear_assignee = assignee_id is None or assignee_id == "unassigned"
        if assignee_id is not UNSET and not clear_assignee:
            self._require_member(meeting, assignee_id)
        new_due = _coerce_due_date(due_date) if due_date is not UNSET else UNSET

        previous_assignee = task.assignee_id
        if task_text is not UNSET:
            task.task = task_text.strip()
        if new_due is not UNSET:
            task.due_date = new_due
        if assignee_id is not UNSET:
            task.assignee_id = None if clear_assignee else assignee_id
        if status is not UNSET:
            task.status = status
        self._commit(task)

        events = []
        if task.assignee_id is not None and task.assignee_id != previous_assignee:
            events.append(self._event(EventKind.TASK_REASSIGNED, task.assignee_id, task))
        logger.info("Task %s updated by user %s", task.id, actor.id)
        return TransitionResult(task=task, events=events)

    @_rollback_on_error
    def create_task(
        self,
        actor: User,
        meeting_id: int,
        task_text: str,
        owner: str = "",
        due_date: Any = None,
    ) -> Task:
        meeting = self.session.get(Meeting, meeting_id)
        if meeting is None:
            raise NotFound("Meeting not found")
        if actor.id not in (meeting.creator_id, self.teams.leader_id_for_meeting(meeting)):
            raise Forbidden("Access denied to this meeting")
        if not (task_text or "").strip():
            raise ValidationFailed("Task description is required")
        task = Task(
            meeting_id=meeting_id,
            task=task_text.strip(),
            owner=owner or "",
            due_date=_coerce_due_date(due_date),
        )
        self.session.add(task)
        self._commit(task)
        return task

    @_rollback_on_error
    def delete_task(self, task_id: int, actor: User) -> None:
        task = self._load(task_id)
        meeting = self.session.get(Meeting, task.meeting_id)
        if meeting is None or actor.id not in (meeting.creator_id, self.teams.leader_id_for_meeting(meeting)):
            raise Forbidden("Only the meeting creator or team leader can delete tasks")
        try:
            self.tasks.delete(task)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Failed to delete task") from exc
        logger.info("Task %s deleted by user %s", task_id, actor.id)

    # -- helpers ----------------------------------------------------------

    def _load(self, task_id: int) -> Task:
        task = self.tasks.get(task_id, for_update=True)
        if task is None:
            raise NotFound("Task not found")
        return task

    def _require_leader(self, task: Task, actor: User) -> Meeting:
        meeting = self.session.get(Meeting, task.meeting_id)
        leader_id = self.teams.leader_id_for_meeting(meeting) if meeting is not None else None
        if leader_id is None:
            raise Forbidden("Task's meeting does not belong to a team, so it has no leader")
        if leader_id != actor.id:
            raise Forbidden("Only the team leader can modify tasks")
        return meeting

    def _require_member(self, meeting: Meeting, user_id: Any) -> None:
        if not isinstance(user_id, int) or not self.teams.is_member(meeting.team_id, user_id):
            raise ValidationFailed("Assignee is not a member of this team")

    def _commit(self, task: Task, *extra: Any) -> None:
        task.updated_at = datetime.utcnow()
        self.session.add(task)
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Failed to update task") from exc
        self.session.refresh(task)
        for obj in extra:
            self.session.refresh(obj)

    def _event(self, kind: EventKind, recipient_id: int, task: Task, comments: Optional[str] = None) -> TaskEvent:
        return TaskEvent(
            kind=kind,
            recipient_id=recipient_id,
            task_id=task.id,
            meeting_id=task.meeting_id,
            task_text=task.task,
            comments=comments,
        )
