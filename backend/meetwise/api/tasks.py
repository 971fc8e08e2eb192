from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from meetwise.api.schemas import (
    AssignTaskRequest,
    CreateTaskRequest,
    EditTaskRequest,
    ReviewTaskRequest,
    SubmitProofRequest,
    TaskRead,
)
from meetwise.deps import get_current_user, get_dispatcher, get_session
from meetwise.models.task import Task
from meetwise.models.user import User
from meetwise.repositories.tasks import TasksRepository
from meetwise.repositories.users import UsersRepository
from meetwise.services.errors import ValidationFailed
from meetwise.services.notification_dispatcher import Dispatcher
from meetwise.services.task_lifecycle import UNSET, TaskLifecycleManager


router = APIRouter(prefix="/tasks", tags=["tasks"])


def _read(session: Session, task: Task) -> TaskRead:
    assignee = UsersRepository(session).get(task.assignee_id) if task.assignee_id is not None else None
    return TaskRead.from_row(task, assignee, TasksRepository(session).list_proofs(task.id))


def _assignee(raw: Any) -> Optional[int]:
    if raw is None or raw == "unassigned":
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    raise ValidationFailed("Invalid assigneeId")


def _given(body: Any, name: str) -> Any:
    # Distinguish an explicit null from a field the client left out
    return getattr(body, name) if name in body.model_fields_set else UNSET


@router.get("")
def list_team_tasks(
    status: Optional[str] = None,
    meeting_id: Optional[int] = Query(default=None, alias="meetingId"),
    team_id: Optional[int] = Query(default=None, alias="teamId"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[TaskRead]:
    tasks = TasksRepository(session).list_for_leader(user.id, status=status, meeting_id=meeting_id, team_id=team_id)
    return [_read(session, t) for t in tasks]


@router.get("/assigned")
def list_assigned_tasks(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[TaskRead]:
    return [_read(session, t) for t in TasksRepository(session).list_assigned_to(user.id)]


@router.post("", status_code=201)
def create_task(
    body: CreateTaskRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> TaskRead:
    task = TaskLifecycleManager(session).create_task(
        user, body.meeting_id, body.task, owner=body.owner or "", due_date=body.due_date
    )
    return _read(session, task)


@router.patch("/{task_id}")
def assign_task(
    task_id: int,
    body: AssignTaskRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> TaskRead:
    if "assignee_id" not in body.model_fields_set:
        raise ValidationFailed("assigneeId is required")
    manager = TaskLifecycleManager(session)
    assignee_id = _assignee(body.assignee_id)
    due_date = _given(body, "due_date")
    if assignee_id is None:
        result = manager.unassign(task_id, user, due_date=due_date)
    else:
        result = manager.assign(task_id, user, assignee_id, due_date=due_date)
    dispatcher.dispatch(result.events)
    return _read(session, result.task)


@router.put("/{task_id}")
def edit_task(
    task_id: int,
    body: EditTaskRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> TaskRead:
    assignee_id = _given(body, "assignee_id")
    if assignee_id is not UNSET:
        assignee_id = _assignee(assignee_id)
    result = TaskLifecycleManager(session).edit(
        task_id,
        user,
        task_text=_given(body, "task"),
        due_date=_given(body, "due_date"),
        assignee_id=assignee_id,
        status=_given(body, "status"),
    )
    dispatcher.dispatch(result.events)
    return _read(session, result.task)


@router.delete("/{task_id}")
def delete_task(
    task_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Dict[str, bool]:
    TaskLifecycleManager(session).delete_task(task_id, user)
    return {"ok": True}


@router.post("/{task_id}/proof", status_code=201)
def submit_proof(
    task_id: int,
    body: SubmitProofRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> TaskRead:
    result = TaskLifecycleManager(session).submit_proof(task_id, user, body.file_url or "", body.description)
    dispatcher.dispatch(result.events)
    return _read(session, result.task)


@router.patch("/{task_id}/status")
def review_task(
    task_id: int,
    body: ReviewTaskRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> TaskRead:
    result = TaskLifecycleManager(session).review(task_id, user, body.status, body.comments)
    dispatcher.dispatch(result.events)
    return _read(session, result.task)
