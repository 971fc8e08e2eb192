from __future__ import annotations

from typing import Optional

from sqlalchemy import nulls_last
from sqlmodel import Session, select

from meetwise.models.meeting import Meeting
from meetwise.models.notification import Notification
from meetwise.models.task import Task, TaskProof
from meetwise.models.team import Team


class TasksRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, task_id: int, *, for_update: bool = False) -> Optional[Task]:
        if for_update:
            return self.session.get(Task, task_id, with_for_update=True, populate_existing=True)
        return self.session.get(Task, task_id)

    def list_by_meeting(self, meeting_id: int) -> list[Task]:
        statement = select(Task).where(Task.meeting_id == meeting_id).order_by(Task.id.asc())
        return list(self.session.exec(statement))

    def list_for_leader(
        self,
        leader_id: int,
        status: Optional[str] = None,
        meeting_id: Optional[int] = None,
        team_id: Optional[int] = None,
    ) -> list[Task]:
        statement = (
            select(Task)
            .join(Meeting, Meeting.id == Task.meeting_id)
            .join(Team, Team.id == Meeting.team_id)
            .where(Team.leader_id == leader_id)
        )
        if status:
            statement = statement.where(Task.status == status)
        if meeting_id is not None:
            statement = statement.where(Task.meeting_id == meeting_id)
        if team_id is not None:
            statement = statement.where(Meeting.team_id == team_id)
        statement = statement.order_by(nulls_last(Task.due_date.asc()), Task.created_at.desc())
        return list(self.session.exec(statement))

    def list_assigned_to(self, user_id: int) -> list[Task]:
        statement = (
            select(Task)
            .where(Task.assignee_id == user_id)
            .order_by(nulls_last(Task.due_date.asc()), Task.created_at.desc())
        )
        return list(self.session.exec(statement))

    def list_proofs(self, task_id: int) -> list[TaskProof]:
        statement = select(TaskProof).where(TaskProof.task_id == task_id).order_by(TaskProof.created_at.desc())
        return list(self.session.exec(statement))

    def add_proof(self, proof: TaskProof) -> TaskProof:
        self.session.add(proof)
        return proof

    def delete(self, task: Task) -> None:
        """Delete a task with its proofs and the notifications pointing at it; caller commits."""
        for proof in self.list_proofs(task.id):
            self.session.delete(proof)
        self._delete_notifications([task.id])
        self.session.flush()
        self.session.delete(task)
        self.session.flush()

    def delete_for_meeting(self, meeting_id: int) -> int:
        tasks = self.list_by_meeting(meeting_id)
        if not tasks:
            return 0
        task_ids = [t.id for t in tasks]
        proofs = select(TaskProof).where(TaskProof.task_id.in_(task_ids))
        for proof in list(self.session.exec(proofs)):
            self.session.delete(proof)
        self._delete_notifications(task_ids)
        self.session.flush()
        for task in tasks:
            self.session.delete(task)
        self.session.flush()
        return len(tasks)

    def _delete_notifications(self, task_ids: list[int]) -> None:
        statement = select(Notification).where(Notification.task_id.in_(task_ids))
        for notification in list(self.session.exec(statement)):
            self.session.delete(notification)
