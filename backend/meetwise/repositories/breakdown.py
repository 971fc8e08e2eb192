from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from meetwise.models.breakdown import Attendee, Deadline, Decision, FollowUp, Insight, Question, Risk
from meetwise.models.meeting import Meeting
from meetwise.models.task import Task
from meetwise.repositories.tasks import TasksRepository
from meetwise.services.errors import ConcurrentModification, NotFound, StorageFailure
from meetwise.services.normalization import NormalizedBreakdown


REPLACED_MODELS: tuple[Type[SQLModel], ...] = (Decision, Question, Insight, Deadline, FollowUp, Risk)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class MeetingBreakdown:
    tasks: List[Task] = field(default_factory=list)
    decisions: List[Decision] = field(default_factory=list)
    questions: List[Question] = field(default_factory=list)
    insights: List[Insight] = field(default_factory=list)
    deadlines: List[Deadline] = field(default_factory=list)
    attendees: List[Attendee] = field(default_factory=list)
    follow_ups: List[FollowUp] = field(default_factory=list)
    risks: List[Risk] = field(default_factory=list)

    def as_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Stable category -> items shape consumed by clients."""
        return {
            "Tasks": [{"task": t.task, "owner": t.owner, "dueDate": _iso(t.due_date)} for t in self.tasks],
            "Decisions": [{"decision": d.decision, "date": _iso(d.date)} for d in self.decisions],
            "Questions": [{"question": q.question, "status": q.status, "answer": q.answer} for q in self.questions],
            "Insights": [{"insight": i.insight, "reference": i.reference} for i in self.insights],
            "Deadlines": [{"description": d.description, "dueDate": _iso(d.due_date)} for d in self.deadlines],
            "Attendees": [{"name": a.name, "role": a.role} for a in self.attendees],
            "Follow-ups": [{"description": f.description, "owner": f.owner} for f in self.follow_ups],
            "Risks": [{"risk": r.risk, "impact": r.impact} for r in self.risks],
        }


class BreakdownRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def load(self, meeting_id: int) -> MeetingBreakdown:
        return MeetingBreakdown(
            tasks=TasksRepository(self.session).list_by_meeting(meeting_id),
            decisions=self._list(Decision, meeting_id),
            questions=self._list(Question, meeting_id),
            insights=self._list(Insight, meeting_id),
            deadlines=self._list(Deadline, meeting_id),
            attendees=self._list(Attendee, meeting_id),
            follow_ups=self._list(FollowUp, meeting_id),
            risks=self._list(Risk, meeting_id),
        )

    def create_meeting_with_breakdown(self, meeting: Meeting, rows: NormalizedBreakdown) -> Meeting:
        try:
            self.session.add(meeting)
            self.session.flush()
            self._insert(meeting.id, [*rows.tasks, *rows.attendees, *rows.replaceable_rows()])
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Failed to store meeting") from exc
        self.session.refresh(meeting)
        return meeting

    def replace_for_meeting(
        self,
        meeting_id: int,
        rows: NormalizedBreakdown,
        *,
        name: str,
        description: str,
        summary: str,
        topic_segmentation: Optional[str] = None,
        expected_version: Optional[int] = None,
        preserve_tasks: bool = True,
    ) -> Meeting:
        """Atomically swap the meeting's breakdown for a freshly extracted one.

        Decisions, questions, insights, deadlines, follow-ups and risks are
        replaced. Attendees are merged by name. Tasks are either kept (new task
        texts appended) or fully replaced, depending on ``preserve_tasks``.
        Nothing is written unless the whole unit commits.
        """
        try:
            meeting = self.session.get(Meeting, meeting_id, with_for_update=True, populate_existing=True)
            if meeting is None:
                raise NotFound("Meeting not found")
            if expected_version is not None and meeting.version != expected_version:
                raise ConcurrentModification(
                    f"Meeting {meeting_id} was re-analyzed concurrently "
                    f"(expected version {expected_version}, found {meeting.version})"
                )

            meeting.name = name
            meeting.description = description
            meeting.summary = summary
            if topic_segmentation is not None:
                meeting.topic_segmentation = topic_segmentation
            meeting.version += 1
            meeting.updated_at = datetime.utcnow()
            self.session.add(meeting)

            for model in REPLACED_MODELS:
                for row in self._list(model, meeting_id):
                    self.session.delete(row)

            if preserve_tasks:
                existing = {t.task for t in TasksRepository(self.session).list_by_meeting(meeting_id)}
                new_tasks = []
                for task in rows.tasks:
                    if task.task not in existing:
                        existing.add(task.task)
                        new_tasks.append(task)
            else:
                TasksRepository(self.session).delete_for_meeting(meeting_id)
                new_tasks = list(rows.tasks)
            self.session.flush()

            existing_names = {a.name for a in self._list(Attendee, meeting_id)}
            new_attendees = [a for a in rows.attendees if a.name not in existing_names]

            self._insert(meeting_id, [*new_tasks, *new_attendees, *rows.replaceable_rows()])
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailure("Failed to update meeting breakdown") from exc
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(meeting)
        return meeting

    def delete_for_meeting(self, meeting_id: int) -> None:
        """Remove every child row of a meeting; caller commits."""
        TasksRepository(self.session).delete_for_meeting(meeting_id)
        for model in (*REPLACED_MODELS, Attendee):
            for row in self._list(model, meeting_id):
                self.session.delete(row)
        self.session.flush()

    def _insert(self, meeting_id: int, rows: Iterable[SQLModel]) -> None:
        for row in rows:
            row.meeting_id = meeting_id
            self.session.add(row)
        self.session.flush()

    def _list(self, model: Type[SQLModel], meeting_id: int) -> list:
        statement = select(model).where(model.meeting_id == meeting_id).order_by(model.id.asc())
        return list(self.session.exec(statement))
