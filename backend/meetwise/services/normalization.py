"""Field-level coercion of an extracted analysis into storable rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, List, Optional

from meetwise.models.analysis import MeetingAnalysis
from meetwise.models.breakdown import Attendee, Deadline, Decision, FollowUp, Insight, Question, Risk
from meetwise.models.task import Task, TaskStatus
from meetwise.models.user import User


_WRITTEN_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Best-effort date parsing; returns None for anything unusable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            return None
        parsed = None
        iso = text[:-1] + "+00:00" if text[-1] in "Zz" else text
        try:
            parsed = datetime.fromisoformat(iso)
        except ValueError:
            for fmt in _WRITTEN_DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None
    if parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        except (ValueError, OverflowError):
            # Offsets that push the value past year 1 or 9999
            return None
    return parsed


@dataclass
class NormalizedBreakdown:
    tasks: List[Task] = field(default_factory=list)
    decisions: List[Decision] = field(default_factory=list)
    questions: List[Question] = field(default_factory=list)
    insights: List[Insight] = field(default_factory=list)
    deadlines: List[Deadline] = field(default_factory=list)
    attendees: List[Attendee] = field(default_factory=list)
    follow_ups: List[FollowUp] = field(default_factory=list)
    risks: List[Risk] = field(default_factory=list)

    def replaceable_rows(self) -> list:
        return [*self.decisions, *self.questions, *self.insights, *self.deadlines, *self.follow_ups, *self.risks]


def normalize_breakdown(
    analysis: MeetingAnalysis,
    actor: User,
    *,
    now: Optional[datetime] = None,
) -> NormalizedBreakdown:
    """Build unsaved rows (meeting_id unset) from an analysis.

    Decisions always get a timestamp, other dates become None when invalid.
    The acting user is added as ORGANIZER unless already listed by name.
    """
    now = now or datetime.utcnow()
    b = analysis.breakdown
    out = NormalizedBreakdown()

    out.tasks = [
        Task(task=item.task, owner=item.owner, due_date=parse_datetime(item.due_date), status=TaskStatus.OPEN.value)
        for item in b.tasks
    ]
    out.decisions = [
        Decision(decision=item.decision, date=parse_datetime(item.date) or now) for item in b.decisions
    ]
    out.questions = [
        Question(question=item.question, status=item.status or "PENDING", answer=item.answer) for item in b.questions
    ]
    out.insights = [Insight(insight=item.insight, reference=item.reference) for item in b.insights]
    out.deadlines = [
        Deadline(description=item.description, due_date=parse_datetime(item.due_date)) for item in b.deadlines
    ]
    out.follow_ups = [FollowUp(description=item.description, owner=item.owner) for item in b.follow_ups]
    out.risks = [Risk(risk=item.risk, impact=item.impact) for item in b.risks]

    seen: set[str] = set()
    for item in b.attendees:
        if not item.name or item.name in seen:
            continue
        seen.add(item.name)
        out.attendees.append(Attendee(name=item.name, role=item.role or "PARTICIPANT"))

    actor_name = actor.name or "Unknown User"
    if actor_name not in seen:
        out.attendees.append(Attendee(name=actor_name, role="ORGANIZER"))
    return out
