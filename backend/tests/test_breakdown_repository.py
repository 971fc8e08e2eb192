import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from conftest import ANALYSIS, SEGMENTATION

from meetwise.models.analysis import MeetingAnalysis, TopicSegmentation
from meetwise.models.breakdown import Attendee, Decision
from meetwise.models.meeting import Meeting
from meetwise.models.notification import Notification
from meetwise.models.task import Task, TaskProof
from meetwise.repositories.breakdown import BreakdownRepository
from meetwise.services.analysis_service import persist_analysis
from meetwise.services.errors import ConcurrentModification, StorageFailure


@pytest.fixture()
def analysis() -> MeetingAnalysis:
    return MeetingAnalysis.model_validate(ANALYSIS)


def _snapshot(engine, meeting_id):
    # Fresh session so nothing comes from an identity map
    with Session(engine) as s:
        data = BreakdownRepository(s).load(meeting_id).as_dict()
        meeting = s.get(Meeting, meeting_id)
        return data, meeting.name, meeting.version


def test_persist_writes_every_category(session, meeting, seed, analysis):
    updated = persist_analysis(session, meeting.id, analysis, TopicSegmentation.model_validate(SEGMENTATION), seed.leader)

    assert updated.name == "Q3 Budget Sync"
    assert updated.version == 1
    assert updated.topic_segmentation is not None
    data = BreakdownRepository(session).load(meeting.id).as_dict()
    assert [t["task"] for t in data["Tasks"]] == ["Prepare the budget report", "Confirm hardware delivery"]
    assert data["Tasks"][0]["dueDate"] is None
    assert data["Tasks"][1]["dueDate"] == "2025-03-01T00:00:00"
    assert data["Deadlines"][0]["dueDate"] == "2025-03-15T00:00:00"
    assert [(a["name"], a["role"]) for a in data["Attendees"]] == [
        ("Lena", "Chair"),
        ("Alice", "Finance"),
        ("Bob", "PARTICIPANT"),
    ]


def test_reapplying_the_same_analysis_is_idempotent(engine, session, meeting, seed, analysis):
    persist_analysis(session, meeting.id, analysis, None, seed.leader)
    first, _, _ = _snapshot(engine, meeting.id)

    persist_analysis(session, meeting.id, analysis, None, seed.leader)
    second, _, version = _snapshot(engine, meeting.id)

    assert second == first
    assert version == 2
    names = [a["name"] for a in second["Attendees"]]
    assert len(names) == len(set(names))


def test_organizer_is_added_once_across_runs(session, meeting, seed, analysis):
    persist_analysis(session, meeting.id, analysis, None, seed.outsider)
    persist_analysis(session, meeting.id, analysis, None, seed.outsider)

    rows = session.exec(select(Attendee).where(Attendee.meeting_id == meeting.id, Attendee.name == "Oscar")).all()
    assert [(a.name, a.role) for a in rows] == [("Oscar", "ORGANIZER")]


def test_preserving_tasks_keeps_assignment_state(session, meeting, seed, analysis, make_task):
    kept = make_task("Prepare the budget report", assignee_id=seed.alice.id, status="PENDING_APPROVAL")

    persist_analysis(session, meeting.id, analysis, None, seed.leader, preserve_tasks=True)

    tasks = session.exec(select(Task).where(Task.meeting_id == meeting.id).order_by(Task.id)).all()
    assert [t.task for t in tasks] == ["Prepare the budget report", "Confirm hardware delivery"]
    assert tasks[0].id == kept.id
    assert tasks[0].assignee_id == seed.alice.id
    assert tasks[0].status == "PENDING_APPROVAL"


def test_replacing_tasks_removes_proofs_and_notifications(session, meeting, seed, analysis, make_task):
    old = make_task("Old task", assignee_id=seed.alice.id)
    session.add(TaskProof(task_id=old.id, user_id=seed.alice.id, file_url="https://files/proof.pdf"))
    session.add(Notification(user_id=seed.leader.id, message="proof", task_id=old.id, meeting_id=meeting.id))
    session.commit()

    persist_analysis(session, meeting.id, analysis, None, seed.leader, preserve_tasks=False)

    tasks = session.exec(select(Task).where(Task.meeting_id == meeting.id)).all()
    assert sorted(t.task for t in tasks) == ["Confirm hardware delivery", "Prepare the budget report"]
    assert all(t.assignee_id is None and t.status == "OPEN" for t in tasks)
    assert session.exec(select(TaskProof)).all() == []
    assert session.exec(select(Notification)).all() == []


def test_stale_version_is_rejected_without_changes(engine, session, meeting, seed, analysis):
    before = _snapshot(engine, meeting.id)

    with pytest.raises(ConcurrentModification):
        persist_analysis(session, meeting.id, analysis, None, seed.leader, expected_version=5)

    assert _snapshot(engine, meeting.id) == before


def test_storage_failure_leaves_previous_breakdown(engine, session, meeting, seed, analysis, monkeypatch):
    persist_analysis(session, meeting.id, analysis, None, seed.leader)
    before = _snapshot(engine, meeting.id)

    def _explode(self, meeting_id, rows):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(BreakdownRepository, "_insert", _explode)
    changed = MeetingAnalysis.model_validate({"name": "Other", "breakdown": {"Decisions": [{"decision": "New"}]}})
    with pytest.raises(StorageFailure):
        persist_analysis(session, meeting.id, changed, None, seed.leader)

    assert _snapshot(engine, meeting.id) == before
    decisions = session.exec(select(Decision).where(Decision.meeting_id == meeting.id)).all()
    assert [d.decision for d in decisions] == ["Keep the launch date"]


def test_segmentation_is_kept_when_not_recomputed(session, meeting, seed, analysis):
    persist_analysis(session, meeting.id, analysis, TopicSegmentation.model_validate(SEGMENTATION), seed.leader)
    stored = session.get(Meeting, meeting.id).topic_segmentation

    updated = persist_analysis(session, meeting.id, analysis, None, seed.leader)

    assert updated.topic_segmentation == stored
