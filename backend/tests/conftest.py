from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from meetwise.config import Settings
from meetwise.main import create_app
from meetwise.models.base import create_db_engine, init_db
from meetwise.models.meeting import Meeting
from meetwise.models.task import Task
from meetwise.models.team import Team
from meetwise.models.user import User
from meetwise.repositories.teams import TeamsRepository
from meetwise.repositories.users import UsersRepository
from meetwise.services.llm_gateway import GenerationOptions, LlmGatewayError
from meetwise.services.topic_segmentation_service import SEGMENTATION_INSTRUCTIONS


TRANSCRIPT = (
    "Lena: Good morning everyone, let's start with the budget.\n"
    "Alice: The Q3 numbers are in and we are slightly over.\n"
    "Lena: We need John to prepare the budget report by next Friday.\n"
    "Bob: Okay, moving on. The launch date is still March 15, 2025.\n"
    "Lena: Agreed, we keep the launch date. Any risks?\n"
    "Alice: The vendor may be late with the hardware.\n"
)

ANALYSIS = {
    "name": "Q3 Budget Sync",
    "description": "Budget review and launch planning.",
    "summary": "The team reviewed Q3 spending and confirmed the launch date.",
    "breakdown": {
        "Tasks": [
            {"task": "Prepare the budget report", "owner": "John", "dueDate": "next Friday"},
            {"task": "Confirm hardware delivery", "owner": "Alice", "dueDate": "2025-03-01"},
        ],
        "Decisions": [{"decision": "Keep the launch date", "date": "2025-02-10"}],
        "Questions": [{"question": "Are we over budget?", "status": "ANSWERED", "answer": "Slightly"}],
        "Insights": [{"insight": "Spending is trending up", "reference": "Alice: The Q3 numbers are in"}],
        "Deadlines": [{"description": "Product launch", "dueDate": "March 15, 2025"}],
        "Attendees": [
            {"name": "Lena", "role": "Chair"},
            {"name": "Alice", "role": "Finance"},
            {"name": "Bob", "role": ""},
        ],
        "Follow-ups": [{"description": "Check in with the vendor", "owner": "Alice"}],
        "Risks": [{"risk": "Vendor delay", "impact": "Launch slips"}],
    },
}

SEGMENTATION = {
    "totalTopics": 2,
    "estimatedDuration": "10 minutes",
    "topics": [
        {
            "id": 1,
            "title": "Budget",
            "startPoint": "Lena: Good morning everyone, let's start with the budget.",
            "endPoint": "Bob: Okay, moving on.",
            "summary": "Q3 spending review.",
            "keySpeakers": ["Lena", "Alice", "Lena"],
            "estimatedMinutes": 6,
        },
        {
            "id": 2,
            "title": "Launch",
            "startPoint": "Bob: Okay, moving on.",
            "endPoint": "Alice: The vendor may be late with the hardware.",
            "summary": "Launch date and vendor risk.",
            "keySpeakers": ["Bob", "Alice"],
            "estimatedMinutes": 4,
        },
    ],
}


class ScriptedGateway:
    """Answers extraction and segmentation prompts with canned text.

    A reply may be a string or an exception instance to raise. Calls are
    recorded; the two prompts can arrive from different threads.
    """

    def __init__(self, extraction: Any = None, segmentation: Any = None) -> None:
        self.extraction = extraction
        self.segmentation = segmentation
        self.calls: List[Tuple[str, str, GenerationOptions]] = []
        self._lock = threading.Lock()

    def generate(self, instructions: str, transcript: str, options: GenerationOptions) -> str:
        with self._lock:
            self.calls.append((instructions, transcript, options))
        reply = self.segmentation if instructions == SEGMENTATION_INSTRUCTIONS else self.extraction
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            raise LlmGatewayError("no scripted reply")
        return reply

    def calls_for(self, instructions: str) -> List[Tuple[str, str, GenerationOptions]]:
        return [c for c in self.calls if c[0] == instructions]


@dataclass
class Seed:
    leader: User
    alice: User
    bob: User
    outsider: User
    team: Team


@pytest.fixture()
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'meetwise.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def settings() -> Settings:
    return Settings(gemini_api_key=None, logs_dir=None)


@pytest.fixture()
def seed(session) -> Seed:
    users = UsersRepository(session)
    leader = users.create(User(name="Lena", email="lena@example.com"))
    alice = users.create(User(name="Alice", email="alice@example.com"))
    bob = users.create(User(name="Bob", email="bob@example.com"))
    outsider = users.create(User(name="Oscar", email="oscar@example.com"))

    team = Team(name="Platform", leader_id=leader.id)
    session.add(team)
    session.commit()
    teams = TeamsRepository(session)
    teams.add_member(team.id, alice.id)
    teams.add_member(team.id, bob.id)
    for obj in (leader, alice, bob, outsider, team):
        session.refresh(obj)
    return Seed(leader=leader, alice=alice, bob=bob, outsider=outsider, team=team)


@pytest.fixture()
def meeting(session, seed) -> Meeting:
    meeting = Meeting(
        name="Weekly sync",
        raw_transcript=TRANSCRIPT,
        creator_id=seed.leader.id,
        team_id=seed.team.id,
    )
    session.add(meeting)
    session.commit()
    session.refresh(meeting)
    return meeting


def add_task(session: Session, meeting: Meeting, text: str = "Prepare the budget report", **fields: Any) -> Task:
    task = Task(meeting_id=meeting.id, task=text, **fields)
    session.add(task)
    session.commit()
    session.refresh(task)
    return task


@pytest.fixture()
def make_task(session, meeting):
    def _make(text: str = "Prepare the budget report", *, on: Optional[Meeting] = None, **fields: Any) -> Task:
        return add_task(session, on or meeting, text, **fields)

    return _make


@pytest.fixture()
def analysis_json() -> str:
    return json.dumps(ANALYSIS)


@pytest.fixture()
def segmentation_json() -> str:
    return json.dumps(SEGMENTATION)


@pytest.fixture()
def gateway(analysis_json, segmentation_json) -> ScriptedGateway:
    return ScriptedGateway(extraction=analysis_json, segmentation=segmentation_json)


@pytest.fixture()
def client(engine, settings, gateway, seed):
    app = create_app(settings, engine=engine, gateway=gateway)
    with TestClient(app) as client:
        yield client


def as_user(user: User) -> dict:
    return {"X-User-Id": str(user.id)}
