"""Typed shapes for what the language model returns.

Model output is free-form JSON; everything past the adapters works with these
validated values instead. Missing keys, nulls and wrong types are coerced to
defaults here so downstream code never has to null-check.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


CATEGORY_KEYS = (
    "Tasks",
    "Decisions",
    "Questions",
    "Insights",
    "Deadlines",
    "Attendees",
    "Follow-ups",
    "Risks",
)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value)


def _as_count(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


class BreakdownItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)


class TaskItem(BreakdownItem):
    task: str = ""
    owner: str = ""
    due_date: str = Field(default="", alias="dueDate", validation_alias=AliasChoices("dueDate", "due_date"))


class DecisionItem(BreakdownItem):
    decision: str = ""
    date: str = ""


class QuestionItem(BreakdownItem):
    question: str = ""
    status: str = ""
    answer: str = ""


class InsightItem(BreakdownItem):
    insight: str = ""
    reference: str = ""


class DeadlineItem(BreakdownItem):
    description: str = Field(default="", validation_alias=AliasChoices("description", "deadline"))
    due_date: str = Field(default="", alias="dueDate", validation_alias=AliasChoices("dueDate", "due_date"))


class AttendeeItem(BreakdownItem):
    name: str = ""
    role: str = ""


class FollowUpItem(BreakdownItem):
    description: str = Field(default="", validation_alias=AliasChoices("description", "follow_up"))
    owner: str = ""


class RiskItem(BreakdownItem):
    risk: str = ""
    impact: str = ""


class Breakdown(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tasks: List[TaskItem] = Field(default_factory=list, alias="Tasks")
    decisions: List[DecisionItem] = Field(default_factory=list, alias="Decisions")
    questions: List[QuestionItem] = Field(default_factory=list, alias="Questions")
    insights: List[InsightItem] = Field(default_factory=list, alias="Insights")
    deadlines: List[DeadlineItem] = Field(default_factory=list, alias="Deadlines")
    attendees: List[AttendeeItem] = Field(default_factory=list, alias="Attendees")
    follow_ups: List[FollowUpItem] = Field(
        default_factory=list,
        alias="Follow-ups",
        validation_alias=AliasChoices("Follow-ups", "FollowUps", "follow_ups"),
    )
    risks: List[RiskItem] = Field(default_factory=list, alias="Risks")

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> List[Dict[str, Any]]:
        # null / scalar / dict in place of a list -> empty; drop non-object entries
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class MeetingAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = "Untitled Meeting"
    description: str = "No description provided."
    summary: str = "Summary not generated"
    breakdown: Breakdown = Field(default_factory=Breakdown)
    # model | parse_fallback | gateway_fallback; never persisted
    origin: str = Field(default="model", exclude=True)

    @field_validator("name", "description", "summary", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info) -> str:
        text = _as_text(value)
        if text:
            return text
        return cls.model_fields[info.field_name].default

    @field_validator("breakdown", mode="before")
    @classmethod
    def _coerce_breakdown(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, (dict, Breakdown)) else {}

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Topic(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int = 0
    title: str = "Untitled Topic"
    start_point: str = Field(default="", alias="startPoint")
    end_point: str = Field(default="", alias="endPoint")
    summary: str = "No summary available"
    key_speakers: List[str] = Field(default_factory=list, alias="keySpeakers")
    estimated_minutes: float = Field(default=0, alias="estimatedMinutes")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> int:
        return _as_count(value)

    @field_validator("title", "summary", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info) -> str:
        text = _as_text(value)
        return text or cls.model_fields[info.field_name].default

    @field_validator("start_point", "end_point", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("key_speakers", mode="before")
    @classmethod
    def _unique_speakers(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        seen: List[str] = []
        for speaker in value:
            name = _as_text(speaker)
            if name and name not in seen:
                seen.append(name)
        return seen

    @field_validator("estimated_minutes", mode="before")
    @classmethod
    def _coerce_minutes(cls, value: Any) -> float:
        try:
            minutes = float(value)
        except (TypeError, ValueError, OverflowError):
            return 0.0
        return max(0.0, minutes) if math.isfinite(minutes) else 0.0


class TopicSegmentation(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    total_topics: int = Field(default=0, alias="totalTopics")
    estimated_duration: str = Field(default="Unknown", alias="estimatedDuration")
    topics: List[Topic] = Field(default_factory=list)

    @field_validator("total_topics", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> int:
        return _as_count(value)

    @field_validator("estimated_duration", mode="before")
    @classmethod
    def _coerce_duration(cls, value: Any) -> str:
        return _as_text(value) or "Unknown"

    @field_validator("topics", mode="before")
    @classmethod
    def _number_topics(cls, value: Any) -> List[Dict[str, Any]]:
        if not isinstance(value, list):
            return []
        topics = []
        for index, raw in enumerate(item for item in value if isinstance(item, dict)):
            topic = dict(raw)
            if not _as_count(topic.get("id")):
                topic["id"] = index + 1
            topics.append(topic)
        return topics

    def model_post_init(self, __context: Optional[Any]) -> None:
        if self.total_topics == 0 and self.topics:
            self.total_topics = len(self.topics)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
