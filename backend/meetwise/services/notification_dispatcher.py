from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol

from sqlalchemy.engine import Engine
from sqlmodel import Session

from meetwise.models.notification import Notification
from meetwise.repositories.notifications import NotificationsRepository

logger = logging.getLogger("meetwise.notifications")


class EventKind(str, Enum):
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_REASSIGNED = "TASK_REASSIGNED"
    PROOF_SUBMITTED = "PROOF_SUBMITTED"
    TASK_APPROVED = "TASK_APPROVED"
    TASK_REJECTED = "TASK_REJECTED"


@dataclass(frozen=True)
class TaskEvent:
    """Something a single user should hear about after a transition committed."""

    kind: EventKind
    recipient_id: int
    task_id: int
    meeting_id: Optional[int]
    task_text: str
    comments: Optional[str] = None


def shorten(text: str, limit: int = 50) -> str:
    text = text or "task"
    return text[:limit] + "..." if len(text) > limit else text


def render_message(event: TaskEvent) -> str:
    title = shorten(event.task_text)
    if event.kind is EventKind.TASK_ASSIGNED:
        return f'You have been assigned a new task: "{title}"'
    if event.kind is EventKind.TASK_REASSIGNED:
        return f'Task updated: "{title}"'
    if event.kind is EventKind.PROOF_SUBMITTED:
        return f'New proof submitted for task "{title}"'
    if event.kind is EventKind.TASK_APPROVED:
        return f'Your proof for task "{title}" has been approved.'
    if event.kind is EventKind.TASK_REJECTED:
        return f'Your task "{title}" needs rework. Comments: {event.comments or ""}'
    raise ValueError(f"unknown event kind: {event.kind}")


class Dispatcher(Protocol):
    def dispatch(self, events: Iterable[TaskEvent]) -> int:
        ...


class NotificationDispatcher:
    """Persists one notification per event in its own session.

    Runs after the transition committed; a failure here is logged and never
    reaches the caller.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def dispatch(self, events: Iterable[TaskEvent]) -> int:
        created = 0
        for event in events:
            try:
                with Session(self.engine) as session:
                    NotificationsRepository(session).create(
                        Notification(
                            user_id=event.recipient_id,
                            message=render_message(event),
                            task_id=event.task_id,
                            meeting_id=event.meeting_id,
                        )
                    )
                created += 1
                logger.info("Notification %s created for user %s (task %s)", event.kind.value, event.recipient_id, event.task_id)
            except Exception:
                logger.exception("Failed to create %s notification for user %s", event.kind.value, event.recipient_id)
        return created


class DisabledNotificationDispatcher:
    def dispatch(self, events: Iterable[TaskEvent]) -> int:
        for event in events:
            logger.debug("Notifications disabled; dropping %s for user %s", event.kind.value, event.recipient_id)
        return 0
