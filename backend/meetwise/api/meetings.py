from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from meetwise.api.schemas import AddAttendeeRequest, AttendeeRead, CreateMeetingRequest, MeetingDetail
from meetwise.config import Settings
from meetwise.deps import get_current_user, get_gateway, get_session, get_settings
from meetwise.models.meeting import Meeting
from meetwise.models.user import User
from meetwise.repositories.breakdown import BreakdownRepository
from meetwise.repositories.meetings import MeetingsRepository
from meetwise.repositories.teams import TeamsRepository
from meetwise.services.analysis_service import AnalysisPipeline
from meetwise.services.attendee_service import AttendeeRoster
from meetwise.services.errors import Forbidden, NotFound
from meetwise.services.llm_gateway import LlmGateway
from meetwise.services.topic_segmentation_service import SegmentationError

logger = logging.getLogger("meetwise.api")


router = APIRouter(prefix="/meetings", tags=["meetings"])


def _segmentation_of(meeting: Meeting) -> Optional[Dict[str, Any]]:
    if not meeting.topic_segmentation:
        return None
    try:
        payload = json.loads(meeting.topic_segmentation)
    except json.JSONDecodeError:
        logger.warning("Stored topic segmentation of meeting %s is not valid JSON", meeting.id)
        return None
    return payload if isinstance(payload, dict) else None


def _detail(session: Session, meeting: Meeting) -> MeetingDetail:
    breakdown = BreakdownRepository(session).load(meeting.id)
    return MeetingDetail.from_rows(meeting, breakdown, _segmentation_of(meeting))


def _load_visible(session: Session, meeting_id: int, user: User) -> Meeting:
    meeting = MeetingsRepository(session).get(meeting_id)
    if meeting is None:
        raise NotFound("Meeting not found")
    if user.id == meeting.creator_id:
        return meeting
    if meeting.team_id is not None:
        teams = TeamsRepository(session)
        if user.id == teams.leader_id_for_meeting(meeting) or teams.is_member(meeting.team_id, user.id):
            return meeting
    raise Forbidden("Access denied to this meeting")


@router.get("")
def list_meetings(
    limit: int = 50,
    offset: int = 0,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[MeetingDetail]:
    meetings = MeetingsRepository(session).list_for_creator(user.id, limit=limit, offset=offset)
    return [_detail(session, m) for m in meetings]


@router.post("", status_code=201)
def create_meeting(
    body: CreateMeetingRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    gateway: LlmGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> MeetingDetail:
    outcome = AnalysisPipeline(session, gateway, settings).create_meeting_from_transcript(
        body.transcript, user, team_id=body.team_id
    )
    return _detail(session, outcome.meeting)


@router.get("/{meeting_id}")
def get_meeting_detail(
    meeting_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> MeetingDetail:
    return _detail(session, _load_visible(session, meeting_id, user))


@router.delete("/{meeting_id}")
def delete_meeting(
    meeting_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Dict[str, bool]:
    repo_m = MeetingsRepository(session)
    meeting = repo_m.get(meeting_id)
    if meeting is None:
        raise NotFound("Meeting not found")
    if meeting.creator_id != user.id:
        raise Forbidden("Only the meeting creator can delete the meeting")
    repo_m.delete(meeting)
    logger.info("Meeting %s deleted by user %s", meeting_id, user.id)
    return {"ok": True}


@router.post("/{meeting_id}/analyze")
def analyze_meeting(
    meeting_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    gateway: LlmGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> MeetingDetail:
    outcome = AnalysisPipeline(session, gateway, settings).analyze_meeting(meeting_id, user)
    return _detail(session, outcome.meeting)


@router.post("/{meeting_id}/segment-topics")
def segment_meeting_topics(
    meeting_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    gateway: LlmGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    try:
        segmentation = AnalysisPipeline(session, gateway, settings).resegment_meeting(meeting_id, user)
    except SegmentationError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"meetingId": meeting_id, "topicSegmentation": segmentation.to_dict()}


@router.get("/{meeting_id}/attendees")
def list_attendees(
    meeting_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> List[AttendeeRead]:
    return [AttendeeRead.from_row(a) for a in AttendeeRoster(session).list_attendees(meeting_id, user)]


@router.post("/{meeting_id}/attendees", status_code=201)
def add_attendee(
    meeting_id: int,
    body: AddAttendeeRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> AttendeeRead:
    attendee = AttendeeRoster(session).add_attendee(meeting_id, user, body.name, body.role)
    return AttendeeRead.from_row(attendee)


@router.delete("/{meeting_id}/attendees")
def remove_attendee(
    meeting_id: int,
    attendee_id: Optional[int] = Query(default=None, alias="attendeeId"),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Dict[str, bool]:
    AttendeeRoster(session).remove_attendee(meeting_id, user, attendee_id)
    return {"ok": True}
