from __future__ import annotations

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlmodel import Session

from meetwise.config import Settings
from meetwise.models.analysis import MeetingAnalysis, TopicSegmentation
from meetwise.models.meeting import Meeting
from meetwise.models.user import User
from meetwise.repositories.breakdown import BreakdownRepository, MeetingBreakdown
from meetwise.repositories.meetings import MeetingsRepository
from meetwise.repositories.teams import TeamsRepository
from meetwise.services.access import require_creator_or_leader
from meetwise.services.errors import Forbidden, NotFound, ValidationFailed
from meetwise.services.extraction_service import analyze_transcript
from meetwise.services.llm_gateway import GenerationOptions, LlmGateway
from meetwise.services.normalization import normalize_breakdown
from meetwise.services.topic_segmentation_service import segment_topics

logger = logging.getLogger("meetwise.analysis")


@dataclass
class AnalysisOutcome:
    meeting: Meeting
    breakdown: MeetingBreakdown
    analysis: MeetingAnalysis
    segmentation: Optional[TopicSegmentation]


def dump_segmentation(segmentation: Optional[TopicSegmentation]) -> Optional[str]:
    if segmentation is None:
        return None
    return json.dumps(segmentation.to_dict(), ensure_ascii=False)


def persist_analysis(
    session: Session,
    meeting_id: int,
    analysis: MeetingAnalysis,
    segmentation: Optional[TopicSegmentation],
    actor: User,
    *,
    expected_version: Optional[int] = None,
    preserve_tasks: bool = True,
) -> Meeting:
    """Normalize an analysis and swap it into the meeting in one transaction."""
    rows = normalize_breakdown(analysis, actor)
    return BreakdownRepository(session).replace_for_meeting(
        meeting_id,
        rows,
        name=analysis.name,
        description=analysis.description,
        summary=analysis.summary,
        topic_segmentation=dump_segmentation(segmentation),
        expected_version=expected_version,
        preserve_tasks=preserve_tasks,
    )


class AnalysisPipeline:
    def __init__(self, session: Session, gateway: LlmGateway, settings: Settings) -> None:
        self.session = session
        self.gateway = gateway
        self.settings = settings

    @property
    def extraction_options(self) -> GenerationOptions:
        return GenerationOptions(
            temperature=self.settings.extraction_temperature,
            max_output_tokens=self.settings.max_output_tokens,
        )

    @property
    def segmentation_options(self) -> GenerationOptions:
        return GenerationOptions(
            temperature=self.settings.segmentation_temperature,
            top_p=self.settings.segmentation_top_p,
            top_k=self.settings.segmentation_top_k,
            max_output_tokens=self.settings.max_output_tokens,
        )

    def run_adapters(self, transcript: str) -> Tuple[MeetingAnalysis, Optional[TopicSegmentation]]:
        """Extraction and segmentation in parallel; segmentation may come back empty."""
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="segmentation") as pool:
            pending = pool.submit(
                segment_topics,
                transcript,
                self.gateway,
                options=self.segmentation_options,
                max_chars=self.settings.max_transcript_chars,
            )
            analysis = analyze_transcript(
                transcript,
                self.gateway,
                options=self.extraction_options,
                max_chars=self.settings.max_transcript_chars,
            )
            segmentation = self._collect_segmentation(pending)
        return analysis, segmentation

    def analyze_meeting(self, meeting_id: int, actor: User) -> AnalysisOutcome:
        meeting = MeetingsRepository(self.session).get(meeting_id)
        if meeting is None:
            raise NotFound("Meeting not found")
        require_creator_or_leader(
            self.session, meeting, actor, "Only the meeting creator or team leader can analyze the meeting"
        )
        if not (meeting.raw_transcript or "").strip():
            raise ValidationFailed("No transcript available to analyze")

        transcript = meeting.raw_transcript
        version = meeting.version
        # Release the read transaction before the slow model calls
        self.session.commit()

        logger.info("Analyzing transcript for meeting %s", meeting_id)
        analysis, segmentation = self.run_adapters(transcript)
        meeting = persist_analysis(
            self.session,
            meeting_id,
            analysis,
            segmentation,
            actor,
            expected_version=version,
            preserve_tasks=self.settings.preserve_tasks_on_reanalysis,
        )
        logger.info("Meeting %s updated with analysis results (origin=%s)", meeting_id, analysis.origin)
        return AnalysisOutcome(meeting, BreakdownRepository(self.session).load(meeting_id), analysis, segmentation)

    def create_meeting_from_transcript(
        self,
        transcript: str,
        actor: User,
        team_id: Optional[int] = None,
    ) -> AnalysisOutcome:
        if not (transcript or "").strip():
            raise ValidationFailed("Transcript is empty")
        if team_id is not None:
            team = TeamsRepository(self.session).get(team_id)
            if team is None:
                raise NotFound("Team not found")
            if team.leader_id != actor.id:
                raise Forbidden("Only team leaders can upload meetings")
        actor_id = actor.id
        self.session.commit()

        analysis, segmentation = self.run_adapters(transcript)
        meeting = Meeting(
            name=analysis.name,
            description=analysis.description,
            summary=analysis.summary,
            raw_transcript=transcript,
            topic_segmentation=dump_segmentation(segmentation),
            creator_id=actor_id,
            team_id=team_id,
        )
        rows = normalize_breakdown(analysis, actor)
        meeting = BreakdownRepository(self.session).create_meeting_with_breakdown(meeting, rows)
        logger.info("Created meeting %s from transcript (%d chars)", meeting.id, len(transcript))
        return AnalysisOutcome(meeting, BreakdownRepository(self.session).load(meeting.id), analysis, segmentation)

    def resegment_meeting(self, meeting_id: int, actor: User) -> TopicSegmentation:
        """Recompute only the topic segmentation; errors propagate to the caller."""
        repo = MeetingsRepository(self.session)
        meeting = repo.get(meeting_id)
        if meeting is None:
            raise NotFound("Meeting not found")
        require_creator_or_leader(
            self.session, meeting, actor, "Only the meeting creator or team leader can segment the meeting"
        )
        if not (meeting.raw_transcript or "").strip():
            raise ValidationFailed("No transcript available for this meeting")

        segmentation = segment_topics(
            meeting.raw_transcript,
            self.gateway,
            options=self.segmentation_options,
            max_chars=self.settings.max_transcript_chars,
        )
        meeting.topic_segmentation = dump_segmentation(segmentation)
        repo.update(meeting)
        logger.info("Topic segmentation saved for meeting %s", meeting_id)
        return segmentation

    @staticmethod
    def _collect_segmentation(pending: "Future[TopicSegmentation]") -> Optional[TopicSegmentation]:
        try:
            return pending.result()
        except Exception as exc:
            logger.warning("Topic segmentation unavailable, continuing without it: %s", exc)
            return None
