from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from meetwise.models.analysis import Breakdown, MeetingAnalysis
from meetwise.services.json_payload import JsonPayloadError, parse_json_object
from meetwise.services.llm_gateway import GenerationOptions, LlmGateway

logger = logging.getLogger("meetwise.extraction")

MAX_TRANSCRIPT_CHARS = 30_000


EXTRACTION_INSTRUCTIONS = """You are an AI assistant that analyzes meeting transcripts.

Analyze the transcript and produce a breakdown of categories:

Tasks: Tasks with varying priorities, owners, and due dates. Example task assignments include preparing reports, setting up meetings, and submitting proposals.
Decisions: Important decisions made during the meeting, such as vendor choice, marketing strategy, and budget approval.
Questions: Questions raised during the meeting, with their status (answered/unanswered). Answered questions include additional context in the form of answers.
Insights: Insights based on the conversation, ranging from sales performance to concerns about deadlines. Each insight refers back to the exact part of the conversation.
Deadlines: Upcoming deadlines related to the budget, product launch, and client presentation.
Attendees: Attendees who attended the meeting and their respective roles.
Follow-ups: Follow-up tasks assigned to individuals after the meeting.
Risks: Risks identified during the meeting, each with potential impacts on the project.
Description: A high-level overview of the meeting's purpose and key areas of focus.
Summary: A brief consolidation of the main points and outcomes from the meeting, including major tasks, decisions, action points and significant risks.

Only use information present in the transcript. Use an ISO date (YYYY-MM-DD) for dates when one can be determined, otherwise leave the field empty.

Format your response as JSON with the following structure:
{
  "name": "Meeting Title",
  "description": "Brief meeting description",
  "summary": "Detailed meeting summary",
  "breakdown": {
    "Tasks": [{"task": "task description", "owner": "person name", "dueDate": "date"}],
    "Decisions": [{"decision": "decision made", "date": "date of decision"}],
    "Questions": [{"question": "question asked", "status": "PENDING/ANSWERED", "answer": "answer if available"}],
    "Insights": [{"insight": "insight description", "reference": "context"}],
    "Deadlines": [{"description": "deadline description", "dueDate": "date"}],
    "Attendees": [{"name": "person name", "role": "their role"}],
    "Follow-ups": [{"description": "follow-up item", "owner": "responsible person"}],
    "Risks": [{"risk": "risk description", "impact": "potential impact"}]
  }
}"""


def truncate_transcript(transcript: str, limit: int = MAX_TRANSCRIPT_CHARS) -> str:
    text = transcript or ""
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit]


def gateway_failure_analysis() -> MeetingAnalysis:
    return MeetingAnalysis(
        name="Untitled Meeting",
        description="Failed to generate description. Please review the transcript directly.",
        summary="Failed to generate summary. Please review the transcript directly.",
        breakdown=Breakdown(),
        origin="gateway_fallback",
    )


def parse_failure_analysis() -> MeetingAnalysis:
    return MeetingAnalysis(
        name="Untitled Meeting",
        description="Could not generate description from transcript. Please review directly.",
        summary="Could not generate summary from transcript. Please review the transcript directly.",
        breakdown={
            "Tasks": [{"task": "Review transcript manually", "owner": "Team", "dueDate": ""}],
            "Decisions": [{"decision": "See transcript for details", "date": ""}],
            "Questions": [{"question": "Review transcript for questions", "status": "PENDING", "answer": ""}],
            "Insights": [{"insight": "Manual analysis needed", "reference": "Transcript"}],
            "Deadlines": [{"description": "Review transcript promptly", "dueDate": ""}],
            "Attendees": [{"name": "Meeting participants", "role": "See transcript"}],
            "Follow-ups": [{"description": "Process transcript manually", "owner": "Team"}],
            "Risks": [{"risk": "Missing important details", "impact": "Information loss"}],
        },
        origin="parse_fallback",
    )


def analyze_transcript(
    transcript: str,
    gateway: LlmGateway,
    *,
    options: Optional[GenerationOptions] = None,
    max_chars: int = MAX_TRANSCRIPT_CHARS,
) -> MeetingAnalysis:
    """Extract name, description, summary and the eight-category breakdown.

    Never raises for model problems: a gateway failure yields the empty
    fallback, unusable output yields the placeholder fallback. One attempt only.
    """
    limited = truncate_transcript(transcript, max_chars)
    logger.info("Starting transcript analysis (%d of %d chars)", len(limited), len(transcript or ""))

    try:
        raw = gateway.generate(EXTRACTION_INSTRUCTIONS, limited, options or GenerationOptions())
    except Exception as exc:
        # Any failure of the call counts as a gateway outage
        logger.warning("Language model call failed, using fallback analysis: %s: %s", type(exc).__name__, exc)
        return gateway_failure_analysis()

    try:
        payload = parse_json_object(raw)
        analysis = MeetingAnalysis.model_validate(payload)
    except (JsonPayloadError, ValidationError, OverflowError) as exc:
        logger.warning("Could not parse model response: %s; raw=%r", exc, raw[:500])
        return parse_failure_analysis()

    logger.info(
        "Parsed analysis %r: %d tasks, %d decisions, %d attendees",
        analysis.name,
        len(analysis.breakdown.tasks),
        len(analysis.breakdown.decisions),
        len(analysis.breakdown.attendees),
    )
    return analysis
