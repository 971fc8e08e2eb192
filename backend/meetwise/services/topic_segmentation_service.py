from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from meetwise.models.analysis import TopicSegmentation
from meetwise.services.extraction_service import MAX_TRANSCRIPT_CHARS, truncate_transcript
from meetwise.services.json_payload import JsonPayloadError, parse_json_object
from meetwise.services.llm_gateway import GenerationOptions, LlmGateway

logger = logging.getLogger("meetwise.segmentation")


class SegmentationError(RuntimeError):
    pass


# Quotations are checked against the transcript by readers, so keep sampling conservative
DEFAULT_SEGMENTATION_OPTIONS = GenerationOptions(
    temperature=0.2,
    top_p=0.8,
    top_k=40,
    max_output_tokens=8000,
)


SEGMENTATION_INSTRUCTIONS = """I have a meeting transcript that I need to segment into distinct topics.

For each topic segment, I need:
1. A descriptive title (e.g., 'Q4 Budget Review')
2. The starting sentence or phrase where the topic begins, including the speaker (e.g., 'Alice: Let's discuss the budget.')
3. The ending sentence or phrase where the topic ends, including the speaker (e.g., 'Bob: Okay, moving on.')
4. A brief summary of what was discussed
5. The key speakers involved in that topic
6. Estimated time spent on the topic in minutes. If timestamps are available in the transcript, use them; otherwise, provide a rough estimate.

Guidelines:
- Each segment should represent a coherent discussion topic
- Identify natural transition points in the conversation, such as changes in subject or explicit statements like 'Let's move to the next item'
- If the transcript mentions an agenda or lists specific items, use those as guides for segmentation
- Some topics might have subtopics; include them within the main topic's summary
- Focus on meaningful content, ignoring small talk or administrative comments
- Aim for 3-10 major topic segments, adjusting based on the meeting's complexity
- Start and end points must be quoted verbatim from the transcript; never invent or paraphrase them
- Ensure all information is directly derived from the transcript; do not make up details

Format your response as JSON with the following structure:
{
  "totalTopics": number,
  "estimatedDuration": "total duration in minutes",
  "topics": [
    {
      "id": 1,
      "title": "Topic title",
      "startPoint": "First few words of where topic begins...",
      "endPoint": "Last few words of where topic ends...",
      "summary": "Brief summary of the topic discussion",
      "keySpeakers": ["Speaker 1", "Speaker 2"],
      "estimatedMinutes": number
    }
  ]
}"""


def segment_topics(
    transcript: str,
    gateway: LlmGateway,
    *,
    options: Optional[GenerationOptions] = None,
    max_chars: int = MAX_TRANSCRIPT_CHARS,
) -> TopicSegmentation:
    """Split a transcript into topic spans.

    Raises SegmentationError on any failure; callers treat the result as
    optional enrichment.
    """
    limited = truncate_transcript(transcript, max_chars)
    logger.info("Starting topic segmentation (%d chars)", len(limited))
    try:
        raw = gateway.generate(SEGMENTATION_INSTRUCTIONS, limited, options or DEFAULT_SEGMENTATION_OPTIONS)
    except Exception as exc:
        raise SegmentationError(f"language model call failed: {type(exc).__name__}: {exc}") from exc

    try:
        segmentation = TopicSegmentation.model_validate(parse_json_object(raw))
    except (JsonPayloadError, ValidationError, OverflowError) as exc:
        logger.debug("Unparsable segmentation response: %r", raw[:500])
        raise SegmentationError(f"could not parse segmentation: {exc}") from exc

    logger.info("Found %d topics", segmentation.total_topics)
    return segmentation
