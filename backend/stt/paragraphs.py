"""Recognition results → Paragraphs.

One paragraph per recognition result, taken from its first (most likely)
alternative. Times arrive as protobuf duration strings ("1.500s").
"""
import logging
from typing import Any, Dict, List, Optional

from transcripts.models import Paragraph, Word

logger = logging.getLogger(__name__)


def parse_duration(value: Any) -> float:
    """Seconds from "1.500s", a number, or {"seconds": .., "nanos": ..}."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, dict):
        return float(value.get("seconds", 0)) + float(value.get("nanos", 0)) / 1e9
    text = str(value).strip()
    if text.endswith("s"):
        text = text[:-1]
    return float(text) if text else 0.0


def build_paragraph(result: Dict[str, Any], fallback_start: float = 0.0) -> Optional[Paragraph]:
    alternatives = result.get("alternatives") or []
    if not alternatives:
        return None
    alternative = alternatives[0]

    words = [
        Word(
            word=w.get("word", ""),
            start_time=parse_duration(w.get("startTime")),
            end_time=parse_duration(w.get("endTime")),
            confidence=w.get("confidence"),
            speaker_tag=w.get("speakerTag"),
        )
        for w in alternative.get("words", [])
    ]
    text = (alternative.get("transcript") or "").strip()
    if not text and not words:
        return None

    if words:
        start_time, end_time = words[0].start_time, words[-1].end_time
    else:
        start_time = fallback_start
        end_time = parse_duration(result.get("resultEndTime")) or fallback_start

    return Paragraph(
        start_time=start_time,
        end_time=end_time,
        text=text or " ".join(w.word for w in words),
        confidence=alternative.get("confidence"),
        speaker_tag=words[0].speaker_tag if words else None,
        words=words,
    )


def build_paragraphs(results: List[Dict[str, Any]]) -> List[Paragraph]:
    """Paragraphs in result order. Empty results are skipped."""
    paragraphs: List[Paragraph] = []
    cursor = 0.0
    for result in results:
        paragraph = build_paragraph(result, fallback_start=cursor)
        if paragraph is None:
            continue
        paragraphs.append(paragraph)
        cursor = paragraph.end_time or paragraph.start_time
    logger.debug("Built %d paragraphs from %d results", len(paragraphs), len(results))
    return paragraphs
