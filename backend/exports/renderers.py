"""Export renderers: one transcript plus its ordered paragraphs, one format.

Format is picked by the Accept header value:
  application/json   → JSON document
  application/docx   → Word document
  application/xmp    → Adobe XMP sidecar with one marker per paragraph
"""
import io
import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from docx import Document

from core.exceptions import ExportFormatError
from transcripts.models import Paragraph

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_NS = {
    "x": "adobe:ns:meta/",
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "xmpDM": "http://ns.adobe.com/xmp/1.0/DynamicMedia/",
}
for _prefix, _uri in _NS.items():
    ET.register_namespace(_prefix, _uri)


@dataclass
class RenderedExport:
    content: bytes
    media_type: str
    filename: str


def format_timestamp(seconds: float) -> str:
    total = int(seconds or 0)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _title(transcript_id: str, transcript: Dict[str, Any]) -> str:
    return transcript.get("name") or f"Transcript {transcript_id}"


def render_json(transcript_id: str, transcript: Dict[str, Any], paragraphs: List[Paragraph]) -> RenderedExport:
    body = {
        "id": transcript_id,
        "metadata": transcript.get("metadata", {}),
        "paragraphs": [
            {
                "startTime": p.start_time,
                "endTime": p.end_time,
                "text": p.text,
                "speakerTag": p.speaker_tag,
            }
            for p in paragraphs
        ],
    }
    content = json.dumps(body, ensure_ascii=False, default=str).encode("utf-8")
    return RenderedExport(content, "application/json", f"{transcript_id}.json")


def render_docx(transcript_id: str, transcript: Dict[str, Any], paragraphs: List[Paragraph]) -> RenderedExport:
    document = Document()
    document.add_heading(_title(transcript_id, transcript), level=1)

    metadata = transcript.get("metadata") or {}
    if metadata.get("audioDuration"):
        document.add_paragraph(f"Duration: {format_timestamp(metadata['audioDuration'])}")

    for paragraph in paragraphs:
        block = document.add_paragraph()
        stamp = block.add_run(f"[{format_timestamp(paragraph.start_time)}] ")
        stamp.bold = True
        block.add_run(paragraph.text)

    buffer = io.BytesIO()
    document.save(buffer)
    return RenderedExport(buffer.getvalue(), DOCX_MEDIA_TYPE, f"{transcript_id}.docx")


def _q(prefix: str, tag: str) -> str:
    return f"{{{_NS[prefix]}}}{tag}"


def render_xmp(transcript_id: str, transcript: Dict[str, Any], paragraphs: List[Paragraph]) -> RenderedExport:
    root = ET.Element(_q("x", "xmpmeta"))
    rdf = ET.SubElement(root, _q("rdf", "RDF"))
    description = ET.SubElement(rdf, _q("rdf", "Description"), {_q("rdf", "about"): ""})
    tracks = ET.SubElement(ET.SubElement(description, _q("xmpDM", "Tracks")), _q("rdf", "Bag"))

    track = ET.SubElement(tracks, _q("rdf", "li"), {_q("rdf", "parseType"): "Resource"})
    ET.SubElement(track, _q("xmpDM", "trackName")).text = _title(transcript_id, transcript)
    ET.SubElement(track, _q("xmpDM", "trackType")).text = "Comment"
    ET.SubElement(track, _q("xmpDM", "frameRate")).text = "f1000"
    markers = ET.SubElement(ET.SubElement(track, _q("xmpDM", "markers")), _q("rdf", "Seq"))

    for paragraph in paragraphs:
        start_ms = int(round(paragraph.start_time * 1000))
        end_ms = int(round((paragraph.end_time or paragraph.start_time) * 1000))
        marker = ET.SubElement(markers, _q("rdf", "li"), {_q("rdf", "parseType"): "Resource"})
        ET.SubElement(marker, _q("xmpDM", "startTime")).text = str(start_ms)
        ET.SubElement(marker, _q("xmpDM", "duration")).text = str(max(end_ms - start_ms, 0))
        ET.SubElement(marker, _q("xmpDM", "name")).text = paragraph.text

    content = ET.tostring(root, encoding="utf-8", xml_declaration=True)
    return RenderedExport(content, "application/xmp", f"{transcript_id}.xmp")


Renderer = Callable[[str, Dict[str, Any], List[Paragraph]], RenderedExport]

RENDERERS: Dict[str, Renderer] = {
    "application/json": render_json,
    "application/docx": render_docx,
    "application/xmp": render_xmp,
}


def select_renderer(export_to: str) -> Renderer:
    """Renderer for an Accept value. Raises ExportFormatError if unsupported."""
    renderer = RENDERERS.get((export_to or "").strip().lower())
    if renderer is None:
        logger.info("Unknown export format: %s", export_to)
        supported = ", ".join(f"'{k}'" for k in RENDERERS)
        raise ExportFormatError(
            "Please state your expected export format in the 'Accept:' header. "
            f"Supported values are: {supported}"
        )
    return renderer
