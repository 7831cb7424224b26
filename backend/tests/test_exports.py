from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import io
import json
import xml.etree.ElementTree as ET

import pytest
from docx import Document

from core.exceptions import ExportFormatError
from exports.renderers import (
    DOCX_MEDIA_TYPE,
    format_timestamp,
    render_docx,
    render_json,
    render_xmp,
    select_renderer,
)
from transcripts.models import Paragraph

TRANSCRIPT = {
    "metadata": {"audioDuration": 3725.0, "languageCodes": ["nb-NO"]},
    "userId": "u1",
}
PARAGRAPHS = [
    Paragraph(start_time=0.0, end_time=2.25, text="Hei og velkommen", speaker_tag=1),
    Paragraph(start_time=65.5, end_time=70.0, text="til dagens opptak", speaker_tag=2),
]

XMP_DM = "{http://ns.adobe.com/xmp/1.0/DynamicMedia/}"


@pytest.mark.parametrize("seconds,expected", [(0, "00:00:00"), (65.5, "00:01:05"), (3725, "01:02:05")])
def test_format_timestamp(seconds, expected):
    assert format_timestamp(seconds) == expected


def test_json_export():
    rendered = render_json("t1", TRANSCRIPT, PARAGRAPHS)

    body = json.loads(rendered.content)
    assert rendered.media_type == "application/json"
    assert rendered.filename == "t1.json"
    assert body["id"] == "t1"
    assert [p["text"] for p in body["paragraphs"]] == ["Hei og velkommen", "til dagens opptak"]
    assert body["paragraphs"][1]["speakerTag"] == 2


def test_docx_export():
    rendered = render_docx("t1", TRANSCRIPT, PARAGRAPHS)

    assert rendered.media_type == DOCX_MEDIA_TYPE
    document = Document(io.BytesIO(rendered.content))
    texts = [p.text for p in document.paragraphs]
    assert texts[0] == "Transcript t1"
    assert "Duration: 01:02:05" in texts
    assert "[00:01:05] til dagens opptak" in texts


def test_xmp_export_markers_in_milliseconds():
    rendered = render_xmp("t1", TRANSCRIPT, PARAGRAPHS)

    root = ET.fromstring(rendered.content)
    starts = [el.text for el in root.iter(f"{XMP_DM}startTime")]
    durations = [el.text for el in root.iter(f"{XMP_DM}duration")]
    names = [el.text for el in root.iter(f"{XMP_DM}name")]
    assert starts == ["0", "65500"]
    assert durations == ["2250", "4500"]
    assert names == ["Hei og velkommen", "til dagens opptak"]
    assert rendered.filename == "t1.xmp"


def test_empty_transcript_exports():
    for export_to in ("application/json", "application/docx", "application/xmp"):
        rendered = select_renderer(export_to)("t1", {}, [])
        assert rendered.content


def test_select_renderer_is_case_insensitive():
    assert select_renderer(" Application/XMP ") is render_xmp


@pytest.mark.parametrize("export_to", ["", "text/html", "*/*"])
def test_unsupported_format_lists_supported_values(export_to):
    with pytest.raises(ExportFormatError) as excinfo:
        select_renderer(export_to)
    assert "'application/docx'" in excinfo.value.message
