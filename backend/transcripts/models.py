"""Transcript domain types.

Stored field names are camelCase (they are also the client-facing JSON);
Python attributes are snake_case with aliases.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

TRANSCRIPTS = "transcripts"
PARAGRAPHS = "paragraphs"


class ProgressType(str, Enum):
    UPLOADING = "UPLOADING"
    TRANSCRIBING = "TRANSCRIBING"
    ANALYSING = "ANALYSING"
    SAVING = "SAVING"
    DONE = "DONE"
    FAILED = "FAILED"          # terminal error state
    NOT_FOUND = "NOT_FOUND"    # synthetic, never persisted


# Forward order of the processing pipeline
PIPELINE_ORDER = (
    ProgressType.UPLOADING,
    ProgressType.TRANSCRIBING,
    ProgressType.ANALYSING,
    ProgressType.SAVING,
    ProgressType.DONE,
)

TERMINAL_STATES = frozenset({ProgressType.DONE, ProgressType.FAILED})


def transcript_path(transcript_id: str) -> str:
    return f"{TRANSCRIPTS}/{transcript_id}"


def paragraphs_path(transcript_id: str) -> str:
    return f"{TRANSCRIPTS}/{transcript_id}/{PARAGRAPHS}"


class Word(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    word: str
    start_time: float = Field(alias="startTime")
    end_time: float = Field(alias="endTime")
    confidence: Optional[float] = None
    speaker_tag: Optional[int] = Field(default=None, alias="speakerTag")


class Paragraph(BaseModel):
    """One immutable unit of recognized speech. Ordered by start_time."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    start_time: float = Field(alias="startTime")
    end_time: Optional[float] = Field(default=None, alias="endTime")
    text: str = ""
    confidence: Optional[float] = None
    speaker_tag: Optional[int] = Field(default=None, alias="speakerTag")
    words: List[Word] = Field(default_factory=list)

    def to_doc(self) -> Dict[str, Any]:
        """Serialize for document storage."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_doc(cls, data: Dict[str, Any]) -> "Paragraph":
        return cls.model_validate(data)
