"""Transcript Repository: persistence and progress lifecycle.

Layout:
  transcripts/{id}                         transcript document
  transcripts/{id}/paragraphs/{pid}        paragraph documents

Rules:
  - Every transcript write is a merge; fields not in the payload survive,
    so independent callers can update disjoint slices concurrently.
  - Same-field writes are last-write-wins; callers that need ordering
    serialize themselves.
  - add_paragraph stores the paragraph and the parent's percent in one
    atomic batch.
  - No internal retries. Store failures surface as StoreError.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from core.exceptions import AuthorizationError, ValidationError, serialize_error
from store.interface import DELETE_FIELD, Create, DocumentStore, Update
from transcripts.deletion import delete_collection
from transcripts.guard import StrictProgressGuard
from transcripts.models import (
    PARAGRAPHS,
    TRANSCRIPTS,
    Paragraph,
    ProgressType,
    paragraphs_path,
    transcript_path,
)

logger = logging.getLogger(__name__)

# Progress states the recovery job looks for
STUCK_STATES = (ProgressType.SAVING, ProgressType.TRANSCRIBING)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TranscriptRepository:
    """All transcript and paragraph persistence goes through here."""

    def __init__(
        self,
        store: DocumentStore,
        delete_batch_size: int = 10,
        stuck_window_days: int = 2,
        guard: Optional[StrictProgressGuard] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._delete_batch_size = delete_batch_size
        self._stuck_window = timedelta(days=stuck_window_days)
        self._guard = guard
        self._clock = clock

    # ── Ids ──────────────────────────────────────────────────────

    def build_new_id(self) -> str:
        """Allocate a transcript id. Nothing is written; treat it as single-use."""
        return self._store.new_id(TRANSCRIPTS)

    # ── Writes ───────────────────────────────────────────────────

    async def update_transcript(self, transcript_id: str, transcript: Dict[str, Any]) -> None:
        """Merge a partial transcript into transcripts/{id}, creating it if absent."""
        logger.debug("update_transcript: transcript=%s fields=%s", transcript_id, sorted(transcript))
        await self._store.merge_document(transcript_path(transcript_id), transcript)

    async def create_transcript(
        self,
        transcript_id: str,
        user_id: str,
        original_mime_type: str,
        language_codes: Sequence[str],
    ) -> None:
        """Initial metadata for an upload. Progress starts at UPLOADING.

        The owner is fixed by the first call; a different user_id on an
        existing transcript raises AuthorizationError and nothing is written.
        """
        if not user_id:
            raise ValidationError("Missing the user_id for the transcript owner")
        if not original_mime_type:
            raise ValidationError("Missing the originalMimeType")
        existing = await self.get_transcript(transcript_id)
        if existing and existing.get("userId") and existing["userId"] != user_id:
            logger.info(
                "Refusing to reassign owner: transcript=%s user=%s", transcript_id, user_id,
            )
            raise AuthorizationError()
        now = self._clock()
        await self.update_transcript(transcript_id, {
            "metadata": {
                "languageCodes": list(language_codes),
                "originalMimeType": original_mime_type,
            },
            "status": {
                "progress": ProgressType.UPLOADING.value,
                "lastUpdated": now,
            },
            "userId": user_id,
            "createdAt": now,
        })
        logger.info("Transcript created: transcript=%s user=%s", transcript_id, user_id)

    async def set_progress(self, transcript_id: str, progress: Union[ProgressType, str]) -> None:
        """Stamp a progress transition.

        ANALYSING and SAVING restart percent at 0. DONE removes percent; its
        absence is the completion signal.
        """
        try:
            progress = ProgressType(progress)
        except ValueError:
            # "Done", "saving": match member names regardless of case
            member = ProgressType.__members__.get(str(progress).upper())
            if member is None:
                raise ValidationError(f"Unknown progress state: {progress}")
            progress = member
        if progress == ProgressType.NOT_FOUND:
            raise ValidationError("NOT_FOUND is not a storable progress state")
        if self._guard is not None:
            self._guard.check(await self.get_progress(transcript_id), progress)

        status: Dict[str, Any] = {
            "progress": progress.value,
            "lastUpdated": self._clock(),
        }
        if progress in (ProgressType.ANALYSING, ProgressType.SAVING):
            status["percent"] = 0
        elif progress == ProgressType.DONE:
            status["percent"] = DELETE_FIELD

        logger.info("set_progress: transcript=%s progress=%s", transcript_id, progress.value)
        await self.update_transcript(transcript_id, {"status": status})

    async def set_percent(self, transcript_id: str, percent: float) -> None:
        await self.update_transcript(transcript_id, {
            "status": {"percent": percent, "lastUpdated": self._clock()},
        })

    async def set_duration(self, transcript_id: str, seconds: float) -> None:
        logger.debug("set_duration: transcript=%s seconds=%s", transcript_id, seconds)
        await self.update_transcript(transcript_id, {"metadata": {"audioDuration": seconds}})

    async def update_flac_file_location(self, transcript_id: str, flac_file_location_uri: str) -> None:
        await self.update_transcript(
            transcript_id, {"speechData": {"flacFileLocationUri": flac_file_location_uri}},
        )

    async def update_google_speech_transcribe_reference(self, transcript_id: str, reference: str) -> None:
        logger.debug("update_google_speech_transcribe_reference: transcript=%s", transcript_id)
        await self.update_transcript(transcript_id, {"speechData": {"reference": reference}})

    async def set_playback_gs_url(self, transcript_id: str, url: str) -> None:
        await self.update_transcript(transcript_id, {"playbackGsUrl": url})

    async def error_occurred(self, transcript_id: str, error: BaseException) -> None:
        """Record a failure under status.error so progress views can show it."""
        serialized = serialize_error(error)
        logger.warning(
            "error_occurred: transcript=%s error=%s: %s",
            transcript_id, serialized.get("name"), serialized.get("message"),
        )
        await self.update_transcript(transcript_id, {"status": {"error": serialized}})

    async def add_paragraph(
        self,
        transcript_id: str,
        paragraph: Union[Paragraph, Dict[str, Any]],
        percent: float,
    ) -> str:
        """Store a paragraph and the parent's percent together, or neither.

        The parent transcript must already exist. Returns the paragraph id.
        """
        if not isinstance(paragraph, Paragraph):
            paragraph = Paragraph.model_validate(paragraph)

        collection = paragraphs_path(transcript_id)
        paragraph_id = self._store.new_id(collection)
        await self._store.run_batch([
            Create(f"{collection}/{paragraph_id}", paragraph.to_doc()),
            Update(transcript_path(transcript_id), {"status.percent": percent}),
        ])
        return paragraph_id

    # ── Reads ────────────────────────────────────────────────────

    async def get_transcript(self, transcript_id: str) -> Optional[Dict[str, Any]]:
        snapshot = await self._store.get_document(transcript_path(transcript_id))
        return snapshot.data if snapshot else None

    async def get_paragraphs(self, transcript_id: str) -> List[Paragraph]:
        """Paragraphs in reading order (ascending startTime)."""
        snapshots = await self._store.query_ordered(paragraphs_path(transcript_id), "startTime")
        return [Paragraph.from_doc(s.data) for s in snapshots]

    async def get_progress(self, transcript_id: str) -> ProgressType:
        """Current progress, or NOT_FOUND when there is no document or status."""
        transcript = await self.get_transcript(transcript_id)
        status = (transcript or {}).get("status")
        if not isinstance(status, dict) or not status.get("progress"):
            return ProgressType.NOT_FOUND
        try:
            return ProgressType(status["progress"])
        except ValueError:
            logger.warning(
                "Unknown stored progress: transcript=%s progress=%s",
                transcript_id, status["progress"],
            )
            return ProgressType.NOT_FOUND

    async def get_transcripts(self) -> Dict[str, Dict[str, Any]]:
        """Every transcript keyed by id.

        Full collection scan: cost grows with the whole store. For admin and
        batch jobs only, never on a request path.
        """
        snapshots = await self._store.list_documents(TRANSCRIPTS)
        return {s.id: s.data for s in snapshots}

    async def find_transcripts_updated_today_not_done(self) -> Dict[str, Dict[str, Any]]:
        """Transcripts created inside the recovery window and still SAVING or TRANSCRIBING.

        Records without an id field get the document id filled in.
        """
        cutoff = self._clock() - self._stuck_window
        snapshots = await self._store.query_where(TRANSCRIPTS, [
            ("createdAt", ">", cutoff),
            ("status.progress", "in", [s.value for s in STUCK_STATES]),
        ])
        transcripts: Dict[str, Dict[str, Any]] = {}
        for snapshot in snapshots:
            transcript = snapshot.data
            if not transcript.get("id"):
                logger.debug("adding transcript.id to: transcript=%s", snapshot.id)
                transcript["id"] = snapshot.id
            transcripts[snapshot.id] = transcript
        return transcripts

    # ── Deletion ─────────────────────────────────────────────────

    async def delete_collection(self, collection_path: str, batch_size: Optional[int] = None) -> int:
        return await delete_collection(
            self._store, collection_path, batch_size or self._delete_batch_size,
        )

    async def delete_transcript(self, transcript_id: str) -> None:
        """Delete every paragraph, then the transcript. Idempotent."""
        logger.info("Delete transcript by id: transcript=%s", transcript_id)
        await self.delete_collection(f"/{TRANSCRIPTS}/{transcript_id}/{PARAGRAPHS}")
        await self._store.delete_document(transcript_path(transcript_id))
        logger.info("Transcript deleted: transcript=%s", transcript_id)
