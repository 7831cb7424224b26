"""Speech reconciliation: drives transcript progress from operation polls.

update_from_speech:
  running  → percent updated, progress TRANSCRIBING
  failed   → status.error recorded, progress FAILED, UpstreamServiceError
  done     → SAVING, one add_paragraph per result, then DONE

A transcript already DONE is left alone. One found in SAVING was
interrupted mid-save: its partial paragraphs are cleared before saving
again, so paragraphs are never duplicated.
"""
import logging
from typing import Any, Dict

from core.exceptions import (
    StoreError,
    UpstreamServiceError,
    ValidationError,
)
from stt.paragraphs import build_paragraphs
from stt.provider.interface import SpeechOperationsProvider
from transcripts.models import ProgressType, paragraphs_path
from transcripts.repository import TranscriptRepository

logger = logging.getLogger(__name__)


async def _save_results(
    repository: TranscriptRepository,
    transcript_id: str,
    results,
    previous: ProgressType,
) -> None:
    if previous == ProgressType.SAVING:
        removed = await repository.delete_collection(paragraphs_path(transcript_id))
        logger.info("Cleared partial save: transcript=%s paragraphs=%d", transcript_id, removed)

    await repository.set_progress(transcript_id, ProgressType.SAVING)
    paragraphs = build_paragraphs(results)
    total = len(paragraphs)
    for index, paragraph in enumerate(paragraphs, start=1):
        percent = round(index * 100 / total)
        await repository.add_paragraph(transcript_id, paragraph, percent)
    await repository.set_progress(transcript_id, ProgressType.DONE)
    logger.info("Transcript saved: transcript=%s paragraphs=%d", transcript_id, total)


async def update_from_speech(
    repository: TranscriptRepository,
    speech: SpeechOperationsProvider,
    transcript_id: str,
) -> ProgressType:
    """Reconcile one transcript with its speech operation. Returns the new progress."""
    transcript = await repository.get_transcript(transcript_id)
    if transcript is None:
        logger.warning("Refresh for missing transcript: transcript=%s", transcript_id)
        return ProgressType.NOT_FOUND

    previous = await repository.get_progress(transcript_id)
    if previous == ProgressType.DONE:
        return ProgressType.DONE

    reference = (transcript.get("speechData") or {}).get("reference")
    if not reference:
        raise ValidationError(f"Transcript {transcript_id} has no speech operation reference")

    try:
        operation = await speech.get_operation(reference)
    except UpstreamServiceError as e:
        await repository.error_occurred(transcript_id, e)
        raise

    if operation.error:
        error = UpstreamServiceError(
            f"Speech operation {reference} failed: {operation.error.get('message', '')}",
            code=f"UPSTREAM_{operation.error.get('code', 'ERROR')}",
        )
        await repository.error_occurred(transcript_id, error)
        await repository.set_progress(transcript_id, ProgressType.FAILED)
        raise error

    if not operation.done:
        if previous != ProgressType.TRANSCRIBING:
            await repository.set_progress(transcript_id, ProgressType.TRANSCRIBING)
        await repository.set_percent(transcript_id, operation.percent)
        logger.info(
            "Transcribing: transcript=%s percent=%d", transcript_id, operation.percent,
        )
        return ProgressType.TRANSCRIBING

    await _save_results(repository, transcript_id, operation.results, previous)
    return ProgressType.DONE


async def reconcile_stuck_transcripts(
    repository: TranscriptRepository,
    speech: SpeechOperationsProvider,
) -> Dict[str, Dict[str, Any]]:
    """Refresh every recent transcript still TRANSCRIBING or SAVING.

    A failure on one transcript is recorded in the outcome and does not stop
    the others.
    """
    stuck = await repository.find_transcripts_updated_today_not_done()
    logger.info("[Reconcile] Found %d unfinished transcripts", len(stuck))

    outcomes: Dict[str, Dict[str, Any]] = {}
    for transcript_id, transcript in stuck.items():
        if not (transcript.get("speechData") or {}).get("reference"):
            outcomes[transcript_id] = {"skipped": "no speech reference"}
            continue
        try:
            progress = await update_from_speech(repository, speech, transcript_id)
            outcomes[transcript_id] = {"progress": progress.value}
        except (UpstreamServiceError, StoreError, ValidationError) as e:
            logger.error("[Reconcile] Failed: transcript=%s error=%s", transcript_id, e)
            outcomes[transcript_id] = {"error": e.code, "message": e.message}

    logger.info("[Reconcile] Done: %s", outcomes)
    return outcomes
