"""Speech operation API: raw operation status and transcript refresh."""
import logging

from fastapi import APIRouter, Depends, Request

from api.deps import get_caller, get_owned_transcript, get_repository, get_speech, message_response
from auth.tokens import CallerIdentity
from stt.provider.interface import SpeechOperationsProvider
from stt.reconcile import update_from_speech
from transcripts.repository import TranscriptRepository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["operations"])


@router.get("/operations/{google_speech_ref:path}")
async def get_operation(
    google_speech_ref: str,
    speech: SpeechOperationsProvider = Depends(get_speech),
    caller: CallerIdentity = Depends(get_caller),
):
    """Current state of a speech operation: results when done, else progress metadata."""
    operation = await speech.get_operation(google_speech_ref)
    logger.debug("Result from operations.get: ref=%s done=%s", google_speech_ref, operation.done)
    return operation.to_dict()


@router.post("/transcriptions/{transcript_id}/refreshFromGoogleSpeech")
async def refresh_from_google_speech(
    transcript_id: str,
    request: Request,
    repository: TranscriptRepository = Depends(get_repository),
    speech: SpeechOperationsProvider = Depends(get_speech),
    caller: CallerIdentity = Depends(get_caller),
):
    await get_owned_transcript(repository, transcript_id, caller)
    logger.info("refreshFromGoogleSpeech: transcript=%s", transcript_id)
    progress = await update_from_speech(repository, speech, transcript_id)
    return message_response(request, progress.value, 200, json_key="progress")
