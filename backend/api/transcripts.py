"""Transcript API: ids, uploads, metadata, reads, exports, deletion.

Every route needs a verified caller. Reads and exports are owner-only;
a foreign or absent transcript answers 404 either way.
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, Query, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from api.deps import (
    accepts_json,
    get_caller,
    get_owned_transcript,
    get_repository,
    get_settings_dep,
    get_signer,
    message_response,
    require_user_id,
)
from auth.tokens import CallerIdentity
from config.settings import Settings
from core.exceptions import StoreError, UpstreamServiceError, ValidationError
from exports.renderers import select_renderer
from storage.signer import UploadUrlSigner, original_media_path
from transcripts.repository import TranscriptRepository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transcripts"])


# ---- Schemas ----

class TranscriptMetadataRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    original_mime_type: Optional[str] = Field(default=None, alias="originalMimeType")
    language_code: Optional[str] = Field(default=None, alias="languageCode")


# ---- Routes ----

@router.get("/hello")
async def hello(caller: CallerIdentity = Depends(get_caller)):
    return Response(f"Hello {caller.user_id}", media_type="text/plain")


@router.post("/transcriptId")
async def create_transcript_id(
    request: Request,
    repository: TranscriptRepository = Depends(get_repository),
    caller: CallerIdentity = Depends(get_caller),
):
    transcript_id = repository.build_new_id()
    logger.info("New transcript id: transcript=%s user=%s", transcript_id, caller.user_id)
    return message_response(request, transcript_id, 200, json_key="transcriptId")


@router.post("/uploadUrl")
async def create_upload_url(
    request: Request,
    transcript_id: Optional[str] = Query(default=None, alias="transcriptId"),
    x_content_type: Optional[str] = Header(default=None),
    content_type: Optional[str] = Header(default=None),
    signer: UploadUrlSigner = Depends(get_signer),
    caller: CallerIdentity = Depends(get_caller),
):
    if not transcript_id:
        raise ValidationError("Missing the transcriptId query parameter")
    user_id = require_user_id(caller)
    media_type = x_content_type or content_type
    if not media_type:
        raise ValidationError(
            "Missing the X-Content-Type header parameter. Use eg audio/mpeg for any audio format."
        )

    try:
        url = await signer.signed_upload_url(original_media_path(user_id, transcript_id), media_type)
    except UpstreamServiceError as e:
        logger.error("Failed to create uploadUrl: transcript=%s error=%s", transcript_id, e)
        return message_response(
            request, f"Failed to create uploadUrl for transcriptId: {transcript_id}", 412,
        )

    if accepts_json(request):
        return message_response(request, url, 200, json_key="uploadUrl")
    return message_response(request, url, 201)


@router.post("/transcripts/{transcript_id}")
async def update_transcript_metadata(
    transcript_id: str,
    request: Request,
    body: Optional[TranscriptMetadataRequest] = Body(default=None),
    original_mime_type: Optional[str] = Query(default=None, alias="originalMimeType"),
    language_code: Optional[str] = Query(default=None, alias="languageCode"),
    repository: TranscriptRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings_dep),
    caller: CallerIdentity = Depends(get_caller),
):
    body = body or TranscriptMetadataRequest()
    mime_type = original_mime_type or body.original_mime_type
    if not mime_type:
        raise ValidationError("Missing the originalMimeType body parameter.")
    user_id = require_user_id(caller)
    language = language_code or body.language_code or settings.DEFAULT_LANGUAGE_CODE

    try:
        await repository.create_transcript(transcript_id, user_id, mime_type, [language])
    except StoreError as e:
        logger.error("Failed to update Transcript: transcript=%s error=%s", transcript_id, e)
        return message_response(
            request, f"Failed to create transcription Doc for transcriptId: {transcript_id}", 412,
        )

    return message_response(
        request,
        "Follow location header to find transcription status.",
        202,
        headers={"Location": f"/api/transcripts/{transcript_id}"},
    )


@router.get("/transcripts/{transcript_id}")
async def get_transcript(
    transcript_id: str,
    repository: TranscriptRepository = Depends(get_repository),
    caller: CallerIdentity = Depends(get_caller),
):
    transcript = await get_owned_transcript(repository, transcript_id, caller)
    paragraphs = await repository.get_paragraphs(transcript_id)
    logger.debug("Found transcript: transcript=%s paragraphs=%d", transcript_id, len(paragraphs))
    return {
        **transcript,
        "id": transcript_id,
        "paragraphs": [p.to_doc() for p in paragraphs],
    }


@router.get("/transcripts/{transcript_id}/export")
async def export_transcript(
    transcript_id: str,
    accept: Optional[str] = Header(default=None),
    repository: TranscriptRepository = Depends(get_repository),
    caller: CallerIdentity = Depends(get_caller),
):
    transcript = await get_owned_transcript(repository, transcript_id, caller)
    renderer = select_renderer(accept or "")
    paragraphs = await repository.get_paragraphs(transcript_id)
    # python-docx builds the whole document in memory
    rendered = await asyncio.to_thread(renderer, transcript_id, transcript, paragraphs)
    logger.info("Exported: transcript=%s format=%s", transcript_id, rendered.media_type)
    return Response(
        content=rendered.content,
        media_type=rendered.media_type,
        headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
    )


@router.delete("/transcripts/{transcript_id}", status_code=204)
async def delete_transcript(
    transcript_id: str,
    repository: TranscriptRepository = Depends(get_repository),
    caller: CallerIdentity = Depends(get_caller),
):
    await get_owned_transcript(repository, transcript_id, caller)
    await repository.delete_transcript(transcript_id)
    return Response(status_code=204)
