"""Request-scoped dependencies.

Services are constructed once in the application lifespan and hung off
app.state; handlers reach them only through these dependencies, so tests
can swap any of them with app.dependency_overrides.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from auth.tokens import CallerIdentity, IdentityVerifier, extract_token
from config.settings import Settings
from core.exceptions import AuthorizationError, ValidationError
from storage.signer import UploadUrlSigner
from store.interface import DocumentStore
from stt.provider.interface import SpeechOperationsProvider
from transcripts.repository import TranscriptRepository

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: DocumentStore
    repository: TranscriptRepository
    speech: SpeechOperationsProvider
    signer: UploadUrlSigner
    verifier: IdentityVerifier


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_settings_dep(services: Services = Depends(get_services)) -> Settings:
    return services.settings


def get_repository(services: Services = Depends(get_services)) -> TranscriptRepository:
    return services.repository


def get_speech(services: Services = Depends(get_services)) -> SpeechOperationsProvider:
    return services.speech


def get_signer(services: Services = Depends(get_services)) -> UploadUrlSigner:
    return services.signer


def get_caller(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
) -> CallerIdentity:
    """Verify the bearer token. AuthError → 403."""
    cookie = request.cookies.get(services.settings.SESSION_COOKIE_NAME)
    token = extract_token(authorization, cookie)
    return services.verifier.verify(token)


def require_user_id(caller: CallerIdentity) -> str:
    if not caller.user_id:
        raise ValidationError("Missing the user_id from your authorization token.")
    return caller.user_id


async def get_owned_transcript(
    repository: TranscriptRepository,
    transcript_id: str,
    caller: CallerIdentity,
) -> Dict[str, Any]:
    """The transcript if the caller owns it. Absent or foreign → AuthorizationError."""
    transcript = await repository.get_transcript(transcript_id)
    if not transcript or not transcript.get("userId"):
        logger.info("Transcript does not exist: transcript=%s", transcript_id)
        raise AuthorizationError()
    if transcript["userId"] != caller.user_id:
        logger.info(
            "Transcript found but the userIds do not match: transcript=%s caller=%s owner=%s",
            transcript_id, caller.user_id, transcript["userId"],
        )
        raise AuthorizationError()
    return transcript


def accepts_json(request: Request) -> bool:
    return "application/json" in request.headers.get("accept", "")


def message_response(
    request: Request,
    message: str,
    status_code: int,
    headers: Optional[Dict[str, str]] = None,
    json_key: str = "message",
) -> Response:
    """JSON {json_key: message} when the client accepts JSON, plain text otherwise."""
    if accepts_json(request):
        return JSONResponse({json_key: message}, status_code=status_code, headers=headers)
    return PlainTextResponse(message, status_code=status_code, headers=headers)
