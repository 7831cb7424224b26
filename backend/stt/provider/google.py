"""Google Speech-to-Text operations provider.

Polls long-running recognize operations through the Speech client's
operations transport. The client library is blocking, so each poll runs in
a worker thread.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import speech_v1p1beta1 as speech
from google.protobuf.json_format import MessageToDict

from core.exceptions import UpstreamServiceError
from stt.provider.interface import SpeechOperation, SpeechOperationsProvider

logger = logging.getLogger(__name__)


def _unpack(any_field, message_cls) -> Dict[str, Any]:
    message = message_cls.deserialize(any_field.value)
    return MessageToDict(message._pb)


def to_speech_operation(operation) -> SpeechOperation:
    """Convert a google.longrunning Operation into a SpeechOperation."""
    metadata: Dict[str, Any] = {}
    if operation.HasField("metadata"):
        metadata = _unpack(operation.metadata, speech.LongRunningRecognizeMetadata)

    error: Optional[Dict[str, Any]] = None
    results = []
    if operation.HasField("error"):
        error = {"code": operation.error.code, "message": operation.error.message}
    elif operation.HasField("response"):
        response = _unpack(operation.response, speech.LongRunningRecognizeResponse)
        results = response.get("results", [])

    return SpeechOperation(
        name=operation.name,
        done=operation.done,
        percent=int(metadata.get("progressPercent", 0)),
        results=results,
        error=error,
        metadata=metadata,
    )


class GoogleSpeechOperations(SpeechOperationsProvider):
    """Real Google Speech operations polling."""

    def __init__(self, client: Optional[speech.SpeechClient] = None):
        self._client = client

    def _get_client(self) -> speech.SpeechClient:
        if self._client is None:
            self._client = speech.SpeechClient()
            logger.info("[GoogleSpeech] Client initialized")
        return self._client

    def _fetch(self, reference: str):
        return self._get_client().transport.operations_client.get_operation(reference)

    async def get_operation(self, reference: str) -> SpeechOperation:
        try:
            operation = await asyncio.to_thread(self._fetch, reference)
        except (GoogleAPIError, GoogleAuthError) as e:
            logger.error("[GoogleSpeech] get_operation failed: ref=%s error=%s", reference, e)
            raise UpstreamServiceError(f"Failed to fetch speech operation {reference}: {e}") from e

        result = to_speech_operation(operation)
        logger.debug(
            "[GoogleSpeech] Operation: ref=%s done=%s percent=%d",
            reference, result.done, result.percent,
        )
        return result

    async def is_healthy(self) -> bool:
        try:
            self._get_client()
            return True
        except (GoogleAPIError, GoogleAuthError) as e:
            logger.warning("[GoogleSpeech] Unhealthy: %s", e)
            return False
