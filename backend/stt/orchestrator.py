"""Speech provider selection (MOCK_SPEECH)."""
import logging

from config.settings import Settings
from stt.provider.interface import SpeechOperationsProvider
from stt.provider.mock import MockSpeechOperations

logger = logging.getLogger(__name__)


def build_speech_provider(settings: Settings) -> SpeechOperationsProvider:
    """Construct the configured speech operations provider."""
    if settings.MOCK_SPEECH:
        logger.info("[STT:ORCHESTRATOR] Provider=MockSpeechOperations (MOCK_SPEECH=true)")
        return MockSpeechOperations()
    from stt.provider.google import GoogleSpeechOperations
    logger.info("[STT:ORCHESTRATOR] Provider=GoogleSpeechOperations (MOCK_SPEECH=false)")
    return GoogleSpeechOperations()
