"""Mock speech operations provider: deterministic operations for testing.

An unknown reference reports halfway progress on the first poll and
completes with canned results on the next. Tests can pin an exact
operation with set_operation().
"""
import logging
from typing import Any, Dict, List

from stt.provider.interface import SpeechOperation, SpeechOperationsProvider

logger = logging.getLogger(__name__)

_MOCK_SENTENCES = [
    ("Hei og velkommen", 0.0),
    ("til dagens opptak", 2.5),
    ("takk for at du lyttet", 6.0),
]


def _mock_results() -> List[Dict[str, Any]]:
    results = []
    for sentence, start in _MOCK_SENTENCES:
        words = []
        t = start
        for word in sentence.split():
            words.append({
                "word": word,
                "startTime": f"{t:.1f}s",
                "endTime": f"{t + 0.5:.1f}s",
                "confidence": 0.9,
            })
            t += 0.5
        results.append({"alternatives": [{
            "transcript": sentence,
            "confidence": 0.92,
            "words": words,
        }]})
    return results


class MockSpeechOperations(SpeechOperationsProvider):
    """Deterministic mock for development and testing."""

    def __init__(self):
        self._operations: Dict[str, SpeechOperation] = {}
        self._polls: Dict[str, int] = {}

    def set_operation(self, reference: str, operation: SpeechOperation) -> None:
        self._operations[reference] = operation

    async def get_operation(self, reference: str) -> SpeechOperation:
        if reference in self._operations:
            return self._operations[reference]

        polls = self._polls.get(reference, 0) + 1
        self._polls[reference] = polls
        if polls == 1:
            logger.info("[MockSpeech] Operation running: ref=%s", reference)
            return SpeechOperation(
                name=reference, done=False, percent=50,
                metadata={"progressPercent": 50},
            )

        logger.info("[MockSpeech] Operation done: ref=%s", reference)
        return SpeechOperation(
            name=reference, done=True, percent=100,
            results=_mock_results(),
            metadata={"progressPercent": 100},
        )

    async def is_healthy(self) -> bool:
        return True
