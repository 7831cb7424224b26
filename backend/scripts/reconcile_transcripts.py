"""Stuck transcript reconciler: refresh recent transcripts left TRANSCRIBING or SAVING.

For each transcript created inside STUCK_TRANSCRIPT_WINDOW_DAYS that is
still unfinished:
  - Poll its speech operation
  - Record progress, or save the results and mark it DONE
  - Record failures on the transcript and carry on with the next one

Run: cd /app/backend && python scripts/reconcile_transcripts.py
"""
import asyncio
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env")

from config.settings import get_settings
from config.validators import validate_startup_config
from core.logging_config import setup_logging
from store.factory import build_document_store
from stt.orchestrator import build_speech_provider
from stt.reconcile import reconcile_stuck_transcripts
from transcripts.repository import TranscriptRepository

logger = logging.getLogger("reconciler")


async def main() -> int:
    settings = get_settings()
    validate_startup_config(settings)

    store = build_document_store(settings)
    await store.initialize()
    try:
        repository = TranscriptRepository(
            store,
            delete_batch_size=settings.DELETE_BATCH_SIZE,
            stuck_window_days=settings.STUCK_TRANSCRIPT_WINDOW_DAYS,
        )
        outcomes = await reconcile_stuck_transcripts(repository, build_speech_provider(settings))
    finally:
        await store.close()

    print(json.dumps(outcomes, indent=2))
    failed = [tid for tid, outcome in outcomes.items() if "error" in outcome]
    if failed:
        logger.warning("%d of %d transcripts failed to reconcile", len(failed), len(outcomes))
        return 1
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(main()))
