"""Strict progress guard: optional ordering check for set_progress.

The repository accepts any transition by default. Deployments that want a
forward-only lifecycle pass a StrictProgressGuard to TranscriptRepository.
"""
from typing import Optional

from core.exceptions import ValidationError
from transcripts.models import PIPELINE_ORDER, TERMINAL_STATES, ProgressType


class StrictProgressGuard:
    """Rejects moves out of a terminal state and backwards pipeline moves.

    FAILED may be entered from any non-terminal state. Re-entering the
    current state is allowed.
    """

    def check(self, current: Optional[ProgressType], target: ProgressType) -> None:
        if current is None or current == ProgressType.NOT_FOUND or current == target:
            return
        if current in TERMINAL_STATES:
            raise ValidationError(
                f"Invalid progress transition: {current.value} -> {target.value} (terminal)"
            )
        if target == ProgressType.FAILED:
            return
        if PIPELINE_ORDER.index(target) < PIPELINE_ORDER.index(current):
            raise ValidationError(
                f"Invalid progress transition: {current.value} -> {target.value} (backwards)"
            )
