"""Speech operations provider interface: provider-agnostic contract.

Recognition runs asynchronously in the external service. Submitting audio
yields an opaque operation reference; this interface only polls that
reference for progress, results, or failure.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class SpeechOperation:
    """Snapshot of a long-running recognition operation."""
    name: str
    done: bool
    percent: int = 0  # 0 - 100, as reported by the service
    results: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None  # {"code": int, "message": str}
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "done": self.done,
            "percent": self.percent,
            "metadata": self.metadata,
        }
        if self.done:
            out["results"] = self.results
        if self.error:
            out["error"] = self.error
        return out


class SpeechOperationsProvider(ABC):
    """Abstract speech operations provider."""

    @abstractmethod
    async def get_operation(self, reference: str) -> SpeechOperation:
        """Poll an operation. Raises UpstreamServiceError when the service fails."""
        ...

    @abstractmethod
    async def is_healthy(self) -> bool:
        """Health check for the provider."""
        ...
