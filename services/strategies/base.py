from __future__ import annotations

from abc import ABC, abstractmethod

from models.results import ExtractionResult


class CodeStrategy(ABC):
    """Strategy interface for pulling a verification code out of message text."""

    name: str = "strategy"

    @abstractmethod
    def extract(self, text: str) -> ExtractionResult:
        """Return a found result or ``ExtractionResult.not_found()``."""
        raise NotImplementedError
