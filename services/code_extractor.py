from __future__ import annotations

import logging
from typing import Optional, Sequence

from models.results import ExtractionResult
from services.strategies import CodeStrategy, ContextScoredStrategy, KeywordPatternStrategy

LOGGER = logging.getLogger(__name__)


def default_strategies() -> list[CodeStrategy]:
    return [KeywordPatternStrategy(), ContextScoredStrategy()]


class CodeExtractor:
    """Run extraction strategies in priority order; the first success wins."""

    def __init__(self, strategies: Optional[Sequence[CodeStrategy]] = None):
        self._strategies = list(strategies) if strategies is not None else default_strategies()

    def extract(self, text: Optional[str]) -> ExtractionResult:
        if not text:
            return ExtractionResult.not_found()
        LOGGER.debug("Searching for a verification code in %s characters", len(text))
        for strategy in self._strategies:
            result = strategy.extract(text)
            if result.found and _is_valid_code(result.code):
                LOGGER.info("Verification code found by %s strategy", strategy.name)
                return result
        return ExtractionResult.not_found()


def _is_valid_code(code: Optional[str]) -> bool:
    return code is not None and len(code) == 6 and code.isascii() and code.isdigit()


_DEFAULT_EXTRACTOR = CodeExtractor()


def extract_code(text: Optional[str]) -> ExtractionResult:
    """Extract with the default keyword-then-context strategy order."""

    return _DEFAULT_EXTRACTOR.extract(text)
