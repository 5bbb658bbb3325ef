from __future__ import annotations

import logging
import re
from typing import Iterable, Sequence

from models.results import ExtractionResult

from .base import CodeStrategy

LOGGER = logging.getLogger(__name__)

# Ordered; the first pattern matching anywhere in the text wins.
DEFAULT_PATTERNS: Sequence[str] = (
    r"(?:your\s+)?(?:verification\s+)?code[:\s]+([0-9]{6})(?![0-9])",
    r"verification[:\s]+([0-9]{6})(?![0-9])",
    r"verify(?:ing)?\s+code[:\s]+([0-9]{6})(?![0-9])",
    r"code\s+(?:is|:)\s+([0-9]{6})(?![0-9])",
    r"6[:\s\-]*digit[:\s\-]+code[:\s]+([0-9]{6})(?![0-9])",
    r"enter[:\s]+([0-9]{6})(?![0-9])",
)


class KeywordPatternStrategy(CodeStrategy):
    """Match codes phrased next to a verification keyword, e.g. ``code: 123456``."""

    name = "keyword"

    def __init__(self, patterns: Iterable[str] = DEFAULT_PATTERNS):
        self._patterns: list[re.Pattern[str]] = [re.compile(p, re.IGNORECASE) for p in patterns]

    def extract(self, text: str) -> ExtractionResult:
        for pattern in self._patterns:
            match = pattern.search(text)
            if match:
                code = match.group(1)
                LOGGER.debug("Keyword pattern %r matched code %s", pattern.pattern, code)
                return ExtractionResult(found=True, code=code, matched_pattern=pattern.pattern)
        return ExtractionResult.not_found()
