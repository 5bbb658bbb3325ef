from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Sequence

from models.results import ExtractionResult

from .base import CodeStrategy

LOGGER = logging.getLogger(__name__)

CONTEXT_KEYWORDS: Sequence[str] = (
    "code",
    "verification",
    "verify",
    "confirm",
    "authenticate",
    "enter",
    "use",
    "6-digit",
    "six digit",
    "6 digit",
)
CONTEXT_RADIUS = 150
MIN_KEYWORDS = 2

# A standalone six-digit word: no letter, digit or underscore on either side,
# and not part of a "#rrggbb" color.
CANDIDATE_PATTERN = re.compile(r"(?<!#)\b[0-9]{6}\b", re.ASCII)


class ContextScoredStrategy(CodeStrategy):
    """Accept a bare six-digit run only when enough verification words surround it.

    Candidates are visited in order of first appearance and the first one that
    reaches ``min_keywords`` wins, even if a later candidate scores higher.
    """

    name = "context"

    def __init__(
        self,
        keywords: Iterable[str] = CONTEXT_KEYWORDS,
        radius: int = CONTEXT_RADIUS,
        min_keywords: int = MIN_KEYWORDS,
    ):
        self._keywords = [kw.lower() for kw in keywords]
        self._radius = radius
        self._min_keywords = min_keywords

    def candidates(self, text: str) -> Dict[str, int]:
        """Distinct candidates mapped to the offset of their first occurrence."""

        first_seen: Dict[str, int] = {}
        for match in CANDIDATE_PATTERN.finditer(text):
            first_seen.setdefault(match.group(0), match.start())
        return first_seen

    def keywords_near(self, text: str, offset: int) -> List[str]:
        window = text[max(0, offset - self._radius) : offset + self._radius].lower()
        return [kw for kw in self._keywords if kw in window]

    def extract(self, text: str) -> ExtractionResult:
        found = self.candidates(text)
        if not found:
            LOGGER.debug("No six-digit candidates in text")
            return ExtractionResult.not_found()

        for code, offset in found.items():
            hits = self.keywords_near(text, offset)
            if len(hits) >= self._min_keywords:
                LOGGER.debug("Candidate %s accepted with keywords %s", code, hits)
                return ExtractionResult(
                    found=True,
                    code=code,
                    matched_pattern=self.name,
                    confidence_signals=len(hits),
                )
            if hits:
                LOGGER.debug("Candidate %s skipped, weak context (%s)", code, hits[0])

        LOGGER.debug("%s candidates found but none in a verification context", len(found))
        return ExtractionResult.not_found()
