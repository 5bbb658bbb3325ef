"""Code extraction strategies, evaluated in priority order by the extractor."""

from .base import CodeStrategy
from .context_scored import ContextScoredStrategy
from .keyword_pattern import KeywordPatternStrategy

__all__ = [
    "CodeStrategy",
    "KeywordPatternStrategy",
    "ContextScoredStrategy",
]
