"""
Reconciler
-----------
Forces the structured output to exactly `target_count` items.

  too many  -> truncate
  too few   -> pad with templated fallback items:
                 target >= smart_fallback_threshold: keyword-seeded ("smart")
                   items, keywords being the most frequent lowercase words
                   of 4+ letters in the raw generated text
                 otherwise: fully generic items

Fallback numbering continues after the structured items so padded
questions read "Question 8", "Question 9", ... rather than restarting.
"""
from __future__ import annotations

import re
from collections import Counter

from loguru import logger

from studygen.generation.item_kinds import ItemKind
from studygen.schemas import GenerationParams, StudyItem

_WORD_RE = re.compile(r"\b[a-z]{4,}\b")

# Words that carry no topic: prompt scaffolding and fallback template text
_STOPWORDS = frozenset(
    {
        "that", "this", "with", "from", "have", "which", "what", "when", "where",
        "there", "their", "these", "those", "they", "will", "would", "could",
        "should", "about", "into", "than", "then", "also", "more", "most",
        "been", "were", "does", "each", "such", "only", "other", "some",
        "question", "questions", "answer", "answers", "option", "options",
        "correct", "explanation", "statement", "content", "fallback", "true",
        "false", "following", "best", "describes", "based", "accurate", "error",
        "generation", "concept", "topic", "flashcard", "flashcards", "card",
        "first", "second", "third", "fourth", "idea", "material",
    }
)


def extract_keywords(text: str, limit: int = 20) -> list[str]:
    """Most frequent lowercase words (4+ letters) in text, ties in first-seen order."""
    words = [w for w in _WORD_RE.findall(text.lower()) if w not in _STOPWORDS]
    return [word for word, _ in Counter(words).most_common(limit)]


class Reconciler:
    """
    Trims or pads an item list to an exact count.

    Args:
        kind:   ItemKind supplying the fallback templates.
        config: `reconciliation` config section.
    """

    def __init__(self, kind: ItemKind, config: dict | None = None) -> None:
        config = config or {}
        self.kind = kind
        self.smart_fallback_threshold: int = config.get("smart_fallback_threshold", 15)
        self.keyword_pool: int = config.get("keyword_pool", 20)

    def reconcile(
        self,
        items: list[StudyItem],
        target_count: int,
        params: GenerationParams,
        raw_text: str = "",
    ) -> tuple[list[StudyItem], int]:
        """Return (exactly target_count items, number of fallback items added)."""
        if len(items) >= target_count:
            if len(items) > target_count:
                logger.info(f"[Reconciler] Trimming {len(items)} -> {target_count}")
            return list(items[:target_count]), 0

        missing = target_count - len(items)
        start = len(items) + 1

        if target_count >= self.smart_fallback_threshold:
            keywords = extract_keywords(raw_text, self.keyword_pool)
            padding = self.kind.smart_fallback(missing, params, keywords, start=start)
            logger.warning(
                f"[Reconciler] Missing {missing} {self.kind.noun}; added keyword-seeded "
                f"fallbacks ({len(keywords)} keywords)"
            )
        else:
            padding = self.kind.generic_fallback(missing, params, start=start)
            logger.warning(f"[Reconciler] Missing {missing} {self.kind.noun}; added generic fallbacks")

        return list(items) + padding, missing
