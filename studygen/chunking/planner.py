"""
Chunk Planner
--------------
Decides how many windows to cut the source into, and how big they are,
from the source length and the requested item count.

Strategy selection logic:
  - SHORT sources (<= optimal_chunk_size chars):
      SINGLE -- one chunk holding the whole text.

  - LARGE item sets (>= 15 items) over longer sources:
      LARGE_SET_MULTI_CHUNK -- ceil(count / 5) windows, capped at 4, with
      20% overlap.  Gives each batch of ~5 items its own stretch of the
      material so the model does not keep asking about the same paragraph.

  - Everything else:
      CONTENT_FOCUSED -- one window per optimal_chunk_size chars, capped at
      min(count, 8) so remote fan-out stays bounded, with 15% overlap.
"""
from __future__ import annotations

import math

from loguru import logger

from studygen.chunking.schemas import ChunkingStrategy, StrategyLabel

OPTIMAL_CHUNK_SIZE = 8000     # chars; sources up to this size go in one call
MIN_CHUNK_SIZE = 1000         # chars; smallest meaningful window
LARGE_SET_THRESHOLD = 15      # items
LARGE_SET_MIN_CHARS = 4000
ITEMS_PER_LARGE_SET_CHUNK = 5
MAX_LARGE_SET_CHUNKS = 4
MAX_CHUNKS = 8
LARGE_SET_OVERLAP = 0.20
CONTENT_OVERLAP = 0.15


class ChunkPlanner:
    """
    Derives a ChunkingStrategy for one generation call.

    Usage:
        planner = ChunkPlanner(config.get("chunking", {}))
        strategy = planner.plan(text, target_item_count=18)
    """

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        self.optimal_chunk_size: int = config.get("optimal_chunk_size", OPTIMAL_CHUNK_SIZE)
        self.min_chunk_size: int = config.get("min_chunk_size", MIN_CHUNK_SIZE)
        self.large_set_threshold: int = config.get("large_set_threshold", LARGE_SET_THRESHOLD)
        self.large_set_min_chars: int = config.get("large_set_min_chars", LARGE_SET_MIN_CHARS)
        self.max_large_set_chunks: int = config.get("max_large_set_chunks", MAX_LARGE_SET_CHUNKS)
        self.max_chunks: int = config.get("max_chunks", MAX_CHUNKS)

    def plan(self, text: str, target_item_count: int) -> ChunkingStrategy:
        total_chars = len(text)

        if total_chars <= self.optimal_chunk_size:
            strategy = ChunkingStrategy(
                chunk_count=1,
                chunk_size=total_chars,
                overlap_size=0,
                label=StrategyLabel.SINGLE,
            )
        elif (
            target_item_count >= self.large_set_threshold
            and total_chars > self.large_set_min_chars
        ):
            chunk_count = min(
                math.ceil(target_item_count / ITEMS_PER_LARGE_SET_CHUNK),
                self.max_large_set_chunks,
            )
            chunk_size = total_chars // chunk_count
            strategy = ChunkingStrategy(
                chunk_count=chunk_count,
                chunk_size=chunk_size,
                overlap_size=int(chunk_size * LARGE_SET_OVERLAP),
                label=StrategyLabel.LARGE_SET_MULTI_CHUNK,
            )
        else:
            ideal = math.ceil(total_chars / self.optimal_chunk_size)
            chunk_count = max(1, min(ideal, min(target_item_count, self.max_chunks)))
            base_size = total_chars // chunk_count
            strategy = ChunkingStrategy(
                chunk_count=chunk_count,
                chunk_size=max(base_size, self.min_chunk_size),
                overlap_size=int(base_size * CONTENT_OVERLAP),
                label=StrategyLabel.CONTENT_FOCUSED,
            )

        logger.info(
            f"[ChunkPlanner] {total_chars:,} chars | target={target_item_count} | "
            f"{strategy.label.value} -> {strategy.chunk_count} chunk(s) of "
            f"~{strategy.chunk_size:,} chars (+{strategy.overlap_size} overlap)"
        )
        return strategy
