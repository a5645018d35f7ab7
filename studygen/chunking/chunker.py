"""
Chunk Builder
--------------
Cuts the source text into the windows planned by ChunkPlanner.

Window i starts at i * chunk_size and spans chunk_size + overlap_size
characters, so neighbours share overlap_size characters; the last window
runs to the end of the text.

Both edges are snapped to whitespace (searching up to
`boundary_search_radius` chars, then further if the text has a very long
token there) so no chunk ever starts or ends inside a word.

Token counts use the cl100k_base encoder so they match what the chat
models are billed on.
"""
from __future__ import annotations

from functools import lru_cache

import tiktoken
from loguru import logger

from studygen.chunking.planner import MIN_CHUNK_SIZE
from studygen.chunking.schemas import Chunk, ChunkingStrategy, StrategyLabel

BOUNDARY_SEARCH_RADIUS = 50


@lru_cache(maxsize=1)
def _encoder() -> tiktoken.Encoding:
    return tiktoken.get_encoding("cl100k_base")


def count_tokens(text: str) -> int:
    """Count BPE tokens using the cl100k_base encoder."""
    return len(_encoder().encode(text, disallowed_special=()))


def find_word_boundary(
    text: str,
    position: int,
    search_backward: bool,
    radius: int = BOUNDARY_SEARCH_RADIUS,
) -> int:
    """
    Snap position to a word boundary.

    Backward: returns i + 1 for the nearest whitespace at i <= position
    (a chunk start).  Forward: returns the nearest whitespace index
    >= position (a chunk end).  Falls back to the string edge when no
    whitespace exists in that direction at all.
    """
    n = len(text)
    if search_backward:
        if position <= 0:
            return 0
        position = min(position, n - 1)
        for limit in (max(0, position - radius), 0):
            for i in range(position, limit - 1, -1):
                if text[i].isspace():
                    return i + 1
        return 0

    if position >= n:
        return n
    for limit in (min(n, position + radius), n):
        for i in range(position, limit):
            if text[i].isspace():
                return i
    return n


class ChunkBuilder:
    """
    Builds word-aligned chunks for a ChunkingStrategy.

    Usage:
        builder = ChunkBuilder(config.get("chunking", {}))
        chunks = builder.build(text, strategy)
    """

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        self.min_chunk_size: int = config.get("min_chunk_size", MIN_CHUNK_SIZE)
        self.search_radius: int = config.get("boundary_search_radius", BOUNDARY_SEARCH_RADIUS)

    def build(self, text: str, strategy: ChunkingStrategy) -> list[Chunk]:
        total = len(text)

        if strategy.chunk_count == 1 or strategy.label == StrategyLabel.SINGLE:
            chunk = Chunk(
                id=1,
                text=text,
                start_offset=0,
                end_offset=total,
                estimated_tokens=count_tokens(text),
            )
            logger.debug(f"[ChunkBuilder] Single chunk | {total:,} chars")
            return [chunk]

        count = strategy.chunk_count
        size = strategy.chunk_size
        overlap = strategy.overlap_size
        chunks: list[Chunk] = []

        for i in range(count):
            start = min(i * size, total - 1)
            end = total if i == count - 1 else min(start + size + overlap, total)

            if start > 0:
                start = find_word_boundary(text, start, True, self.search_radius)
            if end < total:
                end = find_word_boundary(text, end, False, self.search_radius)

            # Trim surrounding whitespace without moving off a boundary
            while start < end and text[start].isspace():
                start += 1
            while end > start and text[end - 1].isspace():
                end -= 1

            piece = text[start:end]
            # The first window is always kept, even when small
            if i > 0 and len(piece) < self.min_chunk_size:
                logger.debug(
                    f"[ChunkBuilder] Dropping window {i + 1}: {len(piece)} chars "
                    f"< min {self.min_chunk_size}"
                )
                continue
            if not piece:
                continue

            chunks.append(
                Chunk(
                    id=i + 1,
                    text=piece,
                    start_offset=start,
                    end_offset=end,
                    estimated_tokens=count_tokens(piece),
                )
            )

        logger.info(f"[ChunkBuilder] Created {len(chunks)} chunk(s) from {total:,} chars")
        for chunk in chunks:
            logger.debug(
                f"  chunk {chunk.id}: [{chunk.start_offset}:{chunk.end_offset}] "
                f"{len(chunk.text):,} chars | {chunk.estimated_tokens} tokens"
            )
        return chunks
