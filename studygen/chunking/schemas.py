"""
Chunk schemas - the windows of source text sent to raw generation.

A ChunkingStrategy is derived once per generation call from the source
length and the requested item count; the ChunkBuilder turns it into a
list of word-aligned, possibly overlapping Chunks.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class StrategyLabel(str, Enum):
    SINGLE = "single"
    CONTENT_FOCUSED = "content-focused"
    LARGE_SET_MULTI_CHUNK = "large-set-multi-chunk"


class ChunkingStrategy(BaseModel):
    chunk_count: int = Field(ge=1)
    chunk_size: int                  # characters, before overlap
    overlap_size: int                # characters added to each window
    label: StrategyLabel


class Chunk(BaseModel):
    """A word-aligned slice of the source text: text == source[start_offset:end_offset]."""

    id: int                          # 1-based position in the planned windows
    text: str
    start_offset: int
    end_offset: int
    estimated_tokens: int = 0
