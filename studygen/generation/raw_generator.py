"""
Raw Content Generator
----------------------
First pass of the two-pass pipeline: one free-text generation call per
chunk.  JSON is deliberately not requested here; the structuring pass
imposes the schema afterwards.

A failed chunk never aborts the run.  Any BackendError (timeout, 429,
5xx, empty body) is replaced by templated text describing the requested
number of items, and the result is flagged used_fallback so the
orchestrator can report it.
"""
from __future__ import annotations

import asyncio
import math

from loguru import logger

from studygen.chunking.schemas import Chunk
from studygen.clients import BackendError, ChatBackend
from studygen.generation.item_kinds import ItemKind
from studygen.schemas import GenerationParams, RawChunkResult

LARGE_REQUEST_THRESHOLD = 10   # items
LARGE_REQUEST_TOKEN_CAP = 3000


class RawGenerator:
    """
    Per-chunk free-text generation.

    Args:
        backend: ChatBackend pointed at the raw-generation model.
        kind:    ItemKind supplying prompts and fallback text.
        config:  `raw_generation` config section.
    """

    def __init__(self, backend: ChatBackend, kind: ItemKind, config: dict | None = None) -> None:
        config = config or {}
        self.backend = backend
        self.kind = kind
        self.max_completion_tokens: int = config.get("max_completion_tokens", 1500)
        self.temperature: float = config.get("temperature", 0.3)

    def token_budget(self, count: int) -> int:
        if count > LARGE_REQUEST_THRESHOLD:
            return min(self.max_completion_tokens * 2, LARGE_REQUEST_TOKEN_CAP)
        return self.max_completion_tokens

    async def generate(
        self,
        chunk: Chunk,
        count: int,
        params: GenerationParams,
        chunk_index: int = 0,
    ) -> RawChunkResult:
        system, user = self.kind.raw_prompts(chunk.text, count, params)
        max_tokens = self.token_budget(count)
        logger.debug(
            f"[RawGenerator] chunk {chunk_index + 1}: requesting {count} {self.kind.noun} | "
            f"max_tokens={max_tokens}"
        )

        try:
            completion = await self.backend.complete(
                system,
                user,
                max_tokens=max_tokens,
                temperature=self.temperature,
            )
            if not completion.text.strip():
                raise BackendError("empty completion")
        except BackendError as exc:
            logger.warning(
                f"[RawGenerator] chunk {chunk_index + 1} failed ({exc}); "
                f"using templated text for {count} {self.kind.noun}"
            )
            return RawChunkResult(
                chunk_index=chunk_index,
                raw_text=self.kind.raw_fallback_text(count, params),
                requested_count=count,
                used_fallback=True,
            )

        logger.debug(
            f"[RawGenerator] chunk {chunk_index + 1}: {len(completion.text):,} chars "
            f"(finish={completion.finish_reason})"
        )
        return RawChunkResult(
            chunk_index=chunk_index,
            raw_text=completion.text,
            requested_count=count,
        )

    async def generate_all(
        self,
        chunks: list[Chunk],
        target_count: int,
        params: GenerationParams,
    ) -> tuple[list[RawChunkResult], list[BaseException]]:
        """
        Fan out one call per chunk and wait for all of them.

        Each chunk is asked for ceil(target_count / len(chunks)) items.
        Returns the successful results in chunk order plus any exceptions
        that escaped a call.
        """
        if not chunks:
            return [], []

        sub_count = math.ceil(target_count / len(chunks))
        logger.info(
            f"[RawGenerator] {len(chunks)} chunk(s) x {sub_count} {self.kind.noun} "
            f"(target {target_count})"
        )

        outcomes = await asyncio.gather(
            *(self.generate(chunk, sub_count, params, i) for i, chunk in enumerate(chunks)),
            return_exceptions=True,
        )

        results: list[RawChunkResult] = []
        errors: list[BaseException] = []
        for i, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"[RawGenerator] chunk {i + 1} raised: {outcome!r}")
                errors.append(outcome)
            else:
                results.append(outcome)
        return results, errors
