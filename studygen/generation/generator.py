"""
Item Generation Pipeline
-------------------------
Orchestrates one generation run end to end:

    source text
        |
        v
    ChunkPlanner   (single / content-focused / large-set-multi-chunk)
        |
        v
    ChunkBuilder   (word-aligned, overlapping windows)
        |
        v
    RawGenerator   (one Fanar call per chunk, concurrent, settle-all)
        |
        v
    Structurer     (strict json_schema call, up to 3 attempts)
        |
        v
    Reconciler     (exactly target_count items)
        |
        v
    ItemTranslator (optional, sequential, best-effort)
        |
        v
    GenerationResult (items + GenerationRun metadata)

generate() only raises ValueError for invalid input.  Any other failure
(structuring backend down, no chunk produced text) turns the run into
target_count generic fallback items with generation_method=fallback and
the error recorded in metadata.  The fallback path skips translation.
"""
from __future__ import annotations

import os
import time
from typing import Optional

from langsmith import traceable
from loguru import logger

from studygen.chunking.chunker import ChunkBuilder
from studygen.chunking.planner import ChunkPlanner
from studygen.clients import FANAR_CHAT_URL, ChatBackend, TranslationClient
from studygen.generation.item_kinds import ItemKind, get_item_kind
from studygen.generation.raw_generator import RawGenerator
from studygen.generation.reconciler import Reconciler
from studygen.generation.structurer import Structurer
from studygen.schemas import (
    GenerationMethod,
    GenerationParams,
    GenerationResult,
    GenerationRun,
)
from studygen.translation.translator import ItemTranslator

RAW_SEPARATOR = "\n\n---\n\n"


class ItemGenerator:
    """
    Generic study-item generator, parameterised by an ItemKind.

    Backends are injected so tests (and alternative providers) can swap
    them out.

    Usage:
        generator = ItemGenerator(QuizKind(), raw_backend, structuring_backend)
        result = await generator.generate(text, 10, GenerationParams(difficulty="hard"))
        for item in result.items:
            print(item.to_dict())
    """

    def __init__(
        self,
        kind: ItemKind,
        raw_backend: ChatBackend,
        structuring_backend: ChatBackend,
        translator: Optional[ItemTranslator] = None,
        config: dict | None = None,
    ) -> None:
        config = config or {}
        self.kind = kind
        self.translator = translator
        self.planner = ChunkPlanner(config.get("chunking", {}))
        self.builder = ChunkBuilder(config.get("chunking", {}))
        self.raw_generator = RawGenerator(raw_backend, kind, config.get("raw_generation", {}))
        self.structurer = Structurer(structuring_backend, kind, config.get("structuring", {}))
        self.reconciler = Reconciler(kind, config.get("reconciliation", {}))

    @traceable(name="generate_items", run_type="chain")
    async def generate(
        self,
        source_text: str,
        target_count: int,
        params: Optional[GenerationParams] = None,
        translate: bool = False,
        target_lang: str = "ar",
    ) -> GenerationResult:
        if not source_text or not source_text.strip():
            raise ValueError("source_text must be non-empty")
        if target_count < 1:
            raise ValueError("target_count must be >= 1")

        params = params or GenerationParams()
        t0 = time.perf_counter()
        run = GenerationRun(content_length=len(source_text), translation_enabled=translate)

        logger.info(
            f"[ItemGenerator] {self.kind.name}: {target_count} item(s) from "
            f"{len(source_text):,} chars | type={params.item_type} difficulty={params.difficulty}"
        )

        try:
            # --- Step 1-2: plan and cut chunks ---
            strategy = self.planner.plan(source_text, target_count)
            run.chunking_strategy = strategy.label.value
            chunks = self.builder.build(source_text, strategy)
            if not chunks:
                raise RuntimeError("Chunk builder produced no chunks")

            # --- Step 3: raw generation fan-out ---
            raw_results, raw_errors = await self.raw_generator.generate_all(
                chunks, target_count, params
            )
            run.chunks_processed = len(raw_results)
            run.chunks_failed = len(raw_errors) + sum(1 for r in raw_results if r.used_fallback)
            if not raw_results:
                raise RuntimeError("Failed to generate content from any chunk")

            raw_text = RAW_SEPARATOR.join(r.raw_text for r in raw_results)

            # --- Step 4: structure ---
            structured = await self.structurer.structure(raw_text, target_count, params)
            run.structured_count = len(structured)

            # --- Step 5: reconcile ---
            items, padded = self.reconciler.reconcile(structured, target_count, params, raw_text)
            run.fallback_items = padded

        except Exception as exc:
            logger.error(f"[ItemGenerator] Generation failed, using fallback items: {exc}")
            run.generation_method = GenerationMethod.FALLBACK
            run.error = str(exc) or exc.__class__.__name__
            run.fallback_items = target_count
            run.structured_count = 0
            items = self.kind.generic_fallback(target_count, params)
            return self._finish(items, run, t0)

        # --- Step 6: optional translation ---
        if translate:
            if self.translator is None:
                logger.warning("[ItemGenerator] Translation requested but no translator configured")
            else:
                items, run.translation = await self.translator.translate_items(items, target_lang)

        return self._finish(items, run, t0)

    def _finish(self, items: list, run: GenerationRun, t0: float) -> GenerationResult:
        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        run.total_time_ms = elapsed_ms
        run.average_time_per_item_ms = elapsed_ms // len(items) if items else 0
        logger.info(
            f"[ItemGenerator] Done | {len(items)} item(s) | method={run.generation_method.value} | "
            f"strategy={run.chunking_strategy} | chunks={run.chunks_processed} "
            f"(failed {run.chunks_failed}) | {elapsed_ms:,} ms"
        )
        return GenerationResult(items=items, metadata=run)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def build_item_generator(kind_name: str, config: dict | None = None) -> ItemGenerator:
    """
    Wire real backends from config + environment.

    Reads FANAR_API_KEY (raw generation, translation) and OPENAI_API_KEY
    (structuring).  Call load_dotenv() before this if keys live in .env.
    """
    config = config or {}
    raw_cfg = config.get("raw_generation", {})
    struct_cfg = config.get("structuring", {})
    trans_cfg = config.get("translation", {})
    fanar_key = os.getenv("FANAR_API_KEY")

    raw_backend = ChatBackend(
        model=raw_cfg.get("model", "Fanar-S-1-7B"),
        api_key=fanar_key,
        base_url=raw_cfg.get("base_url", FANAR_CHAT_URL),
        timeout=raw_cfg.get("timeout", 120.0),
    )
    structuring_backend = ChatBackend(
        model=struct_cfg.get("model", "gpt-4o-mini"),
        api_key=os.getenv("OPENAI_API_KEY"),
        base_url=struct_cfg.get("base_url"),
        timeout=struct_cfg.get("timeout", 90.0),
    )

    client_kwargs = {
        key: trans_cfg[key]
        for key in ("api_url", "model", "preprocessing", "timeout")
        if key in trans_cfg
    }
    translator = ItemTranslator(TranslationClient(api_key=fanar_key, **client_kwargs), trans_cfg)

    return ItemGenerator(
        get_item_kind(kind_name),
        raw_backend,
        structuring_backend,
        translator=translator,
        config=config,
    )
