"""
Study Item Generator - Web API Server
--------------------------------------
FastAPI server wrapping the quiz and flashcard ItemGenerators.

Endpoints:
  GET  /api/health               -> generator status and configured models
  POST /api/quiz/generate        -> quiz questions from posted material text
  POST /api/flashcards/generate  -> flashcards from posted material text

Run from the project root:
    uvicorn app.server:app --reload --port 8000

Configuration is read from config/config.yaml (override with
STUDYGEN_CONFIG); API keys come from the environment / .env.
"""
from __future__ import annotations

import os
import sys
from contextlib import asynccontextmanager
from typing import Any, Optional

# Windows cp1252 terminal fix
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field, field_validator

from studygen import __version__
from studygen.generation.generator import ItemGenerator, build_item_generator
from studygen.schemas import GenerationParams, QuestionType

load_dotenv()

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CONFIG_PATH = os.getenv("STUDYGEN_CONFIG", "config/config.yaml")
MAX_ITEMS = 50
_DIFFICULTIES = {"easy", "medium", "hard"}

# ---------------------------------------------------------------------------
# Generator registry (filled at startup)
# ---------------------------------------------------------------------------

_generators: dict[str, ItemGenerator] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build one generator per item kind at startup; drop them on shutdown."""
    from studygen.utils.helpers import load_config
    from studygen.utils.logger import setup_logger

    cfg = load_config(CONFIG_PATH)
    log_cfg = cfg.get("logging", {})
    setup_logger(log_cfg.get("level", "INFO"), log_cfg.get("file", "logs/studygen.log"))

    for kind in ("quiz", "flashcard"):
        _generators[kind] = build_item_generator(kind, cfg)
    logger.info(f"[Server] Generators ready: {sorted(_generators)}")
    yield
    _generators.clear()
    logger.info("[Server] Generators unloaded.")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Study Item Generator API",
    description="Chunked, multi-pass quiz and flashcard generation",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class QuizRequest(BaseModel):
    content: str
    numQuestions: int = Field(5, ge=1, le=MAX_ITEMS)
    difficulty: str = "medium"
    questionType: QuestionType = QuestionType.MULTIPLE_CHOICE
    translateToArabic: bool = False

    @field_validator("difficulty")
    @classmethod
    def validate_difficulty(cls, v: str) -> str:
        v = v.lower()
        if v not in _DIFFICULTIES:
            raise ValueError(f"Unknown difficulty '{v}'. Allowed: {sorted(_DIFFICULTIES)}")
        return v


class FlashcardRequest(BaseModel):
    content: str
    numFlashcards: int = Field(10, ge=1, le=MAX_ITEMS)
    translateToArabic: bool = False


class GenerateResponse(BaseModel):
    success: bool
    items: list[dict[str, Any]]
    metadata: dict[str, Any]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_generator(kind: str) -> ItemGenerator:
    generator: Optional[ItemGenerator] = _generators.get(kind)
    if generator is None:
        raise HTTPException(status_code=503, detail="Generator not ready")
    return generator


def _require_content(content: str) -> str:
    content = content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Content cannot be empty")
    return content


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health():
    """Return generator status and the models each stage uses."""
    if not _generators:
        raise HTTPException(status_code=503, detail="Generators not ready")
    quiz = _generators.get("quiz")
    return {
        "status": "ok",
        "version": __version__,
        "generators": sorted(_generators),
        "raw_model": getattr(quiz.raw_generator.backend, "model", None) if quiz else None,
        "structuring_model": getattr(quiz.structurer.backend, "model", None) if quiz else None,
        "translation_enabled": bool(quiz and quiz.translator is not None),
    }


@app.post("/api/quiz/generate", response_model=GenerateResponse)
async def generate_quiz(request: QuizRequest):
    """
    Generate exactly numQuestions quiz questions from the posted content.

    Generation never fails for backend reasons: degraded runs return
    templated items with metadata.generation_method == "fallback".
    """
    generator = _get_generator("quiz")
    content = _require_content(request.content)

    logger.info(
        f"[API] Quiz | n={request.numQuestions} type={request.questionType.value} "
        f"difficulty={request.difficulty} translate={request.translateToArabic} | "
        f"{len(content):,} chars"
    )

    params = GenerationParams(item_type=request.questionType.value, difficulty=request.difficulty)
    result = await generator.generate(
        content, request.numQuestions, params, translate=request.translateToArabic
    )
    return GenerateResponse(success=True, **result.to_dict())


@app.post("/api/flashcards/generate", response_model=GenerateResponse)
async def generate_flashcards(request: FlashcardRequest):
    """Generate exactly numFlashcards flashcards from the posted content."""
    generator = _get_generator("flashcard")
    content = _require_content(request.content)

    logger.info(
        f"[API] Flashcards | n={request.numFlashcards} translate={request.translateToArabic} | "
        f"{len(content):,} chars"
    )

    result = await generator.generate(
        content,
        request.numFlashcards,
        GenerationParams(item_type="flashcard"),
        translate=request.translateToArabic,
    )
    return GenerateResponse(success=True, **result.to_dict())
