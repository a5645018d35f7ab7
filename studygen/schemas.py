"""
Core Pydantic schemas for the study item generation pipeline.

Every stage shares these models: raw chunk results flow into the
structuring stage, structured items flow through reconciliation and
translation, and the orchestrator returns a GenerationResult carrying
the final items plus run metadata.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, computed_field


# --- Enumerations ------------------------------------------------------------

class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    MULTI_SELECT = "multi-select"
    TRUE_FALSE = "true-false"
    MIXED = "mixed"              # request-only: items always carry a concrete type


CONCRETE_QUESTION_TYPES = (
    QuestionType.MULTIPLE_CHOICE,
    QuestionType.MULTI_SELECT,
    QuestionType.TRUE_FALSE,
)


class GenerationMethod(str, Enum):
    HYBRID = "hybrid"            # raw generation + schema structuring
    FALLBACK = "fallback"        # templated items only


# --- Request parameters ------------------------------------------------------

class GenerationParams(BaseModel):
    """Item-type parameters forwarded to every prompt."""

    item_type: str = QuestionType.MULTIPLE_CHOICE.value
    difficulty: str = "medium"


# --- Items -------------------------------------------------------------------

class Option(BaseModel):
    id: str
    text: str


class StudyItem(BaseModel):
    """
    Fields shared by every generated item.

    The translation stage overwrites the text fields in place and keeps the
    pre-translation values under `original`.
    """

    original: Optional[dict[str, Any]] = None
    translated_to: Optional[str] = None
    translation_error: Optional[str] = None

    def translatable_texts(self) -> list[str]:
        raise NotImplementedError

    def with_translations(self, texts: list[str], target_lang: str) -> "StudyItem":
        raise NotImplementedError

    def _translation_fields(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.original is not None:
            data["original"] = self.original
            data["translatedTo"] = self.translated_to
        if self.translation_error:
            data["translationError"] = self.translation_error
        return data


class QuizQuestion(StudyItem):
    """
    A single quiz question.

    correct_answers is the canonical in-memory answer: a list of option ids,
    exactly one for single-answer types.
    """

    text: str
    type: QuestionType
    options: list[Option]
    correct_answers: list[str]
    explanation: str = ""

    @property
    def option_ids(self) -> list[str]:
        return [o.id for o in self.options]

    @property
    def correct_answer(self) -> Union[str, list[str]]:
        """Wire form: list for multi-select, single id otherwise."""
        if self.type == QuestionType.MULTI_SELECT:
            return list(self.correct_answers)
        return self.correct_answers[0]

    def translatable_texts(self) -> list[str]:
        return [self.text, *(o.text for o in self.options), self.explanation]

    def with_translations(self, texts: list[str], target_lang: str) -> "QuizQuestion":
        n_opts = len(self.options)
        return self.model_copy(
            update={
                "text": texts[0],
                "options": [
                    Option(id=o.id, text=t) for o, t in zip(self.options, texts[1 : 1 + n_opts])
                ],
                "explanation": texts[1 + n_opts],
                "original": {
                    "text": self.text,
                    "options": [o.model_dump() for o in self.options],
                    "explanation": self.explanation,
                },
                "translated_to": target_lang,
            }
        )

    def to_dict(self) -> dict:
        data = {
            "text": self.text,
            "type": self.type.value,
            "options": [o.model_dump() for o in self.options],
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
        }
        data.update(self._translation_fields())
        return data


class Flashcard(StudyItem):
    question: str
    answer: str

    def translatable_texts(self) -> list[str]:
        return [self.question, self.answer]

    def with_translations(self, texts: list[str], target_lang: str) -> "Flashcard":
        return self.model_copy(
            update={
                "question": texts[0],
                "answer": texts[1],
                "original": {"question": self.question, "answer": self.answer},
                "translated_to": target_lang,
            }
        )

    def to_dict(self) -> dict:
        # front/back mirror question/answer for deck storage
        data = {
            "question": self.question,
            "answer": self.answer,
            "front": self.question,
            "back": self.answer,
        }
        data.update(self._translation_fields())
        return data


# --- Pipeline intermediates ---------------------------------------------------

class RawChunkResult(BaseModel):
    """Unstructured text believed to describe requested_count items."""

    chunk_index: int
    raw_text: str
    requested_count: int
    used_fallback: bool = False


class TranslationStats(BaseModel):
    total: int = 0
    translated: int = 0
    fallback: int = 0

    @computed_field
    @property
    def success_rate(self) -> int:
        return round(self.translated / self.total * 100) if self.total else 0


class GenerationRun(BaseModel):
    """Metadata describing one orchestrator run."""

    chunks_processed: int = 0
    chunks_failed: int = 0
    total_time_ms: int = 0
    average_time_per_item_ms: int = 0
    content_length: int = 0
    translation_enabled: bool = False
    chunking_strategy: Optional[str] = None
    generation_method: GenerationMethod = GenerationMethod.HYBRID
    structured_count: int = 0
    fallback_items: int = 0
    error: Optional[str] = None
    translation: Optional[TranslationStats] = None


class GenerationResult(BaseModel):
    items: list[Union[QuizQuestion, Flashcard]] = Field(default_factory=list)
    metadata: GenerationRun

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "metadata": self.metadata.model_dump(mode="json", exclude_none=True),
        }
