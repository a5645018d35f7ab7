"""
Item Kinds
-----------
Descriptors that specialise the single ItemGenerator pipeline for one kind
of study item.  A descriptor owns everything that differs between quizzes
and flashcards:

  - raw-generation prompts and the templated text used when a chunk fails
  - the strict JSON schema and prompts for the structuring call
  - clean(): validation/normalisation of whatever the structuring model returned
  - generic and keyword-seeded ("smart") fallback items

The pipeline itself (chunking, fan-out, retries, reconciliation,
translation) never branches on the item kind.
"""
from __future__ import annotations

import re
from typing import Any, Union

from loguru import logger

from studygen.generation import prompts
from studygen.schemas import (
    CONCRETE_QUESTION_TYPES,
    Flashcard,
    GenerationParams,
    Option,
    QuestionType,
    QuizQuestion,
    StudyItem,
)

# --- Fixed option sets --------------------------------------------------------

TRUE_FALSE_OPTIONS = [
    Option(id="true", text="True"),
    Option(id="false", text="False"),
]

PLACEHOLDER_OPTIONS = [
    Option(id="a", text="Option A"),
    Option(id="b", text="Option B"),
    Option(id="c", text="Option C"),
    Option(id="d", text="Option D"),
]

# Rotated through by the keyword-seeded fallback
FALLBACK_CONCEPTS = [
    "core definitions", "key principles", "underlying mechanisms",
    "practical applications", "historical development", "common misconceptions",
    "cause and effect relationships", "comparative analysis", "problem solving approaches",
    "real-world examples", "theoretical foundations", "current limitations",
    "evaluation methods", "structural components", "process stages",
    "critical assumptions", "measurable outcomes", "design trade-offs",
    "emerging trends", "interdisciplinary connections",
]

_NORMALISE_RE = re.compile(r"[^\w\s]")


def _option_letter(index: int) -> str:
    return chr(ord("a") + index) if index < 26 else f"o{index + 1}"


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class ItemKind:
    """Interface implemented by every item descriptor."""

    name: str = ""
    root_key: str = "items"
    noun: str = "items"

    def raw_prompts(self, chunk_text: str, count: int, params: GenerationParams) -> tuple[str, str]:
        raise NotImplementedError

    def raw_fallback_text(self, count: int, params: GenerationParams) -> str:
        raise NotImplementedError

    def response_format(self) -> dict:
        raise NotImplementedError

    def structure_prompts(self, raw_text: str, count: int, params: GenerationParams) -> tuple[str, str]:
        raise NotImplementedError

    def clean(self, raw_items: list[Any], params: GenerationParams) -> list[StudyItem]:
        raise NotImplementedError

    def generic_fallback(self, count: int, params: GenerationParams, start: int = 1) -> list[StudyItem]:
        raise NotImplementedError

    def smart_fallback(
        self,
        count: int,
        params: GenerationParams,
        keywords: list[str],
        start: int = 1,
    ) -> list[StudyItem]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Quiz questions
# ---------------------------------------------------------------------------

class QuizKind(ItemKind):
    name = "quiz"
    root_key = "questions"
    noun = "questions"

    # --- Type resolution ---

    @staticmethod
    def requested_type(params: GenerationParams) -> QuestionType:
        """Concrete type to use when an item carries none (mixed -> multiple-choice)."""
        try:
            qtype = QuestionType(params.item_type)
        except ValueError:
            return QuestionType.MULTIPLE_CHOICE
        if qtype == QuestionType.MIXED:
            return QuestionType.MULTIPLE_CHOICE
        return qtype

    def _resolve_type(self, value: Any, params: GenerationParams) -> QuestionType:
        try:
            qtype = QuestionType(_as_text(value).lower())
        except ValueError:
            return self.requested_type(params)
        if qtype not in CONCRETE_QUESTION_TYPES:
            return self.requested_type(params)
        return qtype

    # --- Raw generation ---

    def raw_prompts(self, chunk_text, count, params):
        system = prompts.QUIZ_RAW_SYSTEM_PROMPT.format(count=count, difficulty=params.difficulty)
        user = prompts.QUIZ_RAW_USER_PROMPT.format(
            count=count, item_type=params.item_type, chunk_text=chunk_text
        )
        return system, user

    def raw_fallback_text(self, count, params):
        blocks = []
        for i in range(1, count + 1):
            blocks.append(
                f"Question {i}: Based on the content, which statement about the topic "
                f"is most accurate?\n"
                f"Options: A) The first key concept  B) The second key concept  "
                f"C) The third key concept  D) The fourth key concept\n"
                f"Correct Answer: A\n"
                f"Explanation: This is a fallback question {i} due to generation error."
            )
        return "\n\n".join(blocks)

    # --- Structuring ---

    def response_format(self) -> dict:
        option_schema = {
            "type": "object",
            "properties": {
                "id": {"type": "string"},
                "text": {"type": "string"},
            },
            "required": ["id", "text"],
            "additionalProperties": False,
        }
        question_schema = {
            "type": "object",
            "properties": {
                "text": {"type": "string"},
                "type": {
                    "type": "string",
                    "enum": [t.value for t in CONCRETE_QUESTION_TYPES],
                },
                "options": {"type": "array", "items": option_schema},
                "correctAnswer": {"type": "string"},
                "explanation": {"type": "string"},
            },
            "required": ["text", "type", "options", "correctAnswer", "explanation"],
            "additionalProperties": False,
        }
        return {
            "type": "json_schema",
            "json_schema": {
                "name": "quiz_questions",
                "strict": True,
                "schema": {
                    "type": "object",
                    "properties": {
                        self.root_key: {"type": "array", "items": question_schema},
                    },
                    "required": [self.root_key],
                    "additionalProperties": False,
                },
            },
        }

    def structure_prompts(self, raw_text, count, params):
        system = prompts.QUIZ_STRUCTURE_SYSTEM_PROMPT.format(count=count)
        user = prompts.QUIZ_STRUCTURE_USER_PROMPT.format(
            count=count,
            raw_text=raw_text,
            item_type=params.item_type,
            difficulty=params.difficulty,
        )
        return system, user

    # --- Validation ---

    @staticmethod
    def _clean_options(value: Any) -> list[Option]:
        options: list[Option] = []
        seen: set[str] = set()
        if not isinstance(value, list):
            return options
        for index, raw in enumerate(value):
            if isinstance(raw, dict):
                opt_id = _as_text(raw.get("id")) or _option_letter(index)
                text = _as_text(raw.get("text"))
            else:
                opt_id = _option_letter(index)
                text = _as_text(raw)
            if not text or opt_id in seen:
                continue
            seen.add(opt_id)
            options.append(Option(id=opt_id, text=text))
        return options

    @staticmethod
    def normalize_answers(
        value: Any,
        options: list[Option],
        qtype: QuestionType,
    ) -> list[str]:
        """
        Convert any accepted answer wire form into a list of valid option ids.

        Accepts "a", "a,c", ["a", "c"].  Ids are matched case-insensitively,
        unknown ids are dropped, and an empty result falls back to the
        first option.  Single-answer types keep only the first id.
        """
        if isinstance(value, str):
            candidates = value.split(",")
        elif isinstance(value, (list, tuple)):
            candidates = [_as_text(v) for v in value]
        elif value is None:
            candidates = []
        else:
            candidates = [str(value)]

        lookup = {o.id.lower(): o.id for o in options}
        answers: list[str] = []
        for candidate in candidates:
            key = candidate.strip().lower()
            if key in lookup and lookup[key] not in answers:
                answers.append(lookup[key])

        if not answers:
            answers = [options[0].id]
        if qtype != QuestionType.MULTI_SELECT:
            answers = answers[:1]
        return answers

    def clean(self, raw_items, params):
        cleaned: list[StudyItem] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                logger.debug(f"[QuizKind] Skipping non-object item: {raw!r:.60}")
                continue

            qtype = self._resolve_type(raw.get("type"), params)
            if qtype == QuestionType.TRUE_FALSE:
                options = [o.model_copy() for o in TRUE_FALSE_OPTIONS]
            else:
                options = self._clean_options(raw.get("options"))
                if len(options) < 2:
                    options = [o.model_copy() for o in PLACEHOLDER_OPTIONS]

            answer = raw.get("correctAnswer", raw.get("correct_answers"))
            cleaned.append(
                QuizQuestion(
                    text=_as_text(raw.get("text") or raw.get("question")) or "Question text missing",
                    type=qtype,
                    options=options,
                    correct_answers=self.normalize_answers(answer, options, qtype),
                    explanation=_as_text(raw.get("explanation")) or "No explanation provided.",
                )
            )
        return cleaned

    # --- Fallbacks ---

    def generic_fallback(self, count, params, start=1):
        qtype = self.requested_type(params)
        items: list[StudyItem] = []
        for number in range(start, start + count):
            if qtype == QuestionType.TRUE_FALSE:
                items.append(
                    QuizQuestion(
                        text=f"Statement {number}: This content provides valuable information for learning.",
                        type=qtype,
                        options=[o.model_copy() for o in TRUE_FALSE_OPTIONS],
                        correct_answers=["true"],
                        explanation=f"This is a fallback true/false question ({params.difficulty} difficulty).",
                    )
                )
            else:
                items.append(
                    QuizQuestion(
                        text=f"Question {number}: Which of the following best describes the content?",
                        type=qtype,
                        options=[
                            Option(id="a", text="Educational and informative"),
                            Option(id="b", text="Requires additional context"),
                            Option(id="c", text="Incomplete information"),
                            Option(id="d", text="Not clearly structured"),
                        ],
                        correct_answers=["a"],
                        explanation=(
                            "This is a fallback question due to generation issues "
                            f"({params.difficulty} difficulty)."
                        ),
                    )
                )
        return items

    def smart_fallback(self, count, params, keywords, start=1):
        qtype = self.requested_type(params)
        items: list[StudyItem] = []
        for offset, number in enumerate(range(start, start + count)):
            concept = FALLBACK_CONCEPTS[offset % len(FALLBACK_CONCEPTS)]
            keyword = keywords[offset % len(keywords)] if keywords else "this subject"
            if qtype == QuestionType.TRUE_FALSE:
                items.append(
                    QuizQuestion(
                        text=(
                            f"Statement {number}: Understanding the {concept} of {keyword} "
                            f"is important for mastering this material."
                        ),
                        type=qtype,
                        options=[o.model_copy() for o in TRUE_FALSE_OPTIONS],
                        correct_answers=["true"],
                        explanation=f"The {concept} of {keyword} recur throughout the source material.",
                    )
                )
            else:
                items.append(
                    QuizQuestion(
                        text=(
                            f"Question {number}: Which of the following best describes the "
                            f"role of {concept} in the study of {keyword}?"
                        ),
                        type=qtype,
                        options=[
                            Option(id="a", text=f"Essential for understanding {keyword}"),
                            Option(id="b", text=f"An optional detail of {keyword}"),
                            Option(id="c", text=f"An outdated view of {keyword}"),
                            Option(id="d", text="Unrelated to the material"),
                        ],
                        correct_answers=["a"],
                        explanation=f"The {concept} are central to how the material treats {keyword}.",
                    )
                )
        return items


# ---------------------------------------------------------------------------
# Flashcards
# ---------------------------------------------------------------------------

def normalize_question(text: str) -> str:
    """Dedup key: lowercased, trimmed, punctuation removed."""
    return _NORMALISE_RE.sub("", text.lower().strip())


class FlashcardKind(ItemKind):
    name = "flashcard"
    root_key = "flashcards"
    noun = "flashcards"

    def raw_prompts(self, chunk_text, count, params):
        system = prompts.FLASHCARD_RAW_SYSTEM_PROMPT.format(count=count, difficulty=params.difficulty)
        user = prompts.FLASHCARD_RAW_USER_PROMPT.format(count=count, chunk_text=chunk_text)
        return system, user

    def raw_fallback_text(self, count, params):
        return "\n\n".join(
            f"Q: What is key idea {i} of the material?\n"
            f"A: This is a fallback flashcard {i} due to generation error."
            for i in range(1, count + 1)
        )

    def response_format(self) -> dict:
        card_schema = {
            "type": "object",
            "properties": {
                "question": {"type": "string"},
                "answer": {"type": "string"},
            },
            "required": ["question", "answer"],
            "additionalProperties": False,
        }
        return {
            "type": "json_schema",
            "json_schema": {
                "name": "flashcards",
                "strict": True,
                "schema": {
                    "type": "object",
                    "properties": {
                        self.root_key: {"type": "array", "items": card_schema},
                    },
                    "required": [self.root_key],
                    "additionalProperties": False,
                },
            },
        }

    def structure_prompts(self, raw_text, count, params):
        system = prompts.FLASHCARD_STRUCTURE_SYSTEM_PROMPT.format(count=count)
        user = prompts.FLASHCARD_STRUCTURE_USER_PROMPT.format(
            count=count, difficulty=params.difficulty, raw_text=raw_text
        )
        return system, user

    def clean(self, raw_items, params):
        cards: list[StudyItem] = []
        seen: set[str] = set()
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            question = _as_text(raw.get("question") or raw.get("front"))
            answer = _as_text(raw.get("answer") or raw.get("back"))
            if not question or not answer:
                continue
            key = normalize_question(question)
            if key in seen:
                logger.debug(f"[FlashcardKind] Duplicate dropped: {question[:60]!r}")
                continue
            seen.add(key)
            cards.append(Flashcard(question=question, answer=answer))
        return cards

    def generic_fallback(self, count, params, start=1):
        return [
            Flashcard(
                question=f"Card {number}: What is one key idea presented in this content?",
                answer="Review the source material to identify its main ideas.",
            )
            for number in range(start, start + count)
        ]

    def smart_fallback(self, count, params, keywords, start=1):
        cards: list[StudyItem] = []
        for offset, number in enumerate(range(start, start + count)):
            concept = FALLBACK_CONCEPTS[offset % len(FALLBACK_CONCEPTS)]
            keyword = keywords[offset % len(keywords)] if keywords else "this subject"
            cards.append(
                Flashcard(
                    question=f"Card {number}: What are the {concept} of {keyword} in this material?",
                    answer=f"Review how the material discusses {keyword}, focusing on its {concept}.",
                )
            )
        return cards


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_KINDS: dict[str, type[ItemKind]] = {
    QuizKind.name: QuizKind,
    FlashcardKind.name: FlashcardKind,
}


def get_item_kind(name: Union[str, ItemKind]) -> ItemKind:
    if isinstance(name, ItemKind):
        return name
    key = name.lower().rstrip("s")
    if key not in _KINDS:
        raise ValueError(f"Unknown item kind {name!r}. Choose from: {sorted(_KINDS)}")
    return _KINDS[key]()
