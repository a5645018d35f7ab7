"""Shared fakes for the generation pipeline tests."""
from __future__ import annotations

import json
from typing import Any, Callable, Optional

import pytest

from studygen.clients import BackendError, Completion

ZERO_DELAYS = {
    "retry_delay": 0,
    "field_delay": 0,
    "option_delay": 0,
    "item_delay": 0,
}


class FakeChatBackend:
    """
    Stand-in for ChatBackend.

    Either replays `responses` in order (the last one repeats) or calls
    `handler(call_number, system, user)`.  A response may be a str, a
    Completion, or an exception instance to raise.
    """

    def __init__(
        self,
        responses: Optional[list[Any]] = None,
        handler: Optional[Callable[[int, str, str], Any]] = None,
        model: str = "fake-model",
    ) -> None:
        self.responses = list(responses or [])
        self.handler = handler
        self.model = model
        self.calls: list[dict] = []

    async def complete(self, system, user, *, max_tokens, temperature, response_format=None):
        self.calls.append(
            {
                "system": system,
                "user": user,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "response_format": response_format,
            }
        )
        if self.handler is not None:
            result = self.handler(len(self.calls), system, user)
        elif self.responses:
            result = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        else:
            result = ""

        if isinstance(result, BaseException):
            raise result
        if isinstance(result, str):
            return Completion(text=result)
        return result


class FakeTranslationClient:
    """Prefixes text with the target language unless `handler` says otherwise."""

    def __init__(self, handler: Optional[Callable[[str, int], Any]] = None) -> None:
        self.handler = handler
        self.calls: list[tuple[str, str, str]] = []

    async def translate(self, text, source_lang, target_lang):
        self.calls.append((text, source_lang, target_lang))
        if self.handler is not None:
            result = self.handler(text, len(self.calls))
            if isinstance(result, BaseException):
                raise result
            return result
        return f"[{target_lang}] {text}"


class FailingTranslationClient(FakeTranslationClient):
    def __init__(self, status_code: int = 503) -> None:
        super().__init__(handler=lambda text, n: BackendError("down", status_code=status_code))


def quiz_payload(n: int, qtype: str = "multiple-choice", start: int = 1) -> str:
    questions = []
    for i in range(start, start + n):
        if qtype == "true-false":
            options = [{"id": "true", "text": "True"}, {"id": "false", "text": "False"}]
            answer = "false"
        else:
            options = [{"id": k, "text": f"Choice {k} for {i}"} for k in "abcd"]
            answer = "a,c" if qtype == "multi-select" else "b"
        questions.append(
            {
                "text": f"What does section {i} explain?",
                "type": qtype,
                "options": options,
                "correctAnswer": answer,
                "explanation": f"Section {i} explains it.",
            }
        )
    return json.dumps({"questions": questions})


def flashcard_payload(n: int, start: int = 1) -> str:
    cards = [
        {"question": f"What is term {i}?", "answer": f"Term {i} is a definition."}
        for i in range(start, start + n)
    ]
    return json.dumps({"flashcards": cards})


def prose(n_chars: int) -> str:
    """Whitespace-separated filler text of roughly n_chars characters."""
    words = [
        "photosynthesis", "converts", "light", "energy", "into", "chemical",
        "energy", "stored", "glucose", "within", "plant", "cells", "chlorophyll",
        "absorbs", "wavelengths", "mostly", "blue", "and", "red",
    ]
    out: list[str] = []
    size = 0
    i = 0
    while size < n_chars:
        word = words[i % len(words)]
        out.append(word)
        size += len(word) + 1
        i += 1
    return " ".join(out)[:n_chars].rstrip()


def assert_answers_reference_options(items) -> None:
    for item in items:
        ids = {o.id for o in item.options}
        assert item.correct_answers, item
        assert set(item.correct_answers) <= ids, item


@pytest.fixture
def zero_delays() -> dict:
    return dict(ZERO_DELAYS)
