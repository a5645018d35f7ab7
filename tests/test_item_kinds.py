"""Tests for QuizKind / FlashcardKind cleaning and fallback templates."""
import pytest

from conftest import assert_answers_reference_options
from studygen.generation.item_kinds import (
    FlashcardKind,
    QuizKind,
    get_item_kind,
    normalize_question,
)
from studygen.schemas import GenerationParams, QuestionType

MC = GenerationParams(item_type="multiple-choice")
MS = GenerationParams(item_type="multi-select")
TF = GenerationParams(item_type="true-false")
MIXED = GenerationParams(item_type="mixed")

ABCD = [{"id": k, "text": f"Choice {k}"} for k in "abcd"]


class TestQuizClean:
    def setup_method(self):
        self.kind = QuizKind()

    def test_true_false_always_gets_fixed_options(self):
        raw = [
            {
                "text": "The sky is green.",
                "type": "true-false",
                "options": ABCD,
                "correctAnswer": "False",
                "explanation": "It is blue.",
            }
        ]
        (item,) = self.kind.clean(raw, TF)
        assert item.option_ids == ["true", "false"]
        assert item.correct_answers == ["false"]

    def test_too_few_options_get_placeholder_set(self):
        raw = [{"text": "Q", "type": "multiple-choice", "options": [{"id": "a", "text": "Only"}], "correctAnswer": "z"}]
        (item,) = self.kind.clean(raw, MC)
        assert [o.text for o in item.options] == ["Option A", "Option B", "Option C", "Option D"]
        assert item.correct_answers == ["a"]

    def test_multi_select_accepts_comma_string_and_list(self):
        raw = [
            {"text": "Q1", "type": "multi-select", "options": ABCD, "correctAnswer": "a, c"},
            {"text": "Q2", "type": "multi-select", "options": ABCD, "correctAnswer": ["B", "d", "b"]},
            {"text": "Q3", "type": "multi-select", "options": ABCD, "correctAnswer": "x,y"},
        ]
        items = self.kind.clean(raw, MS)
        assert items[0].correct_answers == ["a", "c"]
        assert items[1].correct_answers == ["b", "d"]
        assert items[2].correct_answers == ["a"]
        assert items[0].to_dict()["correctAnswer"] == ["a", "c"]

    def test_single_answer_collapses_list(self):
        raw = [{"text": "Q", "type": "multiple-choice", "options": ABCD, "correctAnswer": ["c", "a"]}]
        (item,) = self.kind.clean(raw, MC)
        assert item.correct_answers == ["c"]
        assert item.to_dict()["correctAnswer"] == "c"

    def test_missing_fields_get_defaults(self):
        (item,) = self.kind.clean([{"options": ABCD}], MC)
        assert item.text == "Question text missing"
        assert item.explanation == "No explanation provided."
        assert item.type == QuestionType.MULTIPLE_CHOICE
        assert item.correct_answers == ["a"]

    def test_missing_type_under_mixed_becomes_multiple_choice(self):
        (item,) = self.kind.clean([{"text": "Q", "options": ABCD, "correctAnswer": "b"}], MIXED)
        assert item.type == QuestionType.MULTIPLE_CHOICE

    def test_unknown_type_falls_back_to_requested(self):
        (item,) = self.kind.clean([{"text": "Q", "type": "essay", "correctAnswer": "true"}], TF)
        assert item.type == QuestionType.TRUE_FALSE
        assert item.correct_answers == ["true"]

    def test_options_without_ids_are_lettered(self):
        raw = [{"text": "Q", "options": ["red", "green", "blue"], "correctAnswer": "C"}]
        (item,) = self.kind.clean(raw, MC)
        assert item.option_ids == ["a", "b", "c"]
        assert item.correct_answers == ["c"]

    def test_non_object_entries_are_skipped(self):
        assert self.kind.clean(["just text", None, 3], MC) == []


class TestQuizFallbacks:
    def setup_method(self):
        self.kind = QuizKind()

    @pytest.mark.parametrize("params", [MC, MS, TF, MIXED])
    def test_generic_fallback_is_structurally_valid(self, params):
        items = self.kind.generic_fallback(4, params, start=8)
        assert len(items) == 4
        assert items[0].text.split(":")[0] in ("Question 8", "Statement 8")
        assert all(item.type != QuestionType.MIXED for item in items)
        assert_answers_reference_options(items)

    def test_smart_fallback_uses_keywords(self):
        items = self.kind.smart_fallback(3, MC, ["mitochondria", "ribosome"], start=1)
        assert "mitochondria" in items[0].text
        assert "ribosome" in items[1].text
        assert "mitochondria" in items[2].text
        assert_answers_reference_options(items)

    def test_smart_fallback_without_keywords(self):
        items = self.kind.smart_fallback(2, TF, [])
        assert len(items) == 2
        assert_answers_reference_options(items)

    def test_raw_fallback_text_describes_each_item(self):
        text = self.kind.raw_fallback_text(3, MC)
        assert text.count("Correct Answer: A") == 3
        assert "fallback question 3" in text


class TestQuizSchema:
    def test_response_format_is_strict_with_root_key(self):
        fmt = QuizKind().response_format()
        assert fmt["type"] == "json_schema"
        assert fmt["json_schema"]["strict"] is True
        assert fmt["json_schema"]["schema"]["required"] == ["questions"]


class TestFlashcardKind:
    def setup_method(self):
        self.kind = FlashcardKind()

    def test_clean_dedupes_on_normalised_question(self):
        raw = [
            {"question": "What is ATP?", "answer": "Energy currency."},
            {"question": "  what is atp ", "answer": "Duplicate."},
            {"front": "Define osmosis.", "back": "Water diffusion."},
            {"question": "", "answer": "No question"},
            {"question": "No answer", "answer": "  "},
        ]
        cards = self.kind.clean(raw, GenerationParams())
        assert [c.question for c in cards] == ["What is ATP?", "Define osmosis."]
        assert cards[1].to_dict()["back"] == "Water diffusion."

    def test_prompts_carry_difficulty(self):
        params = GenerationParams(item_type="flashcard", difficulty="hard")
        raw_system, _ = self.kind.raw_prompts("chunk text", 4, params)
        _, structure_user = self.kind.structure_prompts("raw text", 4, params)
        assert "hard difficulty flashcards" in raw_system
        assert '"hard" difficulty' in structure_user

    def test_normalize_question(self):
        assert normalize_question("  What's ATP?! ") == "whats atp"

    def test_fallbacks_number_from_start(self):
        cards = self.kind.generic_fallback(2, GenerationParams(), start=4)
        assert cards[0].question.startswith("Card 4")
        smart = self.kind.smart_fallback(1, GenerationParams(), ["enzymes"])
        assert "enzymes" in smart[0].question


class TestGetItemKind:
    def test_lookup_by_name(self):
        assert isinstance(get_item_kind("quiz"), QuizKind)
        assert isinstance(get_item_kind("flashcards"), FlashcardKind)

    def test_unknown_kind_raises(self):
        with pytest.raises(ValueError):
            get_item_kind("summary")
