"""
Item Translator
----------------
Best-effort, rate-limited translation of generated items.

Items are processed one at a time and, within an item, one field at a
time (question text, each option, explanation).  Every call is separated
by a pacing delay because the translation endpoint rate-limits hard.

Per field:
  - skipped when already in the target script or shorter than min_length
  - up to max_retries attempts; 429 / 5xx / timeouts wait
    retry_delay * attempt before retrying, anything else stops at once
  - when retries run out the original text is kept

translate_items() never raises.  Items whose fields all succeeded count as
translated; an item with any kept-original field records translation_error
and counts as a fallback.
"""
from __future__ import annotations

import asyncio
import re

from loguru import logger

from studygen.clients import BackendError, TranslationClient
from studygen.schemas import StudyItem, TranslationStats
from studygen.utils.retry import Attempt, linear_backoff, run_with_retry

_SCRIPT_PATTERNS: dict[str, re.Pattern] = {
    "ar": re.compile(r"[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]"),
}


def is_target_script(text: str, target_lang: str) -> bool:
    pattern = _SCRIPT_PATTERNS.get(target_lang)
    return bool(pattern and pattern.search(text))


def language_pair(target_lang: str) -> tuple[str, str]:
    """(source, target) sent to the translation endpoint."""
    if target_lang == "ar":
        return "en", "ar"
    return "ar", "en"


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, BackendError) and exc.retryable


class ItemTranslator:
    """
    Sequential field-by-field translation with pass-through on failure.

    Args:
        client: TranslationClient (or any object with an async
                translate(text, source_lang, target_lang) -> str).
        config: `translation` config section.
    """

    def __init__(self, client: TranslationClient, config: dict | None = None) -> None:
        config = config or {}
        self.client = client
        self.max_retries: int = config.get("max_retries", 3)
        self.retry_delay: float = config.get("retry_delay", 2.0)
        self.field_delay: float = config.get("field_delay", 0.8)
        self.option_delay: float = config.get("option_delay", 0.6)
        self.item_delay: float = config.get("item_delay", 2.0)
        self.min_length: int = config.get("min_length", 3)

    async def translate_text(self, text: str, target_lang: str = "ar") -> tuple[str, bool]:
        """
        Translate one field.

        Returns (text, ok).  ok is False only when the remote call failed and
        the original text was kept; skipped fields count as ok.
        """
        if not text or len(text.strip()) < self.min_length:
            return text, True
        if is_target_script(text, target_lang):
            logger.debug(f"[Translator] Already in '{target_lang}', skipping: {text[:40]!r}")
            return text, True

        source, target = language_pair(target_lang)

        async def _call(attempt: Attempt) -> str:
            if attempt.number > 1:
                logger.warning(
                    f"[Translator] retry {attempt.number}/{attempt.max_attempts} for {text[:40]!r}"
                )
            return await self.client.translate(text, source, target)

        try:
            translated = await run_with_retry(
                _call,
                max_attempts=self.max_retries,
                backoff=linear_backoff(self.retry_delay),
                retry_on_exception=_is_retryable,
            )
        except BackendError as exc:
            logger.warning(f"[Translator] keeping original for {text[:40]!r}: {exc}")
            return text, False
        return translated, True

    async def translate_item(self, item: StudyItem, target_lang: str) -> tuple[StudyItem, bool]:
        texts = item.translatable_texts()
        # Quiz layout is [text, *options, explanation]; flashcards have no options
        n_options = max(0, len(texts) - 2)
        translated: list[str] = []
        ok = True

        for index, text in enumerate(texts):
            if index > 0:
                is_option_gap = 1 < index <= n_options
                await asyncio.sleep(self.option_delay if is_option_gap else self.field_delay)
            result, field_ok = await self.translate_text(text, target_lang)
            translated.append(result)
            ok = ok and field_ok

        if not ok and translated == texts:
            return item.model_copy(update={"translation_error": "Translation unavailable"}), False

        updated = item.with_translations(translated, target_lang)
        if not ok:
            updated = updated.model_copy(
                update={"translation_error": "One or more fields kept their original text"}
            )
        return updated, ok

    async def translate_items(
        self,
        items: list[StudyItem],
        target_lang: str = "ar",
    ) -> tuple[list[StudyItem], TranslationStats]:
        stats = TranslationStats(total=len(items))
        results: list[StudyItem] = []
        logger.info(f"[Translator] Translating {len(items)} item(s) to '{target_lang}'")

        for index, item in enumerate(items):
            if index > 0:
                await asyncio.sleep(self.item_delay)
            try:
                updated, ok = await self.translate_item(item, target_lang)
            except Exception as exc:
                logger.error(f"[Translator] item {index + 1} failed: {exc}")
                updated = item.model_copy(update={"translation_error": str(exc)})
                ok = False

            results.append(updated)
            if ok:
                stats.translated += 1
            else:
                stats.fallback += 1

        logger.info(
            f"[Translator] Done | translated={stats.translated} fallback={stats.fallback} "
            f"({stats.success_rate}%)"
        )
        return results, stats
