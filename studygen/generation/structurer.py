"""
Structuring / Validation Stage
-------------------------------
Second pass: converts the joined raw text into exactly `target_count`
schema-valid items with one strict json_schema call, retried up to
`max_attempts` times.

Attempt loop (driven by run_with_retry):
  - token budget grows each attempt:
        base = max(5000, n*300) if n >= 15 else max(3000, n*200)
        budget = base + (attempt - 1) * retry_token_increment
  - truncated response (finish_reason == "length") and attempts remain:
        retry at once, the JSON is not parsed
  - parse failure: on the final attempt recover_json() salvages the
        complete prefix; otherwise the attempt counts as zero items
  - fewer items than requested and attempts remain: retry with a prompt
        that states the shortfall
  - retryable BackendError (429, 5xx, timeout) and attempts remain:
        wait retry_delay * attempt, then retry with the next budget
Each attempt is cleaned by the ItemKind; the largest cleaned set is returned.

A non-retryable BackendError, or a retryable one on the final attempt,
propagates to the orchestrator, which switches the whole run to
templated fallback items.  If an earlier attempt already produced items
those are returned instead.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from langsmith import traceable
from loguru import logger

from studygen.clients import BackendError, ChatBackend
from studygen.generation import prompts
from studygen.generation.item_kinds import ItemKind
from studygen.generation.json_repair import parse_items
from studygen.schemas import GenerationParams, StudyItem
from studygen.utils.retry import Attempt, linear_backoff, run_with_retry

LARGE_SET_THRESHOLD = 15


@dataclass
class _AttemptOutcome:
    items: list[StudyItem] = field(default_factory=list)
    truncated: bool = False


class Structurer:
    """
    Schema-constrained normalisation of raw generated text.

    Args:
        backend: ChatBackend pointed at a model supporting json_schema output.
        kind:    ItemKind supplying schema, prompts and clean().
        config:  `structuring` config section.
    """

    def __init__(self, backend: ChatBackend, kind: ItemKind, config: dict | None = None) -> None:
        config = config or {}
        self.backend = backend
        self.kind = kind
        self.max_attempts: int = config.get("max_attempts", 3)
        self.temperature: float = config.get("temperature", 0.1)
        self.retry_token_increment: int = config.get("retry_token_increment", 1500)
        self.retry_delay: float = config.get("retry_delay", 2.0)

    def token_limit(self, target_count: int, attempt_number: int) -> int:
        if target_count >= LARGE_SET_THRESHOLD:
            base = max(5000, target_count * 300)
        else:
            base = max(3000, target_count * 200)
        return base + (attempt_number - 1) * self.retry_token_increment

    def _user_prompt(self, base: str, target_count: int, last_count: int | None) -> str:
        if last_count is None:
            return base
        return (
            prompts.SHORTFALL_PREFIX.format(count=target_count, noun=self.kind.noun, got=last_count)
            + base
            + prompts.SHORTFALL_SUFFIX.format(count=target_count, noun=self.kind.noun)
        )

    @traceable(name="structure_items", run_type="llm")
    async def structure(
        self,
        raw_text: str,
        target_count: int,
        params: GenerationParams,
    ) -> list[StudyItem]:
        system, base_user = self.kind.structure_prompts(raw_text, target_count, params)
        response_format = self.kind.response_format()
        state: dict = {"last_count": None, "best": []}

        async def _attempt(attempt: Attempt) -> _AttemptOutcome:
            max_tokens = attempt.params
            logger.info(
                f"[Structurer] attempt {attempt.number}/{attempt.max_attempts} | "
                f"target={target_count} | max_tokens={max_tokens}"
            )
            completion = await self.backend.complete(
                system,
                self._user_prompt(base_user, target_count, state["last_count"]),
                max_tokens=max_tokens,
                temperature=self.temperature,
                response_format=response_format,
            )

            if completion.truncated and not attempt.is_last:
                logger.warning(
                    f"[Structurer] response truncated at {max_tokens} tokens; retrying "
                    f"with a larger budget"
                )
                state["last_count"] = 0
                return _AttemptOutcome(truncated=True)

            raw_items = parse_items(completion.text, self.kind.root_key, allow_repair=attempt.is_last)
            if raw_items is None:
                logger.warning(f"[Structurer] attempt {attempt.number}: unparseable response")
                raw_items = []

            items = self.kind.clean(raw_items, params)
            state["last_count"] = len(items)
            if len(items) > len(state["best"]):
                state["best"] = items
            if len(items) < target_count and not attempt.is_last:
                logger.warning(
                    f"[Structurer] got {len(items)}/{target_count} {self.kind.noun}; "
                    f"retrying with stronger emphasis"
                )
            return _AttemptOutcome(items=items)

        def _transient(exc: BaseException) -> bool:
            if isinstance(exc, BackendError) and exc.retryable:
                logger.warning(f"[Structurer] transient backend error: {exc}")
                return True
            return False

        try:
            outcome = await run_with_retry(
                _attempt,
                max_attempts=self.max_attempts,
                backoff=linear_backoff(self.retry_delay),
                escalate=lambda n: self.token_limit(target_count, n),
                retry_on_exception=_transient,
                retry_on_result=lambda o: o.truncated or len(o.items) < target_count,
            )
        except BackendError as exc:
            if not state["best"]:
                raise
            logger.warning(
                f"[Structurer] final attempt failed ({exc}); keeping "
                f"{len(state['best'])} {self.kind.noun} from an earlier attempt"
            )
            outcome = _AttemptOutcome()

        items = outcome.items if len(outcome.items) >= len(state["best"]) else state["best"]
        logger.info(
            f"[Structurer] structured {len(items)} {self.kind.noun} "
            f"(requested {target_count})"
        )
        return items
