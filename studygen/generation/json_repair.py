"""
Truncated JSON recovery
------------------------
Structured-output calls that hit their token budget return JSON cut off
mid-value.  recover_json() salvages the longest well-formed prefix:

  1. Strip markdown fences and anything before the first '{' or '['.
  2. Scan once, tracking the open-container stack, string/escape state
     and whether an object is waiting for a key or a value.
  3. Record every safe cut point with the containers open there:
       - right after a closing '}' or ']'
       - right after the closing quote of a string VALUE (never a key)
       - right before a ','
  4. Try the whole text with its missing closers appended, then each cut
     point from the latest backwards, appending the closers recorded for
     it.  The first candidate that parses wins.

Nothing here invents content: recovered output is always a prefix of the
input plus closing brackets.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from loguru import logger

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```\s*$")

_CLOSER = {"{": "}", "[": "]"}


@dataclass
class _Frame:
    kind: str                   # "{" or "["
    expect_key: bool = False    # objects only


@dataclass
class _ScanResult:
    cuts: list[tuple[int, str]] = field(default_factory=list)   # (index, closers)
    closers: str = ""
    in_string: bool = False
    complete: bool = False


def _closers(stack: list[_Frame]) -> str:
    return "".join(_CLOSER[f.kind] for f in reversed(stack))


def _extract_body(text: str) -> Optional[str]:
    text = _FENCE_RE.sub("", text.strip())
    starts = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    if not starts:
        return None
    return text[min(starts):]


def _scan(body: str) -> _ScanResult:
    result = _ScanResult()
    stack: list[_Frame] = []
    in_string = False
    string_is_key = False
    escape = False

    for i, ch in enumerate(body):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
                if string_is_key:
                    stack[-1].expect_key = False
                else:
                    result.cuts.append((i + 1, _closers(stack)))
            continue

        if ch == '"':
            in_string = True
            string_is_key = bool(stack) and stack[-1].kind == "{" and stack[-1].expect_key
        elif ch in "{[":
            stack.append(_Frame(kind=ch, expect_key=(ch == "{")))
        elif ch in "}]":
            if not stack or _CLOSER[stack[-1].kind] != ch:
                break
            stack.pop()
            result.cuts.append((i + 1, _closers(stack)))
            if not stack:
                result.complete = True
                break
        elif ch == ",":
            if stack:
                result.cuts.append((i, _closers(stack)))
                if stack[-1].kind == "{":
                    stack[-1].expect_key = True

    result.closers = _closers(stack)
    result.in_string = in_string
    return result


def _try_parse(candidate: str) -> Optional[Any]:
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        return None


def recover_json(text: str) -> Optional[Any]:
    """Parse text, repairing truncation if needed.  Returns None if unrecoverable."""
    if not text or not text.strip():
        return None

    body = _extract_body(text)
    if body is None:
        return None

    parsed = _try_parse(body)
    if parsed is not None:
        return parsed

    scan = _scan(body)

    if not scan.in_string and not scan.complete:
        parsed = _try_parse(body.rstrip().rstrip(",") + scan.closers)
        if parsed is not None:
            logger.debug(f"[JsonRepair] Closed {len(scan.closers)} open container(s)")
            return parsed

    for index, closers in reversed(scan.cuts):
        parsed = _try_parse(body[:index] + closers)
        if parsed is not None:
            logger.debug(
                f"[JsonRepair] Recovered prefix of {index:,}/{len(body):,} chars "
                f"(+{closers!r})"
            )
            return parsed

    return None


def extract_items(payload: Any, root_key: str) -> list[Any]:
    """Pull the item array out of a parsed structured response."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        items = payload.get(root_key)
        if items is None:
            items = payload.get("items")
        if isinstance(items, list):
            return items
    return []


def parse_items(text: str, root_key: str, allow_repair: bool = True) -> Optional[list[Any]]:
    """
    Parse a structured response into its raw item list.

    Returns None when the text cannot be parsed (and repair is disallowed
    or fails).
    """
    body = _extract_body(text or "")
    if body is None:
        return None
    payload = _try_parse(body)
    if payload is None and allow_repair:
        payload = recover_json(body)
    if payload is None:
        return None
    return extract_items(payload, root_key)
