"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
import logging
from typing import Callable, Optional, TypeVar

T = TypeVar("T")


def _strip_code_fences(text: str) -> str:
    if not text.startswith("```"):
        return text
    lines = text.split("\n")
    lines = [l for l in lines if not l.strip().startswith("```")]
    return "\n".join(lines)


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` span in text, or None.

    Braces inside JSON string literals are ignored.
    """
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response, handling code fences and preamble text.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract the first balanced '{...}' span, then json.loads
    3. Return empty dict

    Anything that is not a JSON object (arrays, scalars) counts as a failure.
    """
    if not raw or not raw.strip():
        return {}

    text = _strip_code_fences(raw.strip())

    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    span = extract_json_object(raw)
    if span is not None:
        try:
            data = json.loads(span)
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    return {}


def parse_or_default(
    raw: str,
    build: Callable[[dict], T],
    default: T,
    *,
    logger: logging.Logger,
    label: str = "LLM response",
) -> T:
    """Parse raw model output into a value, or return ``default``.

    ``build`` turns the decoded JSON object into the target value and may
    raise ``ValueError``/``TypeError``/``KeyError`` on a malformed payload.
    Every fallback to ``default`` is logged; nothing is raised.
    """
    payload = parse_llm_json(raw)
    if not payload:
        logger.warning("Could not parse %s as a JSON object, using default: %.200r", label, raw)
        return default

    try:
        return build(payload)
    except (ValueError, TypeError, KeyError) as e:
        logger.warning("Malformed %s (%s), using default: %.200r", label, e, raw)
        return default
