"""
Tolerant JSON extraction from LLM replies.

Models are told to answer with bare JSON but regularly wrap it in prose or
Markdown fences. The extractor tries, in order:

1. the whole trimmed reply, when it already starts and ends like JSON;
2. the first fenced code block (```json preferred) holding JSON;
3. the first balanced {...} or [...] block in the text.

Anything else yields None so the caller never acts on unparseable output.
"""

import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_ANY_FENCE = re.compile(r"```[^\n`]*\n?(.*?)```", re.DOTALL)

_CLOSERS = {"{": "}", "[": "]"}


def looks_like_json(text: str) -> bool:
    trimmed = text.strip()
    return trimmed.startswith("{") or trimmed.startswith("[")


def is_pure_json(text: str) -> bool:
    trimmed = text.strip()
    return (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    )


def extract_from_code_fence(text: str) -> Optional[str]:
    """Return the JSON inside the first ```json fence, else the first generic fence."""
    for pattern in (_JSON_FENCE, _ANY_FENCE):
        match = pattern.search(text)
        if not match:
            continue
        inner = match.group(1).strip()
        if looks_like_json(inner):
            return inner
    return None


def find_first_json_block(text: str) -> Optional[str]:
    """
    Return the first balanced object or array in the text.

    Brackets inside JSON string literals (including escaped quotes) are
    skipped, so a value such as "a } b" does not end the block early.
    """
    start = -1
    for i, char in enumerate(text):
        if char in _CLOSERS:
            start = i
            break
    if start == -1:
        return None

    open_char = text[start]
    close_char = _CLOSERS[open_char]
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    return None


def extract_json_string(text: Optional[str]) -> Optional[str]:
    """Extract the first JSON text from an LLM reply, or None."""
    if not text or not text.strip():
        return None

    trimmed = text.strip()

    if is_pure_json(trimmed):
        return trimmed

    from_fence = extract_from_code_fence(trimmed)
    if from_fence:
        return from_fence

    return find_first_json_block(trimmed)


def parse_json_reply(text: Optional[str]) -> Optional[Any]:
    """Extract and decode the JSON value in an LLM reply, or None."""
    json_string = extract_json_string(text)
    if json_string is None:
        logger.warning("No JSON found in LLM response")
        return None

    try:
        return json.loads(json_string)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse JSON from LLM response: {e}")
        return None
