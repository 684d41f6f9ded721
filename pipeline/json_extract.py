"""
Pull a JSON array out of free-form model output.

Models asked for "JSON only" still wrap it in code fences or prose. Candidates
are tried in order of confidence, and only one that parses is accepted:

1. a fenced ```json block holding an array
2. a balanced-bracket scan from the first '[' (string and escape aware)
3. the same scan resumed past a span that is not JSON, or from the next '['
   when a span never closes, so labels like "Changes for [fr]:" are skipped
"""

import json
import re
from typing import Any, Dict, Iterator, List, Optional, Union

from config.logging_config import get_logger

logger = get_logger(__name__)

_FENCED_ARRAY = re.compile(r"```(?:json)?\s*(\[[\s\S]*?\])\s*```")


def _parses(candidate: str) -> bool:
    try:
        json.loads(candidate)
    except ValueError:
        return False
    return True


def _balanced_array(text: str, start: int) -> Optional[str]:
    """Substring from the '[' at `start` to its matching ']', or None."""
    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]

        if escaped:
            escaped = False
            continue
        if char == "\\" and in_string:
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]

    return None


def _array_candidates(text: str) -> Iterator[str]:
    """Balanced '[ ... ]' spans, left to right."""
    start = text.find("[")
    while start != -1:
        span = _balanced_array(text, start)
        if span is None:
            resume = start + 1
        else:
            yield span
            resume = start + len(span)
        start = text.find("[", resume)


def extract_json_array(text: str) -> str:
    """
    Return the JSON array embedded in `text`.

    Falls back to the input unchanged when no candidate parses, and to "" for
    empty input.
    """
    if not text or not text.strip():
        return ""

    fenced = _FENCED_ARRAY.search(text)
    if fenced and _parses(fenced.group(1)):
        return fenced.group(1)

    for candidate in _array_candidates(text):
        if _parses(candidate):
            return candidate

    logger.warning(f"No JSON array found in model output ({len(text)} chars)")
    return text


def parse_proposed_changes(text: str) -> Union[List[Dict[str, Any]], str]:
    """Parsed list of proposed changes, or the raw text if none could be parsed."""
    extracted = extract_json_array(text)
    if not extracted:
        return text
    try:
        parsed = json.loads(extracted)
    except ValueError:
        return text
    if not isinstance(parsed, list):
        return text
    return parsed
