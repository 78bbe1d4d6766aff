"""Lenient extraction of JSON from model answers.

Models wrap JSON in prose, markdown code fences, or both, and sometimes
return nothing usable at all. Extraction never raises: the result is either
``Parsed`` (carrying the decoded value) or ``Unparsable`` (carrying a reason
and an excerpt for the log), and every caller handles both branches locally.

The scan is position based: starting at each ``[`` (or ``{``), the text is
handed to ``json.JSONDecoder.raw_decode``, which stops at the end of the
first complete value and ignores whatever follows. The first position that
decodes to the wanted container type wins. At most ``MAX_CANDIDATES``
positions are tried, and nesting too deep for the decoder counts as a
failed position.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Union

logger = logging.getLogger(__name__)

_decoder = json.JSONDecoder()

EXCERPT_LENGTH = 200

# Bracket-heavy answers would otherwise make the scan quadratic
MAX_CANDIDATES = 50


@dataclass(frozen=True)
class Parsed:
    value: Any


@dataclass(frozen=True)
class Unparsable:
    reason: str
    excerpt: str = ""


ParseResult = Union[Parsed, Unparsable]


def _excerpt(text: str) -> str:
    text = text.strip()
    if len(text) <= EXCERPT_LENGTH:
        return text
    return text[:EXCERPT_LENGTH] + "..."


def _extract_first(text: str, opener: str, kind: type) -> ParseResult:
    if not text or not text.strip():
        return Unparsable("empty response")

    start = text.find(opener)
    if start < 0:
        return Unparsable(f"no '{opener}' in response", _excerpt(text))

    attempts = 0
    while start >= 0 and attempts < MAX_CANDIDATES:
        attempts += 1
        try:
            value, _ = _decoder.raw_decode(text, start)
        except (json.JSONDecodeError, RecursionError):
            value = None
        if isinstance(value, kind):
            return Parsed(value)
        start = text.find(opener, start + 1)

    return Unparsable(f"no well-formed JSON {kind.__name__} in response", _excerpt(text))


def extract_json_array(text: str) -> ParseResult:
    """First well-formed JSON array in ``text``"""
    return _extract_first(text, "[", list)


def extract_json_object(text: str) -> ParseResult:
    """First well-formed JSON object in ``text``"""
    return _extract_first(text, "{", dict)


def log_unparsable(result: Unparsable, what: str) -> None:
    logger.warning(f"Unparsable model output for {what}: {result.reason} | {result.excerpt!r}")
