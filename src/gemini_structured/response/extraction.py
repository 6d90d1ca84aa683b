"""JSON extraction from free-form generator output.

Generators rarely answer with a bare document. They wrap it in markdown
fences, lead with "Sure! Here is the result:", or trail off with an offer to
help further. `extract_document` tries three strategies in order and stops at
the first that parses:

1. fenced block: the interior of a ```` ``` ```` (optionally ```` ```json ````)
   code fence;
2. bracket scan: the first balanced `{...}` or `[...]` outside any string
   literal;
3. verbatim: the whole trimmed text.

The function is pure. It never mutates its input and keeps no state between
calls, so the same text always yields the same outcome.
"""

import json
import logging
import re
from typing import Any

from gemini_structured.core.types import EmptyResponse, ParseFailure, Parsed
from gemini_structured.utils import coerce_positive_int, truncate_preview

log = logging.getLogger(__name__)

DEFAULT_PREVIEW_CHARS = 200

METHOD_FENCED = "fenced_block"
METHOD_BRACKET_SCAN = "bracket_scan"
METHOD_VERBATIM = "verbatim"

# The language hint is only consumed when a newline follows it, so inline
# fences such as ```{"a": 1}``` keep their whole body.
_FENCE_PATTERN = re.compile(
    r"(?P<fence>`{3,})(?:[ \t]*(?P<lang>[\w+.-]+)?[ \t]*\r?\n)?(?P<body>.*?)(?P=fence)",
    re.DOTALL,
)

_OPENERS = {"{": "}", "[": "]"}
_CLOSERS = frozenset(_OPENERS.values())


def extract_document(
    text: str | None,
    *,
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
) -> Parsed | ParseFailure | EmptyResponse:
    """Locate and parse the JSON document embedded in `text`.

    Args:
        text: Raw generator output.
        preview_chars: Upper bound on how much of `text` is quoted back in a
            failure reason.

    Returns:
        `Parsed` with the document and the strategy that found it,
        `EmptyResponse` for empty or whitespace-only input, or `ParseFailure`
        naming every strategy that failed and a bounded preview of the text.
    """
    if not text or not text.strip():
        return EmptyResponse(raw=text or "")

    preview_chars = coerce_positive_int(preview_chars, DEFAULT_PREVIEW_CHARS)
    stage_errors: list[str] = []
    tried: set[str] = set()

    # Strategy 1: fenced code blocks, in order of appearance
    fence_error: str | None = None
    for match in _FENCE_PATTERN.finditer(text):
        body = match.group("body").strip()
        tried.add(body)
        document, error = _try_parse(body)
        if error is None:
            log.debug("Extracted JSON via %s", METHOD_FENCED)
            return Parsed(document=document, method=METHOD_FENCED, raw=text)
        if fence_error is None:
            fence_error = error
    if fence_error is not None:
        stage_errors.append(f"fenced block: {fence_error}")

    # Strategy 2: first balanced structure outside string literals
    candidate, scan_problem = find_json_candidate(text)
    if candidate is not None:
        if candidate in tried:
            scan_problem = "candidate matches the fenced block"
        else:
            tried.add(candidate)
            document, scan_problem = _try_parse(candidate)
            if scan_problem is None:
                log.debug("Extracted JSON via %s", METHOD_BRACKET_SCAN)
                return Parsed(document=document, method=METHOD_BRACKET_SCAN, raw=text)
    stage_errors.append(f"bracket scan: {scan_problem}")

    # Strategy 3: the whole trimmed text
    stripped = text.strip()
    if stripped not in tried:
        document, error = _try_parse(stripped)
        if error is None:
            log.debug("Extracted JSON via %s", METHOD_VERBATIM)
            return Parsed(document=document, method=METHOD_VERBATIM, raw=text)
        stage_errors.append(f"verbatim: {error}")

    reason = (
        "Failed to extract valid JSON from generator response ("
        + "; ".join(stage_errors)
        + f"). Response preview: {truncate_preview(stripped, preview_chars)!r}"
    )
    return ParseFailure(reason=reason, raw=text)


def extract_json(text: str | None) -> Any | None:
    """Return the document embedded in `text`, or None if there is none."""
    outcome = extract_document(text)
    if isinstance(outcome, Parsed):
        return outcome.document
    return None


def find_json_candidate(text: str) -> tuple[str | None, str | None]:
    """Find the first balanced JSON-looking structure in `text`.

    Scans left to right tracking double-quoted string and escape state, so
    delimiters inside string literals are ignored. The first `{` or `[`
    outside a string opens the candidate, which ends where its delimiter
    stack empties.

    Returns:
        `(candidate, None)` on success, otherwise `(None, problem)` where
        `problem` says why no candidate could be delimited.
    """
    stack: list[str] = []
    start: int | None = None
    in_string = False
    escaped = False

    for index, char in enumerate(text):
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
        elif char in _OPENERS:
            if start is None:
                start = index
            stack.append(_OPENERS[char])
        elif char in _CLOSERS and stack:
            if char != stack[-1]:
                return None, f"mismatched {char!r} at offset {index}"
            stack.pop()
            if not stack:
                return text[start : index + 1], None

    if start is None:
        return None, "no opening '{' or '[' found outside a string literal"
    return None, f"unterminated structure starting at offset {start}"


def _try_parse(candidate: str) -> tuple[Any, str | None]:
    if not candidate:
        return None, "empty candidate"
    try:
        return json.loads(candidate), None
    except json.JSONDecodeError as e:
        return None, str(e)
    except RecursionError:
        return None, "document nested too deeply"
