"""JSON payload recovery from free-form model output.

Models wrap JSON in code fences, prepend explanations or append trailing
commentary. The helpers here locate the outermost balanced bracket structure
while ignoring brackets that appear inside string literals.
"""

import json
import logging
import re
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"```[a-zA-Z0-9_+.-]*[ \t]*\r?\n(.*?)```", re.DOTALL)

_CLOSERS = {'[': ']', '{': '}'}


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block, or the text unchanged."""
    match = FENCE_PATTERN.search(text or '')
    if match and match.group(1).strip():
        return match.group(1)
    return text or ''


def find_balanced_span(text: str, opener: str = '[', start: int = 0) -> Optional[Tuple[int, int]]:
    """Find the first balanced ``opener``...closer span at or after ``start``.

    Returns (start, end) with ``end`` exclusive, or None when no balanced
    structure exists. Brackets inside JSON string literals are ignored.
    """
    closer = _CLOSERS[opener]
    begin = text.find(opener, start)
    while begin != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(begin, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == '\\':
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == opener:
                depth += 1
            elif ch == closer:
                depth -= 1
                if depth == 0:
                    return begin, i + 1
        # unbalanced from this opener; try the next one
        begin = text.find(opener, begin + 1)
    return None


def extract_json_payload(text: str, opener: str = '[',
                         accept: Optional[Callable[[Any], bool]] = None) -> Any:
    """Recover a JSON value of the given outer shape from model output.

    Tries the first fenced block, then the raw text. Within each, the whole
    candidate is tried first, then every balanced span in order of position.
    Values rejected by ``accept`` (``[1]`` in "step [1]" when a file list is
    wanted) are passed over and scanning continues.

    Raises:
        ValueError: When no parseable, accepted structure can be found
    """
    raw = (text or '').strip()
    if not raw:
        raise ValueError("Empty response")

    candidates = [raw]
    fenced = strip_code_fences(raw).strip()
    if fenced != raw:
        candidates.insert(0, fenced)

    last_error: Optional[Exception] = None
    rejected = 0
    for candidate in candidates:
        spans = []
        if candidate.startswith(opener):
            spans.append((0, len(candidate)))
        position = 0
        while True:
            span = find_balanced_span(candidate, opener, position)
            if span is None:
                break
            spans.append(span)
            position = span[0] + 1
        for start, end in spans:
            try:
                value = json.loads(candidate[start:end])
            except json.JSONDecodeError as e:
                last_error = e
                logger.debug(f"Span at {start} did not parse as JSON: {e}")
                continue
            if accept is None or accept(value):
                return value
            rejected += 1
            logger.debug(f"Span at {start} parsed but has the wrong shape; continuing")

    if rejected:
        raise ValueError(f"{rejected} JSON structure(s) found, none with the expected shape")
    if last_error is not None:
        raise ValueError(f"Could not parse JSON payload: {last_error}")
    raise ValueError(f"No JSON structure starting with '{opener}' found in response")
