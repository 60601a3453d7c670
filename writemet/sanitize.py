"""Extract a JSON payload from free-form model output."""

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```[A-Za-z0-9_+-]*")
_CLOSERS = {"[": "]", "{": "}"}


def extract_json(raw: str) -> str:
    """
    Best-effort cut of the JSON array or object inside ``raw``.

    Fence markers are removed, then everything before the first ``[``/``{`` and
    after the last matching closer is dropped. The result is not validated; if no
    opening bracket exists the trimmed input is returned unchanged.
    """
    text = _FENCE_RE.sub("", raw)

    openings = [index for index in (text.find("["), text.find("{")) if index != -1]
    if not openings:
        return raw.strip()

    start = min(openings)
    end = text.rfind(_CLOSERS[text[start]])
    if end < start:
        return text[start:].strip()
    return text[start : end + 1].strip()


def parse_json_response(raw: str) -> Any:
    """Sanitize and parse; raises ValueError when the payload is not valid JSON."""
    return json.loads(extract_json(raw))
