"""Pull a JSON object out of whatever text the model sent back."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_BOLD_KEY_RE = re.compile(r"\*\*([A-Za-z0-9_]+)\*\*\s*:")


def _try_parse(candidate: str) -> Optional[Any]:
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass
    # only repair bold keys when the text is not valid JSON as sent
    fixed = _BOLD_KEY_RE.sub(r'"\1":', candidate)
    if fixed == candidate:
        return None
    try:
        return json.loads(fixed)
    except json.JSONDecodeError:
        return None


def _from_array(data: list) -> Dict[str, Any]:
    if data and isinstance(data[0], dict) and "opportunities" in data[0]:
        return data[0]
    return {"opportunities": data}


def _is_citation_list(array_text: str) -> bool:
    inside = array_text.strip()[1:-1].strip().strip('"').lower()
    return inside.startswith("http")


def _object_slice(cleaned: str) -> Optional[Dict[str, Any]]:
    first_curly = cleaned.find("{")
    last_curly = cleaned.rfind("}")
    if first_curly == -1 or last_curly <= first_curly:
        return None
    result = _try_parse(cleaned[first_curly:last_curly + 1])
    return result if isinstance(result, dict) else None


def _array_slice(cleaned: str) -> Optional[Dict[str, Any]]:
    first_square = cleaned.find("[")
    last_square = cleaned.rfind("]")
    if first_square == -1 or last_square <= first_square:
        return None
    potential = cleaned[first_square:last_square + 1]
    if _is_citation_list(potential):
        return None
    result = _try_parse(potential)
    return _from_array(result) if isinstance(result, list) else None


def extract_json(text: Optional[str]) -> Dict[str, Any]:
    """
    Return the JSON object embedded in ``text``, or ``{}`` when there is none.

    Handles markdown fences, narrative before/after the payload, ``**key**:``
    bold keys, and a bare top-level array (wrapped as ``{"opportunities": [...]}``).
    An array of plain URLs is treated as a citation list, not a payload.
    """
    if not text:
        return {}

    cleaned = _FENCE_RE.sub("", text).strip()

    whole = _try_parse(cleaned)
    if isinstance(whole, dict):
        return whole
    if isinstance(whole, list):
        if _is_citation_list(cleaned):
            logger.warning("Model output is a bare list of links, not a payload")
            return {}
        return _from_array(whole)

    # whichever bracket opens first is the outermost structure
    first_curly = cleaned.find("{")
    first_square = cleaned.find("[")
    if first_square != -1 and (first_curly == -1 or first_square < first_curly):
        attempts = (_array_slice, _object_slice)
    else:
        attempts = (_object_slice, _array_slice)
    for attempt in attempts:
        result = attempt(cleaned)
        if result is not None:
            return result

    logger.warning("No JSON payload found in model output (%d chars)", len(text))
    return {}
