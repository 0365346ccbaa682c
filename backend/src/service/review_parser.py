# src/service/review_parser.py

"""
Parse and normalize LLM review output.

LLM replies are untrusted text: sometimes bare JSON, sometimes JSON inside a
```json fence, sometimes JSON buried in prose. `parse_json_from_llm_content`
tries an ordered list of strategies and returns the first dict it gets.
Every strategy returns None instead of raising.

The normalizers coerce whatever came back into a fully populated
`ReviewResult`.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..model.review import Decision, ReviewResult

MAX_LIST_ITEMS = 5

_FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (ValueError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def _parse_whole(raw: str) -> Optional[Dict[str, Any]]:
    return _loads_object(raw)


def _parse_fenced_block(raw: str) -> Optional[Dict[str, Any]]:
    match = _FENCED_JSON_RE.search(raw)
    if not match or not match.group(1).strip():
        return None
    return _loads_object(match.group(1).strip())


def _parse_brace_span(raw: str) -> Optional[Dict[str, Any]]:
    first = raw.find("{")
    last = raw.rfind("}")
    if first < 0 or last <= first:
        return None
    return _loads_object(raw[first:last + 1])


PARSE_STRATEGIES: Sequence[Callable[[str], Optional[Dict[str, Any]]]] = (
    _parse_whole,
    _parse_fenced_block,
    _parse_brace_span,
)


def parse_json_from_llm_content(content: Any) -> Optional[Dict[str, Any]]:
    """Return the first JSON object found in `content`, or None."""
    raw = str(content or "").strip()
    if not raw:
        return None

    for strategy in PARSE_STRATEGIES:
        parsed = strategy(raw)
        if parsed is not None:
            return parsed
    return None


# =========================================================
# Normalization
# =========================================================

def normalize_decision(value: Any) -> Decision:
    # "reject" is checked first: text mentioning both is a REJECT
    lower = str(value or "").lower()
    if "reject" in lower:
        return Decision.REJECT
    if "accept" in lower:
        return Decision.ACCEPT
    return Decision.REJECT


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def normalize_score(value: Any) -> float:
    """Coerce to a 0-10 score with one decimal. 0-100 scale values are divided by 10."""
    number = _to_number(value)
    if number is None:
        return 0.0
    if 10 < number <= 100:
        number /= 10
    return max(0.0, min(10.0, round(number, 1)))


def normalize_string_list(value: Any, max_items: int = MAX_LIST_ITEMS) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    items = [str(item or "").strip() for item in value]
    return [item for item in items if item][:max_items]


def normalize_review_result(raw: Any) -> ReviewResult:
    data = raw if isinstance(raw, dict) else {}
    summary = data.get("summary")
    return ReviewResult(
        decision=normalize_decision(data.get("decision")),
        score=normalize_score(data.get("score")),
        summary=str(summary or "").strip(),
        strengths=normalize_string_list(data.get("strengths")),
        weaknesses=normalize_string_list(data.get("weaknesses")),
        suggestions=normalize_string_list(data.get("suggestions")),
    )
