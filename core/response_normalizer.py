# core/response_normalizer.py
import json
import logging
import re
from typing import Any, Dict, Iterator, List, Optional

from model.answer import DEFAULT_IMPLICATIONS, Confidence, StructuredAnswer
from util.errors import MalformedModelOutputError

logger = logging.getLogger(__name__)

MAX_KEY_POINTS = 5
_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")


def _balanced_blocks(text: str) -> Iterator[str]:
    """
    Yield each top-level {...} block in order. Braces inside JSON strings are
    ignored so that an answer containing "{" does not cut the block short.
    """
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start : i + 1]


def extract_payload(text: str) -> Optional[Dict[str, Any]]:
    for block in _balanced_blocks(text):
        try:
            parsed = json.loads(block)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _as_str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def _as_confidence(value: Any) -> Confidence:
    try:
        return Confidence(str(value).strip().lower())
    except ValueError:
        return Confidence.medium


def _from_payload(payload: Dict[str, Any], raw: str) -> StructuredAnswer:
    missing = [
        k for k in ("answer", "sections", "keyPoints", "implications", "confidence")
        if not payload.get(k)
    ]
    if missing:
        logger.warning("answer.payload.missing fields=%s", ",".join(missing))

    answer = payload.get("answer")
    implications = payload.get("implications")
    return StructuredAnswer(
        answer=str(answer).strip() if answer else raw,
        sections=_as_str_list(payload.get("sections")),
        keyPoints=_as_str_list(payload.get("keyPoints")),
        implications=str(implications).strip() if implications else DEFAULT_IMPLICATIONS,
        confidence=_as_confidence(payload.get("confidence")),
    )


def _from_text(raw: str) -> StructuredAnswer:
    lines = [line.strip() for line in raw.splitlines() if line.strip()]
    points = [_LIST_MARKER.sub("", line).strip() for line in lines if _LIST_MARKER.match(line)]
    rest = [line for line in lines if not _LIST_MARKER.match(line)]
    return StructuredAnswer(
        answer="\n\n".join(rest) or raw,
        sections=[],
        keyPoints=[p for p in points if p][:MAX_KEY_POINTS],
        implications=DEFAULT_IMPLICATIONS,
        confidence=Confidence.medium,
    )


def normalize_response(raw: Optional[str]) -> StructuredAnswer:
    """
    Turn the model's final text into a fully populated StructuredAnswer.
    Uses the first embedded JSON object when there is one, otherwise reads
    list-marker lines as key points. Only blank input is an error.
    """
    text = (raw or "").strip()
    if not text:
        raise MalformedModelOutputError("Model returned no answer text")

    payload = extract_payload(text)
    if payload is not None:
        return _from_payload(payload, text)

    logger.warning("answer.payload.absent chars=%d", len(text))
    return _from_text(text)
