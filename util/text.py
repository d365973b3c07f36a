# util/text.py
import hashlib
import re
from typing import Final, Iterable, List

ELLIPSIS: Final[str] = "..."
MARK_OPEN: Final[str] = "<mark>"
MARK_CLOSE: Final[str] = "</mark>"

STOP_WORDS: Final[frozenset[str]] = frozenset(
    {
        "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
        "by", "from", "up", "about", "into", "through", "during", "before",
        "after", "above", "below", "between", "among", "a", "an", "as", "are",
        "was", "were", "been", "be", "have", "has", "had", "do", "does", "did",
        "will", "would", "could", "should", "may", "might", "must", "can",
        "shall", "this", "that", "these", "those",
    }
)

_WS = re.compile(r"\s+")
_NON_WORD = re.compile(r"\W+")
_DIGITS = re.compile(r"^\d+$")
_TAG = re.compile(r"<[^>]*>")
_SENTENCE_END = re.compile(r"[.!?]+")


def normalize(text: object) -> str:
    """
    Collapse whitespace runs, trim and lowercase.
    Anything that is not a non-empty string yields "".
    """
    if not text or not isinstance(text, str):
        return ""
    return _WS.sub(" ", text).strip().lower()


def tokenize(text: object) -> List[str]:
    """
    Keyword tokens for indexing and querying: normalized, split on non-word
    boundaries, minus short tokens, stop words and pure numbers.
    """
    out: List[str] = []
    for word in _NON_WORD.split(normalize(text)):
        if len(word) <= 2 or word in STOP_WORDS or _DIGITS.match(word):
            continue
        out.append(word)
    return out


def similarity(a: object, b: object) -> float:
    """Jaccard index of the two token sets; 0.0 when either side is empty."""
    left = set(tokenize(a))
    right = set(tokenize(b))
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def truncate(text: object, max_length: int = 200) -> str:
    if not text or not isinstance(text, str):
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length].rstrip() + ELLIPSIS


def strip_tags(text: object) -> str:
    if not text or not isinstance(text, str):
        return ""
    return _TAG.sub("", text).strip()


def highlight(text: str, terms: Iterable[str]) -> str:
    """
    Wrap every case-insensitive whole-word match of each term in <mark>.
    Terms are applied one after another, so a later term may re-wrap text
    that an earlier term already marked.
    """
    if not text:
        return text
    out = text
    for term in terms:
        if not term:
            continue
        pattern = re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)
        out = pattern.sub(lambda m: f"{MARK_OPEN}{m.group(0)}{MARK_CLOSE}", out)
    return out


def relevant_sentences(text: str, terms: Iterable[str], max_count: int = 3) -> List[str]:
    """
    Sentences of `text` ranked by how many of `terms` they contain.
    Zero-match sentences are dropped; ties keep document order.
    """
    wanted = [normalize(t) for t in terms]
    wanted = [t for t in wanted if t]
    if not text or not wanted or max_count <= 0:
        return []

    scored: List[tuple[int, str]] = []
    for raw in _SENTENCE_END.split(text):
        sentence = raw.strip()
        if not sentence:
            continue
        normalized = normalize(sentence)
        hits = sum(1 for t in wanted if t in normalized)
        if hits > 0:
            scored.append((hits, sentence))

    # list.sort is stable, so equal counts stay in document order
    scored.sort(key=lambda item: item[0], reverse=True)
    return [sentence for _, sentence in scored[:max_count]]


def cache_key(query: str) -> str:
    """Stable short hash of the normalized query."""
    return hashlib.sha1(normalize(query).encode("utf-8")).hexdigest()[:16]
