# core/document_indexer.py
import logging
import warnings
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Final, Iterable, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup, ParserRejectedMarkup, Tag

from core.entities import DocumentSnapshot, Section, SectionMeta, TocEntry
from util.errors import ParseError, SectionExtractionWarning
from util.text import tokenize
from util.timing import timed

logger = logging.getLogger(__name__)

ID_ATTR: Final[str] = "id"

ROLE_TITLE: Final[str] = "title"
ROLE_LABEL: Final[str] = "label"
ROLE_CONTENT: Final[str] = "content"

# Which child elements feed which Section field.
TAG_ROLES: Final[Dict[str, str]] = {
    "header": ROLE_TITLE,
    "enum": ROLE_LABEL,
    "text": ROLE_CONTENT,
}

DUBLIN_CORE_FIELDS: Final[Tuple[str, ...]] = ("title", "publisher", "date", "language")
FORM_FIELDS: Final[Dict[str, str]] = {
    "congress": "congress",
    "session": "session",
    "legis-num": "billNumber",
}

Walked = Tuple[Tag, str, Optional[str], int]


def _name(el: Tag) -> str:
    # namespaced tags (dc:title) compare by local name
    return (el.name or "").lower().rsplit(":", 1)[-1]


def _clean(text: str) -> str:
    return " ".join(text.split())


def _child_tags(el: Tag) -> List[Tag]:
    return [c for c in el.children if isinstance(c, Tag)]


def _children_with_role(el: Tag, role: str) -> List[Tag]:
    return [c for c in _child_tags(el) if TAG_ROLES.get(_name(c)) == role]


def _find_first(root: Tag, name: str) -> Optional[Tag]:
    if _name(root) == name:
        return root
    return root.find(lambda t: _name(t) == name)


def walk_identified(
    root: Tag, identify: Callable[[Tag], Optional[str]]
) -> Iterator[Walked]:
    """
    Depth-first, document-order walk that yields only identified nodes as
    (element, id, parent_id, level).

    `identify` returns the node's id or None. Unidentified nodes are wrappers:
    they are traversed but never appear in the hierarchy, so a node's parent is
    its nearest identified ancestor. Level is 1 + number of identified
    ancestors.
    """
    stack: List[Tuple[Tag, Optional[str], int]] = [(root, None, 1)]
    while stack:
        el, parent_id, level = stack.pop()
        sid = identify(el)
        if sid is not None:
            yield el, sid, parent_id, level
            below_parent, below_level = sid, level + 1
        else:
            below_parent, below_level = parent_id, level
        for child in reversed(_child_tags(el)):
            stack.append((child, below_parent, below_level))


def parse_document(raw: bytes | str) -> Tag:
    """Parse raw XML and return its root element, or raise ParseError."""
    if raw is None or not raw.strip():
        raise ParseError("Source document is empty")
    try:
        soup = BeautifulSoup(raw, "lxml-xml")
    except ParserRejectedMarkup as e:
        raise ParseError(f"Source document could not be parsed: {e}") from e
    root = next((c for c in soup.children if isinstance(c, Tag)), None)
    if root is None:
        raise ParseError("Source document has no root element")
    return root


def extract_section(el: Tag, sid: str, parent_id: Optional[str], level: int) -> Section:
    heading = _children_with_role(el, ROLE_TITLE) or _children_with_role(el, ROLE_LABEL)
    title = _clean(heading[0].get_text(" ")) if heading else ""
    content = " ".join(
        _clean(t.get_text(" ")) for t in _children_with_role(el, ROLE_CONTENT)
    ).strip()
    section_type = el.get("section-type")
    return Section(
        id=sid,
        type=section_type or _name(el),
        title=title,
        content=content,
        full_text=_clean(el.get_text(" ")),
        level=level,
        parent_id=parent_id,
        metadata=SectionMeta(
            section_type=section_type,
            changed=el.get("changed"),
            display_style=el.get("reported-display-style"),
        ),
    )


def extract_sections(root: Tag) -> Dict[str, Section]:
    """
    Materialize every identified node into a Section keyed by id, in document
    order. A subtree whose root fails extraction is dropped as a whole so no
    surviving Section points at a missing parent.
    """
    seen: set[str] = set()

    def identify(el: Tag) -> Optional[str]:
        sid = (el.get(ID_ATTR) or "").strip()
        if not sid:
            return None
        if sid in seen:
            warnings.warn(
                f"duplicate section id {sid!r} on <{el.name}>; treated as wrapper",
                SectionExtractionWarning,
                stacklevel=2,
            )
            return None
        seen.add(sid)
        return sid

    sections: Dict[str, Section] = {}
    children: Dict[str, List[str]] = {}
    dropped: set[str] = set()

    for el, sid, parent_id, level in walk_identified(root, identify):
        if parent_id in dropped:
            dropped.add(sid)
            continue
        try:
            section = extract_section(el, sid, parent_id, level)
        except (AttributeError, TypeError, ValueError) as e:
            warnings.warn(
                f"skipping subtree {sid!r}: {type(e).__name__}: {e}",
                SectionExtractionWarning,
                stacklevel=2,
            )
            dropped.add(sid)
            continue
        sections[sid] = section
        children[sid] = []
        if parent_id is not None:
            children[parent_id].append(sid)

    if dropped:
        logger.warning("index.sections.skipped count=%d", len(dropped))

    return {sid: replace(s, children=tuple(children[sid])) for sid, s in sections.items()}


def build_inverted_index(sections: Iterable[Section]) -> Dict[str, Tuple[str, ...]]:
    """keyword -> section ids (first-seen order, no duplicates)."""
    postings: Dict[str, Dict[str, None]] = {}
    for section in sections:
        for keyword in tokenize(section.title) + tokenize(section.full_text):
            postings.setdefault(keyword, {})[section.id] = None
    return {kw: tuple(ids) for kw, ids in postings.items()}


def extract_metadata(root: Tag) -> Dict[str, str]:
    metadata: Dict[str, str] = {}

    dublin_core = _find_first(root, "dublincore")
    if dublin_core is not None:
        for child in _child_tags(dublin_core):
            key = _name(child)
            if key in DUBLIN_CORE_FIELDS and key not in metadata:
                metadata[key] = _clean(child.get_text(" "))

    form = _find_first(root, "engrossed-amendment-form")
    if form is not None:
        for child in _child_tags(form):
            key = FORM_FIELDS.get(_name(child))
            if key and key not in metadata:
                metadata[key] = _clean(child.get_text(" "))

    return metadata


def extract_toc(root: Tag) -> Tuple[TocEntry, ...]:
    entries: List[TocEntry] = []
    for entry in root.find_all(lambda t: _name(t) == "toc-entry"):
        idref = entry.get("idref")
        level = entry.get("level")
        title = _clean(entry.get_text(" "))
        if idref and level and title:
            entries.append(TocEntry(id=idref, level=level, title=title))
    return tuple(entries)


def build_snapshot(raw: bytes | str) -> DocumentSnapshot:
    """
    Raw XML in, immutable DocumentSnapshot out.
    Raises ParseError when the input is not usable markup at all.
    """
    with timed(logger, "index.parse"):
        root = parse_document(raw)

    with timed(logger, "index.build"):
        sections = extract_sections(root)
        index = build_inverted_index(sections.values())
        metadata = extract_metadata(root)
        toc = extract_toc(root)

    logger.info(
        "index.ready sections=%d keywords=%d toc=%d",
        len(sections),
        len(index),
        len(toc),
    )
    return DocumentSnapshot.freeze(
        sections=sections, index=index, metadata=metadata, toc=toc
    )


def load_snapshot(path: str | Path) -> DocumentSnapshot:
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        raise ParseError(f"Source document unreadable: {path}") from e
    logger.info("index.load path=%s bytes=%d", path, len(raw))
    return build_snapshot(raw)
