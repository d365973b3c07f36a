# core/entities.py
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class SectionMeta:
    section_type: Optional[str] = None
    changed: Optional[str] = None
    display_style: Optional[str] = None


@dataclass(frozen=True)
class Section:
    """
    One addressable unit of the bill. `children` lists ids only; the child
    records live in the same flat map as their parent.
    """

    id: str
    type: str
    title: str
    content: str
    full_text: str
    level: int
    parent_id: Optional[str]
    children: Tuple[str, ...] = ()
    metadata: SectionMeta = field(default_factory=SectionMeta)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "content": self.content,
            "fullText": self.full_text,
            "level": self.level,
            "parentId": self.parent_id,
            "children": list(self.children),
            "metadata": {
                "sectionType": self.metadata.section_type,
                "changed": self.metadata.changed,
                "displayStyle": self.metadata.display_style,
            },
        }


@dataclass(frozen=True)
class TocEntry:
    id: str
    level: str
    title: str


@dataclass(frozen=True)
class DocumentSnapshot:
    """
    Fully indexed, read-only view of the source document.
    Built once at start-up and shared by every request.
    """

    sections: Mapping[str, Section]
    index: Mapping[str, Tuple[str, ...]]
    metadata: Mapping[str, str]
    toc: Tuple[TocEntry, ...]

    @classmethod
    def freeze(
        cls,
        *,
        sections: Dict[str, Section],
        index: Dict[str, Tuple[str, ...]],
        metadata: Dict[str, str],
        toc: Tuple[TocEntry, ...],
    ) -> "DocumentSnapshot":
        return cls(
            sections=MappingProxyType(dict(sections)),
            index=MappingProxyType(dict(index)),
            metadata=MappingProxyType(dict(metadata)),
            toc=tuple(toc),
        )


@dataclass(frozen=True)
class SearchHit:
    section: Section
    score: float


@dataclass(frozen=True)
class SectionLookup:
    """Result of a direct id lookup; `found=False` is a normal outcome."""

    section_id: str
    section: Optional[Section] = None

    @property
    def found(self) -> bool:
        return self.section is not None
