# core/retrieval.py
import logging
import re
from collections import Counter
from typing import Dict, Final, List, Mapping, Sequence, Tuple

from core.entities import DocumentSnapshot, SearchHit, Section, SectionLookup
from util.text import similarity, tokenize

logger = logging.getLogger(__name__)

# Closed-set vocabularies. Tool schemas read their allowed values from here.
TOPIC_KEYWORDS: Final[Mapping[str, Tuple[str, ...]]] = {
    "tax": ("tax", "taxes", "taxation", "income", "deduction", "credit", "revenue", "IRS"),
    "defense": ("defense", "military", "armed forces", "national security", "pentagon", "veteran"),
    "agriculture": ("agriculture", "farm", "farming", "food", "SNAP", "nutrition", "USDA", "crop"),
    "energy": ("energy", "oil", "gas", "petroleum", "renewable", "solar", "wind", "coal"),
    "environment": ("environment", "climate", "EPA", "pollution", "emission", "green", "conservation"),
    "banking": ("banking", "finance", "financial", "bank", "credit", "loan", "mortgage"),
    "healthcare": ("health", "medical", "medicare", "medicaid", "hospital", "insurance", "doctor"),
    "education": ("education", "school", "student", "teacher", "university", "college", "learning"),
    "immigration": ("immigration", "immigrant", "border", "visa", "citizenship", "deportation"),
    "housing": ("housing", "home", "rent", "mortgage", "affordable housing", "HUD"),
}

FINANCIAL_IMPACT_KEYWORDS: Final[Mapping[str, Tuple[str, ...]]] = {
    "appropriation": ("appropriation", "appropriated", "appropriates", "funds available"),
    "funding": ("funding", "funded", "fund", "allocated", "allocation"),
    "cost": ("cost", "costs", "expense", "expenditure", "budget"),
    "budget": ("budget", "budgeted", "budgetary", "fiscal"),
    "spending": ("spending", "spend", "expenditure", "outlay"),
    "revenue": ("revenue", "income", "receipts", "collections"),
    "tax_change": ("tax increase", "tax decrease", "tax rate", "tax reform", "tax credit", "tax deduction"),
}

POLICY_DOMAINS: Final[Tuple[str, ...]] = (
    "Agriculture and Food Policy",
    "Defense and National Security",
    "Banking and Financial Services",
    "Energy and Natural Resources",
    "Environmental Protection",
    "Tax Policy and Revenue",
)

_AMOUNTS = re.compile(
    r"\$[\d,]+(?:\.\d+)?(?:\s*(?:million|billion|trillion))?"
    r"|\b\d{1,3}(?:,\d{3})*(?:\.\d+)?\s*(?:million|billion|trillion)\b",
    re.IGNORECASE,
)


def expand_keywords(term: str, table: Mapping[str, Sequence[str]]) -> Tuple[str, ...]:
    """Closed-set expansion; an unknown term stands for itself."""
    return tuple(table.get(term.strip().lower(), (term,)))


def matched_keywords(section: Section, keywords: Sequence[str]) -> List[str]:
    haystack_title = section.title.lower()
    haystack_text = section.full_text.lower()
    return [
        k
        for k in keywords
        if k.lower() in haystack_text or k.lower() in haystack_title
    ]


def extract_amounts(text: str) -> List[str]:
    """Dollar figures and "N million/billion/trillion" mentions, in order."""
    return [m.group(0) for m in _AMOUNTS.finditer(text or "")]


class RetrievalEngine:
    """
    Read-only queries over a DocumentSnapshot. Scoring is plain additive term
    overlap: a section scores one point per distinct query keyword it contains.
    """

    def __init__(self, snapshot: DocumentSnapshot, document_title: str = "H.R. 1 (2025)") -> None:
        self._snapshot = snapshot
        self._title = snapshot.metadata.get("title") or document_title

    @property
    def snapshot(self) -> DocumentSnapshot:
        return self._snapshot

    def search(self, query: str, limit: int = 10) -> List[SearchHit]:
        keywords = list(dict.fromkeys(tokenize(query)))
        if not keywords or limit <= 0:
            return []

        scores: Dict[str, int] = {}
        for keyword in keywords:
            for section_id in self._snapshot.index.get(keyword, ()):
                scores[section_id] = scores.get(section_id, 0) + 1

        # stable sort keeps first-encountered order for equal scores
        ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)[:limit]
        logger.debug(
            "search.done keywords=%d candidates=%d returned=%d",
            len(keywords),
            len(scores),
            len(ranked),
        )
        return [
            SearchHit(section=self._snapshot.sections[sid], score=score)
            for sid, score in ranked
        ]

    def search_by_topic(self, topic: str, limit: int = 5) -> List[SearchHit]:
        return self.search(" ".join(expand_keywords(topic, TOPIC_KEYWORDS)), limit)

    def search_financial_impact(self, impact_type: str, limit: int = 5) -> List[SearchHit]:
        return self.search(
            " ".join(expand_keywords(impact_type, FINANCIAL_IMPACT_KEYWORDS)), limit
        )

    def search_combined(
        self, query: str, limit: int = 5, min_score: float = 0.0
    ) -> List[SearchHit]:
        """
        Keyword hits merged with a token-similarity pass over every section.
        Sections found by both passes get the mean of their two scores.
        """
        if limit <= 0:
            return []
        merged: Dict[str, float] = {
            hit.section.id: float(hit.score) for hit in self.search(query, limit * 2)
        }

        similar: List[Tuple[str, float]] = []
        for section in self._snapshot.sections.values():
            score = similarity(query, section.title) * 2 + similarity(query, section.full_text)
            if score > 0:
                similar.append((section.id, score))
        similar.sort(key=lambda kv: kv[1], reverse=True)

        for sid, score in similar[:limit]:
            if sid in merged:
                merged[sid] = (merged[sid] + score) / 2
            else:
                merged[sid] = score

        ranked = sorted(merged.items(), key=lambda kv: kv[1], reverse=True)
        return [
            SearchHit(section=self._snapshot.sections[sid], score=score)
            for sid, score in ranked
            if score >= min_score
        ][:limit]

    def get_by_id(self, section_id: str) -> SectionLookup:
        return SectionLookup(
            section_id=section_id, section=self._snapshot.sections.get(section_id)
        )

    def overview(self) -> dict:
        sections = self._snapshot.sections.values()
        types = Counter(s.type or "unknown" for s in sections)
        words = sum(len(s.full_text.split()) for s in sections)
        return {
            "title": self._title,
            "totalSections": len(self._snapshot.sections),
            "mainTopics": list(POLICY_DOMAINS),
            "documentStats": {
                "totalSections": len(self._snapshot.sections),
                "sectionTypes": dict(types),
                "estimatedWordCount": words,
            },
        }

    def structure(self) -> dict:
        return {
            "toc": [
                {"id": e.id, "level": e.level, "title": e.title}
                for e in self._snapshot.toc
            ],
            "metadata": dict(self._snapshot.metadata),
        }
