# service/document_service.py
import logging
from typing import Any, Dict, List, Optional
from core.entities import SearchHit
from core.retrieval import RetrievalEngine
from model.api import SearchResponse, SearchResult
from util.enums import ErrorMessage, SearchMode
from util.errors import AppError
from util.text import highlight, relevant_sentences, strip_tags, truncate

logger = logging.getLogger(__name__)


class DocumentService:
    """Browsing endpoints over the indexed bill; no model calls."""

    def __init__(self, engine: RetrievalEngine) -> None:
        self._engine = engine

    def structure(self) -> Dict[str, Any]:
        return self._engine.structure()

    def overview(self) -> Dict[str, Any]:
        return self._engine.overview()

    def section(
        self,
        section_id: str,
        *,
        include_children: bool = False,
        highlight_terms: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        lookup = self._engine.get_by_id(section_id)
        if not lookup.found:
            msg, code = ErrorMessage.SECTION_NOT_FOUND.value
            raise AppError(msg, code)

        data = lookup.section.to_dict()
        terms = [t for t in (highlight_terms or []) if t.strip()]
        if terms:
            data["content"] = highlight(data["content"], terms)
            data["fullText"] = highlight(data["fullText"], terms)

        if include_children:
            sections = self._engine.snapshot.sections
            data["childSections"] = [
                sections[cid].to_dict() for cid in lookup.section.children
            ]
        return data

    def search(
        self, term: str, *, limit: int = 10, mode: SearchMode = SearchMode.KEYWORD
    ) -> SearchResponse:
        if not term or not term.strip():
            msg, code = ErrorMessage.SEARCH_TERM_REQUIRED.value
            raise AppError(msg, code)

        if mode == SearchMode.COMBINED:
            hits = self._engine.search_combined(term, limit=limit)
        else:
            hits = self._engine.search(term, limit=limit)

        words = term.split()
        results = [self._result(hit, words) for hit in hits]
        logger.debug("document.search mode=%s hits=%d", mode.value, len(results))
        return SearchResponse(
            term=term, mode=mode.value, results=results, totalFound=len(results)
        )

    @staticmethod
    def _result(hit: SearchHit, words: List[str]) -> SearchResult:
        s = hit.section
        return SearchResult(
            id=s.id,
            title=s.title,
            type=s.type,
            level=s.level,
            score=float(hit.score),
            excerpt=truncate(strip_tags(s.full_text), 200),
            relevantSentences=relevant_sentences(s.full_text, words, 3),
        )
