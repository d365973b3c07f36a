# core/tool_executor.py
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from pydantic import ValidationError

from core.entities import SearchHit
from core.retrieval import (
    FINANCIAL_IMPACT_KEYWORDS,
    TOPIC_KEYWORDS,
    RetrievalEngine,
    expand_keywords,
    extract_amounts,
    matched_keywords,
)
from model.tools import (
    GetBillOverviewArgs,
    GetSectionByIdArgs,
    SearchByTopicArgs,
    SearchFinancialImpactArgs,
    SearchSectionsArgs,
    ToolArgs,
)
from util.errors import InvalidArgumentsError, UnknownToolError
from util.text import truncate

logger = logging.getLogger(__name__)

SEARCH_RESULT_CAP = 3
EXCERPT_CHARS = 200
SECTION_CONTENT_CHARS = 600


@dataclass(frozen=True)
class ToolDefinition:
    """
    One operation the model may invoke. `result_cap` is a hard ceiling on the
    number of results regardless of what the caller asks for.
    """

    name: str
    description: str
    args_model: Type[ToolArgs]
    result_cap: Optional[int] = None
    content_chars: int = 300

    @property
    def input_schema(self) -> Dict[str, Any]:
        return self.args_model.model_json_schema()

    def to_api(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def cap(self, requested: int) -> int:
        if self.result_cap is None:
            return requested
        return min(requested, self.result_cap)


TOOL_DEFINITIONS: Dict[str, ToolDefinition] = {
    d.name: d
    for d in (
        ToolDefinition(
            name="search_sections",
            description="Search for sections in the bill by keywords or phrases",
            args_model=SearchSectionsArgs,
            result_cap=SEARCH_RESULT_CAP,
            content_chars=300,
        ),
        ToolDefinition(
            name="search_by_topic",
            description=(
                "Search for sections related to specific policy topics "
                f"({', '.join(TOPIC_KEYWORDS)})"
            ),
            args_model=SearchByTopicArgs,
            result_cap=SEARCH_RESULT_CAP,
            content_chars=250,
        ),
        ToolDefinition(
            name="search_financial_impact",
            description="Search for sections that mention financial impacts, costs, or budget items",
            args_model=SearchFinancialImpactArgs,
            result_cap=SEARCH_RESULT_CAP,
            content_chars=250,
        ),
        ToolDefinition(
            name="get_section_by_id",
            description="Get a specific section by its ID (use sparingly)",
            args_model=GetSectionByIdArgs,
            result_cap=1,
            content_chars=SECTION_CONTENT_CHARS,
        ),
        ToolDefinition(
            name="get_bill_overview",
            description="Get a high-level overview of the bill structure and main topics",
            args_model=GetBillOverviewArgs,
        ),
    )
}


class ToolExecutor:
    """
    Validates tool arguments and runs them against the RetrievalEngine.
    Every method is synchronous in-memory work; no I/O.
    """

    def __init__(
        self,
        engine: RetrievalEngine,
        definitions: Mapping[str, ToolDefinition] = TOOL_DEFINITIONS,
    ) -> None:
        self._engine = engine
        self._definitions = dict(definitions)
        self._handlers: Dict[str, Callable[[ToolDefinition, Any], Dict[str, Any]]] = {
            "search_sections": self._search_sections,
            "search_by_topic": self._search_by_topic,
            "search_financial_impact": self._search_financial_impact,
            "get_section_by_id": self._get_section_by_id,
            "get_bill_overview": self._get_bill_overview,
        }
        self._invocations: Counter[str] = Counter()

    @property
    def definitions(self) -> List[ToolDefinition]:
        return list(self._definitions.values())

    def api_tools(self) -> List[Dict[str, Any]]:
        return [d.to_api() for d in self._definitions.values()]

    def execute(self, name: str, arguments: Any) -> Dict[str, Any]:
        definition = self._definitions.get(name)
        handler = self._handlers.get(name)
        if definition is None or handler is None:
            self._invocations["unknown"] += 1
            logger.warning("tool.unknown name=%s", name)
            raise UnknownToolError(name)

        self._invocations[name] += 1
        try:
            args = definition.args_model.model_validate(arguments or {})
        except ValidationError as e:
            details = [
                f"{'.'.join(str(p) for p in err.get('loc', ())) or 'arguments'}: {err.get('msg', '')}"
                for err in e.errors()
            ]
            logger.warning("tool.invalid_args name=%s errors=%d", name, len(details))
            raise InvalidArgumentsError(name, details) from e

        result = handler(definition, args)
        logger.info("tool.ok name=%s", name)
        return result

    # ---------------- Handlers ----------------

    @staticmethod
    def _format_hits(definition: ToolDefinition, hits: List[SearchHit]) -> List[Dict[str, Any]]:
        return [
            {
                "id": h.section.id,
                "title": h.section.title,
                "content": truncate(h.section.full_text, definition.content_chars),
                "level": h.section.level,
                "type": h.section.type,
                "score": h.score,
                "excerpt": truncate(h.section.full_text, EXCERPT_CHARS),
            }
            for h in hits
        ]

    def _search_sections(self, d: ToolDefinition, args: SearchSectionsArgs) -> Dict[str, Any]:
        hits = self._engine.search(args.query, d.cap(args.maxResults))
        return {
            "query": args.query,
            "results": self._format_hits(d, hits),
            "totalFound": len(hits),
        }

    def _search_by_topic(self, d: ToolDefinition, args: SearchByTopicArgs) -> Dict[str, Any]:
        keywords = expand_keywords(args.topic, TOPIC_KEYWORDS)
        hits = self._engine.search_by_topic(args.topic, d.cap(args.maxResults))
        results = self._format_hits(d, hits)
        for row, hit in zip(results, hits):
            row["matchedKeywords"] = matched_keywords(hit.section, keywords)
        return {
            "topic": args.topic,
            "searchKeywords": list(keywords),
            "results": results,
            "totalFound": len(hits),
        }

    def _search_financial_impact(
        self, d: ToolDefinition, args: SearchFinancialImpactArgs
    ) -> Dict[str, Any]:
        keywords = expand_keywords(args.impactType, FINANCIAL_IMPACT_KEYWORDS)
        hits = self._engine.search_financial_impact(args.impactType, d.cap(args.maxResults))
        results = self._format_hits(d, hits)
        for row, hit in zip(results, hits):
            row["financialImpactType"] = args.impactType
            row["matchedKeywords"] = matched_keywords(hit.section, keywords)
            row["potentialNumbers"] = extract_amounts(hit.section.full_text)[:10]
        return {
            "impactType": args.impactType,
            "searchKeywords": list(keywords),
            "results": results,
            "totalFound": len(hits),
        }

    def _get_section_by_id(self, d: ToolDefinition, args: GetSectionByIdArgs) -> Dict[str, Any]:
        lookup = self._engine.get_by_id(args.sectionId)
        if not lookup.found:
            return {
                "found": False,
                "sectionId": args.sectionId,
                "message": f'Section with ID "{args.sectionId}" not found',
            }
        s = lookup.section
        return {
            "found": True,
            "id": s.id,
            "title": s.title,
            "content": truncate(s.full_text, d.content_chars),
            "level": s.level,
            "type": s.type,
            "parentId": s.parent_id,
            "children": list(s.children),
        }

    def _get_bill_overview(self, d: ToolDefinition, args: GetBillOverviewArgs) -> Dict[str, Any]:
        return self._engine.overview()

    # ---------------- Stats ----------------

    def stats(self) -> Dict[str, int]:
        return dict(self._invocations)

    def reset_stats(self) -> None:
        self._invocations.clear()
