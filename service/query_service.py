# service/query_service.py
import asyncio
import logging
import re
import time
from typing import Optional, Sequence, Tuple
from redis.exceptions import RedisError
from config.settings import settings
from core.anthropic_client import AnthropicClient
from core.orchestrator import ConversationOrchestrator
from core.tool_executor import ToolExecutor
from model.api import (
    AnswerMetadata,
    ErrorDetail,
    QueryErrorResponse,
    QueryResponse,
)
from repository.answer_cache_repository import AnswerCacheRepository
from util.constants import QUERY_SUGGESTIONS
from util.enums import QueryType
from util.errors import BillLensError, InvalidQueryError, RateLimitError
from util.text import normalize

logger = logging.getLogger(__name__)

# First match wins, so topic classes shadow the generic intent classes.
_QUERY_PATTERNS: Tuple[Tuple[re.Pattern, QueryType], ...] = (
    (re.compile(r"\b(tax|taxes|taxation|income|deduction|credit)\b"), QueryType.TAX),
    (re.compile(r"\b(military|defense|security|armed forces)\b"), QueryType.DEFENSE),
    (re.compile(r"\b(environment|climate|green|emission|pollution)\b"), QueryType.ENVIRONMENT),
    (re.compile(r"\b(agriculture|farm|food|snap|nutrition)\b"), QueryType.AGRICULTURE),
    (re.compile(r"\b(banking|finance|financial|housing)\b"), QueryType.BANKING),
    (re.compile(r"\b(energy|oil|gas|petroleum|renewable)\b"), QueryType.ENERGY),
    (re.compile(r"\b(how will|impact|affect|implications?|consequences?)\b"), QueryType.IMPACT),
    (re.compile(r"\b(what is|what does|define|explain)\b"), QueryType.DEFINITION),
)


def classify_query(query: str) -> QueryType:
    text = normalize(query)
    for pattern, kind in _QUERY_PATTERNS:
        if pattern.search(text):
            return kind
    return QueryType.GENERAL


def validate_query(query: object, max_chars: int = settings.MAX_QUERY_CHARS) -> list[str]:
    if query is None or query == "":
        return ["Query is required"]
    if not isinstance(query, str):
        return ["Query must be a string"]
    errors: list[str] = []
    if not query.strip():
        errors.append("Query cannot be empty")
    if len(query) > max_chars:
        errors.append(f"Query is too long (maximum {max_chars} characters)")
    return errors


def _elapsed_ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)


class QueryService:
    """
    Entry point for one user question: validate, consult the answer cache,
    run the tool-calling conversation, and shape the result. Every failure
    comes back as a QueryErrorResponse; nothing escapes as a raw exception.
    """

    def __init__(
        self,
        orchestrator: ConversationOrchestrator,
        *,
        tools: ToolExecutor,
        client: Optional[AnthropicClient] = None,
        cache: Optional[AnswerCacheRepository] = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._tools = tools
        self._client = client
        self._cache = cache
        self._requests = 0

    async def process(
        self,
        query: Optional[str],
        *,
        use_cache: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> QueryResponse | QueryErrorResponse:
        self._requests += 1
        n = self._requests
        t0 = time.perf_counter()

        errors = validate_query(query)
        if errors:
            logger.info("query.invalid n=%d errors=%d", n, len(errors))
            return self._error(InvalidQueryError(errors), query, t0)

        normalized = normalize(query)
        logger.info("query.start n=%d chars=%d", n, len(normalized))

        if use_cache:
            cached = await self._cache_get(normalized)
            if cached is not None:
                logger.info("query.cached n=%d", n)
                return cached.model_copy(
                    update={"fromCache": True, "processingTime": _elapsed_ms(t0)}
                )

        try:
            outcome = await self._orchestrator.run(normalized, cancel_event=cancel_event)
        except BillLensError as e:
            logger.warning("query.failed n=%d kind=%s", n, e.kind)
            return self._error(e, query, t0)
        except Exception:
            logger.exception("query.crashed n=%d", n)
            return QueryErrorResponse(
                error=ErrorDetail(type="internal_error", message="Failed to process query"),
                query=query,
                processingTime=_elapsed_ms(t0),
            )

        response = QueryResponse(
            **outcome.answer.model_dump(),
            query=query,
            metadata=AnswerMetadata(
                model=self._client.model if self._client else None,
                queryType=classify_query(query).value,
                rounds=outcome.rounds,
                toolCalls=outcome.tool_calls,
                forcedFinal=outcome.forced_final,
            ),
            processingTime=_elapsed_ms(t0),
        )
        if use_cache:
            await self._cache_set(normalized, response)

        logger.info(
            "query.ok n=%d ms=%d rounds=%d tools=%d confidence=%s",
            n,
            response.processingTime,
            outcome.rounds,
            outcome.tool_calls,
            response.confidence.value,
        )
        return response

    @staticmethod
    def _error(
        e: BillLensError, query: Optional[str], t0: float
    ) -> QueryErrorResponse:
        return QueryErrorResponse(
            error=ErrorDetail(
                type=e.kind,
                message=e.message,
                retryAfter=e.retry_after if isinstance(e, RateLimitError) else None,
                details=e.errors if isinstance(e, InvalidQueryError) else None,
            ),
            query=query,
            processingTime=_elapsed_ms(t0),
        )

    # ---------------- Cache (best effort) ----------------

    async def _cache_get(self, normalized: str) -> Optional[QueryResponse]:
        if self._cache is None:
            return None
        try:
            return await self._cache.get(normalized)
        except RedisError as e:
            logger.warning("query.cache.read_error err=%s", type(e).__name__)
            return None

    async def _cache_set(self, normalized: str, response: QueryResponse) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(normalized, response)
        except RedisError as e:
            logger.warning("query.cache.write_error err=%s", type(e).__name__)

    # ---------------- Suggestions & stats ----------------

    @staticmethod
    def suggestions(limit: int = 5, pool: Sequence[str] = QUERY_SUGGESTIONS) -> list[str]:
        return list(pool[: max(0, limit)])

    def stats(self) -> dict:
        return {
            "queryProcessor": {"processingCount": self._requests},
            "tools": self._tools.stats(),
            "cache": self._cache.stats() if self._cache else None,
            "llm": self._client.stats() if self._client else None,
        }

    def reset_stats(self) -> None:
        self._requests = 0
        self._tools.reset_stats()
        if self._client is not None:
            self._client.reset_stats()
        if self._cache is not None:
            self._cache.reset_stats()
        logger.info("query.stats.reset")
