"""
Unit tests for the query pipeline: validation, caching, errors and stats.
"""
import asyncio
import json
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from conftest import ScriptedModel, final_text, tool_request
from core.orchestrator import ConversationOrchestrator
from model.api import QueryErrorResponse, QueryResponse
from repository.answer_cache_repository import AnswerCacheRepository
from service.query_service import QueryService, classify_query, validate_query
from util.enums import QueryType
from util.errors import ModelTimeoutError, RateLimitError

ANSWER = json.dumps(
    {
        "answer": "SNAP benefits are reduced.",
        "sections": ["H2"],
        "keyPoints": ["Reduced SNAP funding"],
        "implications": "Households receive less.",
        "confidence": "high",
    }
)


def build(executor, replies, cache=None):
    model = ScriptedModel(replies)
    orchestrator = ConversationOrchestrator(
        model, executor, max_iterations=3, call_timeout=5.0,
        system_prompt="system", final_instruction="final",
    )
    return QueryService(orchestrator, tools=executor, client=model, cache=cache), model


class TestValidation:
    """validate_query() reports every problem at once."""

    @pytest.mark.parametrize(
        "query, expected",
        [
            (None, ["Query is required"]),
            ("", ["Query is required"]),
            (42, ["Query must be a string"]),
            ("   ", ["Query cannot be empty"]),
        ],
    )
    def test_invalid(self, query, expected):
        assert validate_query(query) == expected

    def test_too_long(self):
        errors = validate_query("x" * 11, max_chars=10)
        assert errors == ["Query is too long (maximum 10 characters)"]

    def test_valid(self):
        assert validate_query("How are taxes affected?") == []


class TestClassification:
    """classify_query() maps questions to coarse query types."""

    @pytest.mark.parametrize(
        "query, kind",
        [
            ("How will this change my income TAX?", QueryType.TAX),
            ("What about the armed forces?", QueryType.DEFENSE),
            ("Any SNAP cuts?", QueryType.AGRICULTURE),
            ("What are the consequences for renters?", QueryType.IMPACT),
            ("Explain section 2", QueryType.DEFINITION),
            ("Who sponsored it?", QueryType.GENERAL),
        ],
    )
    def test_types(self, query, kind):
        assert classify_query(query) is kind


class TestProcess:
    """process() always returns a response object, never raises."""

    def test_success(self, executor):
        service, model = build(
            executor,
            [tool_request(("a", "search_by_topic", {"topic": "agriculture"})), final_text(ANSWER)],
        )
        result = asyncio.run(service.process("  How are SNAP   benefits affected? "))
        assert isinstance(result, QueryResponse)
        assert result.success is True
        assert result.sections == ["H2"]
        assert result.query == "  How are SNAP   benefits affected? "
        assert result.metadata.queryType == "agriculture_related"
        assert result.metadata.rounds == 1
        assert result.metadata.toolCalls == 1
        assert result.metadata.model == "scripted-model"
        assert result.fromCache is False
        # the model sees the normalized question
        assert "how are snap benefits affected?" in model.requests[0]["messages"][0]["content"]

    def test_invalid_query_skips_model(self, executor):
        service, model = build(executor, [])
        result = asyncio.run(service.process(""))
        assert isinstance(result, QueryErrorResponse)
        assert result.error.type == "invalid_query"
        assert result.error.details == ["Query is required"]
        assert model.requests == []

    def test_rate_limit_carries_retry_after(self, executor):
        service, _ = build(executor, [RateLimitError("busy", retry_after=12)])
        result = asyncio.run(service.process("tax question"))
        assert result.error.type == "rate_limited"
        assert result.error.retryAfter == 12

    def test_timeout(self, executor):
        service, _ = build(executor, [ModelTimeoutError("slow")])
        result = asyncio.run(service.process("tax question"))
        assert result.error.type == "timeout"

    def test_unexpected_exception_is_internal_error(self, executor):
        service, _ = build(executor, [KeyError("boom")])
        result = asyncio.run(service.process("tax question"))
        assert result.success is False
        assert result.error.type == "internal_error"


class TestCaching:
    """Answers are cached by normalized query; Redis failures are soft."""

    def test_second_call_served_from_cache(self, executor, fake_redis):
        cache = AnswerCacheRepository(client=fake_redis)
        service, model = build(executor, [final_text(ANSWER)], cache=cache)

        async def scenario():
            first = await service.process("SNAP benefits?")
            second = await service.process("snap   BENEFITS?")
            return first, second

        first, second = asyncio.run(scenario())
        assert first.fromCache is False
        assert second.fromCache is True
        assert second.answer == first.answer
        assert len(model.requests) == 1

    def test_use_cache_false_bypasses(self, executor, fake_redis):
        cache = AnswerCacheRepository(client=fake_redis)
        service, model = build(executor, [final_text(ANSWER)], cache=cache)
        asyncio.run(service.process("SNAP benefits?", use_cache=False))
        assert len(fake_redis.data) == 1
        assert asyncio.run(cache.get("tax question")) is not None

    def test_errors_are_not_cached(self, executor, fake_redis):
        cache = AnswerCacheRepository(client=fake_redis)
        service, _ = build(executor, [ModelTimeoutError("slow")], cache=cache)
        asyncio.run(service.process("tax question"))
        assert len(fake_redis.data) == 1
        assert asyncio.run(cache.get("tax question")) is not None

    def test_redis_outage_does_not_fail_query(self, executor):
        class DownRedis:
            async def get(self, key):
                raise RedisConnectionError("down")

            async def set(self, key, value, ex=None):
                raise RedisConnectionError("down")

        service, _ = build(
            executor, [final_text(ANSWER)], cache=AnswerCacheRepository(client=DownRedis())
        )
        result = asyncio.run(service.process("tax question"))
        assert isinstance(result, QueryResponse)


class TestStats:
    """stats() aggregates counters; reset_stats() zeroes them."""

    def test_stats_and_reset(self, executor, fake_redis):
        cache = AnswerCacheRepository(client=fake_redis)
        service, _ = build(
            executor,
            [tool_request(("a", "search_sections", {"query": "tax"})), final_text(ANSWER)],
            cache=cache,
        )
        asyncio.run(service.process("tax question"))
        stats = service.stats()
        assert stats["queryProcessor"]["processingCount"] == 1
        assert stats["tools"] == {"search_sections": 1}
        assert stats["cache"]["misses"] == 1

        service.reset_stats()
        stats = service.stats()
        assert stats["queryProcessor"]["processingCount"] == 0
        assert stats["tools"] == {}
        assert len(fake_redis.data) == 1
        assert asyncio.run(cache.get("tax question")) is not None

    def test_suggestions(self):
        assert len(QueryService.suggestions(3)) == 3
        assert QueryService.suggestions(0) == []
