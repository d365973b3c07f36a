"""
Unit tests for the bounded tool-calling conversation loop.
"""
import asyncio
import json
import pytest
from conftest import ScriptedModel, final_text, tool_request
from core.orchestrator import ConversationOrchestrator
from model.answer import Confidence
from util.errors import (
    ModelTimeoutError,
    QueryCancelledError,
    RateLimitError,
    TransportError,
)

ANSWER = json.dumps(
    {
        "answer": "Defense gets $1.5 billion for shipbuilding.",
        "sections": ["H10"],
        "keyPoints": ["Shipbuilding funding"],
        "implications": "More ships.",
        "confidence": "high",
    }
)

FINAL = "Answer using only the information gathered so far."


def make(model, executor, **kwargs):
    kwargs.setdefault("max_iterations", 3)
    kwargs.setdefault("call_timeout", 5.0)
    return ConversationOrchestrator(
        model,
        executor,
        system_prompt="system",
        final_instruction=FINAL,
        **kwargs,
    )


def tool_results(message):
    return [b for b in message["content"] if b["type"] == "tool_result"]


class TestRounds:
    """Every tool call gets exactly one matching result in the next turn."""

    def test_direct_answer(self, executor):
        model = ScriptedModel([final_text(ANSWER)])
        outcome = asyncio.run(make(model, executor).run("defense spending"))
        assert outcome.rounds == 0
        assert outcome.model_calls == 1
        assert outcome.answer.sections == ["H10"]
        assert outcome.answer.confidence is Confidence.high
        assert model.requests[0]["allow_tools"] is True
        assert "defense spending" in model.requests[0]["messages"][0]["content"]

    def test_single_call(self, executor):
        model = ScriptedModel(
            [
                tool_request(("a", "search_by_topic", {"topic": "defense"})),
                final_text(ANSWER),
            ]
        )
        outcome = asyncio.run(make(model, executor).run("defense"))
        assert outcome.rounds == 1
        assert outcome.tool_calls == 1
        results = tool_results(model.requests[1]["messages"][-1])
        assert [r["tool_use_id"] for r in results] == ["a"]
        assert json.loads(results[0]["content"])["topic"] == "defense"

    def test_three_calls_one_round(self, executor):
        model = ScriptedModel(
            [
                tool_request(
                    ("a", "search_sections", {"query": "tax"}),
                    ("b", "get_section_by_id", {"sectionId": "H2"}),
                    ("c", "get_bill_overview", {}),
                    text="Let me look.",
                ),
                final_text(ANSWER),
            ]
        )
        outcome = asyncio.run(make(model, executor).run("tax"))
        assert outcome.tool_calls == 3
        assistant, user = model.requests[1]["messages"][1:]
        use_ids = [b["id"] for b in assistant["content"] if b["type"] == "tool_use"]
        result_ids = [r["tool_use_id"] for r in tool_results(user)]
        assert use_ids == result_ids == ["a", "b", "c"]

    def test_failed_tools_still_answered(self, executor):
        model = ScriptedModel(
            [
                tool_request(
                    ("a", "no_such_tool", {}),
                    ("b", "search_by_topic", {"topic": "astrology"}),
                    ("c", "search_sections", {"query": "farm"}),
                ),
                final_text(ANSWER),
            ]
        )
        asyncio.run(make(model, executor).run("farm"))
        results = tool_results(model.requests[1]["messages"][-1])
        assert [r.get("is_error", False) for r in results] == [True, True, False]
        assert json.loads(results[0]["content"])["type"] == "unknown_tool"
        assert json.loads(results[1]["content"])["type"] == "invalid_arguments"

    def test_crashing_tool_gets_placeholder(self, executor, monkeypatch):
        def boom(name, arguments):
            raise RuntimeError("index corrupted")

        monkeypatch.setattr(executor, "execute", boom)
        model = ScriptedModel(
            [tool_request(("a", "search_sections", {"query": "x"})), final_text(ANSWER)]
        )
        asyncio.run(make(model, executor).run("x"))
        result = tool_results(model.requests[1]["messages"][-1])[0]
        assert result["is_error"] is True
        assert json.loads(result["content"]) == {"error": "Tool execution failed"}


class TestBudget:
    """The loop stops after max_iterations tool rounds and forces an answer."""

    def test_budget_exhaustion_forces_final_round(self, executor):
        model = ScriptedModel(
            [
                tool_request(("a", "search_sections", {"query": "tax"})),
                tool_request(("b", "search_sections", {"query": "farm"})),
                final_text(ANSWER),
            ]
        )
        outcome = asyncio.run(make(model, executor, max_iterations=2).run("tax"))
        assert outcome.rounds == 2
        assert outcome.model_calls == 3
        assert outcome.forced_final is True
        assert [r["allow_tools"] for r in model.requests] == [True, True, False]

        last_user = model.requests[2]["messages"][-1]
        assert [r["tool_use_id"] for r in tool_results(last_user)] == ["b"]
        assert last_user["content"][-1] == {"type": "text", "text": FINAL}
        # tools stay declared so the earlier tool_use blocks remain valid
        assert model.requests[2]["tools"]

    def test_forced_round_tool_requests_are_not_executed(self, executor):
        model = ScriptedModel(
            [tool_request(("a", "search_sections", {"query": "tax"}), text="partial")],
            repeat_last=True,
        )
        outcome = asyncio.run(make(model, executor, max_iterations=1).run("tax"))
        assert outcome.rounds == 1
        assert outcome.model_calls == 2
        assert outcome.tool_calls == 1
        assert outcome.answer.answer == "partial"

    def test_history_pairs_every_call(self, executor):
        model = ScriptedModel(
            [
                tool_request(("a", "search_sections", {"query": "tax"}), ("b", "get_bill_overview", {})),
                tool_request(("c", "search_by_topic", {"topic": "energy"})),
                final_text(ANSWER),
            ]
        )
        outcome = asyncio.run(make(model, executor).run("q"))
        turns = outcome.turns
        for prev, nxt in zip(turns, turns[1:]):
            assert [c.id for c in prev.tool_calls] == [r.tool_call_id for r in nxt.tool_results]

    def test_max_iterations_must_be_positive(self, executor):
        with pytest.raises(ValueError):
            make(ScriptedModel([]), executor, max_iterations=0)


class TestFailures:
    """Model failures are terminal and surface unchanged."""

    @pytest.mark.parametrize(
        "error",
        [RateLimitError("busy", retry_after=30), TransportError("down")],
    )
    def test_model_errors_propagate(self, executor, error):
        model = ScriptedModel([error])
        with pytest.raises(type(error)):
            asyncio.run(make(model, executor).run("q"))
        assert len(model.requests) == 1

    def test_timeout(self, executor):
        class Slow:
            async def send(self, **kwargs):
                await asyncio.sleep(1)

        with pytest.raises(ModelTimeoutError):
            asyncio.run(make(Slow(), executor, call_timeout=0.01).run("q"))

    def test_cancel_before_first_call(self, executor):
        async def scenario():
            event = asyncio.Event()
            event.set()
            model = ScriptedModel([final_text(ANSWER)])
            with pytest.raises(QueryCancelledError):
                await make(model, executor).run("q", cancel_event=event)
            return model

        assert asyncio.run(scenario()).requests == []

    def test_cancel_stops_further_rounds(self, executor):
        async def scenario():
            event = asyncio.Event()

            class CancellingModel(ScriptedModel):
                async def send(self, **kwargs):
                    reply = await super().send(**kwargs)
                    event.set()
                    return reply

            model = CancellingModel(
                [tool_request(("a", "search_sections", {"query": "tax"})), final_text(ANSWER)]
            )
            with pytest.raises(QueryCancelledError):
                await make(model, executor).run("q", cancel_event=event)
            return model

        assert len(asyncio.run(scenario()).requests) == 1
