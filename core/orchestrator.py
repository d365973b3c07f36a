# core/orchestrator.py
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from config.settings import settings
from core.conversation import (
    PLACEHOLDER_FAILURE,
    Conversation,
    ModelReply,
    ToolCall,
    ToolRequest,
    ToolResult,
    Turn,
    pair_results,
)
from core.response_normalizer import normalize_response
from core.tool_executor import ToolExecutor
from model.answer import StructuredAnswer
from util.errors import ModelTimeoutError, QueryCancelledError, ToolError
from util.timing import timed

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    async def send(
        self,
        *,
        system: str,
        messages: List[Dict[str, Any]],
        tools: Sequence[Dict[str, Any]],
        allow_tools: bool = True,
    ) -> ModelReply: ...


@dataclass(frozen=True)
class ConversationOutcome:
    answer: StructuredAnswer
    rounds: int
    tool_calls: int
    model_calls: int
    forced_final: bool
    turns: Tuple[Turn, ...]


def user_prompt(query: str) -> str:
    return (
        f"USER QUESTION: {query}\n\n"
        "Use 2-3 tool calls to gather the most relevant sections, starting with "
        "topic searches rather than general searches, then reply with the JSON "
        "object described in your instructions."
    )


class ConversationOrchestrator:
    """
    Runs one query as a bounded tool-calling conversation:

      send query -> model asks for tools -> run them, append results -> repeat

    At most `max_iterations` tool-executing rounds happen. When the budget runs
    out the pending calls still get their results, and one last round is sent
    with tools disabled and an instruction to answer from what was gathered.
    """

    def __init__(
        self,
        client: ModelClient,
        executor: ToolExecutor,
        *,
        max_iterations: int = settings.MAX_TOOL_ITERATIONS,
        call_timeout: float = settings.LLM_TIMEOUT_SECONDS,
        system_prompt: str = settings.QUERY_SYSTEM_PROMPT,
        final_instruction: str = settings.FINAL_ANSWER_INSTRUCTION,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._client = client
        self._executor = executor
        self._max_iterations = max_iterations
        self._call_timeout = call_timeout
        self._system = system_prompt
        self._final_instruction = final_instruction

    async def run(
        self, query: str, cancel_event: Optional[asyncio.Event] = None
    ) -> ConversationOutcome:
        conversation = Conversation()
        conversation.append(Turn(role="user", text=user_prompt(query)))
        tools = self._executor.api_tools()

        rounds = 0
        tool_calls = 0
        model_calls = 0
        forced = False

        with timed(logger, "orchestrator.run", budget=self._max_iterations):
            reply = await self._round_trip(conversation, tools, True, cancel_event)
            model_calls += 1

            while isinstance(reply, ToolRequest):
                conversation.append(
                    Turn(role="assistant", text=reply.text, tool_calls=reply.calls)
                )
                results = self._execute(reply.calls)
                rounds += 1
                tool_calls += len(reply.calls)
                logger.info(
                    "orchestrator.round n=%d calls=%d", rounds, len(reply.calls)
                )

                if rounds >= self._max_iterations:
                    forced = True
                    logger.warning(
                        "orchestrator.budget.exhausted rounds=%d forcing final answer",
                        rounds,
                    )
                    conversation.append(
                        Turn(role="user", text=self._final_instruction, tool_results=results)
                    )
                    reply = await self._round_trip(conversation, tools, False, cancel_event)
                    model_calls += 1
                    break

                conversation.append(Turn(role="user", tool_results=results))
                reply = await self._round_trip(conversation, tools, True, cancel_event)
                model_calls += 1

        if isinstance(reply, ToolRequest):
            # only reachable on the forced round; its calls are never executed
            logger.warning(
                "orchestrator.final.ignored_calls count=%d", len(reply.calls)
            )

        conversation.append(Turn(role="assistant", text=reply.text))
        answer = normalize_response(reply.text)

        return ConversationOutcome(
            answer=answer,
            rounds=rounds,
            tool_calls=tool_calls,
            model_calls=model_calls,
            forced_final=forced,
            turns=conversation.turns,
        )

    async def _round_trip(
        self,
        conversation: Conversation,
        tools: Sequence[Dict[str, Any]],
        allow_tools: bool,
        cancel_event: Optional[asyncio.Event],
    ) -> ModelReply:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("orchestrator.cancelled turns=%d", len(conversation))
            raise QueryCancelledError("Query was abandoned before the next model call")
        try:
            return await asyncio.wait_for(
                self._client.send(
                    system=self._system,
                    messages=conversation.to_api(),
                    tools=tools,
                    allow_tools=allow_tools,
                ),
                timeout=self._call_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("orchestrator.model.timeout after=%.1fs", self._call_timeout)
            raise ModelTimeoutError("Timed out waiting for the language model") from e

    def _execute(self, calls: Sequence[ToolCall]) -> Tuple[ToolResult, ...]:
        results: List[ToolResult] = []
        for call in calls:
            try:
                payload = self._executor.execute(call.name, call.arguments)
            except ToolError as e:
                results.append(
                    ToolResult.failed(call.id, {"error": e.message, "type": e.kind})
                )
                continue
            except Exception:
                logger.exception("orchestrator.tool.crash name=%s", call.name)
                results.append(ToolResult.failed(call.id, PLACEHOLDER_FAILURE))
                continue
            results.append(ToolResult.ok(call.id, payload))
        return pair_results(calls, results)
