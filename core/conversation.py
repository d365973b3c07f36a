# core/conversation.py
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

from util.errors import ProtocolViolationError

logger = logging.getLogger(__name__)

Role = Literal["user", "assistant"]

PLACEHOLDER_FAILURE = {"error": "Tool execution failed"}


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    tool_call_id: str
    content: str
    is_error: bool = False

    @classmethod
    def ok(cls, tool_call_id: str, payload: Any) -> "ToolResult":
        return cls(tool_call_id=tool_call_id, content=_dump(payload))

    @classmethod
    def failed(cls, tool_call_id: str, payload: Any) -> "ToolResult":
        return cls(tool_call_id=tool_call_id, content=_dump(payload), is_error=True)


@dataclass(frozen=True)
class Turn:
    role: Role
    text: str = ""
    tool_calls: Tuple[ToolCall, ...] = ()
    tool_results: Tuple[ToolResult, ...] = ()

    def to_api(self) -> Dict[str, Any]:
        if not self.tool_calls and not self.tool_results:
            return {"role": self.role, "content": self.text}

        blocks: List[Dict[str, Any]] = []
        for r in self.tool_results:
            block: Dict[str, Any] = {
                "type": "tool_result",
                "tool_use_id": r.tool_call_id,
                "content": r.content,
            }
            if r.is_error:
                block["is_error"] = True
            blocks.append(block)
        if self.text:
            blocks.append({"type": "text", "text": self.text})
        for c in self.tool_calls:
            blocks.append(
                {"type": "tool_use", "id": c.id, "name": c.name, "input": c.arguments}
            )
        return {"role": self.role, "content": blocks}


# ---------------- Model replies ----------------


@dataclass(frozen=True)
class ToolRequest:
    calls: Tuple[ToolCall, ...]
    text: str = ""


@dataclass(frozen=True)
class FinalText:
    text: str


ModelReply = Union[ToolRequest, FinalText]


def _dump(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def pair_results(
    calls: Sequence[ToolCall], results: Sequence[ToolResult]
) -> Tuple[ToolResult, ...]:
    """
    Return exactly one result per call, in call order.
    Missing results become placeholder failures; results for ids that were
    never requested are dropped.
    """
    by_id: Dict[str, ToolResult] = {}
    for r in results:
        by_id.setdefault(r.tool_call_id, r)

    out: List[ToolResult] = []
    for c in calls:
        r = by_id.pop(c.id, None)
        if r is None:
            logger.error("conversation.result.missing id=%s tool=%s", c.id, c.name)
            r = ToolResult.failed(c.id, PLACEHOLDER_FAILURE)
        out.append(r)
    for stray in by_id:
        logger.error("conversation.result.unrequested id=%s", stray)
    return tuple(out)


class Conversation:
    """
    Append-only turn log for one query. Every append is checked against the
    pairing rule: a turn following an assistant turn with tool calls must be a
    user turn whose result ids equal the call ids exactly.
    """

    def __init__(self) -> None:
        self._turns: List[Turn] = []

    @property
    def turns(self) -> Tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def __len__(self) -> int:
        return len(self._turns)

    def append(self, turn: Turn) -> None:
        self._validate(turn)
        self._turns.append(turn)

    def _validate(self, turn: Turn) -> None:
        prev = self.last
        if prev is None:
            if turn.role != "user" or turn.tool_results:
                raise ProtocolViolationError("conversation must open with a plain user turn")
            return

        if turn.role == prev.role:
            raise ProtocolViolationError(f"two consecutive {turn.role} turns")
        if turn.role == "assistant" and turn.tool_results:
            raise ProtocolViolationError("assistant turns cannot carry tool results")
        if turn.role == "user" and turn.tool_calls:
            raise ProtocolViolationError("user turns cannot carry tool calls")

        requested = [c.id for c in prev.tool_calls]
        answered = [r.tool_call_id for r in turn.tool_results]
        if len(answered) != len(set(answered)):
            raise ProtocolViolationError("duplicate tool result ids")
        if set(requested) != set(answered):
            raise ProtocolViolationError(
                f"tool results {sorted(answered)} do not match tool calls {sorted(requested)}"
            )

    def to_api(self) -> List[Dict[str, Any]]:
        return [t.to_api() for t in self._turns]
