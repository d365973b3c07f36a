# core/anthropic_client.py
import logging
from typing import Any, Dict, List, Optional, Sequence, Set

import httpx

from config.settings import settings
from core.conversation import FinalText, ModelReply, ToolCall, ToolRequest
from util.errors import (
    MalformedModelOutputError,
    ModelApiError,
    ModelError,
    ModelTimeoutError,
    RateLimitError,
    TransportError,
)
from util.timing import timed

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = (
    "Service temporarily busy due to rate limits. Please try again in a moment."
)


def _safe_json(res: httpx.Response) -> Any:
    try:
        return res.json()
    except ValueError:
        return None


def _retry_after(res: httpx.Response) -> Optional[int]:
    raw = res.headers.get("retry-after")
    try:
        return int(float(raw)) if raw else None
    except ValueError:
        return None


def parse_reply(data: Dict[str, Any]) -> ModelReply:
    """
    Messages API body -> ToolRequest when any tool_use block is present,
    FinalText otherwise. Text blocks are concatenated in order.
    """
    content = data.get("content") or []
    if not isinstance(content, list):
        raise MalformedModelOutputError("Model reply content is not a list")

    texts: List[str] = []
    calls: List[ToolCall] = []
    seen: Set[str] = set()
    for node in content:
        if not isinstance(node, dict):
            continue
        kind = node.get("type")
        if kind == "text":
            texts.append(node.get("text") or "")
        elif kind == "tool_use":
            call_id = str(node.get("id") or "")
            if not call_id or call_id in seen:
                raise MalformedModelOutputError(f"Model reply has a missing or repeated tool_use id: {call_id!r}")
            seen.add(call_id)
            args = node.get("input")
            calls.append(
                ToolCall(
                    id=call_id,
                    name=str(node.get("name") or ""),
                    arguments=args if isinstance(args, dict) else {},
                )
            )

    text = "\n".join(t for t in texts if t).strip()
    if calls:
        return ToolRequest(calls=tuple(calls), text=text)
    return FinalText(text=text)


class AnthropicClient:
    """
    Thin async wrapper over the Anthropic Messages endpoint.
    Failures are classified into the ModelError family; nothing is retried here.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str = settings.ANTHROPIC_MODEL,
        api_url: str = settings.ANTHROPIC_API_URL,
        version: str = settings.ANTHROPIC_VERSION,
        max_tokens: int = settings.ANTHROPIC_MAX_TOKENS,
        temperature: float = settings.ANTHROPIC_TEMPERATURE,
        timeout: float = settings.LLM_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._url = api_url
        self._version = version
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = httpx.Timeout(timeout, connect=10.0)
        self._transport = transport
        self._requests = 0
        self._input_tokens = 0
        self._output_tokens = 0

    @property
    def model(self) -> str:
        return self._model

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": self._version,
            "content-type": "application/json",
        }

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                res = await client.post(self._url, headers=self._headers(), json=payload)
        except httpx.TimeoutException as e:
            logger.error("ai.request.timeout err=%s", type(e).__name__)
            raise ModelTimeoutError("Timed out waiting for the language model") from e
        except httpx.RequestError as e:
            logger.error("ai.request.error err=%s", type(e).__name__)
            raise TransportError("Network error connecting to the language model") from e

        body = _safe_json(res)
        if res.status_code // 100 != 2:
            err = body.get("error") if isinstance(body, dict) else None
            err_type = err.get("type") if isinstance(err, dict) else None
            err_msg = err.get("message") if isinstance(err, dict) else None
            if res.status_code == 429 or err_type == "rate_limit_error":
                logger.warning("ai.rate_limited status=%d", res.status_code)
                raise RateLimitError(RATE_LIMIT_MESSAGE, retry_after=_retry_after(res))
            logger.error("ai.api.error status=%d type=%s", res.status_code, err_type)
            raise ModelApiError(
                f"Model API error: {err_msg or 'Unknown error'}",
                http_status=res.status_code,
            )

        if not isinstance(body, dict):
            raise MalformedModelOutputError("Model reply was not a JSON object")
        return body

    async def send(
        self,
        *,
        system: str,
        messages: List[Dict[str, Any]],
        tools: Sequence[Dict[str, Any]],
        allow_tools: bool = True,
    ) -> ModelReply:
        payload: Dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "system": system,
            "messages": messages,
        }
        if tools:
            payload["tools"] = list(tools)
            payload["tool_choice"] = {"type": "auto" if allow_tools else "none"}

        self._requests += 1
        with timed(logger, "ai.message", model=self._model, turns=len(messages)):
            data = await self._post(payload)

        usage = data.get("usage") or {}
        self._input_tokens += int(usage.get("input_tokens") or 0)
        self._output_tokens += int(usage.get("output_tokens") or 0)

        reply = parse_reply(data)
        logger.info(
            "ai.message.reply kind=%s stop=%s",
            type(reply).__name__,
            data.get("stop_reason"),
        )
        return reply

    async def ping(self) -> bool:
        payload = {
            "model": self._model,
            "max_tokens": 1,
            "messages": [{"role": "user", "content": "Ping"}],
        }
        try:
            await self._post(payload)
        except ModelError as e:
            logger.warning("ai.ping.failed kind=%s", e.kind)
            return False
        return True

    def stats(self) -> Dict[str, Any]:
        total = self._input_tokens + self._output_tokens
        return {
            "requestCount": self._requests,
            "inputTokens": self._input_tokens,
            "outputTokens": self._output_tokens,
            "totalTokens": total,
            "model": self._model,
            "averageTokensPerRequest": round(total / self._requests) if self._requests else 0,
        }

    def reset_stats(self) -> None:
        self._requests = 0
        self._input_tokens = 0
        self._output_tokens = 0
        logger.info("ai.stats.reset")
