"""
Agent LLM: OpenAI chat completions with tool calling and token streaming.
"""

import json
import logging
from typing import Any, AsyncIterator

from openai import AsyncOpenAI

from app.core.config import AGENT_MAX_TOKENS, LLM_API_TIMEOUT, LLM_TEMPERATURE, OPENAI_LLM_MODEL
from app.core.errors import ToolCallParseError

logger = logging.getLogger(__name__)


def create_openai_client(api_key: str) -> AsyncOpenAI:
    """Async OpenAI client for one request. Retries are disabled; failures surface to the caller."""
    return AsyncOpenAI(api_key=api_key, timeout=LLM_API_TIMEOUT, max_retries=0)


def parse_tool_arguments(name: str, raw: str | None) -> dict[str, Any]:
    """Decode streamed tool-call arguments. Raises ToolCallParseError on bad JSON."""
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ToolCallParseError(name, raw) from e
    if not isinstance(args, dict):
        raise ToolCallParseError(name, raw)
    return args


class ChatModel:
    """Hosted chat model bound to a model id and sampling settings."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = OPENAI_LLM_MODEL,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = AGENT_MAX_TOKENS,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def stream_with_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[tuple]:
        """
        Call OpenAI chat with tools and stream the response. Yields:
        - ('content_delta', str) for each token of text;
        - ('content_done', str) when the answer is complete (no tool_calls);
        - ('tool_calls', list[dict], content_str) when the model called tools (content_str may be empty).
        Each tool call is {"id", "name", "arguments": dict}.
        """
        logger.info("[llm:stream_with_tools] IN  messages=%d tools=%s", len(messages), [t["function"]["name"] for t in tools])
        stream = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            tools=tools,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            stream=True,
        )
        content_parts: list[str] = []
        tool_calls_accum: dict[int, dict[str, Any]] = {}
        async with stream:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                d = chunk.choices[0].delta
                if getattr(d, "content", None):
                    content_parts.append(d.content)
                    yield ("content_delta", d.content)
                for tc in getattr(d, "tool_calls", None) or []:
                    idx = getattr(tc, "index", 0) or 0
                    if idx not in tool_calls_accum:
                        tool_calls_accum[idx] = {"id": "", "name": "", "arguments": ""}
                    if getattr(tc, "id", None):
                        tool_calls_accum[idx]["id"] = tc.id
                    fn = getattr(tc, "function", None)
                    if fn:
                        if getattr(fn, "name", None):
                            tool_calls_accum[idx]["name"] = fn.name
                        if getattr(fn, "arguments", None):
                            tool_calls_accum[idx]["arguments"] += fn.arguments
        full_content = "".join(content_parts)
        if tool_calls_accum:
            tool_calls_list = [
                {
                    "id": t["id"],
                    "name": t["name"],
                    "arguments": parse_tool_arguments(t["name"], t["arguments"]),
                }
                for t in (tool_calls_accum[i] for i in sorted(tool_calls_accum))
            ]
            logger.info("[llm:stream_with_tools] OUT tool_calls=%s", [x["name"] for x in tool_calls_list])
            yield ("tool_calls", tool_calls_list, full_content)
        else:
            logger.info("[llm:stream_with_tools] OUT content_done len=%d", len(full_content))
            yield ("content_done", full_content)
