"""
Message conversion between the wire format, LangChain messages, and OpenAI chat dicts.

The client sends a flat list of {"role", "content"}; the agent prompt works on
LangChain messages; the model is called with OpenAI chat-completions dicts.
"""

import json
import logging
from typing import Any, Iterable

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from app.schemas.chat import ChatMessage

logger = logging.getLogger(__name__)

UNKNOWN_ROLE_PREFIX = "Unknown role: "


def convert_chat_message(message: ChatMessage) -> BaseMessage:
    """Map one wire message to a LangChain message. Never drops a turn."""
    content = message.content or ""
    if message.role == "user":
        return HumanMessage(content=content)
    if message.role == "assistant":
        return AIMessage(content=content)
    logger.warning("[messages:convert] unknown message role=%r; sending as human", message.role)
    return HumanMessage(content=f"{UNKNOWN_ROLE_PREFIX}{content}")


def convert_chat_messages(messages: Iterable[ChatMessage]) -> list[BaseMessage]:
    """Convert chat history in order, one output message per input message."""
    return [convert_chat_message(m) for m in messages]


def _text(content: Any) -> str:
    if isinstance(content, str):
        return content
    # Content blocks (list of str / {"type": "text", "text": ...})
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text") or "")
    return "".join(parts)


def to_openai_messages(messages: Iterable[BaseMessage]) -> list[dict[str, Any]]:
    """
    Convert formatted prompt messages to OpenAI chat-completions message dicts.
    AI messages carrying tool calls and tool results are kept so the model sees
    its own scratchpad.
    """
    out: list[dict[str, Any]] = []
    for m in messages:
        content = _text(m.content)
        if m.type == "system":
            out.append({"role": "system", "content": content})
        elif m.type == "human":
            out.append({"role": "user", "content": content})
        elif m.type == "ai":
            msg: dict[str, Any] = {"role": "assistant", "content": content}
            tool_calls = getattr(m, "tool_calls", None) or []
            if tool_calls:
                msg["tool_calls"] = [
                    {
                        "id": tc.get("id") or "",
                        "type": "function",
                        "function": {"name": tc["name"], "arguments": json.dumps(tc.get("args") or {})},
                    }
                    for tc in tool_calls
                ]
            out.append(msg)
        elif m.type == "tool":
            out.append({"role": "tool", "tool_call_id": getattr(m, "tool_call_id", ""), "content": content})
        else:
            logger.warning("[messages:to_openai] unsupported message type=%r; sending as user", m.type)
            out.append({"role": "user", "content": content})
    return out
