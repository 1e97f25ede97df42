"""
Client-side helpers for the Streamlit chat page.

The page keeps the whole conversation and sends it on every turn. Failed turns are
shown to the user but never sent back to the backend as if the assistant had said them.
"""

import json
from typing import Iterable, Iterator

# Key marking a display-only entry (an error shown in place of an answer)
ERROR_KEY = "error"


def error_entry(message: str) -> dict:
    return {"role": "assistant", "content": message, ERROR_KEY: True}


def history_for_request(messages: list[dict]) -> list[dict]:
    """
    Messages to POST to /api/chat: drop error entries and the user turn each one
    answered, and strip UI-only keys.
    """
    out: list[dict] = []
    for msg in messages:
        if msg.get(ERROR_KEY):
            if out and out[-1]["role"] == "user":
                out.pop()
            continue
        out.append({"role": msg["role"], "content": msg.get("content")})
    return out


def iter_sse_events(lines: Iterable[str | None]) -> Iterator[tuple[str, dict]]:
    """Parse decoded SSE lines into (event, data) pairs. Undecodable data becomes {}."""
    current_event = None
    for line in lines:
        if not line:
            continue
        if line.startswith("event:"):
            current_event = line[6:].strip()
        elif line.startswith("data:") and current_event:
            try:
                data = json.loads(line[5:].strip())
            except json.JSONDecodeError:
                data = {}
            yield current_event, data if isinstance(data, dict) else {}
