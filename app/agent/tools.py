"""
Agent tools: definitions and execution for tool-calling (agentic) mode.

Tools: search_knowledge_base (similarity search over the document store).
Tool failures are returned as text so the model can react in-band; nothing here
raises into the agent loop.
"""

import logging
from typing import Any

from app.core.config import SEARCH_TOP_K
from app.services.vector_store import RetrievedDocument

logger = logging.getLogger(__name__)

SEARCH_TOOL_NAME = "search_knowledge_base"

EMPTY_QUERY_ERROR = (
    "Tool Error: No query provided. Please provide a search query for the knowledge base."
)
NO_RESULTS_MESSAGE = "No relevant information found in the knowledge base for that query."
RESULTS_HEADER = "Found the following information in the knowledge base:\n"
RESULT_SEPARATOR = "\n\n---\n"
UNKNOWN_SOURCE = "Unknown Source"

# OpenAI function-calling format: list of tool definitions
SEARCH_KNOWLEDGE_BASE_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": SEARCH_TOOL_NAME,
        "description": (
            "Searches the internal knowledge base (e.g., PDFs, slides) for specific information. "
            "Use this for questions about company policies, product details, internal procedures, etc. "
            "Input should be a concise search query."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Concise search query (keywords or natural language question)",
                }
            },
            "required": ["query"],
        },
    },
}

AGENT_TOOLS = [SEARCH_KNOWLEDGE_BASE_TOOL]


def format_documents(docs: list[RetrievedDocument]) -> str:
    """Render hits as Source/Content blocks, in the order given."""
    if not docs:
        return NO_RESULTS_MESSAGE
    blocks = [f"Source: {d.source or UNKNOWN_SOURCE}\nContent: {d.content}" for d in docs]
    return RESULTS_HEADER + RESULT_SEPARATOR.join(blocks)


class KnowledgeBaseSearchTool:
    """search_knowledge_base bound to a document store (anything with async search(query, k))."""

    name = SEARCH_TOOL_NAME

    def __init__(self, store: Any, k: int = SEARCH_TOP_K) -> None:
        self._store = store
        self.k = k

    async def run(self, query: str | None) -> str:
        q = (query or "").strip()
        if not q:
            logger.info("[tools:search_knowledge_base] empty query")
            return EMPTY_QUERY_ERROR
        logger.info("[tools:search_knowledge_base] IN  query=%r k=%d", q, self.k)
        try:
            docs = await self._store.search(q, self.k)
        except Exception as e:
            logger.exception("[tools:search_knowledge_base] search failed for query=%r", q)
            return f"Tool Error: An error occurred while searching the knowledge base: {e}"
        logger.info("[tools:search_knowledge_base] OUT docs=%d", len(docs))
        return format_documents(docs)


async def execute_tool(name: str, arguments: dict[str, Any], search_tool: KnowledgeBaseSearchTool) -> str:
    """
    Execute a tool by name with the given arguments. Returns a string result for the LLM.
    """
    args = arguments or {}
    logger.info("[tools] execute_tool name=%r arguments=%r", name, args)

    if name == SEARCH_TOOL_NAME:
        query = args.get("query")
        return await search_tool.run(query if isinstance(query, str) else None)

    return f"Tool Error: Unknown tool: {name}"
