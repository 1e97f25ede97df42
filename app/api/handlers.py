"""
API handlers: validate request data, build per-request dependencies, call the agent,
map results/errors to HTTP.

Responsibility: Bridge HTTP types and services. Marshalling and exception-to-HTTP mapping.
Lives in the API layer so services stay free of FastAPI/HTTP types.
"""

import logging
from typing import AsyncIterator, Callable

from fastapi import HTTPException
from fastapi.responses import StreamingResponse

from app.agent.graph import AgentDispatcher, AgentEvent, AgentInput
from app.agent.llm import ChatModel, create_openai_client
from app.agent.messages import convert_chat_messages
from app.agent.tools import KnowledgeBaseSearchTool
from app.core.config import Settings
from app.core.errors import ConfigurationError
from app.schemas.chat import ChatRequest
from app.services.vector_store import MilvusDocumentStore, OpenAIEmbedder

logger = logging.getLogger(__name__)

DispatcherFactory = Callable[[Settings], AgentDispatcher]

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_settings() -> Settings:
    """Read credentials for this request."""
    return Settings.from_env()


def build_dispatcher(settings: Settings) -> AgentDispatcher:
    """Wire model, embeddings, store, and tool for one request from explicit settings."""
    client = create_openai_client(settings.openai_api_key)
    store = MilvusDocumentStore(
        uri=settings.milvus_uri,
        token=settings.milvus_token,
        embedder=OpenAIEmbedder(client),
    )
    return AgentDispatcher(
        model=ChatModel(client),
        search_tool=KnowledgeBaseSearchTool(store),
        client=client,
    )


def get_dispatcher_factory() -> DispatcherFactory:
    return build_dispatcher


def require_settings(settings: Settings) -> None:
    missing = settings.missing()
    if missing:
        raise ConfigurationError(missing)


async def _sse_stream(
    first: AgentEvent,
    events: AsyncIterator[AgentEvent],
    dispatcher: AgentDispatcher,
) -> AsyncIterator[str]:
    """Relay agent events as Server-Sent Events; closing this generator stops the agent run."""
    try:
        yield first.to_sse()
        async for evt in events:
            yield evt.to_sse()
    except Exception as e:
        logger.exception("SSE stream failed")
        yield AgentEvent("error", {"message": str(e)}).to_sse()
    finally:
        await events.aclose()
        await dispatcher.aclose()


async def handle_chat(
    body: ChatRequest,
    settings: Settings,
    dispatcher_factory: DispatcherFactory,
) -> StreamingResponse:
    """
    Validate the conversation, check configuration, start the agent, and stream its events.
    400 on empty input, 500 on missing configuration or when the run fails before its first event.
    """
    messages = body.messages
    logger.info("[api:handle_chat] IN  messages=%d", len(messages))
    if not messages:
        raise HTTPException(status_code=400, detail="No messages provided")
    current_input = messages[-1].content
    if not current_input or not current_input.strip():
        raise HTTPException(status_code=400, detail="No current message content found")
    try:
        require_settings(settings)
    except ConfigurationError as e:
        logger.error("[api:handle_chat] %s", e.message)
        raise HTTPException(status_code=500, detail=e.message) from e

    dispatcher: AgentDispatcher | None = None
    try:
        agent_input = AgentInput(input=current_input, chat_history=convert_chat_messages(messages[:-1]))
        dispatcher = dispatcher_factory(settings)
        events = dispatcher.stream(agent_input)
        # Wait for the first event so an upstream failure can still become a 500
        first = await anext(events, None)
    except Exception as e:
        logger.exception("Chat setup failed")
        if dispatcher is not None:
            await dispatcher.aclose()
        raise HTTPException(status_code=500, detail=str(e) or "An unexpected error occurred in the chat API.") from e

    if first is None or first.event == "error":
        await events.aclose()
        await dispatcher.aclose()
        detail = "Agent produced no output" if first is None else first.data.get("message") or "Agent error"
        raise HTTPException(status_code=500, detail=detail)

    logger.info("[api:handle_chat] OUT streaming first_event=%s", first.event)
    return StreamingResponse(
        _sse_stream(first, events, dispatcher),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
