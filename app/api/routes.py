"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from app.api.handlers import DispatcherFactory, get_dispatcher_factory, get_settings, handle_chat
from app.core.config import Settings
from app.schemas.chat import ChatRequest, ErrorResponse

router = APIRouter()


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "Knowledge-base chat backend running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Chat (SSE) ---

@router.post(
    "/api/chat",
    tags=["chat"],
    summary="Chat with the knowledge-base coach (SSE stream)",
    description=(
        "Send the full conversation; the last message is the new user turn. "
        "Streams Server-Sent Events: token, tool_start, tool_end, done, error. "
        "400 on empty input, 500 on missing configuration or agent failure."
    ),
    response_class=StreamingResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def post_chat(
    body: ChatRequest,
    settings: Settings = Depends(get_settings),
    dispatcher_factory: DispatcherFactory = Depends(get_dispatcher_factory),
) -> StreamingResponse:
    return await handle_chat(body, settings, dispatcher_factory)
