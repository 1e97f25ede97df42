"""Schemas for the chat endpoint."""

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """One turn of the client-side conversation, as sent by the browser."""

    role: str = Field(..., description="user | assistant; other roles are accepted and flagged.")
    content: str | None = Field(None, description="Message text.")


class ChatRequest(BaseModel):
    """Request body for POST /api/chat. The last message is the new user turn."""

    messages: list[ChatMessage] = Field(
        default_factory=list,
        description="Full conversation so far, oldest first. History is kept by the client.",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "messages": [
                        {"role": "user", "content": "Hi"},
                        {"role": "assistant", "content": "Hello! How can I help?"},
                        {"role": "user", "content": "What does our refund policy say?"},
                    ]
                }
            ]
        }
    }


class ErrorResponse(BaseModel):
    """Error body returned for 400/500 responses."""

    error: str = Field(..., description="Human-readable error message.")
