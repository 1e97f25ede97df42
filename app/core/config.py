"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
Credentials are read per request through Settings.from_env() so handlers never
depend on import-time state.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def env_float(name: str, default: float) -> float:
    """Float from env; unset or blank values fall back to default."""
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

# OpenAI (agent LLM + query embeddings)
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)
OPENAI_EMBED_MODEL: str = (
    os.getenv("OPENAI_EMBED_MODEL", "text-embedding-3-small").strip() or "text-embedding-3-small"
)
# Low temperature keeps the model close to the system instructions
LLM_TEMPERATURE: float = env_float("LLM_TEMPERATURE", 0.1)
LLM_API_TIMEOUT: float = 60.0

# Milvus collection and search
COLLECTION_NAME: str = os.getenv("MILVUS_COLLECTION", "documents").strip() or "documents"
MATCH_METRIC: str = os.getenv("MILVUS_METRIC", "COSINE").strip().upper() or "COSINE"
TEXT_FIELD: str = "text"
SOURCE_FIELD: str = "source"
SEARCH_TOP_K: int = 3

# Agent graph
MAX_AGENT_ITERATIONS: int = 5
AGENT_MAX_TOKENS: int = 1024

# Prompt / UI
USER_NAME: str = os.getenv("COACH_USER_NAME", "Alex").strip() or "Alex"


@dataclass(frozen=True)
class Settings:
    """Credentials and endpoints required to serve one chat request."""

    openai_api_key: str
    milvus_uri: str
    milvus_token: str

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            milvus_uri=os.getenv("MILVUS_URI", "").strip(),
            milvus_token=os.getenv("MILVUS_TOKEN", "").strip(),
        )

    def missing(self) -> list[str]:
        """Return the env names of required values that are empty."""
        required = {
            "MILVUS_URI": self.milvus_uri,
            "MILVUS_TOKEN": self.milvus_token,
            "OPENAI_API_KEY": self.openai_api_key,
        }
        return [name for name, value in required.items() if not value]
