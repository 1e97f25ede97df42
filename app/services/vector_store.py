"""
Vector store client: Milvus Cloud similarity search with OpenAI query embeddings.

Responsibility: Embed a query, search the externally managed Milvus collection,
and return ranked documents with their source. The collection is populated by a
separate ingestion job; this module only reads.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from openai import AsyncOpenAI

from app.core.config import (
    COLLECTION_NAME,
    MATCH_METRIC,
    OPENAI_EMBED_MODEL,
    SEARCH_TOP_K,
    SOURCE_FIELD,
    TEXT_FIELD,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievedDocument:
    """One similarity-search hit."""

    source: str | None
    content: str


class OpenAIEmbedder:
    """Embeds query text with the OpenAI embeddings endpoint."""

    def __init__(self, client: AsyncOpenAI, model: str = OPENAI_EMBED_MODEL) -> None:
        self._client = client
        self.model = model

    async def embed_query(self, text: str) -> list[float]:
        response = await self._client.embeddings.create(model=self.model, input=[text])
        if not response.data:
            raise RuntimeError("Embedding API returned no vectors")
        return list(response.data[0].embedding)


def parse_hit(hit: Any) -> RetrievedDocument:
    """Turn a Milvus hit (dict-like, fields either top-level or under "entity") into a document."""
    entity = hit.get("entity") if "entity" in hit else hit
    e = entity or hit
    source = str(e.get(SOURCE_FIELD) or "").strip() or None
    return RetrievedDocument(source=source, content=str(e.get(TEXT_FIELD) or ""))


class MilvusDocumentStore:
    """
    Read-only similarity search over a Milvus collection.

    The Milvus client is created on first search, so constructing the store
    does not touch the network. Safe to share between concurrent requests.
    """

    def __init__(
        self,
        uri: str,
        token: str,
        embedder: OpenAIEmbedder,
        collection_name: str = COLLECTION_NAME,
        metric_type: str = MATCH_METRIC,
        client: Any = None,
    ) -> None:
        self._uri = uri
        self._token = token
        self._embedder = embedder
        self.collection_name = collection_name
        self.metric_type = metric_type
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            if not self._uri or not self._token:
                raise ValueError("MILVUS_URI and MILVUS_TOKEN must be set in .env")

            from pymilvus import MilvusClient

            self._client = MilvusClient(uri=self._uri, token=self._token)
            logger.info("Milvus connection established")
        return self._client

    def _search_vector(self, vector: list[float], k: int) -> list[RetrievedDocument]:
        client = self._get_client()
        results = client.search(
            collection_name=self.collection_name,
            data=[vector],
            limit=k,
            output_fields=[TEXT_FIELD, SOURCE_FIELD],
            search_params={"metric_type": self.metric_type},
        )
        # results: list of list of hits (one list per query vector)
        hits = results[0] if results else []
        return [parse_hit(h) for h in hits]

    async def search(self, query: str, k: int = SEARCH_TOP_K) -> list[RetrievedDocument]:
        """Return up to k documents ranked by similarity to query, in store order."""
        logger.info("[vector_store:search] IN  query=%r k=%d", query, k)
        vector = await self._embedder.embed_query(query)
        # pymilvus is blocking; keep it off the event loop
        docs = await asyncio.to_thread(self._search_vector, vector, k)
        logger.info("[vector_store:search] OUT docs=%d sources=%s", len(docs), [d.source for d in docs])
        return docs
