"""
AlumGlass - Retrieval Fusion
=============================
Collects grounding context for one query from two independent sources,
concurrently:

    ┌ web provider 1 ┐
    ├ web provider N ┤──► asyncio.gather ──► RetrievalBundle
    └ embed → vector ┘

Web providers each get the verbatim query.  The knowledge-base branch
embeds the *normalised* query (see ``normalise_query``) and then runs one
top-K vector search.

Nothing here fails the request:
  • a provider that errors contributes ``[]``
  • an embedding failure or vector-store error yields no documents plus
    a ``vector_note`` explaining which step degraded
"""

from __future__ import annotations

import asyncio

import httpx

from alumglass.config.prompt_templates import KB_EMBEDDING_FAILED, KB_SEARCH_FAILED
from alumglass.config.settings import settings
from alumglass.src.core.gemini_client import GeminiGateway
from alumglass.src.core.models import RetrievalBundle, RetrievedDocument, WebResult
from alumglass.src.core.web_search import DuckDuckGoHtmlProvider
from alumglass.src.database.vector_store import VectorStore, VectorStoreError
from alumglass.src.utils.logger import get_logger
from alumglass.src.utils.text_utils import normalise_query

logger = get_logger(__name__)


class RetrievalFusion:
    """
    Parameters
    ----------
    providers
        Web providers in declared order; output keeps this order.
    gemini
        Gateway used for the query embedding.
    vector_store
        Knowledge-base backend.
    transport
        Optional ``httpx`` transport shared by the web providers (tests).
    """

    def __init__(self, providers: list[DuckDuckGoHtmlProvider], gemini: GeminiGateway, vector_store: VectorStore, vector_limit: int | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.providers = providers
        self.gemini = gemini
        self.vector_store = vector_store
        self.vector_limit = vector_limit or settings.VECTOR_SEARCH_LIMIT
        self._transport = transport


    async def retrieve(self, query: str) -> RetrievalBundle:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS, transport=self._transport) as client:
            outcomes = await asyncio.gather(self._knowledge_base(query), *(provider.search(client, query) for provider in self.providers))

        (vector_results, vector_note), web_lists = outcomes[0], outcomes[1:]
        web_results: dict[str, list[WebResult]] = {provider.name: results for provider, results in zip(self.providers, web_lists)}

        logger.info("[RETRIEVAL] kb=%d web=%s%s", len(vector_results), {name: len(results) for name, results in web_results.items()}, " (kb degraded)" if vector_note else "")
        return RetrievalBundle(web_results=web_results, vector_results=vector_results, vector_note=vector_note)


    async def _knowledge_base(self, query: str) -> tuple[list[RetrievedDocument], str | None]:
        embedding = await self.gemini.embed(normalise_query(query))
        if not embedding.success:
            logger.warning("[RETRIEVAL] Embedding failed (status=%d): %s", embedding.status, embedding.message)
            return [], KB_EMBEDDING_FAILED

        try:
            documents = await self.vector_store.search(embedding.data, self.vector_limit)
        except VectorStoreError as exc:
            logger.warning("[RETRIEVAL] Vector search degraded: %s", exc)
            return [], KB_SEARCH_FAILED
        return documents, None
