"""
Shared test fixtures for the AlumGlass test suite.

Required settings are seeded into the environment *before* any
``alumglass`` module is imported, because ``alumglass.config.settings``
builds its singleton at import time.

Provides: in-memory session store, fake Gemini client factory,
fixed-result vector store, DuckDuckGo page / transport builders and a
wired ``ChatGateway`` factory.
"""

import os

os.environ.setdefault("GEMINI_GENERATION_KEYS", '{"free": "test-free-key", "paid": "test-paid-key"}')
os.environ.setdefault("GEMINI_EMBEDDING_KEY", "test-embedding-key")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("VECTOR_BACKEND", "lancedb")
os.environ.setdefault("RETRY_BACKOFF_MS", "0")

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from google.genai import types

from alumglass.src.core.credentials import CredentialPool
from alumglass.src.core.gemini_client import GeminiGateway
from alumglass.src.core.models import ProfileHint, RetrievedDocument
from alumglass.src.core.rag_engine import ChatGateway
from alumglass.src.core.retrieval import RetrievalFusion
from alumglass.src.core.web_search import providers_for


# ── Session store ─────────────────────────────────────────────────────


class InMemorySessionStore:
    """Dict-backed stand-in with the ``MongoSessionStore`` interface."""

    def __init__(self) -> None:
        self.sessions: dict[str, list[dict]] = {}
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    async def ensure_indexes(self) -> None:
        return None

    async def append_message(self, session_id, role, content, profile_hint=None) -> bool:
        self._clock += timedelta(seconds=1)
        message = {"role": role, "content": content, "timestamp": self._clock}
        if role == "user" and profile_hint is not None:
            if profile_hint.name:
                message["name"] = profile_hint.name
            if profile_hint.contact:
                message["contact"] = profile_hint.contact
        self.sessions.setdefault(session_id, []).append(message)
        return True

    async def recent_history(self, session_id, limit=None):
        messages = self.sessions.get(session_id, [])
        if limit is not None and limit <= 0:
            return []
        window = messages if limit is None else messages[-limit:]
        return [{"role": m["role"], "content": m["content"]} for m in window]

    async def full_history(self, session_id):
        return [{"role": m["role"], "content": m["content"], "timestamp": m["timestamp"]} for m in self.sessions.get(session_id, [])]

    async def latest_profile_hint(self, session_id):
        for message in reversed(self.sessions.get(session_id, [])):
            if message["role"] == "user" and (message.get("name") or message.get("contact")):
                return ProfileHint(name=message.get("name"), contact=message.get("contact"))
        return None


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


# ── Gemini ────────────────────────────────────────────────────────────


def text_response(text: str, finish_reason: str = "STOP") -> types.GenerateContentResponse:
    """Build a one-candidate generation response."""
    return types.GenerateContentResponse(candidates=[types.Candidate(content=types.Content(role="model", parts=[types.Part(text=text)]), finish_reason=finish_reason)])


def embedding_response(values: list[float]) -> types.EmbedContentResponse:
    return types.EmbedContentResponse(embeddings=[types.ContentEmbedding(values=values)])


class FakeGenaiClients:
    """
    Client factory recording which API key each attempt used.

    ``generate`` / ``embed`` are ``AsyncMock`` objects shared by every
    client built, so ``side_effect`` lists script successive attempts.
    ``aclose`` / ``close`` count how many clients were released.
    """

    def __init__(self) -> None:
        self.api_keys: list[str] = []
        self.generate = AsyncMock(return_value=text_response("پاسخ آزمایشی"))
        self.embed = AsyncMock(return_value=embedding_response([0.1, 0.2, 0.3]))
        self.aclose = AsyncMock()
        self.close = Mock()

    def __call__(self, api_key: str) -> SimpleNamespace:
        self.api_keys.append(api_key)
        models = SimpleNamespace(generate_content=self.generate, embed_content=self.embed)
        return SimpleNamespace(aio=SimpleNamespace(models=models, aclose=self.aclose), close=self.close)


@pytest.fixture
def genai_clients() -> FakeGenaiClients:
    return FakeGenaiClients()


# ── Vector store ──────────────────────────────────────────────────────


class StaticVectorStore:
    """Returns a fixed ranked list and records the queries it received."""

    def __init__(self, documents: list[RetrievedDocument] | None = None, error: Exception | None = None) -> None:
        self.documents = documents or []
        self.error = error
        self.calls: list[tuple[list[float], int]] = []

    async def search(self, vector, limit):
        self.calls.append((vector, limit))
        if self.error is not None:
            raise self.error
        return self.documents[:limit]


@pytest.fixture
def sample_documents() -> list[RetrievedDocument]:
    """Two knowledge-base hits in descending similarity order."""
    return [
        RetrievedDocument(content="حداقل ضخامت شیشه سکوریت در نما ۶ میلیمتر است.", metadata={"doc_name": "نشریه ۷۱۴", "references": "بخش ۴-۲"}, similarity=0.9123),
        RetrievedDocument(content="شیشه‌های نما باید در برابر بار باد کنترل شوند.", metadata={"doc_name": "مبحث ۱۹", "references": "۱۹-۱-۵-۲"}, similarity=0.8),
    ]


# ── Web search ────────────────────────────────────────────────────────


def ddg_page(results: list[tuple[str, str, str]]) -> str:
    """Render ``(href, title, snippet)`` triples as a DuckDuckGo HTML page."""
    blocks = [
        f'<div class="result"><h2 class="result__title"><a rel="nofollow" class="result__a" href="{href}">{title}</a></h2>'
        f'<a class="result__snippet" href="{href}">{snippet}</a></div>'
        for href, title, snippet in results
    ]
    return "<html><body>" + "".join(blocks) + "</body></html>"


def ddg_transport(pages: dict[str, str] | None = None, status: int = 200):
    """
    ``httpx.MockTransport`` answering DuckDuckGo queries.

    *pages* maps a query prefix (``"site:plato.stanford.edu"`` or ``""``)
    to the HTML returned; the longest matching prefix wins.
    """
    pages = pages or {}

    def handler(request):
        query = request.url.params.get("q", "")
        matches = sorted((prefix for prefix in pages if query.startswith(prefix)), key=len, reverse=True)
        body = pages[matches[0]] if matches else ddg_page([])
        return httpx.Response(status, text=body)

    return httpx.MockTransport(handler)


# ── Chat gateway ──────────────────────────────────────────────────────


@pytest.fixture
def make_gateway(session_store, genai_clients, sample_documents):
    """Factory for a fully wired ``ChatGateway`` over in-process fakes."""

    def _make(vector_store=None, transport=None, providers=("ddg", "sep")) -> ChatGateway:
        gemini = GeminiGateway(
            CredentialPool.from_mapping("generation", {"free": "k-free", "paid": "k-paid"}),
            CredentialPool.from_mapping("embedding", {"embedding": "k-embed"}),
            client_factory=genai_clients,
            backoff_seconds=0,
        )
        retrieval = RetrievalFusion(providers_for(list(providers)), gemini, vector_store or StaticVectorStore(sample_documents), transport=transport or ddg_transport())
        return ChatGateway(session_store, gemini, retrieval, history_limit=8)

    return _make
