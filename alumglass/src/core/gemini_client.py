"""
AlumGlass - Gemini Gateway
===========================
Thin async wrapper over the ``google-genai`` SDK.  Every call goes
through ``call_with_failover`` so callers only ever see a tagged
``CallSuccess`` / ``CallFailure``, never an SDK exception.

A fresh ``genai.Client`` is built per attempt, because each attempt uses
a different credential from the pool, and closed once the call returns.

Generation output is reduced to plain answer text here:
  • thought parts are dropped
  • an empty answer is replaced by a fixed message chosen from the
    candidate's finish reason (SAFETY, RECITATION, MAX_TOKENS)
  • a truncated but non-empty answer gets a length marker appended
"""

from __future__ import annotations

from collections.abc import Callable

from google import genai

from alumglass.config.prompt_templates import BLOCKED_RECITATION_RESPONSE, BLOCKED_SAFETY_RESPONSE, EMPTY_RESPONSE, INCOMPLETE_RESPONSE, LENGTH_LIMIT_MARKER
from alumglass.config.settings import settings
from alumglass.src.core.credentials import CallResult, Credential, CredentialPool, call_with_failover
from alumglass.src.utils.logger import get_logger

logger = get_logger(__name__)

ClientFactory = Callable[..., genai.Client]

_BLOCKED_MESSAGES: dict[str, str] = {
    "SAFETY": BLOCKED_SAFETY_RESPONSE,
    "RECITATION": BLOCKED_RECITATION_RESPONSE,
    "MAX_TOKENS": INCOMPLETE_RESPONSE,
}


def _reason_name(reason: object) -> str:
    """Finish / block reasons arrive as SDK enums or plain strings."""
    if reason is None:
        return ""
    return str(getattr(reason, "name", reason)).upper()


def extract_answer(response: object) -> object:
    """
    Reduce a ``GenerateContentResponse`` to the answer text.

    Returns the text when there is any.  Returns ``None`` only when the
    response has no recognisable shape at all; the caller treats that
    as a non-text payload.
    """
    candidates = getattr(response, "candidates", None)

    if not candidates:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = _reason_name(getattr(feedback, "block_reason", None))
        if block_reason:
            logger.warning("[GEMINI] Prompt blocked before generation: %s", block_reason)
            return BLOCKED_SAFETY_RESPONSE
        if candidates is None and feedback is None:
            return None
        return EMPTY_RESPONSE

    candidate = candidates[0]
    finish_reason = _reason_name(getattr(candidate, "finish_reason", None))
    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []
    text = "".join(part.text for part in parts if getattr(part, "text", None) and not getattr(part, "thought", False)).strip()

    if not text:
        if finish_reason in _BLOCKED_MESSAGES:
            logger.warning("[GEMINI] Empty answer, finish_reason=%s", finish_reason)
            return _BLOCKED_MESSAGES[finish_reason]
        return EMPTY_RESPONSE

    if finish_reason == "MAX_TOKENS":
        return text + LENGTH_LIMIT_MARKER
    return text


async def _close(client: genai.Client) -> None:
    """Release both HTTP pools of a per-attempt client."""
    await client.aio.aclose()
    client.close()


class GeminiGateway:
    """
    Generation and embedding over two credential pools.

    Parameters
    ----------
    generation_pool
        Ordered pool for ``generate_content``.
    embedding_pool
        Pool for ``embed_content`` (usually a single credential).
    client_factory
        Called as ``client_factory(api_key=...)``; defaults to ``genai.Client``.
    """

    def __init__(self, generation_pool: CredentialPool, embedding_pool: CredentialPool, llm_model: str | None = None, embedding_model: str | None = None, client_factory: ClientFactory = genai.Client, max_attempts: int | None = None, backoff_seconds: float | None = None) -> None:
        self.generation_pool = generation_pool
        self.embedding_pool = embedding_pool
        self.llm_model = llm_model or settings.LLM_MODEL
        self.embedding_model = embedding_model or settings.EMBEDDING_MODEL
        self._client_factory = client_factory
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds


    @classmethod
    def from_settings(cls) -> GeminiGateway:
        generation_pool = CredentialPool.from_mapping("generation", settings.GEMINI_GENERATION_KEYS)
        embedding_pool = CredentialPool.from_mapping("embedding", {"embedding": settings.GEMINI_EMBEDDING_KEY})
        logger.info("[GEMINI] Generation pool: %s | model=%s | embedding model=%s", generation_pool.names(), settings.LLM_MODEL, settings.EMBEDDING_MODEL)
        return cls(generation_pool, embedding_pool)


    async def generate(self, prompt: str) -> CallResult[object]:
        """Run one generation; ``data`` is the extracted answer (see ``extract_answer``)."""

        async def _attempt(credential: Credential) -> object:
            client = self._client_factory(api_key=credential.secret())
            try:
                response = await client.aio.models.generate_content(model=self.llm_model, contents=prompt)
            finally:
                await _close(client)
            return extract_answer(response)

        return await call_with_failover(_attempt, self.generation_pool, max_attempts=self._max_attempts, backoff_seconds=self._backoff_seconds)


    async def embed(self, text: str) -> CallResult[list[float]]:
        """Embed *text*; ``data`` is the raw vector."""

        async def _attempt(credential: Credential) -> list[float]:
            client = self._client_factory(api_key=credential.secret())
            try:
                response = await client.aio.models.embed_content(model=self.embedding_model, contents=text)
            finally:
                await _close(client)
            if not response.embeddings or not response.embeddings[0].values:
                raise ValueError("Embedding response did not contain a vector")
            return list(response.embeddings[0].values)

        return await call_with_failover(_attempt, self.embedding_pool, max_attempts=self._max_attempts, backoff_seconds=self._backoff_seconds)
