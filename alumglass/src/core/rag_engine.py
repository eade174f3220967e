"""
AlumGlass - Chat Gateway
=========================
Orchestrates one chat turn end to end.

Flow (``ChatGateway.chat``):
    1. Validate text → 400 on empty / whitespace-only input
    2. Fetch the bounded recent history for the session
    3. Profile hint = request ``userInfo`` if supplied, else latest stored hint
    4. Retrieval fusion → web results ‖ (embedding → vector search)
    5. Assemble the grounded prompt (verbatim query)
    6. Generate with credential failover → classified failure returned as-is
    7. Persist the user turn (hint only if supplied now), then the assistant turn
    8. Return answer + knowledge-base documents + session id

Steps 2 → 5 → 6 → 7 are strictly ordered.  Persistence failures are
logged by the store and do not fail the request.

The gateway holds no request state and is shared by all requests.

Usage:
    gateway = ChatGateway(store, gemini, retrieval)
    outcome = await gateway.chat(session_id, "ضخامت شیشه سکوریت نما؟", profile_hint=None)
"""

from __future__ import annotations

from alumglass.config.prompt_templates import EMPTY_RESPONSE, ERROR_CLIENT_PREFIX, ERROR_EMBEDDING_PREFIX, ERROR_EMPTY_MESSAGE, ERROR_EMPTY_SEARCH, ERROR_HISTORY_NOT_FOUND, ERROR_QUOTA_PREFIX, ERROR_UPSTREAM_PREFIX, INVALID_ASSISTANT_PLACEHOLDER
from alumglass.config.settings import settings
from alumglass.src.core.credentials import CallFailure, FailureKind
from alumglass.src.core.gemini_client import GeminiGateway
from alumglass.src.core.models import ChatReply, HistoryView, ProfileHint, RequestFailure, RetrievedDocument
from alumglass.src.core.prompt_builder import assemble
from alumglass.src.core.retrieval import RetrievalFusion
from alumglass.src.database.session_store import MongoSessionStore
from alumglass.src.database.vector_store import VectorStoreError
from alumglass.src.utils.logger import get_logger
from alumglass.src.utils.text_utils import normalise_query

logger = get_logger(__name__)

_FAILURE_PREFIXES: dict[FailureKind, str] = {
    FailureKind.QUOTA: ERROR_QUOTA_PREFIX,
    FailureKind.CLIENT: ERROR_CLIENT_PREFIX,
    FailureKind.TRANSPORT: ERROR_UPSTREAM_PREFIX,
    FailureKind.UPSTREAM: ERROR_UPSTREAM_PREFIX,
}


def failure_response(failure: CallFailure, prefix: str | None = None) -> RequestFailure:
    """Carry the engine's status through; prefix its message with a localized label."""
    label = prefix or _FAILURE_PREFIXES[failure.kind]
    return RequestFailure(failure.status, f"{label}: {failure.message}")


class ChatGateway:
    """
    Request-level operations behind the HTTP routes.

    Parameters
    ----------
    store
        Session / message persistence.
    gemini
        Generation + embedding gateway (credential failover inside).
    retrieval
        Web + knowledge-base retrieval fusion.
    """

    __slots__ = ("store", "gemini", "retrieval", "history_limit")

    def __init__(self, store: MongoSessionStore, gemini: GeminiGateway, retrieval: RetrievalFusion, history_limit: int | None = None) -> None:
        self.store = store
        self.gemini = gemini
        self.retrieval = retrieval
        self.history_limit = settings.CHAT_HISTORY_LIMIT if history_limit is None else history_limit


    async def chat(self, session_id: str, text: str | None, profile_hint: ProfileHint | None = None) -> ChatReply | RequestFailure:
        if not text or not text.strip():
            return RequestFailure(400, ERROR_EMPTY_MESSAGE)

        supplied_hint = profile_hint if profile_hint is not None and not profile_hint.is_empty() else None

        history = await self.store.recent_history(session_id, self.history_limit)
        effective_hint = supplied_hint or await self.store.latest_profile_hint(session_id)

        bundle = await self.retrieval.retrieve(text)
        prompt = assemble(text, history, bundle.web_results, bundle.vector_results, effective_hint, bundle.vector_note)
        logger.debug("[CHAT] session=%s history=%d prompt_chars=%d", session_id, len(history), len(prompt))

        result = await self.gemini.generate(prompt)
        if not result.success:
            logger.error("[CHAT] Generation failed for session %s (status=%d, kind=%s).", session_id, result.status, result.kind.value)
            return failure_response(result)

        answer = result.data
        await self.store.append_message(session_id, "user", text, supplied_hint)
        if isinstance(answer, str):
            await self.store.append_message(session_id, "assistant", answer)
        else:
            logger.error("[CHAT] Non-text generation payload (%s) for session %s; storing placeholder.", type(answer).__name__, session_id)
            await self.store.append_message(session_id, "assistant", INVALID_ASSISTANT_PLACEHOLDER)
            answer = EMPTY_RESPONSE

        logger.info("[CHAT] Answered session %s via '%s' (%d attempt(s), %d kb doc(s)).", session_id, result.credential, result.attempts, len(bundle.vector_results))
        return ChatReply(response=answer, grounding_docs=bundle.vector_results, session_id=session_id)


    async def vector_search(self, text: str | None) -> list[RetrievedDocument] | RequestFailure:
        """Knowledge-base search only; embedding failures are surfaced, not degraded."""
        query = normalise_query(text or "")
        if not query:
            return RequestFailure(400, ERROR_EMPTY_SEARCH)

        embedding = await self.gemini.embed(query)
        if not embedding.success:
            return failure_response(embedding, ERROR_EMBEDDING_PREFIX)

        try:
            return await self.retrieval.vector_store.search(embedding.data, self.retrieval.vector_limit)
        except VectorStoreError as exc:
            return RequestFailure(500, f"{ERROR_UPSTREAM_PREFIX}: {exc}")


    async def history(self, session_id: str) -> HistoryView | RequestFailure:
        messages = await self.store.full_history(session_id)
        profile_hint = await self.store.latest_profile_hint(session_id)
        if not messages and profile_hint is None:
            return RequestFailure(404, ERROR_HISTORY_NOT_FOUND)
        return HistoryView(history=messages, user_info=profile_hint)
