"""
AlumGlass - Session Store
==========================
Anonymous session identity and per-session chat history in MongoDB
(async via ``motor``).

Collection schema (``chat_sessions``)::

    {
        "session_id": str,
        "messages": [
            {"role": "user", "content": str, "timestamp": datetime,
             "name": str?, "contact": str?},
            {"role": "assistant", "content": str, "timestamp": datetime},
            ...
        ],
        "created_at": datetime,
        "updated_at": datetime
    }

Messages are appended with ``$push`` so array order is insertion order.
Profile hints (``name`` / ``contact``) are stored only on user messages
from requests that supplied them.

Storage errors never reach the caller: reads degrade to empty results,
writes return ``False``.  Both are logged.
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime, timezone

import motor.motor_asyncio
from pymongo.errors import PyMongoError

from alumglass.config.settings import settings
from alumglass.src.core.models import ProfileHint, Role
from alumglass.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
ChatMessage = dict[str, str]
StoredMessage = dict[str, str | datetime]

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{8,64}$")
_SESSION_TOKEN_BYTES = 12  # → 16 url-safe characters


def new_session_id() -> str:
    return secrets.token_urlsafe(_SESSION_TOKEN_BYTES)


def is_valid_session_id(token: str | None) -> bool:
    return bool(token) and _SESSION_ID_RE.fullmatch(token) is not None


def resolve_or_create_session(token: str | None) -> str:
    """
    Return the session id for this request.

    A well-formed presented token is reused as-is; a missing or malformed
    one is replaced by a fresh unguessable id.  Writing the cookie is the
    caller's job.
    """
    if is_valid_session_id(token):
        return token
    if token:
        logger.warning("[SESSION] Ignoring malformed session token (len=%d).", len(token))
    session_id = new_session_id()
    logger.info("[SESSION] New session %s", session_id)
    return session_id


# ══════════════════════════════════════════════════════════════════════
#  MONGODB SINGLETON CLIENT
# ══════════════════════════════════════════════════════════════════════

_mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None


def _get_mongo_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the module-level async MongoDB client."""
    global _mongo_client
    if _mongo_client is None:
        _mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value(), tz_aware=True)
        logger.info("[SESSION] MongoDB async client created (singleton).")
    return _mongo_client


def close_mongo_client() -> None:
    global _mongo_client
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None


# ══════════════════════════════════════════════════════════════════════
#  SESSION STORE
# ══════════════════════════════════════════════════════════════════════


class MongoSessionStore:
    """
    Async chat-history store.

    Every query filters by ``session_id``; one visitor never reads
    another visitor's history.

    Parameters
    ----------
    collection
        Optional motor collection (tests inject an ``AsyncMock``).
        Defaults to ``settings.MONGO_DB_NAME`` / ``settings.MONGO_COLLECTION``
        on the shared client.
    """

    __slots__ = ("_collection",)

    def __init__(self, collection: motor.motor_asyncio.AsyncIOMotorCollection | None = None) -> None:
        if collection is None:
            collection = _get_mongo_client()[settings.MONGO_DB_NAME][settings.MONGO_COLLECTION]
        self._collection = collection


    async def ensure_indexes(self) -> None:
        try:
            await self._collection.create_index("session_id", unique=True)
        except PyMongoError:
            logger.exception("[SESSION] Could not ensure the session_id index.")


    async def append_message(self, session_id: str, role: Role, content: str, profile_hint: ProfileHint | None = None) -> bool:
        """Append one message (upsert on first write).  Returns ``False`` on storage error."""
        now = datetime.now(timezone.utc)
        message: StoredMessage = {"role": role, "content": content, "timestamp": now}
        if role == "user" and profile_hint is not None:
            if profile_hint.name:
                message["name"] = profile_hint.name
            if profile_hint.contact:
                message["contact"] = profile_hint.contact

        try:
            await self._collection.update_one({"session_id": session_id}, {"$push": {"messages": message}, "$set": {"updated_at": now}, "$setOnInsert": {"created_at": now}}, upsert=True)
        except PyMongoError:
            logger.exception("[SESSION] Failed to append %s message to '%s'.", role, session_id)
            return False
        return True


    async def recent_history(self, session_id: str, limit: int | None = None) -> list[ChatMessage]:
        """Last *limit* messages, oldest first, as ``{role, content}``."""
        if limit is None:
            limit = settings.CHAT_HISTORY_LIMIT
        if limit <= 0:
            return []
        try:
            doc = await self._collection.find_one({"session_id": session_id}, {"messages": {"$slice": -limit}})
        except PyMongoError:
            logger.exception("[SESSION] Failed to read recent history for '%s'.", session_id)
            return []
        if doc is None:
            return []
        return [{"role": message["role"], "content": message["content"]} for message in doc.get("messages", [])]


    async def full_history(self, session_id: str) -> list[StoredMessage]:
        """Every message, oldest first, as ``{role, content, timestamp}``."""
        messages = await self._load_messages(session_id)
        return [{"role": message["role"], "content": message["content"], "timestamp": message.get("timestamp")} for message in messages]


    async def latest_profile_hint(self, session_id: str) -> ProfileHint | None:
        """Hint from the most recent user message that carried one."""
        for message in reversed(await self._load_messages(session_id)):
            if message.get("role") == "user" and (message.get("name") or message.get("contact")):
                return ProfileHint(name=message.get("name"), contact=message.get("contact"))
        return None


    async def _load_messages(self, session_id: str) -> list[StoredMessage]:
        try:
            doc = await self._collection.find_one({"session_id": session_id}, {"messages": 1})
        except PyMongoError:
            logger.exception("[SESSION] Failed to read history for '%s'.", session_id)
            return []
        if doc is None:
            return []
        return doc.get("messages", [])
