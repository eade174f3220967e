"""
AlumGlass - Credential Rotation & Failover
===========================================
Executes one logical outbound call (Gemini generation or embedding)
against an ordered pool of API credentials.

Policy
------
Each attempt ends in exactly one of:

``success``
    → ``CallSuccess(data, credential, attempts)``.
``quota``  (HTTP 429, transient 502/503/504, or a quota / rate-limit /
resource-exhausted message)
    → fixed backoff, then the next credential.  No credential left →
    ``CallFailure(429, "all credentials exhausted")``.
``client`` (HTTP 400 or any other non-quota 4xx)
    → stop immediately with that status.  The request itself is wrong;
    another key will not fix it.
``transport`` (exception without an HTTP status)
    → stop immediately with status 500.
``upstream`` (any other 5xx)
    → stop immediately with status 500.

``MAX_TOTAL_ATTEMPTS`` caps the attempts of one logical call no matter
how many credentials are configured.

The engine never raises: callers receive a ``CallSuccess`` or a
``CallFailure`` and decide which HTTP status to surface.  Which key was
rejected is local to the call; nothing is remembered between requests.

Usage:
    pool = CredentialPool.from_mapping("generation", {"free": key1, "paid": key2})
    result = await call_with_failover(lambda cred: do_request(cred.secret()), pool)
    if result.success:
        ...
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

import httpx
from google.genai import errors as genai_errors
from pydantic import SecretStr

from alumglass.config.settings import settings
from alumglass.src.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

EXHAUSTED_MESSAGE = "all credentials exhausted"

_TRANSIENT_STATUSES = frozenset({502, 503, 504})
_QUOTA_MESSAGE_RE = re.compile(r"quota|rate[\s_-]?limit|resource[\s_-]?exhausted|too many requests", re.IGNORECASE)


# ══════════════════════════════════════════════════════════════════════
#  CREDENTIALS
# ══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Credential:
    """A named API key; the key stays masked in ``repr`` and logs."""

    name: str
    api_key: SecretStr

    def secret(self) -> str:
        return self.api_key.get_secret_value()


@dataclass(frozen=True)
class CredentialPool:
    """Ordered, immutable list of credentials for one capability."""

    capability: str
    credentials: tuple[Credential, ...]

    def __post_init__(self) -> None:
        if not self.credentials:
            raise ValueError(f"Credential pool '{self.capability}' is empty.")


    @classmethod
    def from_mapping(cls, capability: str, keys: Mapping[str, SecretStr | str]) -> CredentialPool:
        """Build a pool from ``{name: key}``; mapping order is priority order."""
        credentials = tuple(Credential(name, key if isinstance(key, SecretStr) else SecretStr(key)) for name, key in keys.items())
        return cls(capability, credentials)


    def __len__(self) -> int:
        return len(self.credentials)


    def names(self) -> list[str]:
        return [credential.name for credential in self.credentials]


# ══════════════════════════════════════════════════════════════════════
#  RESULT TYPES
# ══════════════════════════════════════════════════════════════════════


class FailureKind(str, Enum):
    QUOTA = "quota"
    CLIENT = "client"
    TRANSPORT = "transport"
    UPSTREAM = "upstream"


@dataclass(frozen=True)
class Classification:
    kind: FailureKind
    status: int
    message: str


@dataclass(frozen=True)
class CallSuccess(Generic[T]):
    data: T
    credential: str
    attempts: int
    success: bool = True


@dataclass(frozen=True)
class CallFailure:
    status: int
    message: str
    kind: FailureKind
    attempts: int
    success: bool = False


CallResult = Union[CallSuccess[T], CallFailure]


# ══════════════════════════════════════════════════════════════════════
#  CLASSIFICATION
# ══════════════════════════════════════════════════════════════════════


def classify_failure(exc: BaseException) -> Classification:
    """
    Map an exception raised by one attempt onto a failure class.

    Understands ``google.genai.errors.APIError`` (SDK calls) and
    ``httpx.HTTPStatusError`` (raw HTTP calls); anything else is a
    transport failure.
    """
    status, status_text, message = _describe(exc)

    if status == 429 or status in _TRANSIENT_STATUSES or _QUOTA_MESSAGE_RE.search(f"{status_text} {message}"):
        return Classification(FailureKind.QUOTA, 429, message)
    if status is None:
        return Classification(FailureKind.TRANSPORT, 500, message)
    if 400 <= status < 500:
        return Classification(FailureKind.CLIENT, status, message)
    return Classification(FailureKind.UPSTREAM, 500, message)


def _describe(exc: BaseException) -> tuple[int | None, str, str]:
    """Return ``(http_status, provider_status_text, message)`` for *exc*."""
    if isinstance(exc, genai_errors.APIError):
        return exc.code, exc.status or "", exc.message or str(exc)

    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        try:
            error = response.json().get("error") or {}
        except (ValueError, AttributeError):
            error = {}
        if not isinstance(error, dict):
            error = {"message": str(error)}
        message = error.get("message") or response.text[:300] or str(exc)
        return response.status_code, str(error.get("status") or ""), message

    return None, "", str(exc) or type(exc).__name__


# ══════════════════════════════════════════════════════════════════════
#  FAILOVER LOOP
# ══════════════════════════════════════════════════════════════════════


async def call_with_failover(operation: Callable[[Credential], Awaitable[T]], pool: CredentialPool, *, max_attempts: int | None = None, backoff_seconds: float | None = None, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> CallResult[T]:
    """
    Run *operation* with each credential of *pool* until it succeeds or
    the policy says stop.

    Parameters
    ----------
    operation
        Coroutine function performing one attempt with the given credential.
        It signals failure by raising.
    pool
        Credentials in priority order.
    max_attempts
        Global attempt cap; defaults to ``settings.MAX_TOTAL_ATTEMPTS``.
    backoff_seconds
        Pause before the next credential; defaults to ``settings.RETRY_BACKOFF_MS``.
    sleep
        Awaitable used for the backoff.

    Returns
    -------
    CallSuccess | CallFailure
    """
    cap = max_attempts if max_attempts is not None else settings.MAX_TOTAL_ATTEMPTS
    backoff = backoff_seconds if backoff_seconds is not None else settings.RETRY_BACKOFF_MS / 1000
    budget = min(len(pool), cap)

    for attempt, credential in enumerate(pool.credentials[:budget], start=1):
        try:
            data = await operation(credential)
        except Exception as exc:
            verdict = classify_failure(exc)
            if verdict.kind is not FailureKind.QUOTA:
                logger.error("[FAILOVER] %s call failed on '%s' (%s, status=%d); not rotating: %s", pool.capability, credential.name, verdict.kind.value, verdict.status, verdict.message)
                return CallFailure(verdict.status, verdict.message, verdict.kind, attempt)

            logger.warning("[FAILOVER] %s credential '%s' rejected for capacity (attempt %d/%d): %s", pool.capability, credential.name, attempt, budget, verdict.message)
            if attempt < budget:
                await sleep(backoff)
            continue

        if attempt > 1:
            logger.info("[FAILOVER] %s call succeeded on '%s' after %d attempt(s).", pool.capability, credential.name, attempt)
        return CallSuccess(data, credential.name, attempt)

    logger.error("[FAILOVER] %s pool exhausted after %d attempt(s) (%s).", pool.capability, budget, ", ".join(pool.names()))
    return CallFailure(429, EXHAUSTED_MESSAGE, FailureKind.QUOTA, budget)
