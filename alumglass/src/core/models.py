"""
AlumGlass - Domain Models
==========================
Value objects passed between the session store, retrieval fusion,
prompt assembly and the request handler.

Everything crossing a provider boundary (Gemini, vector store, web
search) is converted into one of these types right at that boundary,
so the rest of the pipeline never inspects raw provider JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]


class ProfileHint(BaseModel):
    """Optional visitor details used only to personalise answers."""

    name: str | None = None
    contact: str | None = None

    def is_empty(self) -> bool:
        return not (self.name or self.contact)


class WebResult(BaseModel):
    """One keyword-search hit: ``title`` / ``link`` / ``description``."""

    title: str
    link: str
    description: str = ""


class RetrievedDocument(BaseModel):
    """
    A knowledge-base hit returned by a vector store.

    ``metadata`` carries ``doc_name`` (book / publication) and
    ``references`` (section or clause).  ``similarity`` is in ``[0, 1]``
    and serialises as ``$similarity``, the Astra Data API field name the
    widget reads.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content: str = ""
    metadata: dict[str, object] = {}
    similarity: float | None = Field(default=None, alias="$similarity")
    source: str = "vector"


@dataclass(frozen=True)
class RetrievalBundle:
    """
    Joined output of one retrieval fusion run.

    ``web_results`` preserves the declared provider order.
    ``vector_note`` is set when the knowledge-base lookup degraded
    (embedding or search failure) and holds the prompt fallback text.
    """

    web_results: dict[str, list[WebResult]] = field(default_factory=dict)
    vector_results: list[RetrievedDocument] = field(default_factory=list)
    vector_note: str | None = None


@dataclass(frozen=True)
class RequestFailure:
    """A failure the request handler surfaces to the client."""

    status: int
    message: str


@dataclass(frozen=True)
class ChatReply:
    response: str
    grounding_docs: list[RetrievedDocument]
    session_id: str


@dataclass(frozen=True)
class HistoryView:
    history: list[dict[str, object]]
    user_info: ProfileHint | None
