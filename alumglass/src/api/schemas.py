"""
AlumGlass - API Schemas
========================
Request / response bodies of the public HTTP endpoints.  Field names
(``userInfo``, ``astraResults``, ``sessionId``) are the wire names the
embedded widget already uses.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from alumglass.src.core.models import ProfileHint


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str | None = None
    userInfo: ProfileHint | None = None


class SearchRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str | None = None


class ChatResponse(BaseModel):
    response: str
    astraResults: list[dict[str, object]]
    sessionId: str


class HistoryMessage(BaseModel):
    role: str
    content: str
    timestamp: str | None = None


class HistoryResponse(BaseModel):
    history: list[HistoryMessage]
    userInfo: ProfileHint | None = None


class ErrorResponse(BaseModel):
    error: str
