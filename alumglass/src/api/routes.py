"""
AlumGlass - HTTP Routes
========================
Thin controllers over ``ChatGateway``:

    POST /api/webchat                 → chat turn
    POST /api/widget-search           → knowledge-base search only
    GET  /api/get-history/{session_id} → full conversation + latest profile hint

Failures come back from the gateway as ``RequestFailure`` and are
rendered as ``{"error": message}`` with the carried status.  Errors are
written onto the injected ``Response`` instead of raised, so the session
cookie set on it survives error replies.  Every route (re)issues the
session cookie.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response

from alumglass.config.settings import settings
from alumglass.src.api.schemas import ChatRequest, ChatResponse, ErrorResponse, HistoryMessage, HistoryResponse, SearchRequest
from alumglass.src.core.models import RequestFailure, RetrievedDocument
from alumglass.src.core.rag_engine import ChatGateway
from alumglass.src.database.session_store import resolve_or_create_session

router = APIRouter(prefix="/api")


def get_gateway(request: Request) -> ChatGateway:
    return request.app.state.gateway


def session_cookie(request: Request, response: Response) -> str:
    """Resolve the visitor's session and (re)issue the 30-day cookie."""
    session_id = resolve_or_create_session(request.cookies.get(settings.SESSION_COOKIE_NAME))
    response.set_cookie(settings.SESSION_COOKIE_NAME, session_id, max_age=settings.SESSION_COOKIE_MAX_AGE, path="/", secure=True, httponly=True, samesite="lax")
    return session_id


def _error(response: Response, failure: RequestFailure) -> dict[str, object]:
    response.status_code = failure.status
    return ErrorResponse(error=failure.message).model_dump()


def _document_payload(document: RetrievedDocument) -> dict[str, object]:
    return document.model_dump(by_alias=True, exclude={"source"})


@router.post("/webchat")
async def webchat(body: ChatRequest, response: Response, session_id: str = Depends(session_cookie), gateway: ChatGateway = Depends(get_gateway)):
    outcome = await gateway.chat(session_id, body.text, body.userInfo)
    if isinstance(outcome, RequestFailure):
        return _error(response, outcome)
    return ChatResponse(response=outcome.response, astraResults=[_document_payload(doc) for doc in outcome.grounding_docs], sessionId=outcome.session_id).model_dump()


@router.post("/widget-search")
async def widget_search(body: SearchRequest, response: Response, _visitor: str = Depends(session_cookie), gateway: ChatGateway = Depends(get_gateway)):
    outcome = await gateway.vector_search(body.text)
    if isinstance(outcome, RequestFailure):
        return _error(response, outcome)
    return [_document_payload(doc) for doc in outcome]


@router.get("/get-history/{session_id}")
async def get_history(session_id: str, response: Response, _visitor: str = Depends(session_cookie), gateway: ChatGateway = Depends(get_gateway)):
    outcome = await gateway.history(session_id)
    if isinstance(outcome, RequestFailure):
        return _error(response, outcome)

    messages = [
        HistoryMessage(role=str(message["role"]), content=str(message["content"]), timestamp=message["timestamp"].isoformat() if isinstance(message.get("timestamp"), datetime) else message.get("timestamp"))
        for message in outcome.history
    ]
    return HistoryResponse(history=messages, userInfo=outcome.user_info).model_dump()
