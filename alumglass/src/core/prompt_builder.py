"""
AlumGlass - Prompt Assembly
============================
Pure, deterministic composition of the grounded generation prompt.
Identical inputs always produce byte-identical output: no clock, no
randomness, and web groups follow the caller's (declared) order.

Empty inputs never leave a blank section; each falls back to a sentinel
from ``prompt_templates``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from alumglass.config.prompt_templates import CONTACT_USER_LABEL, DEFAULT_USER_LABEL, KB_HEADER, KB_LINE, KB_NOT_FOUND, KB_SNIPPET_CHARS, KB_UNKNOWN_FIELD, NO_HISTORY, NO_WEB_RESULTS, PROMPT_TEMPLATE, SYSTEM_PROMPT, WEB_DEFAULT_LABEL, WEB_EMPTY_DESCRIPTION, WEB_GROUP_HEADER, WEB_LINE, WEB_PROVIDER_LABELS
from alumglass.src.core.models import ProfileHint, RetrievedDocument, WebResult

_SECTION_INDENT = "\n    "


def format_user_identity(profile_hint: ProfileHint | None) -> str:
    if profile_hint is None or profile_hint.is_empty():
        return DEFAULT_USER_LABEL
    if profile_hint.name:
        return profile_hint.name
    return CONTACT_USER_LABEL.format(contact=profile_hint.contact)


def format_history(history: Sequence[Mapping[str, str]]) -> str:
    if not history:
        return NO_HISTORY
    return _SECTION_INDENT.join(f"{message['role']}: {message['content']}" for message in history)


def format_knowledge_base(vector_results: Sequence[RetrievedDocument], vector_note: str | None = None) -> str:
    """Numbered knowledge-base lines, or the note / not-found sentinel."""
    if not vector_results:
        return vector_note or KB_NOT_FOUND

    lines = [KB_HEADER]
    for index, document in enumerate(vector_results, start=1):
        similarity = f"{document.similarity * 100:.1f}%" if document.similarity is not None else KB_UNKNOWN_FIELD
        lines.append(KB_LINE.format(
            index=index,
            doc_name=document.metadata.get("doc_name") or KB_UNKNOWN_FIELD,
            references=document.metadata.get("references") or KB_UNKNOWN_FIELD,
            similarity=similarity,
            content=document.content[:KB_SNIPPET_CHARS],
        ))
    return _SECTION_INDENT.join(lines)


def format_web_results(web_results: Mapping[str, Sequence[WebResult]]) -> str:
    """One block per provider that returned anything, in mapping order."""
    blocks: list[str] = []
    for provider, results in web_results.items():
        if not results:
            continue
        label = WEB_PROVIDER_LABELS.get(provider, WEB_DEFAULT_LABEL)
        lines = [WEB_GROUP_HEADER.format(label=label)]
        lines.extend(
            WEB_LINE.format(index=index, title=result.title, description=result.description or WEB_EMPTY_DESCRIPTION, link=result.link)
            for index, result in enumerate(results, start=1)
        )
        blocks.append(_SECTION_INDENT.join(lines))

    if not blocks:
        return NO_WEB_RESULTS
    return (_SECTION_INDENT * 2).join(blocks)


def assemble(user_query: str, history: Sequence[Mapping[str, str]], web_results: Mapping[str, Sequence[WebResult]], vector_results: Sequence[RetrievedDocument], profile_hint: ProfileHint | None, vector_note: str | None = None) -> str:
    """
    Build the full prompt in fixed section order.

    ``user_query`` is inserted verbatim.  ``vector_note`` replaces the
    generic not-found sentinel when the knowledge-base lookup degraded.
    """
    return PROMPT_TEMPLATE.format(
        system=SYSTEM_PROMPT,
        user_info=format_user_identity(profile_hint),
        history=format_history(history),
        query=user_query,
        knowledge_base=format_knowledge_base(vector_results, vector_note),
        web_results=format_web_results(web_results),
    )
