"""
Tests for the Gemini gateway: per-attempt credentials, answer
extraction and finish-reason handling.
"""

import pytest
from google.genai import errors as genai_errors
from google.genai import types

from alumglass.config.prompt_templates import BLOCKED_RECITATION_RESPONSE, BLOCKED_SAFETY_RESPONSE, EMPTY_RESPONSE, INCOMPLETE_RESPONSE, LENGTH_LIMIT_MARKER
from alumglass.src.core.credentials import CredentialPool, FailureKind
from alumglass.src.core.gemini_client import GeminiGateway, extract_answer
from conftest import embedding_response, text_response


@pytest.fixture
def gateway(genai_clients) -> GeminiGateway:
    return GeminiGateway(
        CredentialPool.from_mapping("generation", {"free": "k-free", "paid": "k-paid"}),
        CredentialPool.from_mapping("embedding", {"embedding": "k-embed"}),
        llm_model="gemini-test",
        embedding_model="embed-test",
        client_factory=genai_clients,
        backoff_seconds=0,
    )


def _quota() -> genai_errors.ClientError:
    return genai_errors.ClientError(429, {"error": {"code": 429, "message": "Quota exceeded for quota metric", "status": "RESOURCE_EXHAUSTED"}})


class TestGenerate:

    @pytest.mark.asyncio
    async def test_success_on_first_credential(self, gateway, genai_clients):
        result = await gateway.generate("prompt")

        assert result.success
        assert result.data == "پاسخ آزمایشی"
        assert genai_clients.api_keys == ["k-free"]
        genai_clients.generate.assert_awaited_once_with(model="gemini-test", contents="prompt")

    @pytest.mark.asyncio
    async def test_quota_rotates_to_paid_key(self, gateway, genai_clients):
        genai_clients.generate.side_effect = [_quota(), text_response("ok")]

        result = await gateway.generate("prompt")

        assert result.success
        assert result.credential == "paid"
        assert genai_clients.api_keys == ["k-free", "k-paid"]

    @pytest.mark.asyncio
    async def test_exhausted_pool_returns_429(self, gateway, genai_clients):
        genai_clients.generate.side_effect = [_quota(), _quota()]

        result = await gateway.generate("prompt")

        assert not result.success
        assert result.status == 429
        assert result.kind is FailureKind.QUOTA

    @pytest.mark.asyncio
    async def test_every_attempt_client_is_closed(self, gateway, genai_clients):
        genai_clients.generate.side_effect = [_quota(), text_response("ok")]

        await gateway.generate("prompt")

        assert genai_clients.aclose.await_count == 2
        assert genai_clients.close.call_count == 2


class TestEmbed:

    @pytest.mark.asyncio
    async def test_returns_vector_with_embedding_key(self, gateway, genai_clients):
        genai_clients.embed.return_value = embedding_response([0.5, 0.25])

        result = await gateway.embed("ضخامت شیشه")

        assert result.success
        assert result.data == [0.5, 0.25]
        assert genai_clients.api_keys == ["k-embed"]
        genai_clients.embed.assert_awaited_once_with(model="embed-test", contents="ضخامت شیشه")

    @pytest.mark.asyncio
    async def test_single_credential_quota_fails_after_one_attempt(self, gateway, genai_clients):
        genai_clients.embed.side_effect = _quota()

        result = await gateway.embed("q")

        assert (result.success, result.status, result.attempts) == (False, 429, 1)

    @pytest.mark.asyncio
    async def test_empty_embedding_is_a_failure(self, gateway, genai_clients):
        genai_clients.embed.return_value = types.EmbedContentResponse(embeddings=[])
        result = await gateway.embed("q")
        assert not result.success
        assert result.status == 500

    @pytest.mark.asyncio
    async def test_client_is_closed_when_the_call_raises(self, gateway, genai_clients):
        genai_clients.embed.side_effect = _quota()

        await gateway.embed("q")

        assert genai_clients.aclose.await_count == 1
        assert genai_clients.close.call_count == 1


class TestExtractAnswer:

    def test_plain_text(self):
        assert extract_answer(text_response("  پاسخ  ")) == "پاسخ"

    def test_thought_parts_are_skipped(self):
        response = types.GenerateContentResponse(candidates=[types.Candidate(content=types.Content(role="model", parts=[types.Part(text="thinking...", thought=True), types.Part(text="پاسخ نهایی")]), finish_reason="STOP")])
        assert extract_answer(response) == "پاسخ نهایی"

    @pytest.mark.parametrize(
        ("reason", "expected"),
        [("SAFETY", BLOCKED_SAFETY_RESPONSE), ("RECITATION", BLOCKED_RECITATION_RESPONSE), ("MAX_TOKENS", INCOMPLETE_RESPONSE), ("STOP", EMPTY_RESPONSE)],
    )
    def test_empty_answer_uses_finish_reason_message(self, reason, expected):
        response = types.GenerateContentResponse(candidates=[types.Candidate(content=types.Content(role="model", parts=[]), finish_reason=reason)])
        assert extract_answer(response) == expected

    def test_truncated_answer_gets_length_marker(self):
        assert extract_answer(text_response("نیمه", finish_reason="MAX_TOKENS")) == "نیمه" + LENGTH_LIMIT_MARKER

    def test_blocked_prompt_without_candidates(self):
        response = types.GenerateContentResponse(candidates=[], prompt_feedback=types.GenerateContentResponsePromptFeedback(block_reason="SAFETY"))
        assert extract_answer(response) == BLOCKED_SAFETY_RESPONSE

    def test_unrecognised_payload_is_none(self):
        assert extract_answer(object()) is None
