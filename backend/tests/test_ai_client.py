"""Tests for the OpenAI-compatible backends.

httpx.AsyncClient is patched; responses are real httpx.Response objects so
raise_for_status and json() behave as they do against a live server.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from pydantic import SecretStr

from smartmatch.ai.client import (
    GenerativeClient,
    HTTPEmbeddingBackend,
    LLMClassifierBackend,
    LLMFeatureBackend,
    LLMInsightBackend,
    decode,
)
from smartmatch.classifier.schemas import ClassifierVerdict, DocumentType
from smartmatch.config import Settings
from smartmatch.exceptions import BackendUnavailableError, MalformedBackendResponseError
from smartmatch.scoring.schemas import DimensionScores, InsightContext


BASE_URL = "https://llm.example.test/v1"


def _client() -> GenerativeClient:
    return GenerativeClient(api_key="sk-test", base_url=BASE_URL + "/", model="test-model")


def _response(status_code=200, payload=None, content=None) -> httpx.Response:
    request = httpx.Request("POST", BASE_URL + "/chat/completions")
    if content is not None:
        return httpx.Response(status_code, content=content, request=request)
    return httpx.Response(status_code, json=payload or {}, request=request)


def _completion(content) -> httpx.Response:
    return _response(payload={"choices": [{"message": {"content": content}}]})


def _http_mock(response=None, exc=None) -> AsyncMock:
    mock_client_instance = AsyncMock()
    if exc is not None:
        mock_client_instance.post = AsyncMock(side_effect=exc)
    else:
        mock_client_instance.post = AsyncMock(return_value=response)
    mock_client_instance.__aenter__ = AsyncMock(return_value=mock_client_instance)
    mock_client_instance.__aexit__ = AsyncMock(return_value=None)
    return mock_client_instance


VERDICT_JSON = json.dumps({
    "document_type": "RFP",
    "confidence": 0.91,
    "fit_score": 87,
    "is_valid_rfp": True,
    "reason": "Solicitation with scope and deadline",
    "extracted_sections": {"scope": "Cloud migration"},
    "keywords": ["cloud"],
    "unexpected": "ignored",
})


class TestFromSettings:
    def test_no_key_means_no_client(self):
        assert GenerativeClient.from_settings(Settings(_env_file=None)) is None

    def test_client_from_key(self):
        settings = Settings(
            _env_file=None, ai_api_key=SecretStr("sk-live"), ai_model="m1", ai_timeout_seconds=5
        )
        client = GenerativeClient.from_settings(settings)
        assert client.api_key == "sk-live"
        assert client.model == "m1"
        assert client.timeout == 5


class TestCompleteJson:
    @pytest.mark.asyncio
    async def test_returns_message_content(self):
        http = _http_mock(_completion(VERDICT_JSON))
        with patch("smartmatch.ai.client.httpx.AsyncClient", return_value=http):
            content = await _client().complete_json("system", "user")
        assert content == VERDICT_JSON

        url = http.post.call_args.args[0]
        body = http.post.call_args.kwargs["json"]
        headers = http.post.call_args.kwargs["headers"]
        assert url == BASE_URL + "/chat/completions"
        assert body["model"] == "test-model"
        assert body["response_format"] == {"type": "json_object"}
        assert headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_http_error_status_is_unavailable(self):
        http = _http_mock(_response(status_code=503))
        with patch("smartmatch.ai.client.httpx.AsyncClient", return_value=http):
            with pytest.raises(BackendUnavailableError) as exc_info:
                await _client().complete_json("system", "user")
        assert "503" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self):
        http = _http_mock(exc=httpx.ConnectError("connection refused"))
        with patch("smartmatch.ai.client.httpx.AsyncClient", return_value=http):
            with pytest.raises(BackendUnavailableError):
                await _client().complete_json("system", "user")

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self):
        http = _http_mock(_response(content=b"<html>gateway</html>"))
        with patch("smartmatch.ai.client.httpx.AsyncClient", return_value=http):
            with pytest.raises(MalformedBackendResponseError):
                await _client().complete_json("system", "user")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {},
        {"choices": []},
        {"choices": [{"message": {"content": ""}}]},
        {"choices": [{"message": {"content": None}}]},
    ])
    async def test_missing_content_is_malformed(self, payload):
        http = _http_mock(_response(payload=payload))
        with patch("smartmatch.ai.client.httpx.AsyncClient", return_value=http):
            with pytest.raises(MalformedBackendResponseError):
                await _client().complete_json("system", "user")


class TestDecode:
    def test_valid_content(self):
        verdict = decode(VERDICT_JSON, ClassifierVerdict)
        assert verdict.document_type == DocumentType.RFP
        assert verdict.extracted_sections.scope == "Cloud migration"

    def test_out_of_range_field_is_malformed(self):
        bad = json.loads(VERDICT_JSON)
        bad["fit_score"] = 140
        with pytest.raises(MalformedBackendResponseError):
            decode(json.dumps(bad), ClassifierVerdict)

    def test_unknown_document_type_is_malformed(self):
        bad = json.loads(VERDICT_JSON)
        bad["document_type"] = "Brochure"
        with pytest.raises(MalformedBackendResponseError):
            decode(json.dumps(bad), ClassifierVerdict)

    def test_not_json_is_malformed(self):
        with pytest.raises(MalformedBackendResponseError):
            decode("Sure! Here is the JSON you asked for", ClassifierVerdict)


class TestBackends:
    @pytest.mark.asyncio
    async def test_classifier_backend(self):
        http = _http_mock(_completion(VERDICT_JSON))
        with patch("smartmatch.ai.client.httpx.AsyncClient", return_value=http):
            verdict = await LLMClassifierBackend(_client()).classify("Request for Proposal")
        assert verdict.is_valid_rfp is True
        assert verdict.fit_score == 87

    @pytest.mark.asyncio
    async def test_feature_backend_truncates_inputs(self):
        http = _http_mock(_completion('{"key_phrases": ["cloud"], "certifications": []}'))
        with patch("smartmatch.ai.client.httpx.AsyncClient", return_value=http):
            suggestion = await LLMFeatureBackend(_client()).extract("x" * 5000, "")
        assert suggestion.key_phrases == ["cloud"]
        prompt = http.post.call_args.kwargs["json"]["messages"][1]["content"]
        assert "x" * 2000 in prompt
        assert "x" * 2001 not in prompt

    @pytest.mark.asyncio
    async def test_insight_backend_rejects_bad_impact(self):
        payload = {
            "risk_factors": [{"factor": "f", "impact": "catastrophic", "mitigation": "m"}],
            "recommended_strategy": {"approach": "a"},
        }
        http = _http_mock(_completion(json.dumps(payload)))
        context = InsightContext(
            industry="technology",
            services_offered=["cloud migration"],
            dimension_scores=DimensionScores(
                service_match=70,
                industry_match=60,
                timeline_alignment=55,
                certifications=60,
                value_range=65,
                past_win_similarity=50,
            ),
            historical_win_rate=0.0,
            document_excerpt="Request for Proposal",
        )
        with patch("smartmatch.ai.client.httpx.AsyncClient", return_value=http):
            with pytest.raises(MalformedBackendResponseError):
                await LLMInsightBackend(_client()).generate(context)

    @pytest.mark.asyncio
    async def test_embedding_backend(self):
        http = _http_mock(_response(payload={"data": [{"embedding": [0.1, 0.2, 0.3]}]}))
        with patch("smartmatch.ai.client.httpx.AsyncClient", return_value=http):
            vector = await HTTPEmbeddingBackend(_client(), "embed-model", 3).embed("cloud")
        assert vector == [0.1, 0.2, 0.3]
        body = http.post.call_args.kwargs["json"]
        assert body == {"model": "embed-model", "input": "cloud", "dimensions": 3}

    @pytest.mark.asyncio
    async def test_embedding_without_vector_is_malformed(self):
        http = _http_mock(_response(payload={"data": []}))
        with patch("smartmatch.ai.client.httpx.AsyncClient", return_value=http):
            with pytest.raises(MalformedBackendResponseError):
                await HTTPEmbeddingBackend(_client(), "embed-model", 3).embed("cloud")

    @pytest.mark.asyncio
    async def test_non_numeric_embedding_is_malformed(self):
        http = _http_mock(_response(payload={"data": [{"embedding": ["a", None, "c"]}]}))
        with patch("smartmatch.ai.client.httpx.AsyncClient", return_value=http):
            with pytest.raises(MalformedBackendResponseError):
                await HTTPEmbeddingBackend(_client(), "embed-model", 3).embed("cloud")
