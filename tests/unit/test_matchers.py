"""Tests for the AI and keyword category matchers."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from servers.conflict_mcp.errors import CategoryMatchParseError, ClassificationFailure
from servers.conflict_mcp.matchers import (
    KeywordCategoryMatcher,
    OpenAICategoryMatcher,
    build_prompt,
    detect_language,
    parse_category_match,
    translate_category,
)


def completion(content: str) -> dict:
    return {"choices": [{"message": {"content": content}}]}


class TestParseCategoryMatch:
    """Tests for reply parsing."""

    def test_camel_case_reply(self):
        match = parse_category_match(json.dumps({
            "isMatch": True,
            "confidence": 0.85,
            "reasoning": "Divadlo means theater",
            "languageDetected": "cs",
        }))
        assert match.is_match is True
        assert match.confidence == 0.85
        assert match.language_detected == "cs"

    def test_snake_case_reply(self):
        match = parse_category_match('{"is_match": false, "confidence": 0.2}')
        assert match.is_match is False

    @pytest.mark.parametrize("content", [
        None,
        "",
        "not json",
        "[1, 2]",
        '{"isMatch": true}',
        '{"isMatch": true, "confidence": 1.5}',
    ])
    def test_unusable_reply_raises(self, content):
        with pytest.raises(CategoryMatchParseError):
            parse_category_match(content)

    def test_prompt_truncates_description(self):
        prompt = build_prompt("Hudba", "Music", description="x" * 800)
        assert 'Event Title: "N/A"' in prompt
        assert "x" * 500 in prompt
        assert "x" * 501 not in prompt


class TestOpenAICategoryMatcher:
    """Tests for the chat completions matcher."""

    @pytest.mark.asyncio
    async def test_no_api_key(self):
        with patch.dict("os.environ", {}, clear=True):
            matcher = OpenAICategoryMatcher()
            with pytest.raises(ClassificationFailure):
                await matcher.match_category("Divadlo", "Entertainment")

    @pytest.mark.asyncio
    async def test_successful_match(self):
        mock_response = MagicMock()
        mock_response.json.return_value = completion(
            '{"isMatch": true, "confidence": 0.9, "reasoning": "theater"}'
        )
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(return_value=mock_client.return_value)
            mock_client.return_value.__aexit__ = AsyncMock(return_value=None)
            mock_client.return_value.post = AsyncMock(return_value=mock_response)

            matcher = OpenAICategoryMatcher(api_key="test-key")
            match = await matcher.match_category("Divadlo", "Entertainment", title="Hamlet")

        assert match.is_match is True
        body = mock_client.return_value.post.call_args.kwargs["json"]
        assert body["model"] == "gpt-4o-mini"
        assert body["response_format"] == {"type": "json_object"}
        assert "Hamlet" in body["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_http_error_becomes_classification_failure(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        error = httpx.HTTPStatusError(
            "server error", request=request, response=httpx.Response(500, request=request)
        )
        matcher = OpenAICategoryMatcher(api_key="test-key")

        with patch.object(matcher, "_post", AsyncMock(side_effect=error)):
            with pytest.raises(ClassificationFailure, match="HTTP 500"):
                await matcher.match_category("Divadlo", "Entertainment")

    @pytest.mark.asyncio
    async def test_transport_error_retried_then_fails(self):
        matcher = OpenAICategoryMatcher(api_key="test-key", max_retries=1)
        post = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with patch.object(matcher, "_post", post), patch("asyncio.sleep", AsyncMock()):
            with pytest.raises(ClassificationFailure, match="Request failed"):
                await matcher.match_category("Divadlo", "Entertainment")

        assert post.await_count == 2

    @pytest.mark.asyncio
    async def test_non_json_body_becomes_parse_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        gateway_page = httpx.Response(200, text="<html>gateway</html>", request=request)

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(return_value=mock_client.return_value)
            mock_client.return_value.__aexit__ = AsyncMock(return_value=None)
            mock_client.return_value.post = AsyncMock(return_value=gateway_page)

            matcher = OpenAICategoryMatcher(api_key="test-key")
            with pytest.raises(CategoryMatchParseError) as exc_info:
                await matcher.match_category("Gastronomie", "Entertainment / Theater")

        assert exc_info.value.raw == "<html>gateway</html>"
        assert mock_client.return_value.post.await_count == 1

    @pytest.mark.asyncio
    async def test_malformed_payload(self):
        matcher = OpenAICategoryMatcher(api_key="test-key")
        with patch.object(matcher, "_post", AsyncMock(return_value={"choices": []})):
            with pytest.raises(CategoryMatchParseError):
                await matcher.match_category("Divadlo", "Entertainment")


class TestKeywordCategoryMatcher:
    """Tests for the offline matcher."""

    def test_translate_czech(self):
        assert translate_category("Divadlo") == "theater"
        assert translate_category("Vzdělávání") == "education"

    def test_detect_language(self):
        assert detect_language("Hudba a kultura") == "cs"
        assert detect_language("Teatro") == "es"
        assert detect_language("Concert") == "en"

    @pytest.mark.asyncio
    async def test_semantic_group_match(self):
        match = await KeywordCategoryMatcher().match_category("Divadlo", "Entertainment")
        assert match.is_match is True
        assert match.confidence == 0.7
        assert match.language_detected == "cs"

    @pytest.mark.asyncio
    async def test_unrelated_labels(self):
        match = await KeywordCategoryMatcher().match_category("Hudba", "Business")
        assert match.is_match is False
        assert match.confidence == 0.3
