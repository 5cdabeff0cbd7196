"""
Tests for the language-model oracle client.

Uses httpx.MockTransport so no request leaves the process.
"""

import json

import httpx
import pytest

from sale_scraper.errors import ClassifiedError, ExtractionError
from sale_scraper.services.ai_client import OracleClient
from sale_scraper.types import ErrorClassification


def make_client(handler) -> OracleClient:
    return OracleClient(
        api_key="test-key",
        base_url="https://oracle.test/v1/",
        model="test-model",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def completion(content) -> dict:
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 100, "completion_tokens": 20},
    }


class TestOracleClient:
    """Tests for OracleClient.complete."""

    @pytest.mark.asyncio
    async def test_posts_chat_completion(self):
        """Sends both prompts, auth header and JSON response format."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion('{"name": "Linen Shirt"}'))

        client = make_client(handler)
        reply = await client.complete("system text", "user text")

        assert reply == '{"name": "Linen Shirt"}'
        assert seen["url"] == "https://oracle.test/v1/chat/completions"
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["messages"][0] == {"role": "system", "content": "system text"}
        assert seen["body"]["messages"][1] == {"role": "user", "content": "user text"}
        assert seen["body"]["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 500, 503])
    async def test_retryable_statuses(self, status):
        client = make_client(
            lambda request: httpx.Response(status, json={"error": {"message": "busy"}})
        )

        with pytest.raises(ClassifiedError) as exc_info:
            await client.complete("s", "u")

        assert exc_info.value.classification == ErrorClassification.RETRYABLE
        assert "busy" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_bad_request_is_fatal(self):
        client = make_client(lambda request: httpx.Response(400, text="bad request"))

        with pytest.raises(ExtractionError, match="Oracle returned status 400"):
            await client.complete("s", "u")

    @pytest.mark.asyncio
    async def test_empty_reply(self):
        client = make_client(lambda request: httpx.Response(200, json=completion("")))

        with pytest.raises(ExtractionError, match="No response from AI"):
            await client.complete("s", "u")

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        client = make_client(lambda request: httpx.Response(200, json={"choices": []}))

        with pytest.raises(ExtractionError, match="Invalid oracle response"):
            await client.complete("s", "u")

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(httpx.ConnectError):
            await client.complete("s", "u")
