"""
Language-model oracle client.

Thin async httpx adapter over an OpenAI-compatible chat completions endpoint:
system prompt and user prompt in, the model's raw text reply out. Parsing and
validation of that reply belong to the AI extractor.

Any object with an async complete(system_prompt, user_prompt) method can be
used in place of OracleClient.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from sale_scraper import settings
from sale_scraper.errors import ClassifiedError, ExtractionError
from sale_scraper.types import ErrorClassification

logger = logging.getLogger(__name__)

# Oracle statuses worth retrying; anything else means the request itself is bad
RETRYABLE_ORACLE_STATUSES = {408, 429, 500, 502, 503, 504}


class OracleClient:
    """
    Async HTTP client for chat completions.

    Sends one request per complete() call with a low temperature and a JSON
    response format so replies stay parseable.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: float = 0.1,
        max_tokens: int = 1000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the oracle client.

        Args:
            api_key: Bearer token (defaults to settings.OPENAI_API_KEY)
            base_url: API base URL (defaults to settings.OPENAI_BASE_URL)
            model: Model name (defaults to settings.OPENAI_MODEL)
            timeout: Request timeout in seconds (defaults to settings.AI_REQUEST_TIMEOUT)
            temperature: Sampling temperature
            max_tokens: Reply token cap
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key or getattr(settings, "OPENAI_API_KEY", "")
        self.base_url = (
            base_url or getattr(settings, "OPENAI_BASE_URL", "https://api.openai.com/v1")
        ).rstrip("/")
        self.model = model or getattr(settings, "OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = timeout or getattr(settings, "AI_REQUEST_TIMEOUT", 60.0)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.transport = transport

        self.completions_endpoint = f"{self.base_url}/chat/completions"

    def _get_headers(self) -> Dict[str, str]:
        """Build request headers with authentication."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        return headers

    def _build_payload(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        Send one chat completion request.

        Args:
            system_prompt: Instructions and output schema
            user_prompt: Page content to extract from

        Returns:
            The reply text (expected to be JSON, possibly code-fenced)

        Raises:
            ClassifiedError: RETRYABLE on rate limit or server errors
            ExtractionError: FATAL on other error statuses or an empty reply
            httpx.TimeoutException / httpx.NetworkError: left to the classifier
        """
        payload = self._build_payload(system_prompt, user_prompt)

        logger.debug(
            f"Calling oracle model {self.model} "
            f"(prompt length: {len(system_prompt) + len(user_prompt)} chars)"
        )

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport
        ) as client:
            response = await client.post(
                self.completions_endpoint,
                json=payload,
                headers=self._get_headers(),
            )

        return self._parse_response(response)

    def _parse_response(self, response: httpx.Response) -> str:
        """
        Pull the reply text out of a chat completions response.

        Args:
            response: httpx Response object

        Returns:
            Reply content string
        """
        if response.status_code != 200:
            error_msg = f"Oracle returned status {response.status_code}"
            try:
                error_data = response.json()
                if isinstance(error_data, dict) and "error" in error_data:
                    detail = error_data["error"]
                    if isinstance(detail, dict):
                        detail = detail.get("message", detail)
                    error_msg = f"{error_msg}: {detail}"
            except ValueError:
                error_msg = f"{error_msg}: {response.text[:200]}"

            logger.warning(error_msg)

            if response.status_code in RETRYABLE_ORACLE_STATUSES:
                raise ClassifiedError(error_msg, ErrorClassification.RETRYABLE)
            raise ExtractionError(error_msg)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Failed to parse oracle response: {e}")
            raise ExtractionError(f"Invalid oracle response: {e}")

        if not content:
            raise ExtractionError("No response from AI")

        usage = data.get("usage")
        if usage:
            logger.debug(
                f"Oracle token usage: prompt={usage.get('prompt_tokens')} "
                f"completion={usage.get('completion_tokens')}"
            )

        return content
