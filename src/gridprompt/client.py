"""
Remote call boundary.

The scheduler depends only on the ``RemoteClient`` protocol and on
``call_with_deadline``, which turns every failure into a ``CallError``.
``GeminiClient`` is the concrete transport for the Gemini
``generateContent`` endpoint, optionally grounded with Google Search.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

import httpx

from gridprompt.errors import (
    CallError,
    CallTimeoutError,
    ConfigError,
    EmptyResponseError,
    TransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash"

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


@dataclass
class GenerateResponse:
    """Text returned by the remote service plus optional grounding data."""

    text: str
    grounding_metadata: dict[str, Any] | None = None


class RemoteClient(Protocol):
    """Anything that can turn a prompt into response text."""

    async def generate(self, prompt: str) -> GenerateResponse: ...


@dataclass
class TransportRetryConfig:
    """
    Retry policy for transient transport failures.

    Attributes:
        max_retries: Retries after the first attempt (0 = single attempt)
        backoff_ms: Base delay, doubled on every retry
        max_backoff_ms: Upper bound on a single delay
    """

    max_retries: int = 5
    backoff_ms: int = 500
    max_backoff_ms: int = 30000
    retry_statuses: frozenset[int] = field(default=RETRYABLE_STATUS_CODES)

    def delay_seconds(self, attempt: int) -> float:
        return min(self.backoff_ms * (2**attempt), self.max_backoff_ms) / 1000


async def call_with_deadline(client: RemoteClient, prompt: str, timeout_s: float) -> str:
    """
    Issue one call and normalize its outcome.

    Args:
        client: Remote client
        prompt: Rendered prompt
        timeout_s: Deadline for the whole call, in seconds

    Returns:
        Non-blank response text

    Raises:
        CallTimeoutError: Deadline elapsed
        TransportError: Network or HTTP failure
        EmptyResponseError: Response without text
    """
    try:
        response = await asyncio.wait_for(client.generate(prompt), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise CallTimeoutError(timeout_s) from e
    except CallError:
        raise
    except (httpx.HTTPError, OSError) as e:
        raise TransportError(str(e) or type(e).__name__, cause=e) from e

    text = response.text if response is not None else None
    if not text or not text.strip():
        raise EmptyResponseError()
    return text


class GeminiClient:
    """Async client for the Gemini generateContent API."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        enable_web_search: bool = True,
        retry: TransportRetryConfig | None = None,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the client.

        Args:
            api_key: Gemini API key
            model: Model name (e.g. "gemini-2.5-flash")
            enable_web_search: Attach the google_search tool to every request
            retry: Transport retry policy
            base_url: API root
            http_client: Optional preconfigured httpx client (owned by caller)
            sleep: Async sleep used between retries
        """
        if not api_key:
            raise ConfigError("Gemini API key is empty")
        self.api_key = api_key
        self.model = model
        self.enable_web_search = enable_web_search
        self.retry = retry or TransportRetryConfig()
        self.base_url = base_url.rstrip("/")
        self._sleep = sleep
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            # Deadlines are enforced by the caller.
            self._client = httpx.AsyncClient(timeout=None)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> GeminiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_payload(self, prompt: str) -> dict[str, Any]:
        payload: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if self.enable_web_search:
            payload["tools"] = [{"google_search": {}}]
        return payload

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        attempt = 0
        while True:
            try:
                response = await self.client.post(self.endpoint, json=payload, headers=headers)
            except httpx.TransportError as e:
                if attempt >= self.retry.max_retries:
                    raise TransportError(f"Request failed: {e}", cause=e) from e
                reason = type(e).__name__
            else:
                if response.status_code == 200:
                    return response
                if (
                    response.status_code not in self.retry.retry_statuses
                    or attempt >= self.retry.max_retries
                ):
                    raise TransportError(
                        f"Gemini API error {response.status_code}: {response.text[:500]}",
                        status_code=response.status_code,
                    )
                reason = f"HTTP {response.status_code}"

            delay = self.retry.delay_seconds(attempt)
            attempt += 1
            logger.warning(
                "Gemini request failed (%s), retry %d/%d in %.1fs",
                reason,
                attempt,
                self.retry.max_retries,
                delay,
            )
            await self._sleep(delay)

    async def generate(self, prompt: str) -> GenerateResponse:
        """Send one prompt and return the first candidate's text."""
        response = await self._post(self.build_payload(prompt))
        try:
            body = response.json()
        except ValueError as e:
            raise TransportError("Gemini API returned invalid JSON", cause=e) from e

        candidates = body.get("candidates") or []
        if not candidates:
            raise EmptyResponseError("Gemini API returned no candidates")
        candidate = candidates[0] or {}
        parts = (candidate.get("content") or {}).get("parts") or []
        text = parts[0].get("text") if parts else None
        if not text:
            raise EmptyResponseError()

        return GenerateResponse(
            text=text,
            grounding_metadata=candidate.get("groundingMetadata"),
        )
