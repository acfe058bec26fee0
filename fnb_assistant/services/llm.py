"""
Model gateway for the Anthropic Messages API.

Two call shapes:
  - plan():         non-streaming. Returns a final answer or a batch of tool calls.
  - stream_final(): streaming. Yields text deltas for the user-visible answer.

Any non-2xx response, network failure or broken stream raises
ModelGatewayError. Retry with exponential backoff + jitter (429, 5xx,
timeouts) is available through LLM_MAX_RETRIES and is off by default.
"""

import asyncio
import json
import logging
import random
import time
from typing import Any, AsyncGenerator, Optional, Sequence

import httpx

from ..core.config import Settings
from ..orchestrator.state import ConversationTurn, PlanResult, StopReason, parse_content_block

logger = logging.getLogger(__name__)


class ModelGatewayError(Exception):
    """The model API call failed. Fatal for the request."""

    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def __str__(self) -> str:
        if self.status_code:
            return f"Model API error {self.status_code}: {self.message}"
        return f"Model API error: {self.message}"


# ── Retry logic ──────────────────────────────────────────────────────

RETRYABLE_STATUS = {429, 500, 502, 503, 504}
BASE_DELAY = 1.0
MAX_DELAY = 16.0


def _backoff(attempt: int, retry_after: Optional[str] = None) -> float:
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            pass
    return min(MAX_DELAY, BASE_DELAY * (2 ** attempt) + random.uniform(0, 1))


def _error_message(body: bytes | str) -> str:
    """Pull the provider's error message out of a response body."""
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    try:
        data = json.loads(text)
        return data.get("error", {}).get("message") or text[:500]
    except (json.JSONDecodeError, AttributeError):
        return text[:500]


class ModelGateway:
    """Pooled httpx client plus the two Messages API entry points."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect=10, read=settings.llm_timeout_seconds, write=30, pool=10),
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
        )

    @property
    def url(self) -> str:
        return f"{self.settings.anthropic_base_url.rstrip('/')}/messages"

    def _headers(self) -> dict:
        return {
            "x-api-key": self.settings.anthropic_api_key,
            "anthropic-version": self.settings.anthropic_version,
            "content-type": "application/json",
        }

    def _payload(self, system: str, messages: Sequence[ConversationTurn], tools: Optional[list[dict]]) -> dict:
        payload: dict[str, Any] = {
            "model": self.settings.llm_model,
            "max_tokens": self.settings.llm_max_tokens,
            "temperature": self.settings.llm_temperature,
            "system": system,
            "messages": [turn.to_wire() for turn in messages],
        }
        if tools:
            payload["tools"] = tools
        return payload

    async def aclose(self) -> None:
        """Close the HTTP client. Call on app shutdown."""
        if not self._client.is_closed:
            await self._client.aclose()

    # ── Planning ─────────────────────────────────────────────────────

    async def _post(self, payload: dict) -> httpx.Response:
        """POST with optional backoff. Raises ModelGatewayError on final failure."""
        retries = max(0, self.settings.llm_max_retries)

        for attempt in range(retries + 1):
            try:
                resp = await self._client.post(self.url, json=payload, headers=self._headers())
            except httpx.TimeoutException as e:
                if attempt < retries:
                    delay = _backoff(attempt)
                    logger.warning(
                        "LLM timeout (attempt %d/%d), retrying in %.1fs",
                        attempt + 1, retries + 1, delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise ModelGatewayError(None, f"timeout: {e}") from e
            except httpx.HTTPError as e:
                raise ModelGatewayError(None, f"network error: {e}") from e

            if resp.is_success:
                return resp

            if resp.status_code in RETRYABLE_STATUS and attempt < retries:
                delay = _backoff(attempt, resp.headers.get("retry-after"))
                logger.warning(
                    "LLM %d (attempt %d/%d), retrying in %.1fs",
                    resp.status_code, attempt + 1, retries + 1, delay,
                )
                await asyncio.sleep(delay)
                continue

            message = _error_message(resp.text)
            logger.error("LLM API error %d: %s", resp.status_code, message)
            raise ModelGatewayError(resp.status_code, message)

        raise ModelGatewayError(None, "request failed after retries")

    async def plan(
        self,
        system: str,
        messages: Sequence[ConversationTurn],
        tools: Optional[list[dict]] = None,
    ) -> PlanResult:
        """One non-streaming Messages call."""
        payload = self._payload(system, messages, tools)
        start = time.monotonic()
        resp = await self._post(payload)

        try:
            data = resp.json()
        except ValueError as e:
            raise ModelGatewayError(resp.status_code, "response is not JSON") from e
        if not isinstance(data, dict) or not isinstance(data.get("content"), list):
            raise ModelGatewayError(resp.status_code, "response has no content list")

        blocks = []
        for raw in data["content"]:
            try:
                block = parse_content_block(raw)
            except (KeyError, TypeError) as e:
                raise ModelGatewayError(resp.status_code, f"malformed content block: {e}") from e
            if block is not None:
                blocks.append(block)

        result = PlanResult(
            stop_reason=StopReason.parse(data.get("stop_reason")),
            content=blocks,
            usage=data.get("usage") or {},
        )
        logger.info(
            "LLM %s: %dms | in=%d out=%d tokens | model=%s",
            result.stop_reason.value,
            int((time.monotonic() - start) * 1000),
            result.usage.get("input_tokens", 0),
            result.usage.get("output_tokens", 0),
            payload["model"],
        )
        return result

    # ── Streaming ────────────────────────────────────────────────────

    async def stream_final(
        self,
        system: str,
        messages: Sequence[ConversationTurn],
        tools: Optional[list[dict]] = None,
    ) -> AsyncGenerator[str, None]:
        """
        Stream the answer as text deltas.

        The tool catalog is still sent (the history holds tool blocks) but with
        tool_choice none, so the model can only write text. A stream that ends
        without message_stop raises: the caller must not mistake a cut-off
        answer for a complete one.
        """
        payload = self._payload(system, messages, tools)
        payload["stream"] = True
        if tools:
            payload["tool_choice"] = {"type": "none"}

        total = 0
        logger.info("LLM stream start: model=%s messages=%d", payload["model"], len(messages))

        try:
            async with self._client.stream("POST", self.url, json=payload, headers=self._headers()) as resp:
                if resp.status_code >= 400:
                    body = await resp.aread()
                    message = _error_message(body)
                    logger.error("LLM stream error %d: %s", resp.status_code, message)
                    raise ModelGatewayError(resp.status_code, message)

                async for line in resp.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    try:
                        event = json.loads(line[5:].strip())
                    except json.JSONDecodeError:
                        continue

                    event_type = event.get("type")
                    if event_type == "content_block_delta":
                        delta = event.get("delta") or {}
                        if delta.get("type") == "text_delta" and delta.get("text"):
                            total += len(delta["text"])
                            yield delta["text"]
                    elif event_type == "message_stop":
                        logger.info("LLM stream done: model=%s content=%d chars", payload["model"], total)
                        return
                    elif event_type == "error":
                        message = (event.get("error") or {}).get("message", "stream error")
                        logger.error("LLM stream error event: %s", message)
                        raise ModelGatewayError(None, message)
        except httpx.HTTPError as e:
            logger.warning("LLM stream network error: %s", e)
            raise ModelGatewayError(None, f"network error: {e}") from e

        raise ModelGatewayError(None, "stream ended before message_stop")
